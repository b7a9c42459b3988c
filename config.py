import os

# ========================== CONFIGURATION ==========================

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

CONFIG = {
    # --- Macros handled by the optimizer (order matters for reports) ---
    "macros": ["calories", "protein", "carbs", "fat"],

    # --- Acceptance policy ---
    "macro_tolerance": 0.05,   # ±5% band around each target
    "tolerance_floor": 50,     # band is computed on max(50, target)

    # --- Augmentation ---
    "max_augment_rounds": 2,
    "protein_low_ratio": 0.95,    # second round: protein under 95% of target...
    "excess_high_ratio": 1.05,    # ...while carbs or fat over 105%
    "helper_preferences": {
        "protein": ["Whey Protein Isolate", "Egg Whites",
                    "Greek Yogurt Non-Fat", "Cottage Cheese Low-Fat"],
        "carbs": ["Oats", "Banana"],
        "fat": ["Olive Oil", "Peanut Butter"],
    },
    "calorie_backstop_helper": "Oats",
    "rescue_protein_helpers": ["Whey Protein Isolate", "Egg Whites"],

    # --- Solver ---
    "verbose_solver": False,   # True = show CBC logs in console

    # --- Helper catalog (per 100 g reference values) ---
    "helper_catalog_csv": os.getenv(
        "HELPER_CATALOG_CSV", os.path.join(BASE_DIR, "data", "helper_catalog.csv")
    ),
    "required_columns": ["name", "category", "calories", "protein", "carbs", "fat"],

    # --- Result assembly ---
    "round_digits": 2,
    "zero_gram_epsilon": 0.005,   # anything below rounds to 0.00 g
    "helper_used_grams": 1.0,
    "default_unit": "g",
    "default_instructions": "Cook ingredients according to preference. Season to taste and serve.",
}
# ===================================================================
