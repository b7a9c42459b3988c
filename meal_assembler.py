from typing import Any, Dict, List, Mapping, Optional, Sequence

from config import CONFIG
from nutrition import MACROS, Ingredient

TOTAL_KEYS = {
    "calories": "totalCalories",
    "protein": "totalProtein",
    "carbs": "totalCarbs",
    "fat": "totalFat",
}


def _r(value: float) -> float:
    return round(float(value), CONFIG["round_digits"])


def macros_string(calories: float, protein: float, carbs: float, fat: float) -> str:
    return f"{round(calories)} cal, {round(protein)}g protein, {round(carbs)}g carbs, {round(fat)}g fat"


def assemble_ingredients(ingredients: Sequence[Ingredient], grams: Sequence[float]) -> List[Dict[str, Any]]:
    """Per-ingredient rows, rounded; zero-gram ingredients are dropped."""
    rows = []
    for ing, g in zip(ingredients, grams):
        if g < CONFIG["zero_gram_epsilon"]:
            continue
        macros = {m: _r(v) for m, v in ing.macros_for(g).items()}
        rows.append({
            "name": ing.name,
            "amount": _r(g),
            "unit": CONFIG["default_unit"],
            **macros,
            "macrosString": macros_string(macros["calories"], macros["protein"], macros["carbs"], macros["fat"]),
        })
    return rows


def assemble_meal(outcome, meal: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the caller-facing meal from an AugmentationOutcome.

    Meal totals are summed from the kept (rounded) ingredient rows rather than
    copied from the solver, so the totals always match the listed ingredients.
    """
    meal = meal if isinstance(meal, Mapping) else {}
    result = outcome.result
    rows = assemble_ingredients(outcome.ingredients, result.grams)

    totals = {TOTAL_KEYS[m]: _r(sum(row[m] for row in rows)) for m in MACROS}

    helpers_added = list(outcome.helpers_added)
    kept = {row["name"]: row["amount"] for row in rows}
    helpers_used = [h for h in helpers_added if kept.get(h, 0.0) > CONFIG["helper_used_grams"]]

    title = meal.get("mealTitle") or meal.get("meal_title") or meal.get("meal_name") or "Optimized Meal"
    description = f"Optimized {title} to match the macro targets."
    if helpers_used:
        description += f" Additional ingredients ({', '.join(helpers_used)}) were added to make the targets achievable."

    return {
        "mealTitle": title,
        "description": description,
        "ingredients": rows,
        **totals,
        "instructions": meal.get("instructions") or CONFIG["default_instructions"],
        "achieved": {m: _r(v) for m, v in result.achieved.items()},
        "feasible": result.feasible,
        "accepted": outcome.accepted,
        "outOfTolerance": outcome.report.out_of_band,
        "helpersAdded": helpers_added,
        "helpersUsed": helpers_used,
        "augmentationRounds": outcome.rounds,
    }


def format_meal(meal: Mapping[str, Any]) -> str:
    status = "✅" if meal.get("accepted") else "⚠️"
    parts = [f"{status} {meal.get('mealTitle', 'Optimized Meal')}"]
    for row in meal.get("ingredients", []):
        parts.append(f"  {row['name']:<28} {row['amount']:>8.2f} {row['unit']}  ({row['macrosString']})")
    parts.append(
        f"Total: {int(round(meal['totalProtein']))}P {int(round(meal['totalCarbs']))}C "
        f"{int(round(meal['totalFat']))}F, {int(round(meal['totalCalories']))} kcal"
    )
    if meal.get("helpersAdded"):
        parts.append(f"Helpers added: {', '.join(meal['helpersAdded'])}")
    if meal.get("outOfTolerance"):
        parts.append(f"Outside ±{CONFIG['macro_tolerance']:.0%}: {', '.join(meal['outOfTolerance'])}")
    return "\n".join(parts)
