"""
Ingredient and target models.

Turns caller-supplied meals (per-ingredient totals plus a quantity) into
per-gram ingredient records, and heterogeneous macro-target payloads into a
canonical four-field record.
"""

import logging
import math
import numbers
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from config import CONFIG
from exceptions import InvalidInput, SkippedIngredientWarning

logger = logging.getLogger(__name__)

MACROS = tuple(CONFIG["macros"])

# Ingredient attribute carrying the per-gram coefficient of each macro.
COEF_FIELD = {"calories": "cal", "protein": "prot", "carbs": "carb", "fat": "fat"}

# Accepted spellings for ingredient totals coming from meal generators.
TOTAL_ALIASES = {
    "calories": ("calories", "kcal", "cal"),
    "protein": ("protein", "prot", "proteins"),
    "carbs": ("carbs", "carb", "carbohydrates"),
    "fat": ("fat", "fats"),
}
QUANTITY_ALIASES = ("quantity", "amount")

# Accepted spellings for macro targets.
TARGET_ALIASES = {
    "calories": ("calories", "Calories", "kcal", "target_calories"),
    "protein": ("protein", "Protein (g)", "target_protein_grams"),
    "carbs": ("carbs", "Carbs (g)", "carbohydrates", "Carbohydrates (g)", "target_carbs_grams"),
    "fat": ("fat", "Fat (g)", "target_fat_grams"),
}


@dataclass(frozen=True)
class Ingredient:
    """A candidate ingredient described by its per-gram macro density."""
    name: str
    cal: float
    prot: float
    carb: float
    fat: float

    def __post_init__(self):
        for field_name in ("cal", "prot", "carb", "fat"):
            value = getattr(self, field_name)
            if not math.isfinite(value) or value < 0:
                raise InvalidInput(f"{self.name}: {field_name} per gram must be >= 0, got {value}")

    @classmethod
    def from_totals(cls, name: str, quantity: float, calories: float, protein: float,
                    carbs: float, fat: float) -> "Ingredient":
        if not quantity or quantity <= 0:
            raise InvalidInput(f"{name}: quantity must be > 0, got {quantity}")
        return cls(name, calories / quantity, protein / quantity, carbs / quantity, fat / quantity)

    def coef(self, macro: str) -> float:
        return getattr(self, COEF_FIELD[macro])

    def macros_for(self, grams: float) -> Dict[str, float]:
        return {m: self.coef(m) * grams for m in MACROS}


@dataclass(frozen=True)
class Targets:
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    def __post_init__(self):
        for m in MACROS:
            if getattr(self, m) < 0:
                raise InvalidInput(f"Target {m} must be >= 0, got {getattr(self, m)}")

    def get(self, macro: str) -> float:
        return getattr(self, macro)

    def as_dict(self) -> Dict[str, float]:
        return {m: getattr(self, m) for m in MACROS}


def to_number(value: Any) -> Optional[float]:
    """Coerce a scalar to float; None for anything non-numeric or non-finite."""
    if isinstance(value, bool) or not isinstance(value, (str, numbers.Number)):
        return None
    if isinstance(value, str):
        value = value.strip()
    try:
        num = pd.to_numeric(value, errors="coerce")
    except (TypeError, ValueError):
        return None
    if pd.isna(num):
        return None
    num = float(num)
    return num if math.isfinite(num) else None


def _first_present(row: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for k in keys:
        if k in row and row[k] is not None:
            return row[k]
    return None


def macro_totals(ingredients: Iterable[Ingredient], grams: Iterable[float]) -> Dict[str, float]:
    totals = {m: 0.0 for m in MACROS}
    for ing, g in zip(ingredients, grams):
        for m in MACROS:
            totals[m] += ing.coef(m) * g
    return totals


def _catalog_fallback(name: str, catalog) -> Optional[Ingredient]:
    if catalog is None:
        from helper_catalog import load_helper_catalog
        catalog = load_helper_catalog()
    # exact name only; canonical keys are substring rules ("goat" contains "oat")
    entry = catalog.get_exact(name)
    if entry is None:
        return None
    return Ingredient(name, entry.cal, entry.prot, entry.carb, entry.fat)


def convert_meal_to_ingredients(meal: Any, catalog=None) -> Tuple[List[Ingredient], List[str]]:
    """
    Convert a meal-like payload into per-gram Ingredient records.

    Args:
        meal: mapping with an "ingredients" list, or the list itself. Each item
            carries a name, a quantity in grams and macro totals.
        catalog: helper catalog used when an item carries no macro totals at all.

    Returns:
        Tuple of (ingredients, names of skipped items)

    Raises:
        InvalidInput: if no usable ingredient remains.
    """
    if isinstance(meal, Mapping):
        rows = meal.get("ingredients")
    else:
        rows = meal
    if not rows or isinstance(rows, (str, bytes)):
        raise InvalidInput("No valid ingredients found for optimization")

    ingredients: List[Ingredient] = []
    skipped: List[str] = []
    for idx, row in enumerate(rows):
        if not isinstance(row, Mapping):
            skipped.append(f"#{idx}")
            _warn_skipped(f"#{idx}", "not an ingredient object")
            continue
        name = str(row.get("name") or f"Ingredient {idx + 1}").strip()

        quantity = to_number(_first_present(row, QUANTITY_ALIASES))
        if quantity is None or quantity <= 0:
            skipped.append(name)
            _warn_skipped(name, f"invalid quantity {row.get('quantity', row.get('amount'))!r}")
            continue

        totals = {m: to_number(_first_present(row, TOTAL_ALIASES[m])) or 0.0 for m in MACROS}
        if any(v < 0 for v in totals.values()):
            raise InvalidInput(f"{name}: macro totals must be >= 0, got {totals}")

        if not any(totals.values()):
            fallback = _catalog_fallback(name, catalog)
            if fallback is not None:
                logger.info(f"{name}: no macro totals given, using catalog values")
                ingredients.append(fallback)
                continue

        ingredients.append(Ingredient.from_totals(name, quantity, **totals))

    if not ingredients:
        raise InvalidInput("No valid ingredients found for optimization")
    return ingredients, skipped


def _warn_skipped(name: str, reason: str) -> None:
    message = f"Skipping ingredient {name}: {reason}"
    logger.warning(message)
    warnings.warn(message, SkippedIngredientWarning, stacklevel=3)


def normalize_targets(raw: Any) -> Targets:
    """Accept any supported target payload and return canonical Targets."""
    if isinstance(raw, Targets):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidInput(f"Target macros must be an object, got {type(raw).__name__}")

    values = {}
    for m in MACROS:
        value = _first_present(raw, TARGET_ALIASES[m])
        num = to_number(value)
        if num is None:
            if value is not None:
                logger.warning(f"Target {m}={value!r} is not numeric, treating as 0")
            num = 0.0
        if num < 0:
            raise InvalidInput(f"Target {m} must be >= 0, got {num}")
        values[m] = num
    return Targets(**values)
