import argparse
import json
import logging
import os
import sys
from typing import Any, Callable, Dict, Optional

from augmentation import optimize_with_augmentation
from exceptions import AugmentationExhausted, InvalidInput
from helper_catalog import HelperCatalog, load_helper_catalog
from meal_assembler import assemble_meal, format_meal
from nutrition import convert_meal_to_ingredients, normalize_targets

logger = logging.getLogger(__name__)

REQUEST_JSON = os.getenv("MEAL_REQUEST_JSON", "meal_request.json")


def optimize_meal(meal: Any, target_macros: Any,
                  catalog: Optional[HelperCatalog] = None,
                  solver_factory: Optional[Callable] = None) -> Dict[str, Any]:
    """
    Convert, solve, repair and assemble one meal.

    Raises InvalidInput before any solve for bad ingredients or targets, and
    AugmentationExhausted when no feasible solve exists after augmentation.
    """
    targets = normalize_targets(target_macros)
    ingredients, skipped = convert_meal_to_ingredients(meal, catalog=catalog)
    logger.info(f"Optimizing {len(ingredients)} ingredients for targets {targets.as_dict()}")

    outcome = optimize_with_augmentation(ingredients, targets, catalog=catalog, solver_factory=solver_factory)
    optimized = assemble_meal(outcome, meal)
    optimized["skippedIngredients"] = skipped
    return optimized


def load_request(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        request = json.load(f)
    if not isinstance(request, dict):
        raise InvalidInput(f"{path} must contain a JSON object")
    meal = request.get("meal") or request.get("mealToOptimize")
    targets = request.get("targetMacros") or request.get("target_macros")
    if meal is None or targets is None:
        raise InvalidInput("Missing required data for optimization: need 'meal' and 'targetMacros'")
    return {"meal": meal, "targetMacros": targets}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Optimize ingredient grams of one meal toward macro targets.")
    parser.add_argument("request", nargs="?", default=REQUEST_JSON,
                        help="JSON file with 'meal' and 'targetMacros' (default: $MEAL_REQUEST_JSON)")
    parser.add_argument("-o", "--output", help="write the optimized meal as JSON to this path")
    parser.add_argument("--catalog", help="helper catalog CSV (default: $HELPER_CATALOG_CSV)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    try:
        catalog = load_helper_catalog(args.catalog) if args.catalog else None
        request = load_request(args.request)
        optimized = optimize_meal(request["meal"], request["targetMacros"], catalog=catalog)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Failed to read {args.request}: {e}", file=sys.stderr)
        return 2
    except InvalidInput as e:
        print(f"❌ Invalid input: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"❌ Invalid helper catalog: {e}", file=sys.stderr)
        return 2
    except AugmentationExhausted as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print(format_meal(optimized))
    if args.output:
        with open(args.output, "w") as f:
            json.dump(optimized, f, indent=2)
    return 0


if __name__ == "__main__":
    sys.exit(main())
