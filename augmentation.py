"""
Augmentation engine.

When the candidate ingredients alone cannot land every macro inside the
tolerance band, helper ingredients from the reference catalog are appended
and the goal program is solved again. At most two rounds run:

    INITIAL -> SOLVED -> ACCEPTED
                      -> AUGMENTED -> RESOLVED -> ACCEPTED
                                               -> SECOND_AUGMENT -> RESOLVED_FINAL -> ACCEPTED | REJECTED
                                               -> REJECTED

A helper is never added when an ingredient with the same canonical identity
is already in the working list.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from canonical import canonical_name
from config import CONFIG
from exceptions import AugmentationExhausted
from helper_catalog import HelperCatalog, load_helper_catalog
from meal_optimizer import OptimizationResult, ToleranceReport, evaluate_tolerance, solve_allocation
from nutrition import Ingredient, Targets

logger = logging.getLogger(__name__)


class AugmentationState(enum.Enum):
    INITIAL = "initial"
    SOLVED = "solved"
    ACCEPTED = "accepted"
    AUGMENTED = "augmented"
    RESOLVED = "resolved"
    SECOND_AUGMENT = "second_augment"
    RESOLVED_FINAL = "resolved_final"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AugmentationOutcome:
    result: OptimizationResult
    report: ToleranceReport
    ingredients: Tuple[Ingredient, ...]
    helpers_added: Tuple[str, ...]
    rounds: int
    state: AugmentationState
    trace: Tuple[AugmentationState, ...]

    @property
    def accepted(self) -> bool:
        return self.report.accepted


def present_keys(ingredients: Iterable[Ingredient]) -> Set[str]:
    return {canonical_name(ing.name) for ing in ingredients}


def first_missing_helper(preferences: Sequence[str], present: Set[str],
                         catalog: HelperCatalog) -> Optional[Ingredient]:
    """First helper in preference order whose canonical identity is not present yet."""
    for name in preferences:
        helper = catalog.get(name)
        if helper is None:
            logger.warning(f"Helper {name} is not in catalog {catalog.version}, skipping")
            continue
        if canonical_name(helper.name) not in present:
            return helper
    return None


def select_round_helpers(deficits, ingredients: Sequence[Ingredient],
                         catalog: HelperCatalog) -> List[Ingredient]:
    """
    Pick at most one helper per under-target macro (protein, carbs, fat in
    that order). Calories never pick a helper directly; they only trigger the
    carbohydrate backstop when nothing else was chosen.
    """
    present = present_keys(ingredients)
    chosen: List[Ingredient] = []
    for macro, preferences in CONFIG["helper_preferences"].items():
        if deficits[macro] <= 0:
            continue
        helper = first_missing_helper(preferences, present, catalog)
        if helper is None:
            logger.info(f"No {macro} helper left to add, all preferred sources present")
            continue
        chosen.append(helper)
        present.add(canonical_name(helper.name))

    if not chosen and deficits["calories"] > 0:
        backstop = first_missing_helper([CONFIG["calorie_backstop_helper"]], present, catalog)
        if backstop is not None:
            chosen.append(backstop)
    return chosen


def needs_protein_rescue(result: OptimizationResult, targets: Targets) -> bool:
    ach = result.achieved
    low = CONFIG["protein_low_ratio"]
    high = CONFIG["excess_high_ratio"]
    protein_low = ach["protein"] < targets.protein * low
    carbs_high = ach["carbs"] > targets.carbs * high
    fat_high = ach["fat"] > targets.fat * high
    return protein_low and (carbs_high or fat_high)


def optimize_with_augmentation(ingredients: Sequence[Ingredient], targets: Targets,
                               catalog: Optional[HelperCatalog] = None,
                               solver_factory: Optional[Callable] = None) -> AugmentationOutcome:
    """
    Solve, and repair with catalog helpers when the solution is infeasible or
    out of tolerance.

    Args:
        ingredients: candidate ingredients; never modified
        targets: macro targets for the meal
        catalog: helper catalog, defaults to the configured CSV
        solver_factory: zero-argument callable returning a pulp solver per solve

    Returns:
        AugmentationOutcome with the best result found. accepted=False means
        the meal is feasible but still outside tolerance.

    Raises:
        AugmentationExhausted: if the final solve is still infeasible.
    """
    catalog = catalog if catalog is not None else load_helper_catalog()
    max_rounds = CONFIG["max_augment_rounds"]

    def solve(items: Tuple[Ingredient, ...]) -> Tuple[OptimizationResult, ToleranceReport]:
        solver = solver_factory() if solver_factory else None
        res = solve_allocation(items, targets, solver)
        return res, evaluate_tolerance(res, targets)

    working: Tuple[Ingredient, ...] = tuple(ingredients)
    helpers_added: Tuple[str, ...] = ()
    trace = [AugmentationState.INITIAL]
    rounds = 0

    def finish(state: AugmentationState) -> AugmentationOutcome:
        trace.append(state)
        return AugmentationOutcome(result, report, working, helpers_added, rounds, state, tuple(trace))

    result, report = solve(working)
    trace.append(AugmentationState.SOLVED)
    if report.accepted:
        logger.info("Candidate ingredients hit every target within tolerance")
        return finish(AugmentationState.ACCEPTED)

    # ---- Round 1: one helper per under-target macro ----
    if rounds < max_rounds:
        logger.warning(f"Augmenting ingredients (feasible={report.feasible}, out of band: {report.out_of_band})")
        added = select_round_helpers(report.deficits, working, catalog)
        working = working + tuple(added)
        helpers_added = helpers_added + tuple(h.name for h in added)
        logger.info(f"Round 1 helpers: {[h.name for h in added]}")
        trace.append(AugmentationState.AUGMENTED)
        result, report = solve(working)
        rounds += 1
        trace.append(AugmentationState.RESOLVED)
        if report.accepted:
            return finish(AugmentationState.ACCEPTED)

    # ---- Round 2: protein still short while carbs or fat overshoot ----
    if rounds < max_rounds and result.feasible and needs_protein_rescue(result, targets):
        helper = first_missing_helper(CONFIG["rescue_protein_helpers"], present_keys(working), catalog)
        if helper is not None:
            logger.info(f"Round 2 protein helper: {helper.name}")
            working = working + (helper,)
            helpers_added = helpers_added + (helper.name,)
            trace.append(AugmentationState.SECOND_AUGMENT)
            result, report = solve(working)
            rounds += 1
            trace.append(AugmentationState.RESOLVED_FINAL)
            if report.accepted:
                return finish(AugmentationState.ACCEPTED)

    if not result.feasible:
        trace.append(AugmentationState.REJECTED)
        raise AugmentationExhausted(
            f"Optimization not feasible even after adding helper ingredients: {result.error}"
        )

    logger.warning(f"Returning best effort result, out of tolerance: {report.out_of_band}")
    return finish(AugmentationState.REJECTED)
