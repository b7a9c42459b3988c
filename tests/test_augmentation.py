import logging

import pytest

import augmentation
from augmentation import (
    AugmentationState, needs_protein_rescue, optimize_with_augmentation, present_keys,
    select_round_helpers
)
from canonical import canonical_name
from exceptions import AugmentationExhausted
from helper_catalog import HelperCatalog
from meal_optimizer import OptimizationResult
from nutrition import Ingredient, Targets

S = AugmentationState


def scripted(*achieved_list, feasible=True):
    """Replace the solver with canned results, recording every ingredient list it sees."""
    calls = []
    results = [
        OptimizationResult(
            feasible=feasible, objective=0.0, quantities={},
            achieved=dict(zip(("calories", "protein", "carbs", "fat"), a)),
        )
        for a in achieved_list
    ]

    def fake_solve(items, targets, solver=None):
        calls.append(tuple(items))
        return results[min(len(calls), len(results)) - 1]

    return fake_solve, calls


@pytest.fixture
def yogurt_meal():
    return [
        Ingredient("Greek Yogurt (Non-Fat)", 0.59, 0.10, 0.036, 0.004),
        Ingredient("Honey", 3.04, 0.003, 0.82, 0.0),
    ]


def test_accepted_first_solve_is_left_alone(bowl_ingredients, bowl_targets, catalog):
    made = []

    def factory():
        made.append(1)
        return None

    outcome = optimize_with_augmentation(bowl_ingredients, bowl_targets, catalog=catalog,
                                         solver_factory=factory)
    assert outcome.accepted
    assert outcome.state is S.ACCEPTED
    assert outcome.trace == (S.INITIAL, S.SOLVED, S.ACCEPTED)
    assert outcome.ingredients == tuple(bowl_ingredients)
    assert outcome.helpers_added == ()
    assert outcome.rounds == 0
    assert len(made) == 1


def test_protein_helper_skips_existing_yogurt(yogurt_meal, catalog):
    deficits = {"calories": 0.0, "protein": 30.0, "carbs": -5.0, "fat": -1.0}
    chosen = select_round_helpers(deficits, yogurt_meal, catalog)
    assert [h.name for h in chosen] == ["Whey Protein Isolate"]


def test_protein_preference_walks_past_every_present_source(catalog):
    meal = [
        Ingredient("Whey Protein (vanilla)", 3.8, 0.8, 0.08, 0.02),
        Ingredient("Liquid Egg White", 0.52, 0.11, 0.01, 0.0),
        Ingredient("Greek Yogurt (Non-Fat)", 0.59, 0.10, 0.036, 0.004),
    ]
    deficits = {"calories": 0.0, "protein": 30.0, "carbs": 0.0, "fat": 0.0}
    chosen = select_round_helpers(deficits, meal, catalog)
    assert [h.name for h in chosen] == ["Cottage Cheese Low-Fat"]


def test_one_helper_per_macro(catalog):
    meal = [Ingredient("Chicken Breast", 1.65, 0.31, 0.0, 0.036)]
    deficits = {"calories": 300.0, "protein": 10.0, "carbs": 40.0, "fat": 8.0}
    chosen = select_round_helpers(deficits, meal, catalog)
    assert [h.name for h in chosen] == ["Whey Protein Isolate", "Oats", "Olive Oil"]


def test_second_choice_when_first_present(catalog):
    meal = [Ingredient("Rolled Oats", 3.89, 0.169, 0.663, 0.069),
            Ingredient("Extra Virgin Olive Oil", 8.84, 0.0, 0.0, 1.0)]
    deficits = {"calories": 0.0, "protein": 0.0, "carbs": 20.0, "fat": 5.0}
    chosen = select_round_helpers(deficits, meal, catalog)
    assert [h.name for h in chosen] == ["Banana", "Peanut Butter"]


def test_calorie_only_deficit_adds_oats_backstop(catalog):
    meal = [Ingredient("Chicken Breast", 1.65, 0.31, 0.0, 0.036)]
    deficits = {"calories": 150.0, "protein": -3.0, "carbs": -1.0, "fat": -2.0}
    assert [h.name for h in select_round_helpers(deficits, meal, catalog)] == ["Oats"]

    with_oats = meal + [Ingredient("Oatmeal", 0.71, 0.025, 0.12, 0.015)]
    assert select_round_helpers(deficits, with_oats, catalog) == []


def test_helpers_missing_from_catalog_are_skipped(caplog):
    mini = HelperCatalog([Ingredient("Banana", 0.89, 0.011, 0.23, 0.003)], version="mini")
    meal = [Ingredient("Chicken Breast", 1.65, 0.31, 0.0, 0.036)]
    deficits = {"calories": 300.0, "protein": 10.0, "carbs": 40.0, "fat": 8.0}
    with caplog.at_level(logging.WARNING, logger="augmentation"):
        chosen = select_round_helpers(deficits, meal, mini)
    assert [h.name for h in chosen] == ["Banana"]
    assert "Whey Protein Isolate is not in catalog mini" in caplog.text


def test_nothing_to_add_when_over_target(catalog):
    meal = [Ingredient("Chicken Breast", 1.65, 0.31, 0.0, 0.036)]
    deficits = {"calories": -50.0, "protein": -3.0, "carbs": -1.0, "fat": -2.0}
    assert select_round_helpers(deficits, meal, catalog) == []


def test_needs_protein_rescue():
    targets = Targets(500, 40, 50, 15)

    def result(cal, p, c, f):
        return OptimizationResult(True, 0.0, {}, {"calories": cal, "protein": p, "carbs": c, "fat": f})

    assert needs_protein_rescue(result(500, 30, 60, 15), targets)
    assert needs_protein_rescue(result(500, 30, 50, 17), targets)
    assert not needs_protein_rescue(result(500, 30, 50, 15), targets)
    assert not needs_protein_rescue(result(500, 39, 60, 15), targets)


def test_two_round_path_to_acceptance(monkeypatch, catalog):
    targets = Targets(500, 40, 50, 15)
    fake, calls = scripted(
        (300, 20, 60, 10),    # protein and fat short, carbs over
        (500, 30, 60, 15),    # protein still short, carbs over
        (500, 40, 50, 15),    # on target
    )
    monkeypatch.setattr(augmentation, "solve_allocation", fake)
    meal = [Ingredient("Pita Bread", 2.8, 0.08, 0.54, 0.02)]

    outcome = optimize_with_augmentation(meal, targets, catalog=catalog)

    assert outcome.accepted
    assert outcome.rounds == 2
    assert outcome.helpers_added == ("Whey Protein Isolate", "Olive Oil", "Egg Whites")
    assert outcome.trace == (S.INITIAL, S.SOLVED, S.AUGMENTED, S.RESOLVED,
                             S.SECOND_AUGMENT, S.RESOLVED_FINAL, S.ACCEPTED)
    assert [len(c) for c in calls] == [1, 3, 4]
    # append-only working list
    assert calls[1][:1] == calls[0] and calls[2][:3] == calls[1]
    assert len(meal) == 1


def test_rounds_are_bounded(monkeypatch, catalog):
    targets = Targets(500, 40, 50, 15)
    fake, calls = scripted((450, 10, 90, 30))
    monkeypatch.setattr(augmentation, "solve_allocation", fake)
    meal = [Ingredient("Pita Bread", 2.8, 0.08, 0.54, 0.02)]

    outcome = optimize_with_augmentation(meal, targets, catalog=catalog)

    assert len(calls) == 3
    assert outcome.rounds == 2
    assert not outcome.accepted
    assert outcome.result.feasible
    assert outcome.state is S.REJECTED


def test_out_of_tolerance_without_rescue_condition_stops_after_one_round(monkeypatch, catalog):
    targets = Targets(500, 40, 50, 15)
    fake, calls = scripted((400, 40, 30, 15))
    monkeypatch.setattr(augmentation, "solve_allocation", fake)

    outcome = optimize_with_augmentation([Ingredient("Pita Bread", 2.8, 0.08, 0.54, 0.02)],
                                         targets, catalog=catalog)

    assert len(calls) == 2
    assert outcome.rounds == 1
    assert outcome.helpers_added == ("Oats",)
    assert outcome.trace[-1] is S.REJECTED


def test_infeasible_after_augmentation_raises(monkeypatch, catalog):
    fake, calls = scripted((0, 0, 0, 0), feasible=False)
    monkeypatch.setattr(augmentation, "solve_allocation", fake)

    with pytest.raises(AugmentationExhausted):
        optimize_with_augmentation([Ingredient("Pita Bread", 2.8, 0.08, 0.54, 0.02)],
                                   Targets(500, 40, 50, 15), catalog=catalog)
    assert len(calls) == 2
    # infeasible first solve still drives helpers from the full targets
    assert [i.name for i in calls[1][1:]] == ["Whey Protein Isolate", "Oats", "Olive Oil"]


def test_real_solve_with_yogurt_meal_never_duplicates(yogurt_meal, catalog):
    targets = Targets(calories=400, protein=100, carbs=20, fat=5)
    outcome = optimize_with_augmentation(yogurt_meal, targets, catalog=catalog)

    assert outcome.rounds >= 1
    assert outcome.helpers_added[0] == "Whey Protein Isolate"
    assert "Greek Yogurt Non-Fat" not in outcome.helpers_added
    keys = [canonical_name(i.name) for i in outcome.ingredients]
    assert len(keys) == len(set(keys))
    assert outcome.result.feasible
    assert all(v >= 0 for v in outcome.result.achieved.values())


def test_pita_meal_end_to_end(pita_ingredients, pita_targets, catalog):
    outcome = optimize_with_augmentation(pita_ingredients, pita_targets, catalog=catalog)
    assert outcome.result.feasible
    assert outcome.rounds <= 2
    assert outcome.ingredients[:4] == tuple(pita_ingredients)
    assert len(present_keys(outcome.ingredients)) == len(outcome.ingredients)
