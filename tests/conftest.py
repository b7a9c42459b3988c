import pytest

from helper_catalog import load_helper_catalog
from nutrition import Ingredient, Targets


@pytest.fixture(scope="module")
def catalog():
    return load_helper_catalog()


@pytest.fixture
def pita_ingredients():
    return [
        Ingredient("Ground Beef", 2.0, 0.2, 0.0, 0.15),
        Ingredient("Onion", 0.4, 0.01, 0.09, 0.0),
        Ingredient("Pita Bread", 2.8, 0.08, 0.54, 0.02),
        Ingredient("Grilled Tomato", 0.2, 0.01, 0.04, 0.0),
    ]


@pytest.fixture
def pita_targets():
    return Targets(calories=637.2, protein=47.7, carbs=79.65, fat=14.18)


@pytest.fixture
def bowl_ingredients():
    # 150 g chicken + 80 g rice + 10 g oil hits bowl_targets exactly
    return [
        Ingredient("Chicken Breast", 1.65, 0.31, 0.0, 0.036),
        Ingredient("White Rice", 3.65, 0.071, 0.8, 0.007),
        Ingredient("Olive Oil", 8.84, 0.0, 0.0, 1.0),
    ]


@pytest.fixture
def bowl_targets():
    return Targets(calories=627.9, protein=52.18, carbs=64.0, fat=15.96)
