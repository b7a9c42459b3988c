import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pulp

from config import CONFIG
from exceptions import SolverError
from nutrition import MACROS, Ingredient, Targets, macro_totals

logger = logging.getLogger(__name__)

# ====================================================================
# Goal program structures

GRAMS = "grams"
POS_DEV = "pos_dev"
NEG_DEV = "neg_dev"


@dataclass(frozen=True)
class DecisionVariable:
    name: str
    kind: str                     # GRAMS / POS_DEV / NEG_DEV
    ref: str                      # ingredient name or macro
    low_bound: float = 0.0


@dataclass(frozen=True)
class EqualityConstraint:
    """sum(coefficients[v] * v) == rhs"""
    macro: str
    coefficients: Dict[str, float]
    rhs: float


@dataclass(frozen=True)
class GoalProgram:
    variables: List[DecisionVariable]
    constraints: List[EqualityConstraint]
    objective: Dict[str, float]   # minimized

    def variables_of(self, kind: str) -> List[DecisionVariable]:
        return [v for v in self.variables if v.kind == kind]


@dataclass(frozen=True)
class OptimizationResult:
    feasible: bool
    objective: float
    quantities: Dict[str, float]
    achieved: Dict[str, float]
    grams: Tuple[float, ...] = ()
    pos_dev: Dict[str, float] = field(default_factory=dict)
    neg_dev: Dict[str, float] = field(default_factory=dict)
    status: str = "Not Solved"
    error: Optional[str] = None


def zero_macros() -> Dict[str, float]:
    return {m: 0.0 for m in MACROS}


def build_goal_program(ingredients: Sequence[Ingredient], targets: Targets) -> GoalProgram:
    """
    L1 goal program: non-negative grams per ingredient, one deviation pair per
    macro, and one balance row per macro
        sum(coef * grams) + pos_dev - neg_dev == target
    The objective weights every deviation variable equally.
    """
    grams_vars = [DecisionVariable(f"grams_{i}", GRAMS, ing.name) for i, ing in enumerate(ingredients)]
    pos_vars = {m: DecisionVariable(f"pos_dev_{m}", POS_DEV, m) for m in MACROS}
    neg_vars = {m: DecisionVariable(f"neg_dev_{m}", NEG_DEV, m) for m in MACROS}

    constraints = []
    for m in MACROS:
        coefficients = {v.name: ing.coef(m) for v, ing in zip(grams_vars, ingredients)}
        coefficients[pos_vars[m].name] = 1.0
        coefficients[neg_vars[m].name] = -1.0
        constraints.append(EqualityConstraint(m, coefficients, float(targets.get(m))))

    objective = {v.name: 1.0 for v in list(pos_vars.values()) + list(neg_vars.values())}
    variables = grams_vars + list(pos_vars.values()) + list(neg_vars.values())
    return GoalProgram(variables, constraints, objective)


def _run_solver(program: GoalProgram, solver=None) -> Tuple[Dict[str, float], float, str]:
    model = pulp.LpProblem("MealGoalProgram", pulp.LpMinimize)
    lp_vars = {v.name: pulp.LpVariable(v.name, lowBound=v.low_bound) for v in program.variables}

    model += pulp.lpSum(w * lp_vars[name] for name, w in program.objective.items())
    for c in program.constraints:
        model += (
            pulp.lpSum(coef * lp_vars[name] for name, coef in c.coefficients.items()) == c.rhs,
            f"balance_{c.macro}",
        )

    if solver is None:
        solver = pulp.PULP_CBC_CMD(msg=CONFIG["verbose_solver"])
    try:
        status = model.solve(solver)
    except (pulp.PulpSolverError, OSError, ValueError) as e:
        raise SolverError(f"Linear solve failed: {e}") from e

    status_name = pulp.LpStatus.get(status, str(status))
    if status_name != "Optimal":
        raise SolverError(f"Linear solve ended with status {status_name}")

    values = {}
    for name, var in lp_vars.items():
        value = var.varValue
        # variables with all-zero coefficients are never sent to the solver
        values[name] = float(value) if value is not None else 0.0
        if math.isnan(values[name]):
            raise SolverError(f"Solver returned NaN for {name}")
    objective = pulp.value(model.objective)
    return values, float(objective or 0.0), status_name


def solve_allocation(ingredients: Sequence[Ingredient], targets: Targets, solver=None) -> OptimizationResult:
    """
    Solve the goal program for gram quantities.

    A fresh CBC instance is built per call unless a pulp solver is injected.
    Solver failures come back as feasible=False with a zero achieved vector;
    unreachable targets only show up as deviation.
    """
    program = build_goal_program(ingredients, targets)
    logger.info(f"Solving goal program: {len(ingredients)} ingredients, targets {targets.as_dict()}")
    try:
        values, objective, status = _run_solver(program, solver)
    except SolverError as e:
        logger.error(f"Allocation solve failed: {e}")
        return OptimizationResult(
            feasible=False, objective=0.0, quantities={}, achieved=zero_macros(),
            grams=tuple(0.0 for _ in ingredients), status="Error", error=str(e),
        )

    grams = tuple(max(0.0, values[v.name]) for v in program.variables_of(GRAMS))
    quantities: Dict[str, float] = {}
    for ing, g in zip(ingredients, grams):
        quantities[ing.name] = quantities.get(ing.name, 0.0) + g

    return OptimizationResult(
        feasible=True,
        objective=objective,
        quantities=quantities,
        achieved=macro_totals(ingredients, grams),
        grams=grams,
        pos_dev={v.ref: values[v.name] for v in program.variables_of(POS_DEV)},
        neg_dev={v.ref: values[v.name] for v in program.variables_of(NEG_DEV)},
        status=status,
    )

# ====================================================================
# Tolerance policy


@dataclass(frozen=True)
class ToleranceReport:
    feasible: bool
    within: Dict[str, bool]
    deficits: Dict[str, float]    # target - achieved

    @property
    def accepted(self) -> bool:
        return self.feasible and all(self.within.values())

    @property
    def out_of_band(self) -> List[str]:
        return [m for m in MACROS if not self.within[m]]


def within_tolerance(achieved: float, target: float) -> bool:
    band = CONFIG["macro_tolerance"] * max(CONFIG["tolerance_floor"], target)
    return abs(achieved - target) <= band


def evaluate_tolerance(result: OptimizationResult, targets: Targets) -> ToleranceReport:
    within = {m: within_tolerance(result.achieved[m], targets.get(m)) for m in MACROS}
    deficits = {m: targets.get(m) - result.achieved[m] for m in MACROS}
    return ToleranceReport(feasible=result.feasible, within=within, deficits=deficits)
