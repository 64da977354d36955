# =============================================================================
# FILE: spectrum_mip/modules/solver.py
"""
Solver collaborators - solve(problem, time_limit) -> SolveResult

Two backends solve the composed PuLP problem:

    HighsSolver  HiGHS through scipy.optimize.milp, in memory (default)
    CbcSolver    COIN-OR CBC through PuLP's command-line interface

CBC hands its solution back through a text file written with 8 significant
digits, which is too coarse for the 1e-3 value reconciliation once bidder
values reach the millions. HiGHS results keep full double precision, and
the integer residue HiGHS tolerates is removed by re-solving the LP with
every integer variable fixed at its rounded value.

Solver handles are plain values owned by one model instance; nothing here
is global, so independent instances can be solved in parallel.
"""
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
import logging
import time

import numpy as np
import pulp
from scipy.optimize import Bounds, LinearConstraint, milp
from scipy.sparse import csr_matrix

logger = logging.getLogger(__name__)


class SolveStatus(Enum):
    OPTIMAL = "optimal"
    SUBOPTIMAL = "suboptimal"      # time limit hit, incumbent available
    TIME_LIMIT = "time_limit"      # time limit hit, no incumbent
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    UNDEFINED = "undefined"

    @property
    def has_solution(self) -> bool:
        return self in (SolveStatus.OPTIMAL, SolveStatus.SUBOPTIMAL)


@dataclass
class SolveResult:
    """Raw solver output: variable values keyed by variable name"""
    status: SolveStatus
    values: Dict[str, float] = field(default_factory=dict)
    objective: Optional[float] = None
    solve_time: float = 0.0

    def value(self, variable: pulp.LpVariable) -> float:
        try:
            return self.values[variable.name]
        except KeyError:
            raise KeyError(f"No value for variable {variable.name}") from None


def problem_constraints(problem: pulp.LpProblem) -> List[pulp.LpConstraint]:
    """Constraints in insertion order; PuLP 3.3+ exposes them as a callable"""
    constraints = problem.constraints
    if callable(constraints):
        return list(constraints())
    return list(constraints.values())


# =============================================================================
# HiGHS (scipy.optimize.milp)
# =============================================================================

@dataclass
class MatrixModel:
    """
    Matrix form of a PuLP problem as scipy.optimize.milp expects it

    The objective is always minimized: `c` carries the sign flip of a
    maximization problem and `objective_value` undoes it.
    """
    variables: List[pulp.LpVariable]
    c: np.ndarray
    integrality: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    constraints: Optional[LinearConstraint]
    sign: float = 1.0
    constant: float = 0.0

    @classmethod
    def from_problem(cls, problem: pulp.LpProblem) -> 'MatrixModel':
        variables = problem.variables()
        index = {var.name: i for i, var in enumerate(variables)}
        n = len(variables)

        sign = -1.0 if problem.sense == pulp.LpMaximize else 1.0
        c = np.zeros(n)
        constant = 0.0
        if problem.objective is not None:
            for var, coefficient in problem.objective.items():
                c[index[var.name]] += sign * coefficient
            constant = float(problem.objective.constant or 0.0)

        lower = np.array([-np.inf if v.lowBound is None else float(v.lowBound) for v in variables])
        upper = np.array([np.inf if v.upBound is None else float(v.upBound) for v in variables])
        integrality = np.array([1 if v.cat == pulp.LpInteger else 0 for v in variables])

        rows, cols, data = [], [], []
        row_lower, row_upper = [], []
        for row, constraint in enumerate(problem_constraints(problem)):
            for var, coefficient in constraint.items():
                rows.append(row)
                cols.append(index[var.name])
                data.append(float(coefficient))
            bound = -float(constraint.constant or 0.0)
            if constraint.sense == pulp.LpConstraintLE:
                row_lower.append(-np.inf)
                row_upper.append(bound)
            elif constraint.sense == pulp.LpConstraintGE:
                row_lower.append(bound)
                row_upper.append(np.inf)
            else:
                row_lower.append(bound)
                row_upper.append(bound)

        linear = None
        if row_lower:
            matrix = csr_matrix((data, (rows, cols)), shape=(len(row_lower), n))
            linear = LinearConstraint(matrix, np.array(row_lower), np.array(row_upper))

        return cls(variables, c, integrality, lower, upper, linear, sign, constant)

    def solve(self, integrality: np.ndarray, lower: np.ndarray, upper: np.ndarray, options: Dict):
        return milp(
            self.c,
            integrality=integrality,
            bounds=Bounds(lower, upper),
            constraints=self.constraints,
            options=options
        )

    def assignment(self, x: np.ndarray) -> Dict[str, float]:
        return {var.name: float(value) for var, value in zip(self.variables, x)}

    def objective_value(self, x: np.ndarray) -> float:
        return self.sign * float(self.c @ x) + self.constant


class HighsSolver:
    """
    HiGHS through scipy.optimize.milp

    Parameters:
    -----------
    msg : bool
        Forward HiGHS output
    gap_rel : float, optional
        Relative optimality gap at which HiGHS stops (None = prove optimality)
    polish : bool
        Re-solve the LP with all integer variables fixed at their rounded
        values, so continuous values are exact for the chosen integer point
    """

    def __init__(self, msg: bool = False, gap_rel: Optional[float] = None, polish: bool = True):
        self.msg = msg
        self.gap_rel = gap_rel
        self.polish = polish

    def _options(self, time_limit: Optional[float]) -> Dict:
        options = {'disp': self.msg}
        if time_limit is not None:
            options['time_limit'] = float(time_limit)
        options['mip_rel_gap'] = self.gap_rel if self.gap_rel is not None else 0.0
        return options

    def solve(self, problem: pulp.LpProblem, time_limit: Optional[float] = None) -> SolveResult:
        start = time.perf_counter()
        model = MatrixModel.from_problem(problem)
        res = model.solve(model.integrality, model.lower, model.upper, self._options(time_limit))

        status = self._translate_status(res, time_limit)
        values = {}
        objective = None
        if status.has_solution:
            x = res.x
            if self.polish and model.integrality.any():
                x = self._polish(model, x)
            values = model.assignment(x)
            objective = model.objective_value(x)
        elapsed = time.perf_counter() - start

        logger.debug(f"HiGHS finished: status {res.status} ({res.message}) in {elapsed:.3f}s")
        return SolveResult(status=status, values=values, objective=objective, solve_time=elapsed)

    def _polish(self, model: MatrixModel, x: np.ndarray) -> np.ndarray:
        integer = model.integrality == 1
        rounded = np.clip(np.round(x[integer]), model.lower[integer], model.upper[integer])
        lower = model.lower.copy()
        upper = model.upper.copy()
        lower[integer] = rounded
        upper[integer] = rounded

        res = model.solve(np.zeros_like(model.integrality), lower, upper, {'disp': self.msg})
        if res.status != 0 or res.x is None:
            logger.warning(f"⚠️ Polishing LP failed ({res.message}); keeping the MIP solution")
            return x
        polished = res.x.copy()
        polished[integer] = rounded
        return polished

    @staticmethod
    def _translate_status(res, time_limit: Optional[float]) -> SolveStatus:
        x = getattr(res, 'x', None)
        if res.status == 0:
            return SolveStatus.OPTIMAL
        if res.status == 1:
            if x is not None:
                return SolveStatus.SUBOPTIMAL
            return SolveStatus.TIME_LIMIT if time_limit is not None else SolveStatus.UNDEFINED
        if res.status == 2:
            return SolveStatus.INFEASIBLE
        if res.status == 3:
            return SolveStatus.UNBOUNDED
        return SolveStatus.UNDEFINED


# =============================================================================
# CBC (PuLP)
# =============================================================================

class CbcSolver:
    """
    COIN-OR CBC through PuLP

    Parameters:
    -----------
    msg : bool
        Forward CBC output
    threads : int, optional
        Number of CBC threads
    gap_rel : float, optional
        Relative optimality gap at which CBC stops
    integer_tolerance, primal_tolerance : float, optional
        CBC feasibility tolerances
    """

    def __init__(
        self,
        msg: bool = False,
        threads: Optional[int] = None,
        gap_rel: Optional[float] = None,
        integer_tolerance: Optional[float] = None,
        primal_tolerance: Optional[float] = None
    ):
        self.msg = msg
        self.threads = threads
        self.gap_rel = gap_rel
        self.integer_tolerance = integer_tolerance
        self.primal_tolerance = primal_tolerance

    def command_options(self) -> List[str]:
        options = []
        if self.integer_tolerance is not None:
            options.append(f"integerTolerance {self.integer_tolerance:g}")
        if self.primal_tolerance is not None:
            options.append(f"primalTolerance {self.primal_tolerance:g}")
        return options

    def _command(self, time_limit: Optional[float]) -> pulp.PULP_CBC_CMD:
        options = {'msg': self.msg, 'options': self.command_options()}
        if time_limit is not None:
            options['timeLimit'] = time_limit
        if self.threads is not None:
            options['threads'] = self.threads
        if self.gap_rel is not None:
            options['gapRel'] = self.gap_rel
        return pulp.PULP_CBC_CMD(**options)

    def solve(self, problem: pulp.LpProblem, time_limit: Optional[float] = None) -> SolveResult:
        start = time.perf_counter()
        problem.solve(self._command(time_limit))
        elapsed = time.perf_counter() - start

        status = self._translate_status(problem, time_limit)
        values = {}
        objective = None
        if status.has_solution:
            values = {v.name: (v.varValue if v.varValue is not None else 0.0)
                      for v in problem.variables()}
            objective = pulp.value(problem.objective)

        logger.debug(
            f"CBC finished: {pulp.LpStatus[problem.status]} "
            f"(solution status {problem.sol_status}) in {elapsed:.3f}s"
        )
        return SolveResult(status=status, values=values, objective=objective, solve_time=elapsed)

    @staticmethod
    def _translate_status(problem: pulp.LpProblem, time_limit: Optional[float]) -> SolveStatus:
        if problem.sol_status == pulp.LpSolutionOptimal:
            return SolveStatus.OPTIMAL
        if problem.sol_status == pulp.LpSolutionIntegerFeasible:
            return SolveStatus.SUBOPTIMAL
        if problem.status == pulp.LpStatusInfeasible:
            return SolveStatus.INFEASIBLE
        if problem.status == pulp.LpStatusUnbounded:
            return SolveStatus.UNBOUNDED
        if problem.status == pulp.LpStatusNotSolved and time_limit is not None:
            return SolveStatus.TIME_LIMIT
        return SolveStatus.UNDEFINED


def create_solver(config):
    """Solver handle for the backend named in a SolverConfig"""
    if config.backend == 'cbc':
        return CbcSolver(
            msg=config.msg,
            threads=config.threads,
            gap_rel=config.gap_rel,
            integer_tolerance=config.integer_tolerance,
            primal_tolerance=config.primal_tolerance
        )
    return HighsSolver(msg=config.msg, gap_rel=config.gap_rel)
