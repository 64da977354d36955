# =============================================================================
# FILE: spectrum_mip/modules/orchestrator.py
"""
Model Orchestrator - Compose, solve and decode the spectrum allocation MIP

Composition:
    1. scaling factor s from the biggest possible bidder value
    2. world-level partial MIP (shared variables, capacity constraints)
    3. one bidder partial MIP per bidder, selected by its type tag

Lifecycle of one instance (linear, never re-entered):

    UNINITIALIZED -> COMPOSED -> SOLVED -> EXTRACTED

Counterfactual models ("without bidder X") and fresh copies are always
built from scratch over the respective bidder set.
"""
# =============================================================================

from enum import Enum
from typing import Dict, Iterable, List, Optional
import logging

import pulp

from .allocation import Allocation, AllocationMetaInfo, BidderAllocation
from .bidder_mips import BidderPartialMip, create_bidder_partial_mip
from .bidders import Bidder
from .partial_mip import WorldPartialMip
from .scaling import scaling_factor as compute_scaling_factor
from .solver import SolveResult, SolveStatus, create_solver
from .world import Bundle, GenericGood
from ..utils.config import SolverConfig
from ..utils.errors import (
    ConfigurationError,
    InfeasibleModelError,
    ModelStateError,
    SolutionInconsistencyError,
    SolveTimeoutError,
)

logger = logging.getLogger(__name__)


class ModelState(Enum):
    UNINITIALIZED = "uninitialized"
    COMPOSED = "composed"
    SOLVED = "solved"
    EXTRACTED = "extracted"


class SpectrumMip:
    """
    Efficient allocation MIP over a fixed set of bidders

    Parameters:
    -----------
    bidders : Iterable[Bidder]
        Non-empty collection of bidders sharing one world
    config : SolverConfig, optional
        Solve parameters; time limit and suboptimal policy can be changed
        with the setters until the instance is solved
    solver : object, optional
        Solver handle with `solve(problem, time_limit=None) -> SolveResult`;
        defaults to the backend named in `config`
    """

    def __init__(
        self,
        bidders: Iterable[Bidder],
        config: Optional[SolverConfig] = None,
        solver=None
    ):
        self._state = ModelState.UNINITIALIZED
        if bidders is None:
            raise ConfigurationError("Bidder collection must not be None")
        self._bidders: List[Bidder] = list(bidders)
        if len(self._bidders) == 0:
            raise ConfigurationError("Bidder collection must not be empty")

        self._config = config or SolverConfig()
        self._solver = solver or create_solver(self._config)
        self._time_limit = self._config.time_limit
        self._accept_suboptimal = self._config.accept_suboptimal

        self._problem = pulp.LpProblem("SpectrumAllocation", pulp.LpMaximize)
        self._scaling_factor = compute_scaling_factor(self._bidders, self._config)
        self._world_mip = WorldPartialMip(self._bidders, self._scaling_factor)
        self._world_mip.append_to_mip(self._problem)

        self._bidder_mips: Dict[int, BidderPartialMip] = {}
        for bidder in self._bidders:
            bidder_mip = create_bidder_partial_mip(bidder, self._scaling_factor, self._world_mip)
            bidder_mip.append_to_mip(self._problem)
            self._bidder_mips[bidder.bidder_id] = bidder_mip

        self._result: Optional[SolveResult] = None
        self._allocation: Optional[Allocation] = None
        self._state = ModelState.COMPOSED

        logger.info(
            f"Composed MIP: {len(self._bidders)} bidders, "
            f"{self._problem.numConstraints()} constraints, s={self._scaling_factor:.6g}"
        )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def bidders(self) -> List[Bidder]:
        return list(self._bidders)

    @property
    def config(self) -> SolverConfig:
        return self._config.with_updates(
            time_limit=self._time_limit,
            accept_suboptimal=self._accept_suboptimal
        )

    @property
    def solver(self):
        return self._solver

    @property
    def scaling_factor(self) -> float:
        return self._scaling_factor

    @property
    def problem(self) -> pulp.LpProblem:
        """The composed PuLP problem, mainly for tests and custom hooks"""
        return self._problem

    @property
    def world_partial_mip(self) -> WorldPartialMip:
        return self._world_mip

    @property
    def bidder_partial_mips(self) -> Dict[int, BidderPartialMip]:
        return dict(self._bidder_mips)

    def bidder_partial_mip(self, bidder: Bidder) -> BidderPartialMip:
        return self._bidder_mips[bidder.bidder_id]

    def x_variables(self) -> List[pulp.LpVariable]:
        return self._world_mip.x_variables()

    # -------------------------------------------------------------------------
    # Configuration and hooks (only while composed)
    # -------------------------------------------------------------------------

    def _require_composed(self, action: str) -> None:
        if self._state is not ModelState.COMPOSED:
            raise ModelStateError(
                f"Cannot {action} in state {self._state.value}; use copy_of() for a fresh instance"
            )

    def set_time_limit(self, seconds: Optional[float]) -> None:
        """Solver time limit in seconds; what happens at the limit is set by set_accept_suboptimal"""
        self._require_composed("set the time limit")
        if seconds is not None and seconds <= 0:
            raise ConfigurationError(f"Time limit must be positive, got {seconds}")
        self._time_limit = seconds

    def set_accept_suboptimal(self, accept_suboptimal: bool) -> None:
        """True: accept the incumbent at the time limit; False: raise SolveTimeoutError"""
        self._require_composed("change the suboptimal policy")
        self._accept_suboptimal = bool(accept_suboptimal)

    def add_constraint(self, constraint: pulp.LpConstraint) -> None:
        self._require_composed("add a constraint")
        self._problem += constraint

    def add_variable(self, variable: pulp.LpVariable) -> None:
        self._require_composed("add a variable")
        self._problem.addVariable(variable)

    def add_objective_term(self, coefficient: float, variable: pulp.LpVariable) -> None:
        self._require_composed("change the objective")
        self._problem.setObjective(self._problem.objective + coefficient * variable)

    # -------------------------------------------------------------------------
    # Rebuilding
    # -------------------------------------------------------------------------

    def copy_of(self) -> 'SpectrumMip':
        """Fresh, unsolved instance over the same bidders"""
        return SpectrumMip(self._bidders, config=self.config, solver=self._solver)

    def without_bidder(self, bidder: Bidder) -> 'SpectrumMip':
        """Independent instance over all bidders except `bidder`"""
        if bidder not in self._bidders:
            raise ConfigurationError(f"{bidder!r} is not part of this model")
        remaining = [b for b in self._bidders if b != bidder]
        return SpectrumMip(remaining, config=self.config, solver=self._solver)

    build_without_bidder = without_bidder

    # -------------------------------------------------------------------------
    # Solve and extract
    # -------------------------------------------------------------------------

    def solve(self) -> Allocation:
        """Solve once and decode; later calls return the same allocation"""
        if self._state is ModelState.EXTRACTED:
            return self._allocation
        if self._state is not ModelState.COMPOSED:
            raise ModelStateError(f"Cannot solve in state {self._state.value}")

        logger.info(
            f"Solving MIP (time_limit={self._time_limit}, "
            f"accept_suboptimal={self._accept_suboptimal})"
        )
        result = self._solver.solve(self._problem, time_limit=self._time_limit)
        self._check_status(result)
        self._result = result
        self._state = ModelState.SOLVED

        self._allocation = self._extract(result)
        self._state = ModelState.EXTRACTED
        logger.info(
            f"Solved in {result.solve_time:.3f}s: {len(self._allocation)} winners, "
            f"total value {self._allocation.total_value:.4f}"
        )
        return self._allocation

    get_allocation = solve

    def _check_status(self, result: SolveResult) -> None:
        status = result.status
        if status is SolveStatus.OPTIMAL:
            return
        if status is SolveStatus.SUBOPTIMAL:
            if self._accept_suboptimal:
                logger.warning(f"⚠️ Time limit of {self._time_limit}s hit, accepting suboptimal solution")
                return
            logger.error(f"Time limit of {self._time_limit}s hit, suboptimal solution rejected")
            raise SolveTimeoutError(
                f"Solver hit the time limit of {self._time_limit}s before proving optimality"
            )
        if status is SolveStatus.TIME_LIMIT:
            logger.error(f"Time limit of {self._time_limit}s hit without any solution")
            raise SolveTimeoutError(
                f"Solver hit the time limit of {self._time_limit}s without finding a solution"
            )
        logger.error(f"Solver returned status {status.value}")
        raise InfeasibleModelError(
            f"Solver returned status '{status.value}'; the empty allocation is always "
            f"feasible, so the model is defective"
        )

    def solution_value(self, variable: pulp.LpVariable) -> float:
        """Raw (scaled) value of a variable in the bound solution"""
        if self._result is None:
            raise ModelStateError("Model has not been solved")
        return self._result.value(variable)

    def _round_quantity(self, variable: pulp.LpVariable) -> int:
        raw = self._result.value(variable)
        quantity = int(round(raw))
        if abs(raw - quantity) > self._config.epsilon:
            raise SolutionInconsistencyError(
                f"Variable {variable.name} = {raw} is not integral (epsilon {self._config.epsilon})"
            )
        return quantity

    def _extract(self, result: SolveResult) -> Allocation:
        world = self._world_mip.world
        winners: Dict[int, BidderAllocation] = {}

        for bidder in self._bidders:
            entries = {}
            for region in world.regions:
                for band in world.bands:
                    x = self._world_mip.x_variable(bidder, region.region_id, band.name)
                    quantity = self._round_quantity(x)
                    if quantity > 0:
                        entries[GenericGood(region.region_id, band.name)] = quantity
            bundle = Bundle(entries)

            mip_value = result.value(self._world_mip.value_variable(bidder))
            unscaled_value = mip_value * self._scaling_factor
            true_value = bidder.value(bundle)
            if abs(unscaled_value - float(true_value)) > self._config.value_tolerance:
                raise SolutionInconsistencyError(
                    f"{bidder!r}: MIP value {unscaled_value:.6f} does not match "
                    f"true value {true_value:.6f} of {bundle}"
                )

            logger.debug(f"{bidder!r}: {bundle} value={true_value}")
            if bundle.is_empty():
                continue
            # licenses worth nothing to their holder are left unassigned
            if true_value <= 0:
                logger.debug(f"{bidder!r}: dropping {bundle}, worth nothing to the bidder")
                continue
            winners[bidder.bidder_id] = BidderAllocation(bidder, bundle, true_value)

        objective = result.objective * self._scaling_factor if result.objective is not None else None
        meta = AllocationMetaInfo(
            status=result.status.value,
            solve_time=result.solve_time,
            number_of_mips=1,
            scaling_factor=self._scaling_factor,
            mip_objective=objective
        )
        return Allocation(winners=winners, meta=meta)


# =============================================================================
# MODULE-LEVEL API
# =============================================================================

def build(bidders: Iterable[Bidder], config: Optional[SolverConfig] = None, solver=None) -> SpectrumMip:
    return SpectrumMip(bidders, config=config, solver=solver)


def solve(mip: SpectrumMip) -> Allocation:
    return mip.solve()


def build_without_bidder(mip: SpectrumMip, bidder: Bidder) -> SpectrumMip:
    return mip.without_bidder(bidder)


def copy_of(mip: SpectrumMip) -> SpectrumMip:
    return mip.copy_of()
