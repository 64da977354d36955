# =============================================================================
# FILE: spectrum_mip/modules/partial_mip.py
"""
Partial MIPs - Fragments that are composed into one optimization problem

A partial MIP owns a subset of the variables and constraints of the
composed problem. The world-level fragment creates every variable shared
between fragments (bidder values, quantities, regional sub-values) plus
the capacity constraints; bidder fragments look those variables up and add
their own linking constraints.

All value-bearing quantities are expressed in units divided by the
scaling factor of the model instance the fragment belongs to.
"""
# =============================================================================

from typing import Dict, Iterable, List, Optional, Tuple
import logging

import pulp

from .bidders import Bidder
from .world import World, GenericGood
from ..utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


class PartialMip:
    """
    Contract of a model fragment

    Subclasses create their variables eagerly and add constraints to a
    problem in `append_to_mip`. The scaling factor is passed in, never
    recomputed, so all fragments of one problem share a single scale.
    """

    def __init__(self, scaling_factor: float):
        if scaling_factor is None or not scaling_factor > 0:
            raise ConfigurationError(f"Scaling factor must be positive, got {scaling_factor}")
        self._scaling_factor = float(scaling_factor)

    @property
    def scaling_factor(self) -> float:
        return self._scaling_factor

    def scale(self, value) -> float:
        """Convert an unscaled monetary value to model units"""
        return float(value) / self._scaling_factor

    def append_to_mip(self, problem: pulp.LpProblem) -> None:
        raise NotImplementedError

    @staticmethod
    def add_constraints(problem: pulp.LpProblem, constraints: Iterable[pulp.LpConstraint]) -> None:
        for constraint in constraints:
            problem += constraint


def var_name(prefix: str, bidder: Bidder, *parts) -> str:
    """Variable name; the bidder token `b<id>` marks every variable tied to a bidder"""
    tokens = [prefix, f"b{bidder.bidder_id}"] + [str(p) for p in parts]
    return "_".join(tokens)


# =============================================================================
# WORLD-LEVEL PARTIAL MIP
# =============================================================================

class WorldPartialMip(PartialMip):
    """
    Variables and constraints shared by all bidders

    Variables:
        v_b        bidder value, continuous [0, max value / s]
        x_b,r,band licenses of a generic good, integer [0, capacity]
        ω_b,r      undiscounted regional sub-value, continuous [0, β·pop / s]

    Constraints:
        Σ_b x_b,r,band <= capacity(r, band)   for every generic good

    Objective contribution: maximize Σ_b v_b
    """

    def __init__(self, bidders: Iterable[Bidder], scaling_factor: float):
        super().__init__(scaling_factor)
        if bidders is None:
            raise ConfigurationError("Bidder set must not be None")
        self._bidders: List[Bidder] = list(bidders)
        if len(self._bidders) == 0:
            raise ConfigurationError("Bidder set must not be empty")

        self._world: World = self._bidders[0].world
        self._validate_bidders()

        self._band_index = {band.name: idx for idx, band in enumerate(self._world.bands)}
        self._max_values = {
            b.bidder_id: b.value(self._world.full_bundle()) for b in self._bidders
        }

        self._value_vars: Dict[int, pulp.LpVariable] = {}
        self._x_vars: Dict[Tuple[int, int, str], pulp.LpVariable] = {}
        self._omega_vars: Dict[Tuple[int, int], pulp.LpVariable] = {}
        self._create_variables()

        logger.debug(
            f"WorldPartialMip: {len(self._bidders)} bidders, "
            f"{len(self._x_vars)} quantity vars, s={self.scaling_factor:.6g}"
        )

    def _validate_bidders(self) -> None:
        seen = set()
        region_ids = {r.region_id for r in self._world.regions}
        for bidder in self._bidders:
            if bidder is None:
                raise ConfigurationError("Bidder set contains None")
            if bidder.world is not self._world:
                raise ConfigurationError(
                    f"Bidder {bidder.bidder_id} belongs to a different world"
                )
            if bidder.bidder_id in seen:
                raise ConfigurationError(f"Duplicate bidder id {bidder.bidder_id}")
            seen.add(bidder.bidder_id)
            unknown = bidder.referenced_regions() - region_ids
            if unknown:
                raise ConfigurationError(
                    f"Bidder {bidder.bidder_id} references regions {sorted(unknown)} "
                    f"not present in the world"
                )

    def _create_variables(self) -> None:
        for bidder in self._bidders:
            max_value = self._max_values[bidder.bidder_id]
            self._value_vars[bidder.bidder_id] = pulp.LpVariable(
                var_name("v", bidder), lowBound=0, upBound=self.scale(max_value)
            )
            # A bidder that values nothing never receives licenses
            null_bidder = max_value == 0

            for region in self._world.regions:
                rid = region.region_id
                self._omega_vars[(bidder.bidder_id, rid)] = pulp.LpVariable(
                    var_name("omega", bidder, f"r{rid}"),
                    lowBound=0,
                    upBound=self.scale(bidder.max_omega(rid))
                )
                for band in self._world.bands:
                    capacity = 0 if null_bidder else band.num_licenses
                    self._x_vars[(bidder.bidder_id, rid, band.name)] = pulp.LpVariable(
                        var_name("x", bidder, f"r{rid}", f"k{self._band_index[band.name]}"),
                        lowBound=0,
                        upBound=capacity,
                        cat=pulp.LpInteger
                    )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def world(self) -> World:
        return self._world

    @property
    def bidders(self) -> List[Bidder]:
        return list(self._bidders)

    def max_value(self, bidder: Bidder) -> float:
        """Unscaled value of the full bundle for `bidder`"""
        return float(self._max_values[bidder.bidder_id])

    def value_variable(self, bidder: Bidder) -> pulp.LpVariable:
        return self._value_vars[bidder.bidder_id]

    def x_variable(self, bidder: Bidder, region_id: int, band_name: str) -> pulp.LpVariable:
        return self._x_vars[(bidder.bidder_id, region_id, band_name)]

    def x_variables(self, bidder: Optional[Bidder] = None) -> List[pulp.LpVariable]:
        if bidder is None:
            return list(self._x_vars.values())
        return [var for (bid, _, _), var in self._x_vars.items() if bid == bidder.bidder_id]

    def omega_variable(self, bidder: Bidder, region_id: int) -> pulp.LpVariable:
        return self._omega_vars[(bidder.bidder_id, region_id)]

    def variables_of(self, bidder: Bidder) -> List[pulp.LpVariable]:
        """All world-level variables tied to `bidder`"""
        omegas = [v for (bid, _), v in self._omega_vars.items() if bid == bidder.bidder_id]
        return [self.value_variable(bidder)] + omegas + self.x_variables(bidder)

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def capacity_constraints(self) -> List[pulp.LpConstraint]:
        constraints = []
        for good in self._world.generic_goods():
            quantities = [
                self.x_variable(bidder, good.region_id, good.band_name)
                for bidder in self._bidders
            ]
            constraints.append(pulp.LpConstraint(
                pulp.lpSum(quantities),
                sense=pulp.LpConstraintLE,
                rhs=self._world.capacity(good),
                name=self._capacity_name(good)
            ))
        return constraints

    def _capacity_name(self, good: GenericGood) -> str:
        return f"capacity_r{good.region_id}_k{self._band_index[good.band_name]}"

    def append_to_mip(self, problem: pulp.LpProblem) -> None:
        problem += pulp.lpSum(self._value_vars.values()), "welfare"
        self.add_constraints(problem, self.capacity_constraints())
