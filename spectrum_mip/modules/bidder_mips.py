# =============================================================================
# FILE: spectrum_mip/modules/bidder_mips.py
"""
Bidder Partial MIPs - Per-type linearization of bidder valuations

Every bidder fragment first links its regional sub-values ω to the
quantity variables of the world fragment (shared by all types):

    y_q     one-hot binaries for the quantity q of each (region, band)
    c_r     = Σ_band Σ_q α · q · syn(q) · y_q       (regional capacity)
    λ_j, z  λ-method for the piecewise-linear SV curve over c_r
    ω_r     = Σ_j λ_j · β_r · pop_r · sv_j / s

and then ties the value variable v to the ω variables in the way its
bidder type discounts regions (`constrain_value`):

    Regional   v = Σ_r γ(r) · ω_r           γ from distance to home
    Local      v = Σ_{r ∈ interest} ω_r
    National   v = γ(k) · Σ_r ω_r           k = number of uncovered regions

For any integral assignment of the quantity variables these constraints
pin v to (true value / s), which is checked again at extraction.
"""
# =============================================================================

from typing import Dict, List, Tuple, Type
import logging

import pulp

from .bidders import Bidder, BidderType, LocalBidder, NationalBidder, RegionalBidder
from .partial_mip import PartialMip, WorldPartialMip, var_name
from ..utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


class BidderPartialMip(PartialMip):
    """
    Base fragment for one bidder: ω <-> quantity linearization

    Subclasses implement `constrain_value` and may override
    `demand_query_adjustments`.
    """

    bidder_type: BidderType

    def __init__(self, bidder: Bidder, scaling_factor: float, world_mip: WorldPartialMip):
        super().__init__(scaling_factor)
        if world_mip.scaling_factor != self.scaling_factor:
            raise ConfigurationError(
                f"Scaling factor {scaling_factor} differs from the world fragment's "
                f"{world_mip.scaling_factor}"
            )
        self._bidder = bidder
        self._world_mip = world_mip
        self._world = world_mip.world
        self._band_index = {band.name: idx for idx, band in enumerate(self._world.bands)}

        self._quantity_vars: Dict[Tuple[int, str], Dict[int, pulp.LpVariable]] = {}
        self._lambda_vars: Dict[int, List[pulp.LpVariable]] = {}
        self._segment_vars: Dict[int, List[pulp.LpVariable]] = {}
        self._create_variables()

    @property
    def bidder(self) -> Bidder:
        return self._bidder

    @property
    def world_mip(self) -> WorldPartialMip:
        return self._world_mip

    def value_variable(self) -> pulp.LpVariable:
        return self._world_mip.value_variable(self._bidder)

    def omega_variable(self, region_id: int) -> pulp.LpVariable:
        return self._world_mip.omega_variable(self._bidder, region_id)

    def x_variable(self, region_id: int, band_name: str) -> pulp.LpVariable:
        return self._world_mip.x_variable(self._bidder, region_id, band_name)

    def _has_regional_value(self, region_id: int) -> bool:
        return (self._bidder.max_omega(region_id) > 0
                and self._world.max_regional_capacity(region_id) > 0)

    def _create_variables(self) -> None:
        breakpoints = self._bidder.sv_function.breakpoints
        for region in self._world.regions:
            rid = region.region_id
            if not self._has_regional_value(rid):
                continue
            for band in self._world.bands:
                k = self._band_index[band.name]
                self._quantity_vars[(rid, band.name)] = {
                    q: pulp.LpVariable(var_name("y", self._bidder, f"r{rid}", f"k{k}", f"q{q}"),
                                       cat=pulp.LpBinary)
                    for q in range(band.num_licenses + 1)
                }
            self._lambda_vars[rid] = [
                pulp.LpVariable(var_name("lam", self._bidder, f"r{rid}", j), lowBound=0, upBound=1)
                for j in range(len(breakpoints))
            ]
            self._segment_vars[rid] = [
                pulp.LpVariable(var_name("seg", self._bidder, f"r{rid}", j), cat=pulp.LpBinary)
                for j in range(len(breakpoints) - 1)
            ]

    # -------------------------------------------------------------------------
    # ω <-> quantity linking
    # -------------------------------------------------------------------------

    def quantity_constraints(self) -> List[pulp.LpConstraint]:
        """Select exactly one quantity per (region, band), matching x"""
        constraints = []
        for (rid, band_name), by_quantity in self._quantity_vars.items():
            constraints.append(pulp.lpSum(by_quantity.values()) == 1)
            constraints.append(
                pulp.lpSum(q * y for q, y in by_quantity.items())
                - self.x_variable(rid, band_name) == 0
            )
        return constraints

    def regional_capacity_expression(self, region_id: int) -> pulp.LpAffineExpression:
        terms = []
        for band in self._world.bands:
            for q, y in self._quantity_vars[(region_id, band.name)].items():
                coefficient = float(band.capacity(q))
                if coefficient != 0:
                    terms.append(coefficient * y)
        return pulp.lpSum(terms)

    def sv_constraints(self, region_id: int) -> List[pulp.LpConstraint]:
        """λ-method: c_r lies on one segment of the SV curve scaled to the region's capacity"""
        lambdas = self._lambda_vars[region_id]
        segments = self._segment_vars[region_id]
        max_capacity = self._world.max_regional_capacity(region_id)
        breakpoints = self._bidder.sv_function.breakpoints

        constraints = [
            pulp.lpSum(lambdas) == 1,
            pulp.lpSum(segments) == 1,
            pulp.lpSum(float(x * max_capacity) * lam for (x, _), lam in zip(breakpoints, lambdas))
            - self.regional_capacity_expression(region_id) == 0,
        ]
        for j, lam in enumerate(lambdas):
            adjacent = [segments[i] for i in (j - 1, j) if 0 <= i < len(segments)]
            constraints.append(lam - pulp.lpSum(adjacent) <= 0)
        return constraints

    def omega_constraints(self) -> List[pulp.LpConstraint]:
        constraints = []
        breakpoints = self._bidder.sv_function.breakpoints
        for region in self._world.regions:
            rid = region.region_id
            omega = self.omega_variable(rid)
            if not self._has_regional_value(rid):
                constraints.append(omega == 0)
                continue
            max_omega = self._bidder.max_omega(rid)
            constraints.extend(self.sv_constraints(rid))
            constraints.append(
                omega - pulp.lpSum(
                    self.scale(max_omega * y) * lam
                    for (_, y), lam in zip(breakpoints, self._lambda_vars[rid])
                ) == 0
            )
        return constraints

    # -------------------------------------------------------------------------
    # Type-specific hooks
    # -------------------------------------------------------------------------

    def constrain_value(self) -> List[pulp.LpConstraint]:
        """Constraints tying v to the ω variables"""
        raise NotImplementedError

    def demand_query_adjustments(self, mip) -> None:
        """Bespoke constraints for single-bidder demand queries; none by default"""

    def append_to_mip(self, problem: pulp.LpProblem) -> None:
        self.add_constraints(problem, self.quantity_constraints())
        self.add_constraints(problem, self.omega_constraints())
        self.add_constraints(problem, self.constrain_value())


class RegionalBidderPartialMip(BidderPartialMip):
    """v - Σ_r γ(b, r) · ω_b,r = 0"""

    bidder_type = BidderType.REGIONAL

    def __init__(self, bidder: RegionalBidder, scaling_factor: float, world_mip: WorldPartialMip):
        super().__init__(bidder, scaling_factor, world_mip)

    def constrain_value(self) -> List[pulp.LpConstraint]:
        discounted = []
        for region in self._world.regions:
            gamma = float(self._bidder.gamma_factor(region.region_id))
            if gamma != 0:
                discounted.append(gamma * self.omega_variable(region.region_id))
        return [self.value_variable() - pulp.lpSum(discounted) == 0]


class LocalBidderPartialMip(BidderPartialMip):
    """v - Σ_{r ∈ interest} ω_b,r = 0"""

    bidder_type = BidderType.LOCAL

    def __init__(self, bidder: LocalBidder, scaling_factor: float, world_mip: WorldPartialMip):
        super().__init__(bidder, scaling_factor, world_mip)

    def constrain_value(self) -> List[pulp.LpConstraint]:
        interesting = [
            self.omega_variable(region.region_id)
            for region in self._world.regions
            if region.region_id in self._bidder.regions_of_interest
        ]
        return [self.value_variable() - pulp.lpSum(interesting) == 0]

    def demand_query_adjustments(self, mip) -> None:
        """Licenses outside the regions of interest are never demanded"""
        for region in self._world.regions:
            if region.region_id in self._bidder.regions_of_interest:
                continue
            for band in self._world.bands:
                mip.add_constraint(self.x_variable(region.region_id, band.name) == 0)


class NationalBidderPartialMip(BidderPartialMip):
    """
    v = γ(k) · Σ_r ω_r with k the number of uncovered regions

    u_r    binary, 1 iff the bidder holds a license in region r
    w_k    binary one-hot over k = 0..R
    ψ_k,r  = w_k · ω_r, linearized with the region's own bound M_r = max ω_r / s
    """

    bidder_type = BidderType.NATIONAL

    def __init__(self, bidder: NationalBidder, scaling_factor: float, world_mip: WorldPartialMip):
        super().__init__(bidder, scaling_factor, world_mip)
        regions = self._world.regions
        self._region_bounds = {
            r.region_id: self.scale(bidder.max_omega(r.region_id))
            for r in regions
            if self._has_regional_value(r.region_id)
        }

        self._covered_vars = {
            r.region_id: pulp.LpVariable(var_name("cov", bidder, f"r{r.region_id}"), cat=pulp.LpBinary)
            for r in regions
        }
        self._uncovered_vars = {
            k: pulp.LpVariable(var_name("unc", bidder, k), cat=pulp.LpBinary)
            for k in range(len(regions) + 1)
        }
        self._product_vars = {
            (k, rid): pulp.LpVariable(var_name("psi", bidder, k, f"r{rid}"), lowBound=0, upBound=bound)
            for k in self._uncovered_vars
            if bidder.uncovered_discount(k) > 0
            for rid, bound in self._region_bounds.items()
        }

    def coverage_constraints(self) -> List[pulp.LpConstraint]:
        constraints = []
        for region in self._world.regions:
            rid = region.region_id
            licenses = pulp.lpSum(self.x_variable(rid, band.name) for band in self._world.bands)
            max_licenses = sum(band.num_licenses for band in self._world.bands)
            covered = self._covered_vars[rid]
            constraints.append(covered - licenses <= 0)
            constraints.append(licenses - max_licenses * covered <= 0)

        num_regions = len(self._world.regions)
        constraints.append(pulp.lpSum(self._uncovered_vars.values()) == 1)
        constraints.append(
            pulp.lpSum(k * w for k, w in self._uncovered_vars.items())
            + pulp.lpSum(self._covered_vars.values()) == num_regions
        )
        return constraints

    def constrain_value(self) -> List[pulp.LpConstraint]:
        constraints = self.coverage_constraints()

        for (k, rid), psi in self._product_vars.items():
            w = self._uncovered_vars[k]
            omega = self.omega_variable(rid)
            bound = self._region_bounds[rid]
            constraints.append(psi - bound * w <= 0)
            constraints.append(psi - omega <= 0)
            constraints.append(psi - omega - bound * w >= -bound)

        constraints.append(
            self.value_variable()
            - pulp.lpSum(float(self._bidder.uncovered_discount(k)) * psi
                         for (k, _), psi in self._product_vars.items())
            == 0
        )
        return constraints


# =============================================================================
# TYPE DISPATCH
# =============================================================================

LINKERS: Dict[BidderType, Type[BidderPartialMip]] = {
    BidderType.REGIONAL: RegionalBidderPartialMip,
    BidderType.NATIONAL: NationalBidderPartialMip,
    BidderType.LOCAL: LocalBidderPartialMip,
}


def create_bidder_partial_mip(
    bidder: Bidder,
    scaling_factor: float,
    world_mip: WorldPartialMip
) -> BidderPartialMip:
    """Select the partial MIP matching the bidder's type tag"""
    try:
        linker = LINKERS[bidder.bidder_type]
    except (AttributeError, KeyError):
        raise ConfigurationError(
            f"No partial MIP registered for bidder {bidder!r}"
        ) from None
    return linker(bidder, scaling_factor, world_mip)
