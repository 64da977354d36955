# =============================================================================
# FILE: spectrum_mip/modules/bidders.py
"""
Bidders - Regional, National and Local bidders of the multi-region value model

Value of a bundle X for bidder i:

    value_i(X) = Σ_r γ_i(r, X) · ω_i,r(X)
    ω_i,r(X)   = β_i,r · population_r · sv_i(c_r(X) / c_r^max)

ω is the undiscounted regional sub-value, sv a piecewise-linear S-shaped
curve over the share of the region's capacity held, and γ the type-specific
discount. Bidders are immutable and `value` is a pure function.
"""
# =============================================================================

from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Set, Tuple
import logging

from .world import Bundle, World

logger = logging.getLogger(__name__)


class BidderType(Enum):
    """Closed set of bidder types; each has its own value linearization"""
    REGIONAL = "regional"
    NATIONAL = "national"
    LOCAL = "local"


# =============================================================================
# SV FUNCTION
# =============================================================================

class SVFunction:
    """
    Piecewise-linear map from capacity share [0, 1] to value share [0, 1]

    Breakpoints start at (0, 0), end at (1, 1) and are non-decreasing in
    both coordinates.
    """

    def __init__(self, breakpoints: Sequence[Tuple[Decimal, Decimal]]):
        points = tuple((Decimal(x), Decimal(y)) for x, y in breakpoints)
        if len(points) < 2:
            raise ValueError("SV function needs at least two breakpoints")
        if points[0] != (Decimal(0), Decimal(0)) or points[-1] != (Decimal(1), Decimal(1)):
            raise ValueError("SV function must start at (0, 0) and end at (1, 1)")
        for (x0, y0), (x1, y1) in zip(points, points[1:]):
            if x1 <= x0:
                raise ValueError(f"SV breakpoints must be strictly increasing in x: {x0} -> {x1}")
            if y1 < y0:
                raise ValueError(f"SV breakpoints must be non-decreasing in y: {y0} -> {y1}")
        self._points = points

    @classmethod
    def s_curve(cls, threshold=Decimal("0.5"), width=Decimal("0.25"), low=Decimal("0.1")) -> 'SVFunction':
        """Four-segment S curve: (0,0) (t-w, low) (t+w, 1-low) (1,1)"""
        t, w, low = Decimal(threshold), Decimal(width), Decimal(low)
        if not (0 < t - w and t + w < 1):
            raise ValueError(f"threshold +- width must lie inside (0, 1): t={t}, w={w}")
        if not (0 <= low < Decimal("0.5")):
            raise ValueError(f"low must lie in [0, 0.5): {low}")
        return cls([(0, 0), (t - w, low), (t + w, 1 - low), (1, 1)])

    @property
    def breakpoints(self) -> Tuple[Tuple[Decimal, Decimal], ...]:
        return self._points

    def value(self, share: Decimal) -> Decimal:
        share = Decimal(share)
        if share <= 0:
            return Decimal(0)
        if share >= 1:
            return Decimal(1)
        for (x0, y0), (x1, y1) in zip(self._points, self._points[1:]):
            if share <= x1:
                return y0 + (y1 - y0) * (share - x0) / (x1 - x0)
        return Decimal(1)

    def __eq__(self, other) -> bool:
        return isinstance(other, SVFunction) and self._points == other._points

    def __hash__(self) -> int:
        return hash(self._points)

    def __repr__(self) -> str:
        return f"SVFunction({[(str(x), str(y)) for x, y in self._points]})"


# =============================================================================
# BIDDERS
# =============================================================================

class Bidder:
    """
    Base bidder: identity, world, per-region value factors β and an SV curve

    Subclasses set `bidder_type` and implement `gamma_factor`.
    """

    bidder_type: BidderType

    def __init__(
        self,
        bidder_id: int,
        world: World,
        beta: Mapping[int, Decimal],
        sv_function: Optional[SVFunction] = None
    ):
        self._bidder_id = int(bidder_id)
        self._world = world
        self._beta: Dict[int, Decimal] = {int(r): Decimal(b) for r, b in beta.items()}
        for region_id, factor in self._beta.items():
            if factor < 0:
                raise ValueError(f"Bidder {bidder_id}: beta for region {region_id} is negative")
        self._sv_function = sv_function or SVFunction.s_curve()

    @property
    def bidder_id(self) -> int:
        return self._bidder_id

    @property
    def world(self) -> World:
        return self._world

    @property
    def sv_function(self) -> SVFunction:
        return self._sv_function

    def beta(self, region_id: int) -> Decimal:
        return self._beta.get(region_id, Decimal(0))

    def referenced_regions(self) -> Set[int]:
        """Region ids this bidder's parameters refer to"""
        return set(self._beta)

    def max_omega(self, region_id: int) -> Decimal:
        """Upper bound of ω_r, reached when the whole region is held"""
        return self.beta(region_id) * self._world.regions_map.region(region_id).population

    def omega(self, region_id: int, bundle: Bundle) -> Decimal:
        """Undiscounted sub-value of the licenses of `bundle` in one region"""
        max_capacity = self._world.max_regional_capacity(region_id)
        if max_capacity == 0:
            return Decimal(0)
        share = self._world.regional_capacity(region_id, bundle) / max_capacity
        return self.max_omega(region_id) * self._sv_function.value(share)

    def gamma_factor(self, region_id: int, bundle: Optional[Bundle] = None) -> Decimal:
        raise NotImplementedError

    def gamma_factors(self, bundle: Optional[Bundle] = None) -> Dict[int, Decimal]:
        return {r.region_id: self.gamma_factor(r.region_id, bundle) for r in self._world.regions}

    def value(self, bundle: Bundle) -> Decimal:
        """True value of `bundle` for this bidder"""
        self._world.validate_bundle(bundle)
        total = Decimal(0)
        for region in self._world.regions:
            gamma = self.gamma_factor(region.region_id, bundle)
            if gamma == 0:
                continue
            total += gamma * self.omega(region.region_id, bundle)
        return total

    def __eq__(self, other) -> bool:
        if not isinstance(other, Bidder):
            return NotImplemented
        return self._bidder_id == other._bidder_id

    def __hash__(self) -> int:
        return hash(self._bidder_id)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._bidder_id})"


class RegionalBidder(Bidder):
    """Bidder with a home region; value decays with distance from home"""

    bidder_type = BidderType.REGIONAL

    def __init__(
        self,
        bidder_id: int,
        world: World,
        home: int,
        distance_discounts: Mapping[int, Decimal],
        beta: Mapping[int, Decimal],
        sv_function: Optional[SVFunction] = None
    ):
        super().__init__(bidder_id, world, beta, sv_function)
        self._home = int(home)
        self._distance_discounts: Dict[int, Decimal] = {
            int(d): Decimal(v) for d, v in distance_discounts.items()
        }
        self._validate_distance_discounts()

    def _validate_distance_discounts(self) -> None:
        regions_map = self.world.regions_map
        if not regions_map.has_region(self._home):
            # Reported as a configuration error when the model is composed
            return
        for distance in range(regions_map.longest_shortest_path(self._home) + 1):
            if distance not in self._distance_discounts:
                raise ValueError(
                    f"Bidder {self.bidder_id}: no discount defined for distance {distance}"
                )
        for distance, discount in self._distance_discounts.items():
            if not (0 <= discount <= 1):
                raise ValueError(
                    f"Bidder {self.bidder_id}: discount {discount} for distance {distance} not in [0, 1]"
                )

    @property
    def home(self) -> int:
        return self._home

    @property
    def distance_discounts(self) -> Dict[int, Decimal]:
        return dict(self._distance_discounts)

    def referenced_regions(self) -> Set[int]:
        return super().referenced_regions() | {self._home}

    def gamma_factor(self, region_id: int, bundle: Optional[Bundle] = None) -> Decimal:
        """Discount for the region's distance from home; the bundle is ignored"""
        distance = self.world.regions_map.distance(self._home, region_id)
        if distance is None:
            return Decimal(0)
        return self._distance_discounts.get(distance, Decimal(0))


class NationalBidder(Bidder):
    """Bidder whose value is discounted by the number of regions left uncovered"""

    bidder_type = BidderType.NATIONAL

    def __init__(
        self,
        bidder_id: int,
        world: World,
        uncovered_discounts: Mapping[int, Decimal],
        beta: Mapping[int, Decimal],
        sv_function: Optional[SVFunction] = None
    ):
        super().__init__(bidder_id, world, beta, sv_function)
        discounts = {int(k): Decimal(v) for k, v in uncovered_discounts.items()}
        for k, discount in discounts.items():
            if k < 1:
                raise ValueError(f"Bidder {bidder_id}: uncovered count must be >= 1, got {k}")
            if not (0 <= discount <= 1):
                raise ValueError(f"Bidder {bidder_id}: discount {discount} for k={k} not in [0, 1]")
        self._uncovered_discounts = discounts

    def uncovered_discount(self, uncovered: int) -> Decimal:
        """γ for `uncovered` regions without any license"""
        if uncovered == 0:
            return Decimal(1)
        return self._uncovered_discounts.get(uncovered, Decimal(0))

    def uncovered_count(self, bundle: Bundle) -> int:
        return sum(1 for r in self.world.regions if bundle.regional_quantity(r.region_id) == 0)

    def gamma_factor(self, region_id: int, bundle: Optional[Bundle] = None) -> Decimal:
        if bundle is None:
            raise ValueError("National bidders need a bundle to compute gamma factors")
        return self.uncovered_discount(self.uncovered_count(bundle))


class LocalBidder(Bidder):
    """Bidder interested only in a fixed set of regions"""

    bidder_type = BidderType.LOCAL

    def __init__(
        self,
        bidder_id: int,
        world: World,
        regions_of_interest: Iterable[int],
        beta: Mapping[int, Decimal],
        sv_function: Optional[SVFunction] = None
    ):
        super().__init__(bidder_id, world, beta, sv_function)
        self._regions_of_interest: FrozenSet[int] = frozenset(int(r) for r in regions_of_interest)

    @property
    def regions_of_interest(self) -> FrozenSet[int]:
        return self._regions_of_interest

    def referenced_regions(self) -> Set[int]:
        return super().referenced_regions() | set(self._regions_of_interest)

    def gamma_factor(self, region_id: int, bundle: Optional[Bundle] = None) -> Decimal:
        return Decimal(1) if region_id in self._regions_of_interest else Decimal(0)
