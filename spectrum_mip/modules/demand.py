# =============================================================================
# FILE: spectrum_mip/modules/demand.py
"""
Demand queries - A single bidder's utility-maximizing bundle at given prices
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional
import logging

from .bidders import Bidder
from .orchestrator import SpectrumMip
from .world import Bundle, GenericGood
from ..utils.config import SolverConfig
from ..utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DemandQueryResult:
    """Demanded bundle with its value, price and utility (value - price)"""
    bundle: Bundle
    value: Decimal
    price: Decimal

    @property
    def utility(self) -> Decimal:
        return self.value - self.price


def bundle_price(bundle: Bundle, prices: Mapping[GenericGood, Decimal]) -> Decimal:
    return sum((Decimal(prices.get(good, 0)) * quantity for good, quantity in bundle.items()),
               Decimal(0))


def best_bundle(
    bidder: Bidder,
    prices: Mapping[GenericGood, Decimal],
    config: Optional[SolverConfig] = None,
    solver=None
) -> DemandQueryResult:
    """
    Maximize value(X) - price(X) for one bidder

    Prices are per license of a generic good; goods without a price are free.
    The objective subtracts price · x / s from the bidder's scaled value, and
    the bidder type's demand-query adjustments are applied before solving.
    """
    world = bidder.world
    for good, price in prices.items():
        if not world.regions_map.has_region(good.region_id) or not world.has_band(good.band_name):
            raise ConfigurationError(f"Price given for unknown good {good}")
        if Decimal(price) < 0:
            raise ConfigurationError(f"Negative price {price} for {good}")

    mip = SpectrumMip([bidder], config=config, solver=solver)
    world_mip = mip.world_partial_mip
    for good, price in prices.items():
        if Decimal(price) == 0:
            continue
        x = world_mip.x_variable(bidder, good.region_id, good.band_name)
        mip.add_objective_term(-world_mip.scale(price), x)

    mip.bidder_partial_mip(bidder).demand_query_adjustments(mip)

    allocation = mip.solve()
    bundle = allocation.bundle_of(bidder)
    result = DemandQueryResult(
        bundle=bundle,
        value=allocation.value_of(bidder),
        price=bundle_price(bundle, prices)
    )
    logger.info(f"Demand query for {bidder!r}: {bundle} utility={result.utility:.4f}")
    return result
