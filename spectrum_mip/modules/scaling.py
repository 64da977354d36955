# =============================================================================
# FILE: spectrum_mip/modules/scaling.py
"""
Scaling of value-bearing MIP quantities into the solver's safe numeric range
"""
from decimal import Decimal
from typing import Iterable, Optional
import logging

from .bidders import Bidder
from ..utils.config import SolverConfig

logger = logging.getLogger(__name__)


def biggest_unscaled_possible_value(bidders: Iterable[Bidder]) -> Decimal:
    """Highest value any bidder can reach, i.e. its value of the full bundle"""
    biggest = Decimal(0)
    for bidder in bidders:
        value = bidder.value(bidder.world.full_bundle())
        if value > biggest:
            biggest = value
    return biggest


def scaling_factor(bidders: Iterable[Bidder], config: Optional[SolverConfig] = None) -> float:
    """
    Factor s such that every scaled value (value / s) stays below the ceiling

    Returns 1 when the biggest possible value already fits.
    """
    config = config or SolverConfig()
    biggest = biggest_unscaled_possible_value(bidders)
    ceiling = Decimal(str(config.value_ceiling))
    if biggest < ceiling:
        return 1.0
    factor = float(biggest / ceiling)
    logger.info(f"Biggest possible value {biggest} exceeds {ceiling}; scaling by {factor:.6g}")
    return factor
