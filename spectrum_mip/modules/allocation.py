# =============================================================================
# FILE: spectrum_mip/modules/allocation.py
"""
Allocation - Decoded result of one solved model instance

Only winners (bidders with a non-empty bundle) are stored; every other
bidder implicitly holds the empty bundle with value 0.
"""
# =============================================================================

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterator, List, Optional

import pandas as pd

from .bidders import Bidder
from .world import Bundle


@dataclass(frozen=True)
class BidderAllocation:
    """Bundle and true (unscaled) value of one winning bidder"""
    bidder: Bidder
    bundle: Bundle
    value: Decimal


@dataclass(frozen=True)
class AllocationMetaInfo:
    """
    Solve statistics

    Attributes:
        status: Solver status name ('optimal' or 'suboptimal')
        solve_time: Wall-clock seconds spent in the solver
        number_of_mips: MIPs solved to produce the allocation
        scaling_factor: Scale of the model instance
        mip_objective: Unscaled objective reported by the solver
    """
    status: str
    solve_time: float
    number_of_mips: int = 1
    scaling_factor: float = 1.0
    mip_objective: Optional[float] = None


@dataclass(frozen=True)
class Allocation:
    """Mapping winner -> (bundle, value) with solve metadata"""
    winners: Dict[int, BidderAllocation]
    meta: AllocationMetaInfo

    @property
    def total_value(self) -> Decimal:
        """Social welfare of the allocation"""
        return sum((a.value for a in self.winners.values()), Decimal(0))

    def is_winner(self, bidder: Bidder) -> bool:
        return bidder.bidder_id in self.winners

    def bundle_of(self, bidder: Bidder) -> Bundle:
        allocation = self.winners.get(bidder.bidder_id)
        return allocation.bundle if allocation else Bundle.EMPTY

    def value_of(self, bidder: Bidder) -> Decimal:
        allocation = self.winners.get(bidder.bidder_id)
        return allocation.value if allocation else Decimal(0)

    def winning_bidders(self) -> List[Bidder]:
        return [self.winners[bid].bidder for bid in sorted(self.winners)]

    def __iter__(self) -> Iterator[BidderAllocation]:
        return iter(self.winners[bid] for bid in sorted(self.winners))

    def __len__(self) -> int:
        return len(self.winners)

    def __contains__(self, bidder: Bidder) -> bool:
        return self.is_winner(bidder)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per (winner, generic good) with quantity and the winner's value"""
        rows = []
        for allocation in self:
            for good, quantity in allocation.bundle.items():
                rows.append({
                    'bidder_id': allocation.bidder.bidder_id,
                    'bidder_type': allocation.bidder.bidder_type.value,
                    'region_id': good.region_id,
                    'band': good.band_name,
                    'quantity': quantity,
                    'bidder_value': float(allocation.value),
                })
        columns = ['bidder_id', 'bidder_type', 'region_id', 'band', 'quantity', 'bidder_value']
        return pd.DataFrame(rows, columns=columns)

    def summary(self) -> str:
        lines = [
            f"═══ Allocation ({self.meta.status}) ═══",
            f"Winners: {len(self.winners)}",
            f"Total value: {self.total_value:.4f}",
            f"Solve time: {self.meta.solve_time:.3f}s",
        ]
        for allocation in self:
            lines.append(f"  {allocation.bidder!r}: {allocation.bundle} -> {allocation.value:.4f}")
        return "\n".join(lines)
