"""
Modules package for spectrum_mip.

This package contains core modules for:
- World: regions, bands, generic goods and bundles
- Bidders: Regional, National and Local bidders and their valuations
- Partial MIPs: world-level and bidder-type model fragments
- Orchestrator: composition, solving and allocation extraction
- Demand queries and VCG payments built on top of the orchestrator
"""

from .world import Band, Bundle, GenericGood, Region, RegionsMap, World
from .bidders import (
    Bidder,
    BidderType,
    LocalBidder,
    NationalBidder,
    RegionalBidder,
    SVFunction,
)
from .partial_mip import PartialMip, WorldPartialMip
from .bidder_mips import (
    BidderPartialMip,
    LocalBidderPartialMip,
    NationalBidderPartialMip,
    RegionalBidderPartialMip,
    create_bidder_partial_mip,
)
from .solver import CbcSolver, HighsSolver, SolveResult, SolveStatus, create_solver
from .allocation import Allocation, AllocationMetaInfo, BidderAllocation
from .orchestrator import (
    ModelState,
    SpectrumMip,
    build,
    build_without_bidder,
    copy_of,
    solve,
)
from .demand import DemandQueryResult, best_bundle
from .payments import PaymentResult, marginal_economies, vcg_payments

__all__ = [
    'Band',
    'Bundle',
    'GenericGood',
    'Region',
    'RegionsMap',
    'World',
    'Bidder',
    'BidderType',
    'LocalBidder',
    'NationalBidder',
    'RegionalBidder',
    'SVFunction',
    'PartialMip',
    'WorldPartialMip',
    'BidderPartialMip',
    'LocalBidderPartialMip',
    'NationalBidderPartialMip',
    'RegionalBidderPartialMip',
    'create_bidder_partial_mip',
    'CbcSolver',
    'HighsSolver',
    'create_solver',
    'SolveResult',
    'SolveStatus',
    'Allocation',
    'AllocationMetaInfo',
    'BidderAllocation',
    'ModelState',
    'SpectrumMip',
    'build',
    'build_without_bidder',
    'copy_of',
    'solve',
    'DemandQueryResult',
    'best_bundle',
    'PaymentResult',
    'marginal_economies',
    'vcg_payments',
]
