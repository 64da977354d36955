"""
spectrum_mip - Efficient allocation of spectrum licenses via partial-MIP composition.

This package provides:
- World and bidder descriptions of the multi-region value model
- World-level and bidder-type partial MIPs composed into one problem
- A model orchestrator that solves the problem and decodes the allocation
- Counterfactual ("without bidder") models, demand queries and VCG payments
"""

# Import core modules for easy access
from .modules import (
    Allocation,
    Band,
    BidderAllocation,
    BidderType,
    Bundle,
    CbcSolver,
    GenericGood,
    HighsSolver,
    LocalBidder,
    NationalBidder,
    Region,
    RegionalBidder,
    RegionsMap,
    SVFunction,
    SpectrumMip,
    World,
    best_bundle,
    build,
    build_without_bidder,
    copy_of,
    solve,
    vcg_payments,
)
from .utils import (
    SolverConfig,
    load_config,
    ConfigurationError,
    InfeasibleModelError,
    ModelStateError,
    SolutionInconsistencyError,
    SolveTimeoutError,
    SpectrumMipError,
)

__all__ = [
    # Core modules
    'Allocation',
    'Band',
    'BidderAllocation',
    'BidderType',
    'Bundle',
    'CbcSolver',
    'GenericGood',
    'HighsSolver',
    'LocalBidder',
    'NationalBidder',
    'Region',
    'RegionalBidder',
    'RegionsMap',
    'SVFunction',
    'SpectrumMip',
    'World',
    'best_bundle',
    'build',
    'build_without_bidder',
    'copy_of',
    'solve',
    'vcg_payments',
    # Utilities
    'SolverConfig',
    'load_config',
    'ConfigurationError',
    'InfeasibleModelError',
    'ModelStateError',
    'SolutionInconsistencyError',
    'SolveTimeoutError',
    'SpectrumMipError',
]

__version__ = "1.0.0"
