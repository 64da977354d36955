"""
Exception taxonomy for model composition, solving and extraction
"""


class SpectrumMipError(Exception):
    """Base class for all errors raised by spectrum_mip"""


class ConfigurationError(SpectrumMipError, ValueError):
    """Invalid input at composition time (empty bidder set, unknown bidder, bad config)"""


class ModelStateError(SpectrumMipError, RuntimeError):
    """Operation not allowed in the current lifecycle state of a model instance"""


class SolveTimeoutError(SpectrumMipError, TimeoutError):
    """Solver hit the time limit and suboptimal results are not accepted"""


class InfeasibleModelError(SpectrumMipError, RuntimeError):
    """Solver reported no feasible solution; the empty allocation is always feasible"""


class SolutionInconsistencyError(SpectrumMipError, AssertionError):
    """Decoded solution disagrees with the bidders' true valuations"""
