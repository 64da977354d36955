"""
Utilities package for spectrum_mip.

This package contains utility modules for:
- Errors: exception taxonomy
- Config: solver configuration loaded from YAML
- Logging: run logger for multi-solve computations
- Validation: allocation feasibility and value checks
"""

from .errors import (
    ConfigurationError,
    InfeasibleModelError,
    ModelStateError,
    SolutionInconsistencyError,
    SolveTimeoutError,
    SpectrumMipError,
)
from .config import SolverConfig, load_config
from .logging_utils import RunLogger
from .validation import AllocationValidator, ValidationResult

__all__ = [
    'ConfigurationError',
    'InfeasibleModelError',
    'ModelStateError',
    'SolutionInconsistencyError',
    'SolveTimeoutError',
    'SpectrumMipError',
    'SolverConfig',
    'load_config',
    'RunLogger',
    'AllocationValidator',
    'ValidationResult',
]
