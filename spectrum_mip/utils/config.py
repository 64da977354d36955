"""
Solver configuration for spectrum_mip
"""
from dataclasses import dataclass, fields, asdict, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SOLVER_BACKENDS = ("highs", "cbc")


@dataclass(frozen=True)
class SolverConfig:
    """
    Solve parameters shared by every model instance built from one configuration

    Attributes:
        time_limit: Solver time limit in seconds (None = unlimited)
        accept_suboptimal: Accept the incumbent when the time limit is hit
        epsilon: Max residue tolerated when rounding integer quantities
        value_tolerance: Max gap between MIP value and true bundle value
        max_mip_value: Largest value the solver handles safely
        maxval_safety_gap: Head room kept below max_mip_value
        backend: Solver backend, "highs" (in memory) or "cbc"
        threads: Number of CBC threads (None = solver default)
        gap_rel: Relative MIP gap (None = solver default)
        msg: Forward solver output to stdout
        integer_tolerance: CBC integer feasibility tolerance
        primal_tolerance: CBC primal feasibility tolerance
    """
    time_limit: Optional[float] = None
    accept_suboptimal: bool = True
    epsilon: float = 1e-5
    value_tolerance: float = 1e-3
    max_mip_value: float = 1e6
    maxval_safety_gap: float = 1e3
    backend: str = "highs"
    threads: Optional[int] = None
    gap_rel: Optional[float] = None
    msg: bool = False
    integer_tolerance: float = 1e-9
    primal_tolerance: float = 1e-9

    def __post_init__(self):
        if self.time_limit is not None and self.time_limit <= 0:
            raise ConfigurationError(f"time_limit must be positive, got {self.time_limit}")
        if self.epsilon <= 0 or self.value_tolerance <= 0:
            raise ConfigurationError("epsilon and value_tolerance must be positive")
        if self.max_mip_value <= self.maxval_safety_gap:
            raise ConfigurationError(
                f"max_mip_value ({self.max_mip_value}) must exceed "
                f"maxval_safety_gap ({self.maxval_safety_gap})"
            )
        if self.backend not in SOLVER_BACKENDS:
            raise ConfigurationError(
                f"Unknown solver backend '{self.backend}', expected one of {SOLVER_BACKENDS}"
            )
        if self.integer_tolerance <= 0 or self.primal_tolerance <= 0:
            raise ConfigurationError("integer_tolerance and primal_tolerance must be positive")

    @property
    def value_ceiling(self) -> float:
        """Largest scaled value a model may contain"""
        return self.max_mip_value - self.maxval_safety_gap

    def with_updates(self, **changes) -> 'SolverConfig':
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SolverConfig':
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown solver config keys: {sorted(unknown)}")
        return cls(**data)


def load_config(config_path: Union[str, Path]) -> SolverConfig:
    """Load a SolverConfig from YAML, optionally nested under a `solver:` key"""
    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config root must be a mapping: {config_path}")

    section = raw.get('solver', raw)
    config = SolverConfig.from_dict(section)
    logger.info(f"Loaded solver config from {config_path}: {config.to_dict()}")
    return config
