"""
Run logger for multi-solve computations (marginal economies, payment rules)
"""
import logging
from datetime import datetime
from typing import Dict, Any, Optional


class RunLogger:
    """
    Logger that brackets a run of several MIP solves with start / end records
    """

    def __init__(self, name: str = "spectrum_mip.run", config: Optional[Dict[str, Any]] = None):
        """
        Initialize the run logger

        Args:
            name: Logger name
            config: Optional configuration dictionary
        """
        self.logger = logging.getLogger(name)
        self.config = config or {}
        self.start_time = None

    def log_run_start(self, description: str, config: Dict[str, Any]) -> None:
        """
        Log the start of a run

        Args:
            description: What the run computes
            config: Run configuration
        """
        self.start_time = datetime.now()
        self.logger.info("=" * 60)
        self.logger.info(f"RUN START: {description}")
        self.logger.info(f"Time: {self.start_time.isoformat()}")
        self.logger.info(f"Config: {config}")

    def log_run_end(self, results_summary: Dict[str, Any]) -> None:
        """
        Log the end of a run

        Args:
            results_summary: Summary of results
        """
        end_time = datetime.now()
        duration = end_time - self.start_time if self.start_time else None

        self.logger.info("RUN END")
        self.logger.info(f"Duration: {duration}")
        self.logger.info(f"Results: {results_summary}")
        self.logger.info("=" * 60)

    def log_milestone(self, message: str) -> None:
        self.logger.info(f"checkpoint: {message}")
