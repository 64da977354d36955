"""
Validation utilities for decoded allocations
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a validation check"""
    is_valid: bool
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class AllocationValidator:
    """
    Checks feasibility and value consistency of an allocation
    """

    def __init__(self, tolerance: float = 1e-3):
        self.tolerance = tolerance

    def validate_capacity(self, allocation, world) -> ValidationResult:
        """
        Validate feasibility: licenses assigned per generic good never exceed its capacity

        Args:
            allocation: Allocation to check
            world: World the allocation was computed for

        Returns:
            ValidationResult with validation status
        """
        assigned: Dict[Any, int] = {}
        for bidder_allocation in allocation:
            for good, quantity in bidder_allocation.bundle.items():
                assigned[good] = assigned.get(good, 0) + quantity

        for good, quantity in sorted(assigned.items()):
            capacity = world.capacity(good)
            if quantity > capacity:
                return ValidationResult(
                    is_valid=False,
                    error=f"Capacity violation: {quantity} licenses of {good} assigned, capacity {capacity}",
                    details={'good': good, 'assigned': quantity, 'capacity': capacity}
                )

        return ValidationResult(is_valid=True, details={'assigned': assigned})

    def validate_values(self, allocation, bidders: Iterable) -> ValidationResult:
        """
        Validate that every reported value equals the bidder's true value of its bundle

        Args:
            allocation: Allocation to check
            bidders: Bidders of the model

        Returns:
            ValidationResult with validation status
        """
        for bidder in bidders:
            reported = allocation.value_of(bidder)
            true_value = bidder.value(allocation.bundle_of(bidder))
            if abs(float(reported - true_value)) > self.tolerance:
                return ValidationResult(
                    is_valid=False,
                    error=f"Value violation: {bidder!r} reported {reported:.6f}, true value {true_value:.6f}",
                    details={'bidder_id': bidder.bidder_id, 'reported': reported, 'true_value': true_value}
                )

        return ValidationResult(is_valid=True)

    def validate_winners(self, allocation) -> ValidationResult:
        """Validate the winner convention: every winner holds a non-empty bundle it values"""
        for bidder_allocation in allocation:
            if bidder_allocation.bundle.is_empty():
                return ValidationResult(
                    is_valid=False,
                    error=f"Winner {bidder_allocation.bidder!r} holds an empty bundle"
                )
            if bidder_allocation.value <= 0:
                return ValidationResult(
                    is_valid=False,
                    error=f"Winner {bidder_allocation.bidder!r} holds {bidder_allocation.bundle} worth nothing"
                )
        return ValidationResult(is_valid=True)

    def validate_all(self, allocation, world, bidders: Iterable) -> Dict[str, ValidationResult]:
        results = {
            'capacity': self.validate_capacity(allocation, world),
            'values': self.validate_values(allocation, list(bidders)),
            'winners': self.validate_winners(allocation),
        }
        for name, result in results.items():
            if not result.is_valid:
                logger.warning(f"⚠️ {name} check failed: {result.error}")
        return results


# Global instance for easy use
allocation_validator = AllocationValidator()
