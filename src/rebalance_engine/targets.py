"""Target allocation validation and replace-all persistence"""

from typing import Callable, List, Optional
import logging

from app_config import AppConfig, get_config
from wallet_connector_base import PortfolioStore, TargetAllocation, InputValidationError
from .models import TargetAllocationInput


class TargetAllocationService:
    """Validate and store an owner's target allocation set"""

    def __init__(self, store: PortfolioStore, config: Optional[AppConfig] = None,
                 owner_validator: Optional[Callable[[str], bool]] = None,
                 logger: Optional[logging.Logger] = None):
        self.store = store
        self.config = config or get_config()
        self.owner_validator = owner_validator
        self.logger = logger or logging.getLogger(__name__)

    async def save_targets(self, owner_id: str,
                           targets: List[TargetAllocationInput]) -> List[TargetAllocation]:
        """
        Replace the owner's target set.

        Raises:
            InputValidationError: If any row or the set as a whole is invalid.
                Nothing is written in that case.
        """
        allocations = self.validate_targets(owner_id, targets)
        await self.store.replace_targets(owner_id, allocations)

        self.logger.info(f"Target allocation set for wallet {owner_id}: "
                         + ", ".join(f"{a.symbol}={a.target_percentage:.2f}%" for a in allocations))
        return allocations

    async def get_targets(self, owner_id: str) -> List[TargetAllocation]:
        self._validate_owner(owner_id)
        return await self.store.get_targets(owner_id)

    def _validate_owner(self, owner_id: str):
        if not owner_id:
            raise InputValidationError("Owner public key is required")
        if self.owner_validator and not self.owner_validator(owner_id):
            raise InputValidationError("Invalid public key format")

    def validate_targets(self, owner_id: str,
                         targets: List[TargetAllocationInput]) -> List[TargetAllocation]:
        """Check rows and the sum-to-100 invariant; returns normalized allocations"""
        self._validate_owner(owner_id)
        if not targets:
            raise InputValidationError("At least one target allocation is required")

        default_threshold = self.config.planner.default_threshold_percent
        tolerance = self.config.planner.allocation_sum_tolerance

        seen = set()
        allocations = []
        for target in targets:
            if not target.token_id:
                raise InputValidationError("Each target must have a token id")
            if target.token_id in seen:
                raise InputValidationError(f"Duplicate target for token {target.token_id}")
            seen.add(target.token_id)

            if not 0.0 <= target.target_percentage <= 100.0:
                raise InputValidationError(
                    f"Target for {target.symbol} must be between 0 and 100, got {target.target_percentage}"
                )

            # Omitted or zero threshold falls back to the default band
            threshold = target.threshold_percentage or default_threshold
            if threshold <= 0:
                raise InputValidationError(
                    f"Threshold for {target.symbol} must be positive, got {threshold}"
                )

            allocations.append(TargetAllocation(
                owner_id=owner_id,
                token_id=target.token_id,
                symbol=target.symbol,
                target_percentage=target.target_percentage,
                threshold_percentage=threshold
            ))

        total = sum(a.target_percentage for a in allocations)
        if abs(total - 100.0) > tolerance:
            raise InputValidationError(
                f"Target allocations must sum to 100%, got {total:.2f}%"
            )

        return allocations
