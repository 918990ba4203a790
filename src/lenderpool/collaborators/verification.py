"""
Verification Gate

In-memory eligibility gate: deposits that keep a user's principal below
an operator-settable threshold need no verification; larger holdings
require the user to have been verified.
"""

from __future__ import annotations

import logging

from lenderpool.exceptions import ValidationError

logger = logging.getLogger(__name__)


class VerificationGate:
    """Threshold-plus-allowlist :class:`EligibilityGate`.

    Args:
        threshold: Holdings strictly below this need no verification.
            ``0`` requires verification for every deposit.
    """

    def __init__(self, threshold: int = 0) -> None:
        self._threshold = 0
        self._verified: set[str] = set()
        self.update_threshold(threshold)

    @property
    def threshold(self) -> int:
        return self._threshold

    def update_threshold(self, threshold: int) -> None:
        if threshold < 0:
            raise ValidationError(f"threshold must be >= 0, got {threshold}")
        self._threshold = threshold
        logger.info("Verification threshold set to %d", threshold)

    def verify(self, user: str) -> None:
        self._verified.add(user)
        logger.info("Verified user %s", user)

    def revoke(self, user: str) -> None:
        self._verified.discard(user)
        logger.info("Revoked verification for %s", user)

    def is_verified(self, user: str) -> bool:
        return user in self._verified

    def is_eligible(self, user: str, requested_deposit: int) -> bool:
        return requested_deposit < self._threshold or user in self._verified
