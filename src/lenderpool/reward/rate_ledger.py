"""
Rate Ledger

Append-only, strictly time-ordered schedule of reward rates for one reward
asset. Answers "how much does this principal earn between two instants" by
integrating a piecewise-constant rate over the checkpoints in the window.
"""

from __future__ import annotations

import bisect
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from lenderpool.constants import (
    BPS_DENOMINATOR,
    DEFAULT_PRINCIPAL_DECIMALS,
    DEFAULT_REWARD_DECIMALS,
    SECONDS_PER_YEAR,
)
from lenderpool.exceptions import NonMonotonicTimeError, ValidationError

logger = logging.getLogger(__name__)


class RateCheckpoint(BaseModel):
    """A rate that takes effect at ``effective_time`` and holds until the next one."""

    model_config = {"frozen": True}

    effective_time: int = Field(..., description="Instant (seconds) the rate takes effect")
    rate_bps: int = Field(..., description="Annualized rate in basis points")

    @field_validator("effective_time")
    @classmethod
    def validate_effective_time(cls, v: int) -> int:
        if v < 0:
            raise ValidationError(f"effective_time must be >= 0, got {v}")
        return v

    @field_validator("rate_bps")
    @classmethod
    def validate_rate(cls, v: int) -> int:
        if v < 0:
            raise ValidationError(f"rate must be >= 0, got {v}")
        return v


class RateLedger:
    """Rate schedule for a single reward asset.

    Amounts are integers in the smallest unit of their asset. Every
    sub-interval of an accrual window is truncated on its own, so the
    computed reward never exceeds what the continuous schedule allows.

    Args:
        asset: Symbol of the reward asset this ledger pays.
        initial_rate_bps: Rate in force from ``start_time``.
        start_time: Effective time of the genesis checkpoint.
        principal_decimals: Decimals of the principal asset.
        reward_decimals: Decimals of the reward asset.

    Example:
        >>> ledger = RateLedger("USDT", initial_rate_bps=1000)
        >>> ledger.accrued_factor(100_000_000, 0, SECONDS_PER_YEAR)
        10000000
    """

    def __init__(
        self,
        asset: str,
        initial_rate_bps: int = 0,
        start_time: int = 0,
        principal_decimals: int = DEFAULT_PRINCIPAL_DECIMALS,
        reward_decimals: int = DEFAULT_REWARD_DECIMALS,
    ) -> None:
        if not asset or not asset.strip():
            raise ValidationError("asset must not be empty")
        if principal_decimals < 0 or reward_decimals < 0:
            raise ValidationError("decimals must be >= 0")
        self.asset = asset
        self.principal_decimals = principal_decimals
        self.reward_decimals = reward_decimals

        genesis = RateCheckpoint(effective_time=start_time, rate_bps=_check_rate(initial_rate_bps))
        self._checkpoints: list[RateCheckpoint] = [genesis]
        self._times: list[int] = [genesis.effective_time]

        shift = reward_decimals - principal_decimals
        self._scale_num = 10 ** max(shift, 0)
        self._scale_den = BPS_DENOMINATOR * SECONDS_PER_YEAR * 10 ** max(-shift, 0)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_rate(self, rate_bps: int, at: int) -> RateCheckpoint:
        """Schedule ``rate_bps`` from ``at`` onward.

        A checkpoint at the same instant as the last one replaces it; that
        interval has zero length, so nothing accrued under it.

        Raises:
            ValidationError: If the rate is negative or not an integer.
            NonMonotonicTimeError: If ``at`` is before the last checkpoint.
        """
        rate_bps = _check_rate(rate_bps)
        last = self._checkpoints[-1]
        if at < last.effective_time:
            raise NonMonotonicTimeError(
                f"Rate for {self.asset} cannot be set at {at}: "
                f"last checkpoint is at {last.effective_time}"
            )

        checkpoint = RateCheckpoint(effective_time=at, rate_bps=rate_bps)
        if at == last.effective_time:
            self._checkpoints[-1] = checkpoint
        else:
            self._checkpoints.append(checkpoint)
            self._times.append(at)
        logger.info("Set %s rate to %d bps at %d", self.asset, rate_bps, at)
        return checkpoint

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def checkpoints(self) -> list[RateCheckpoint]:
        return list(self._checkpoints)

    @property
    def last_checkpoint(self) -> RateCheckpoint:
        return self._checkpoints[-1]

    def rate_at(self, t: int) -> int:
        """Return the rate in force at instant ``t`` (0 before the genesis checkpoint)."""
        index = self._index_at(t)
        if index is None:
            return 0
        return self._checkpoints[index].rate_bps

    def accrued_factor(self, principal: int, start: int, end: int) -> int:
        """Reward earned by ``principal`` held continuously over ``[start, end]``.

        Args:
            principal: Principal in the principal asset's smallest unit.
            start: Window start (inclusive).
            end: Window end.

        Returns:
            Reward in the reward asset's smallest unit, truncated per
            sub-interval.

        Raises:
            ValidationError: If ``start > end`` or ``principal`` is negative.
        """
        if start > end:
            raise ValidationError(f"Accrual window is reversed: {start} > {end}")
        if principal < 0:
            raise ValidationError(f"principal must be >= 0, got {principal}")
        if start == end or principal == 0:
            return 0

        index = self._index_at(start)
        if index is None:
            # Nothing accrues before the genesis checkpoint
            index = 0
            start = self._times[0]
            if start >= end:
                return 0

        total = 0
        cursor = start
        while index < len(self._checkpoints) and cursor < end:
            next_time = self._times[index + 1] if index + 1 < len(self._times) else end
            segment_end = min(next_time, end)
            rate = self._checkpoints[index].rate_bps
            if rate and segment_end > cursor:
                total += (
                    principal * rate * (segment_end - cursor) * self._scale_num
                ) // self._scale_den
            cursor = segment_end
            index += 1
        return total

    def _index_at(self, t: int) -> Optional[int]:
        """Index of the latest checkpoint with ``effective_time <= t``."""
        index = bisect.bisect_right(self._times, t) - 1
        return index if index >= 0 else None

    def __len__(self) -> int:
        return len(self._checkpoints)

    def __repr__(self) -> str:
        return (
            f"RateLedger(asset={self.asset!r}, checkpoints={len(self._checkpoints)}, "
            f"rate={self._checkpoints[-1].rate_bps})"
        )


def _check_rate(rate_bps: int) -> int:
    if isinstance(rate_bps, bool) or not isinstance(rate_bps, int):
        raise ValidationError(f"rate must be an integer number of basis points, got {rate_bps!r}")
    if rate_bps < 0:
        raise ValidationError(f"rate must be >= 0, got {rate_bps}")
    return rate_bps
