"""Tests for rate ledgers and piecewise-constant accrual."""

import pytest

from lenderpool.constants import SECONDS_PER_DAY, SECONDS_PER_YEAR
from lenderpool.exceptions import NonMonotonicTimeError, ValidationError
from lenderpool.reward.rate_ledger import RateCheckpoint, RateLedger

USDT = 10**6
YEAR = SECONDS_PER_YEAR


# ---------------------------------------------------------------------------
# Checkpoints
# ---------------------------------------------------------------------------

class TestRateCheckpoint:
    def test_frozen(self):
        checkpoint = RateCheckpoint(effective_time=0, rate_bps=1000)
        with pytest.raises(Exception):
            checkpoint.rate_bps = 5

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError, match="rate must be >= 0"):
            RateCheckpoint(effective_time=0, rate_bps=-1)

    def test_negative_time_rejected(self):
        with pytest.raises(ValidationError, match="effective_time"):
            RateCheckpoint(effective_time=-1, rate_bps=0)


# ---------------------------------------------------------------------------
# set_rate
# ---------------------------------------------------------------------------

class TestSetRate:
    def test_appends_checkpoint(self):
        ledger = RateLedger("USDT", 1000)
        ledger.set_rate(2000, YEAR)
        assert len(ledger) == 2
        assert ledger.rate_at(YEAR - 1) == 1000
        assert ledger.rate_at(YEAR) == 2000

    def test_earlier_instant_rejected_and_ledger_unchanged(self):
        ledger = RateLedger("USDT", 1000)
        ledger.set_rate(2000, 100)
        before = ledger.checkpoints

        with pytest.raises(NonMonotonicTimeError):
            ledger.set_rate(3000, 99)
        assert ledger.checkpoints == before

    def test_same_instant_replaces_last(self):
        ledger = RateLedger("USDT", 1000)
        ledger.set_rate(2000, 100)
        ledger.set_rate(3000, 100)
        assert len(ledger) == 2
        assert ledger.last_checkpoint.rate_bps == 3000

    def test_replacing_genesis(self):
        ledger = RateLedger("USDT", 1000, start_time=50)
        ledger.set_rate(0, 50)
        assert len(ledger) == 1
        assert ledger.rate_at(50) == 0

    @pytest.mark.parametrize("bad", [-1, 1.5, "100", True])
    def test_malformed_rate_rejected(self, bad):
        ledger = RateLedger("USDT", 1000)
        with pytest.raises(ValidationError):
            ledger.set_rate(bad, 10)
        assert len(ledger) == 1

    def test_rate_before_genesis_is_zero(self):
        ledger = RateLedger("USDT", 1000, start_time=100)
        assert ledger.rate_at(99) == 0
        assert ledger.rate_at(100) == 1000

    def test_empty_asset_rejected(self):
        with pytest.raises(ValidationError):
            RateLedger("  ")


# ---------------------------------------------------------------------------
# accrued_factor
# ---------------------------------------------------------------------------

class TestAccruedFactor:
    def test_constant_rate_one_year(self):
        ledger = RateLedger("USDT", 1000)
        assert ledger.accrued_factor(100 * USDT, 0, YEAR) == 10 * USDT

    def test_rate_change_mid_window(self):
        ledger = RateLedger("USDT", 1000)
        ledger.set_rate(2000, YEAR)
        assert ledger.accrued_factor(100 * USDT, 0, 2 * YEAR) == 30 * USDT

    def test_window_inside_one_segment(self):
        ledger = RateLedger("USDT", 1000)
        ledger.set_rate(2000, YEAR)
        assert ledger.accrued_factor(100 * USDT, YEAR, 2 * YEAR) == 20 * USDT

    def test_window_starting_between_checkpoints(self):
        ledger = RateLedger("USDT", 1000)
        ledger.set_rate(2000, YEAR)
        ledger.set_rate(0, 2 * YEAR)
        half = YEAR // 2
        assert ledger.accrued_factor(100 * USDT, half, 3 * YEAR) == 5 * USDT + 20 * USDT

    def test_empty_window(self):
        ledger = RateLedger("USDT", 1000)
        assert ledger.accrued_factor(100 * USDT, 10, 10) == 0

    def test_zero_principal(self):
        ledger = RateLedger("USDT", 1000)
        assert ledger.accrued_factor(0, 0, YEAR) == 0

    def test_reversed_window_rejected(self):
        ledger = RateLedger("USDT", 1000)
        with pytest.raises(ValidationError, match="reversed"):
            ledger.accrued_factor(100, 10, 5)

    def test_negative_principal_rejected(self):
        ledger = RateLedger("USDT", 1000)
        with pytest.raises(ValidationError):
            ledger.accrued_factor(-1, 0, YEAR)

    def test_nothing_accrues_before_genesis(self):
        ledger = RateLedger("USDT", 1000, start_time=YEAR)
        assert ledger.accrued_factor(100 * USDT, 0, YEAR) == 0
        assert ledger.accrued_factor(100 * USDT, 0, 2 * YEAR) == 10 * USDT

    def test_truncates_never_rounds_up(self):
        ledger = RateLedger("USDT", 1000)
        # 1 unit at 10 %/year for a day is far below one unit
        assert ledger.accrued_factor(1, 0, SECONDS_PER_DAY) == 0
        exact = 100 * USDT * 1000 * SECONDS_PER_DAY / (10_000 * YEAR)
        assert ledger.accrued_factor(100 * USDT, 0, SECONDS_PER_DAY) <= exact

    def test_truncation_per_sub_interval(self):
        ledger = RateLedger("USDT", 1)
        ledger.set_rate(1, 1)
        # Each one-second segment truncates to zero on its own
        assert ledger.accrued_factor(1_000_000, 0, 2) == 0

    def test_scales_up_to_reward_decimals(self):
        ledger = RateLedger("TRADE", 200, principal_decimals=6, reward_decimals=18)
        assert ledger.accrued_factor(1000 * USDT, 0, YEAR) == 20 * 10**18

    def test_scales_down_to_reward_decimals(self):
        ledger = RateLedger("TRADE", 1000, principal_decimals=18, reward_decimals=6)
        assert ledger.accrued_factor(100 * 10**18, 0, YEAR) == 10 * USDT

    def test_repr(self):
        assert "USDT" in repr(RateLedger("USDT", 1000))
