"""Tests for reward authorities: settlement, claims and retirement."""

import pytest

from lenderpool.constants import SECONDS_PER_YEAR
from lenderpool.exceptions import (
    NonMonotonicTimeError,
    NotRegisteredError,
    NothingToClaimError,
    ValidationError,
)
from lenderpool.reward.authority import RewardAuthority
from lenderpool.reward.rate_ledger import RateLedger
from lenderpool.reward.registry import RegistrationRegistry

USDT = 10**6
YEAR = SECONDS_PER_YEAR


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_authority(
    authority_id: str = "rm-1",
    stable_bps: int = 1000,
    trade_bps: int | None = None,
) -> RewardAuthority:
    ledgers = [RateLedger("USDT", stable_bps)]
    if trade_bps is not None:
        ledgers.append(RateLedger("TRADE", trade_bps))
    return RewardAuthority(authority_id, ledgers)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:
    def test_one_or_two_ledgers(self):
        assert _make_authority().assets == ["USDT"]
        assert _make_authority(trade_bps=500).assets == ["USDT", "TRADE"]

    def test_too_many_ledgers_rejected(self):
        ledgers = [RateLedger("A"), RateLedger("B"), RateLedger("C")]
        with pytest.raises(ValidationError, match="1..2"):
            RewardAuthority("rm-1", ledgers)

    def test_no_ledgers_rejected(self):
        with pytest.raises(ValidationError):
            RewardAuthority("rm-1", [])

    def test_duplicate_assets_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate"):
            RewardAuthority("rm-1", [RateLedger("USDT"), RateLedger("USDT")])

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            RewardAuthority("", [RateLedger("USDT")])

    def test_successor_shares_registry(self):
        genesis = _make_authority()
        successor = genesis.successor("rm-2", [RateLedger("USDT", 500)])
        assert successor.predecessor is genesis
        assert successor.registry is genesis.registry

    def test_successor_with_foreign_registry_rejected(self):
        genesis = _make_authority()
        with pytest.raises(ValidationError, match="registry"):
            RewardAuthority(
                "rm-2",
                [RateLedger("USDT")],
                predecessor=genesis,
                registry=RegistrationRegistry(),
            )

    def test_unknown_asset_ledger(self):
        with pytest.raises(ValidationError, match="does not pay"):
            _make_authority().ledger("DAI")


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------

class TestSettlement:
    def test_settle_requires_registration(self):
        authority = _make_authority()
        with pytest.raises(NotRegisteredError):
            authority.settle("alice", YEAR)

    def test_settle_accrues_from_registration(self):
        authority = _make_authority(trade_bps=500)
        authority.register("alice", 100 * USDT, now=0)
        assert authority.settle("alice", YEAR) == {"USDT": 10 * USDT, "TRADE": 5 * USDT}

    def test_settle_is_idempotent(self):
        authority = _make_authority()
        authority.register("alice", 100 * USDT, now=0)
        first = authority.settle("alice", YEAR)
        second = authority.settle("alice", YEAR)
        assert first == second == {"USDT": 10 * USDT}

    def test_settle_before_last_settlement_rejected(self):
        authority = _make_authority()
        authority.register("alice", 100 * USDT, now=0)
        authority.settle("alice", YEAR)
        with pytest.raises(NonMonotonicTimeError):
            authority.settle("alice", YEAR - 1)
        assert authority.reward_of("alice", YEAR) == {"USDT": 10 * USDT}

    def test_update_principal_settles_old_principal_first(self):
        authority = _make_authority()
        authority.register("alice", 100 * USDT, now=0)
        authority.update_principal("alice", 300 * USDT, YEAR)
        assert authority.principal_of("alice") == 300 * USDT
        assert authority.reward_of("alice", 2 * YEAR) == {"USDT": 10 * USDT + 30 * USDT}

    def test_update_principal_negative_rejected(self):
        authority = _make_authority()
        authority.register("alice", 0, now=0)
        with pytest.raises(ValidationError):
            authority.update_principal("alice", -1, 1)

    def test_reward_of_does_not_mutate(self):
        authority = _make_authority()
        authority.register("alice", 100 * USDT, now=0)
        authority.reward_of("alice", YEAR)
        # An earlier instant is still valid since nothing was settled
        assert authority.reward_of("alice", YEAR // 2) == {"USDT": 5 * USDT}

    def test_rate_history_applies_to_window(self):
        stable = RateLedger("USDT", 1000)
        authority = RewardAuthority("rm-1", [stable])
        authority.register("alice", 100 * USDT, now=0)
        stable.set_rate(2000, YEAR)
        assert authority.reward_of("alice", 2 * YEAR) == {"USDT": 30 * USDT}


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------

class TestClaim:
    def test_claim_round_trip(self):
        authority = _make_authority(trade_bps=500)
        authority.register("alice", 100 * USDT, now=0)

        assert authority.reward_of("alice", YEAR) == {"USDT": 10 * USDT, "TRADE": 5 * USDT}
        assert authority.claim("alice", YEAR) == {"USDT": 10 * USDT, "TRADE": 5 * USDT}
        assert authority.reward_of("alice", YEAR) == {"USDT": 0, "TRADE": 0}

    def test_claim_nothing_raises_without_mutation(self):
        authority = _make_authority()
        authority.register("alice", 0, now=0)
        with pytest.raises(NothingToClaimError):
            authority.claim("alice", YEAR)
        # The failed claim did not settle, so an earlier instant still works
        assert authority.reward_of("alice", 10) == {"USDT": 0}

    def test_claim_single_asset(self):
        authority = _make_authority(trade_bps=500)
        authority.register("alice", 100 * USDT, now=0)
        assert authority.claim("alice", YEAR, ["TRADE"]) == {"TRADE": 5 * USDT}
        assert authority.reward_of("alice", YEAR) == {"USDT": 10 * USDT, "TRADE": 0}

    def test_claim_unregistered(self):
        with pytest.raises(NotRegisteredError):
            _make_authority().claim("alice", YEAR)


# ---------------------------------------------------------------------------
# Retirement
# ---------------------------------------------------------------------------

class TestRetirement:
    def test_accrual_stops_at_retirement(self):
        authority = _make_authority()
        authority.register("alice", 100 * USDT, now=0)
        authority.retire(YEAR)
        assert authority.is_retired
        assert authority.reward_of("alice", 5 * YEAR) == {"USDT": 10 * USDT}

    def test_first_retirement_wins(self):
        authority = _make_authority()
        authority.retire(10)
        authority.retire(20)
        assert authority.retired_at == 10

    def test_retired_balance_stays_claimable(self):
        authority = _make_authority()
        authority.register("alice", 100 * USDT, now=0)
        authority.retire(YEAR)
        assert authority.claim("alice", 10 * YEAR) == {"USDT": 10 * USDT}
        with pytest.raises(NothingToClaimError):
            authority.claim("alice", 11 * YEAR)

    def test_registration_after_retirement_accrues_nothing(self):
        authority = _make_authority()
        authority.retire(YEAR)
        authority.register("bob", 100 * USDT, now=2 * YEAR)
        assert authority.reward_of("bob", 3 * YEAR) == {"USDT": 0}
