"""
Reward Authority

Accounting entity that owns one or two reward-rate schedules and every
registered user's unclaimed balance under them. Authorities form an
append-only chain through an immutable ``predecessor`` link; a newer
authority never rewrites an older one's state.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, Field

from lenderpool.constants import MAX_REWARD_ASSETS, MIN_REWARD_ASSETS
from lenderpool.exceptions import (
    NonMonotonicTimeError,
    NothingToClaimError,
    ValidationError,
)
from lenderpool.reward.rate_ledger import RateLedger
from lenderpool.reward.registry import Registration, RegistrationRegistry

logger = logging.getLogger(__name__)


class UserAccrual(BaseModel):
    """Per-user accrual state inside one authority."""

    principal: int = Field(default=0, ge=0, description="Principal the authority accrues on")
    last_settled: int = Field(..., description="Instant accrual was last folded in")
    accrued: dict[str, int] = Field(default_factory=dict, description="Unclaimed reward per asset")


class RewardAuthority:
    """Deposit-weighted reward accrual over a fixed set of rate ledgers.

    A user's accrual window starts at their registration (or last
    settlement) and ends at ``now``, capped at the instant the authority
    was retired by an authority switch. The principal used is the one the
    authority recorded for the user: the registration principal first, then
    whatever the pool reports through :meth:`update_principal`.

    Args:
        authority_id: Unique, immutable identifier.
        ledgers: One or two rate ledgers, one per reward asset.
        predecessor: The authority this one supersedes, if any.
        registry: Registration registry shared along the chain. Defaults to
            the predecessor's registry, or a fresh one for a genesis authority.
    """

    def __init__(
        self,
        authority_id: str,
        ledgers: Sequence[RateLedger],
        predecessor: Optional["RewardAuthority"] = None,
        registry: Optional[RegistrationRegistry] = None,
    ) -> None:
        if not authority_id or not authority_id.strip():
            raise ValidationError("authority_id must not be empty")
        if not MIN_REWARD_ASSETS <= len(ledgers) <= MAX_REWARD_ASSETS:
            raise ValidationError(
                f"An authority wraps {MIN_REWARD_ASSETS}..{MAX_REWARD_ASSETS} "
                f"rate ledgers, got {len(ledgers)}"
            )
        assets = [ledger.asset for ledger in ledgers]
        if len(set(assets)) != len(assets):
            raise ValidationError(f"Duplicate reward assets: {assets}")
        if predecessor is not None:
            if registry is not None and registry is not predecessor.registry:
                raise ValidationError("A successor must share its predecessor's registry")
            registry = predecessor.registry

        self._authority_id = authority_id
        self._predecessor = predecessor
        self._registry = registry if registry is not None else RegistrationRegistry()
        self._ledgers: dict[str, RateLedger] = {ledger.asset: ledger for ledger in ledgers}
        self._users: dict[str, UserAccrual] = {}
        self._retired_at: Optional[int] = None

    # ------------------------------------------------------------------
    # Identity and chain
    # ------------------------------------------------------------------

    @property
    def authority_id(self) -> str:
        return self._authority_id

    @property
    def predecessor(self) -> Optional["RewardAuthority"]:
        return self._predecessor

    @property
    def registry(self) -> RegistrationRegistry:
        return self._registry

    @property
    def assets(self) -> list[str]:
        return list(self._ledgers)

    @property
    def retired_at(self) -> Optional[int]:
        return self._retired_at

    @property
    def is_retired(self) -> bool:
        return self._retired_at is not None

    def ledger(self, asset: str) -> RateLedger:
        """Return the rate ledger for ``asset``.

        Raises:
            ValidationError: If this authority does not pay ``asset``.
        """
        ledger = self._ledgers.get(asset)
        if ledger is None:
            raise ValidationError(
                f"Authority {self._authority_id} does not pay {asset}; "
                f"assets: {self.assets}"
            )
        return ledger

    def successor(self, authority_id: str, ledgers: Sequence[RateLedger]) -> "RewardAuthority":
        """Create a new authority linked to this one as its predecessor."""
        return RewardAuthority(authority_id, ledgers, predecessor=self)

    def retire(self, at: int) -> None:
        """Close the accrual horizon at ``at``. The first retirement wins."""
        if self._retired_at is not None:
            logger.debug("Authority %s already retired at %d", self._authority_id, self._retired_at)
            return
        self._retired_at = at
        logger.info("Retired authority %s at %d", self._authority_id, at)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, user: str, principal: int, now: int) -> Registration:
        """Register ``user`` with this authority (no-op when already registered)."""
        return self._registry.register(user, self._authority_id, principal, now)

    def is_registered(self, user: str) -> bool:
        return self._registry.is_registered(user, self._authority_id)

    def principal_of(self, user: str) -> int:
        """Principal this authority accrues on for ``user``."""
        return self._load(user).principal

    # ------------------------------------------------------------------
    # Accrual
    # ------------------------------------------------------------------

    def check_time(self, user: str, now: int) -> None:
        """Validate that ``user`` can be settled at ``now`` without settling.

        Raises:
            NotRegisteredError: If the user has no registration here.
            NonMonotonicTimeError: If ``now`` precedes the last settlement.
        """
        state = self._load(user)
        if now < state.last_settled:
            raise NonMonotonicTimeError(
                f"Cannot settle {user} on {self._authority_id} at {now}: "
                f"already settled at {state.last_settled}"
            )

    def settle(self, user: str, now: int) -> dict[str, int]:
        """Fold accrual up to ``now`` into the user's unclaimed balance.

        Calling twice with the same ``now`` adds nothing the second time.

        Returns:
            Unclaimed balance per asset after settlement.
        """
        state = self._advance(user, now)
        self._users[user] = state
        return dict(state.accrued)

    def update_principal(self, user: str, principal: int, now: int) -> dict[str, int]:
        """Settle with the old principal, then accrue on ``principal`` from ``now``."""
        if principal < 0:
            raise ValidationError(f"principal must be >= 0, got {principal}")
        state = self._advance(user, now).model_copy(update={"principal": principal})
        self._users[user] = state
        return dict(state.accrued)

    def reward_of(self, user: str, now: int) -> dict[str, int]:
        """What :meth:`claim` would pay at ``now``, without mutating state."""
        return dict(self._advance(user, now).accrued)

    def claim(
        self,
        user: str,
        now: int,
        assets: Optional[Iterable[str]] = None,
    ) -> dict[str, int]:
        """Settle, then zero and return the unclaimed balance.

        Args:
            user: Claiming user.
            now: Current instant.
            assets: Restrict the claim to these reward assets. Defaults to all.

        Returns:
            Amount per claimed asset for the caller to transfer out.

        Raises:
            NotRegisteredError: If the user has no registration here.
            NothingToClaimError: If every claimed asset has a zero balance.
                No state is changed in that case.
        """
        selected = self.assets if assets is None else [self.ledger(a).asset for a in assets]
        state = self._advance(user, now)
        payout = {asset: state.accrued.get(asset, 0) for asset in selected}
        if not any(payout.values()):
            raise NothingToClaimError(
                f"No reward to claim for {user} on {self._authority_id}"
            )

        remaining = dict(state.accrued)
        for asset in selected:
            remaining[asset] = 0
        self._users[user] = state.model_copy(update={"accrued": remaining})
        logger.info("User %s claimed %s from %s", user, payout, self._authority_id)
        return payout

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, user: str) -> UserAccrual:
        state = self._users.get(user)
        if state is not None:
            return state
        registration = self._registry.get(user, self._authority_id)
        return UserAccrual(
            principal=registration.principal_at_registration,
            last_settled=registration.registered_at,
            accrued={asset: 0 for asset in self._ledgers},
        )

    def _advance(self, user: str, now: int) -> UserAccrual:
        """Return the user's state settled up to ``now``; nothing is stored."""
        self.check_time(user, now)
        state = self._load(user)

        end = now if self._retired_at is None else min(now, self._retired_at)
        accrued = dict(state.accrued)
        if end > state.last_settled:
            for asset, ledger in self._ledgers.items():
                accrued[asset] = accrued.get(asset, 0) + ledger.accrued_factor(
                    state.principal, state.last_settled, end
                )
        return state.model_copy(update={"accrued": accrued, "last_settled": now})

    def __repr__(self) -> str:
        predecessor = self._predecessor.authority_id if self._predecessor else None
        return (
            f"RewardAuthority(id={self._authority_id!r}, assets={self.assets}, "
            f"predecessor={predecessor!r}, retired_at={self._retired_at})"
        )
