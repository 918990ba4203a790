"""
Pool Ledger

Per-user principal, the active reward authority pointer, and the
operations that move principal and pay rewards. Every principal change
settles the active authority first, so accrual is always computed on the
principal that was actually held.

Each operation validates all of its preconditions, and checks that the
collaborators can cover the transfers, before it writes anything. A
rejected call leaves every ledger exactly as it was.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

from lenderpool.access.capability import Capability, CapabilityIssuer, CapabilityToken
from lenderpool.collaborators.interfaces import (
    AssetTransferService,
    EligibilityGate,
    YieldStrategy,
)
from lenderpool.config import PoolConfig
from lenderpool.events.bus import (
    EVENT_AUTHORITY_SWITCHED,
    EVENT_DEPOSITED,
    EVENT_RATE_SET,
    EVENT_REGISTERED,
    EVENT_REWARD_CLAIMED,
    EVENT_STRATEGY_SWITCHED,
    EVENT_WITHDRAWN,
    Event,
    EventBus,
    InMemoryEventBus,
)
from lenderpool.exceptions import (
    EligibilityError,
    InsufficientAuthorizationError,
    InsufficientPrincipalError,
    LenderPoolError,
    NonMonotonicTimeError,
    NotRegisteredError,
    NothingToClaimError,
    ValidationError,
)
from lenderpool.reward.authority import RewardAuthority
from lenderpool.reward.chain import iter_chain
from lenderpool.reward.rate_ledger import RateCheckpoint, RateLedger
from lenderpool.reward.registry import Registration, RegistrationRegistry

logger = logging.getLogger(__name__)

AuthorityRef = Union[RewardAuthority, str]

EVENT_SOURCE = "lenderpool.pool"


class PoolLedger:
    """Principal ledger and authority switch protocol of a lender pool.

    Args:
        principal: Transfer service custodying the principal asset.
        access: Issuer that verifies rate-setter and operator tokens.
        reward_reserves: Transfer service per reward asset, paying claims.
        eligibility: Optional gate consulted before each deposit.
        strategy: Optional yield strategy idling custodied principal.
        config: Pool settings.
        events: Event bus receiving one event per committed change.
        registry: Registration registry shared by every authority of
            this pool. A fresh one is created when omitted.

    Example:
        >>> pool = PoolLedger(principal, access, {"USDT": reserve})
        >>> genesis = pool.new_authority("rm-1", [RateLedger("USDT", 1000)])
        >>> pool.switch_authority(operator_token, genesis, now=0)
        >>> pool.register("alice", now=0)
        >>> pool.deposit("alice", 100_000_000, now=0)
    """

    def __init__(
        self,
        principal: AssetTransferService,
        access: CapabilityIssuer,
        reward_reserves: Optional[Mapping[str, AssetTransferService]] = None,
        eligibility: Optional[EligibilityGate] = None,
        strategy: Optional[YieldStrategy] = None,
        config: Optional[PoolConfig] = None,
        events: Optional[EventBus] = None,
        registry: Optional[RegistrationRegistry] = None,
    ) -> None:
        self.config = config or PoolConfig()
        self._principal = principal
        self._access = access
        self._reserves: dict[str, AssetTransferService] = dict(reward_reserves or {})
        self._eligibility = eligibility
        self._strategy = strategy
        self._events = events or InMemoryEventBus()
        self._registry = registry if registry is not None else RegistrationRegistry()

        self._principals: dict[str, int] = {}
        # Every authority ever switched in, by id, with the version it got
        self._authorities: dict[str, tuple[RewardAuthority, int]] = {}
        self._active: Optional[RewardAuthority] = None
        self._authority_version = 0
        self._clock: Optional[int] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def active_authority(self) -> Optional[RewardAuthority]:
        return self._active

    @property
    def authority_version(self) -> int:
        """Incremented by every authority switch; 0 before the first one."""
        return self._authority_version

    @property
    def registry(self) -> RegistrationRegistry:
        return self._registry

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def strategy(self) -> Optional[YieldStrategy]:
        return self._strategy

    @property
    def eligibility(self) -> Optional[EligibilityGate]:
        return self._eligibility

    @property
    def total_principal(self) -> int:
        return sum(self._principals.values())

    def principal_of(self, user: str) -> int:
        return self._principals.get(user, 0)

    def authorities(self) -> list[RewardAuthority]:
        """The authority chain, active first."""
        if self._active is None:
            return []
        return list(iter_chain(self._active, self.config.chain_max_hops))

    # ------------------------------------------------------------------
    # Principal
    # ------------------------------------------------------------------

    def deposit(self, user: str, amount: int, now: int) -> int:
        """Add ``amount`` to ``user``'s principal.

        The active authority is settled on the pre-deposit principal when
        the user is registered with it.

        Returns:
            The user's principal after the deposit.

        Raises:
            ValidationError: If ``amount`` is not a positive integer.
            EligibilityError: If the eligibility gate rejects the holding.
            InsufficientAuthorizationError: If the transfer is declined.
            StrategyError: If the strategy rejects the deposit; the
                transfer is refunded.
            NonMonotonicTimeError: If ``now`` precedes an accepted instant.
        """
        _check_amount(amount)
        self._observe(now)
        before = self.principal_of(user)
        after = before + amount
        if self._eligibility is not None and not self._eligibility.is_eligible(user, after):
            raise EligibilityError(
                f"User {user} must be verified to hold {after} "
                f"(threshold {self._eligibility.threshold})"
            )
        tracked = self._tracked_by_active(user, now)

        if not self._principal.transfer_in(user, amount):
            raise InsufficientAuthorizationError(
                f"Transfer of {amount} from {user} into {self._principal.account} was declined"
            )
        if self._strategy is not None and self.config.invest_deposits:
            try:
                self._strategy.invest(amount)
            except LenderPoolError:
                self._principal.transfer_out(user, amount)
                raise

        if tracked:
            self._active.update_principal(user, after, now)
        self._principals[user] = after
        self._clock = now

        logger.info("User %s deposited %d (principal %d)", user, amount, after)
        self._emit(EVENT_DEPOSITED, user=user, amount=amount, principal=after, at=now)
        return after

    def withdraw_principal(self, user: str, amount: int, now: int) -> int:
        """Remove ``amount`` from ``user``'s principal and pay it out.

        Returns:
            The user's principal after the withdrawal.

        Raises:
            ValidationError: If ``amount`` is not a positive integer.
            InsufficientPrincipalError: If ``amount`` exceeds the principal.
            InsufficientAuthorizationError: If custody cannot pay out.
            StrategyError: If the strategy cannot cover the shortfall.
        """
        _check_amount(amount)
        self._observe(now)
        before = self.principal_of(user)
        if amount > before:
            raise InsufficientPrincipalError(
                f"Amount requested more than deposit made: {amount} > {before}"
            )
        after = before - amount
        tracked = self._tracked_by_active(user, now)

        self._ensure_liquidity(amount)
        if not self._principal.transfer_out(user, amount):
            raise InsufficientAuthorizationError(
                f"Transfer of {amount} to {user} from {self._principal.account} was declined"
            )

        if tracked:
            self._active.update_principal(user, after, now)
        self._principals[user] = after
        self._clock = now

        logger.info("User %s withdrew %d (principal %d)", user, amount, after)
        self._emit(EVENT_WITHDRAWN, user=user, amount=amount, principal=after, at=now)
        return after

    def withdraw_all(self, user: str, now: int) -> int:
        """Withdraw the user's whole principal. Returns the amount withdrawn."""
        amount = self.principal_of(user)
        if amount == 0:
            raise InsufficientPrincipalError(f"No deposit made by {user}")
        self.withdraw_principal(user, amount, now)
        return amount

    # ------------------------------------------------------------------
    # Registration and rewards
    # ------------------------------------------------------------------

    def register(
        self,
        user: str,
        now: int,
        authority: Optional[AuthorityRef] = None,
    ) -> Registration:
        """Opt ``user`` in to ``authority`` (the active one by default).

        Registering again is a no-op; the original registration is kept.
        """
        self._observe(now)
        target = self._resolve(authority)
        created = not target.is_registered(user)
        registration = target.register(user, self.principal_of(user), now)
        self._clock = now
        if created:
            self._emit(
                EVENT_REGISTERED,
                user=user,
                authority=target.authority_id,
                principal=registration.principal_at_registration,
                at=now,
            )
        return registration

    def is_registered(self, user: str, authority: Optional[AuthorityRef] = None) -> bool:
        return self._resolve(authority).is_registered(user)

    def reward_of(
        self,
        user: str,
        now: int,
        authority: Optional[AuthorityRef] = None,
    ) -> dict[str, int]:
        """Unclaimed reward per asset under one authority (active by default)."""
        return self._resolve(authority).reward_of(user, now)

    def reward_across_chain(self, user: str, now: int) -> dict[str, int]:
        """Sum of :meth:`reward_of` over every authority the user registered with.

        For display only; rewards are still claimed per authority.
        """
        totals: dict[str, int] = {}
        for authority in self._registered_authorities(user):
            for asset, amount in authority.reward_of(user, now).items():
                totals[asset] = totals.get(asset, 0) + amount
        return totals

    def claim(
        self,
        user: str,
        now: int,
        authority: Optional[AuthorityRef] = None,
        assets: Optional[list[str]] = None,
    ) -> dict[str, int]:
        """Claim the user's reward from one authority and pay it out.

        Returns:
            Amount paid per asset.

        Raises:
            NotRegisteredError: If the user is not registered there.
            NothingToClaimError: If nothing has accrued.
            InsufficientAuthorizationError: If a reward reserve cannot pay.
        """
        self._observe(now)
        target = self._resolve(authority)
        selected = target.assets if assets is None else [target.ledger(a).asset for a in assets]
        pending = target.reward_of(user, now)
        payout = {asset: pending[asset] for asset in selected}
        if not any(payout.values()):
            raise NothingToClaimError(f"No reward to claim for {user} on {target.authority_id}")

        self._check_reserves(payout)
        self._pay(user, payout)
        paid = target.claim(user, now, selected)
        self._clock = now
        self._emit(
            EVENT_REWARD_CLAIMED, user=user, authority=target.authority_id, amounts=paid, at=now
        )
        return paid

    def claim_all(
        self,
        user: str,
        now: int,
        asset: Optional[str] = None,
    ) -> dict[str, dict[str, int]]:
        """Claim from every authority in the chain the user registered with.

        Only the user's registrations are visited, so the cost does not
        grow with the length of the chain.

        Args:
            user: Claiming user.
            now: Current instant.
            asset: Only claim this reward asset.

        Returns:
            Amounts paid, keyed by authority id and then by asset.

        Raises:
            NotRegisteredError: If the user is not registered with the
                active authority.
            NothingToClaimError: If nothing has accrued anywhere.
        """
        self._observe(now)
        active = self._require_active()
        if not active.is_registered(user):
            raise NotRegisteredError(
                f"Please register {user} with the active reward authority {active.authority_id}"
            )

        plan: list[tuple[RewardAuthority, list[str]]] = []
        totals: dict[str, int] = {}
        for authority in self._registered_authorities(user):
            selected = authority.assets if asset is None else [a for a in authority.assets if a == asset]
            if not selected:
                continue
            pending = authority.reward_of(user, now)
            if not any(pending[a] for a in selected):
                continue
            plan.append((authority, selected))
            for a in selected:
                totals[a] = totals.get(a, 0) + pending[a]
        if not plan:
            raise NothingToClaimError(f"No reward to claim for {user} across the authority chain")

        self._check_reserves(totals)
        self._pay(user, totals)
        results: dict[str, dict[str, int]] = {}
        for authority, selected in plan:
            paid = authority.claim(user, now, selected)
            results[authority.authority_id] = paid
            self._emit(
                EVENT_REWARD_CLAIMED,
                user=user,
                authority=authority.authority_id,
                amounts=paid,
                at=now,
            )
        self._clock = now
        return results

    # ------------------------------------------------------------------
    # Privileged operations
    # ------------------------------------------------------------------

    def set_rate(
        self,
        token: CapabilityToken,
        authority: AuthorityRef,
        asset: str,
        rate_bps: int,
        at: int,
    ) -> RateCheckpoint:
        """Schedule a new rate for ``asset`` on ``authority`` (rate-setter only)."""
        target = self._resolve(authority)
        self._access.verify(token, Capability.RATE_SETTER, target.authority_id)
        self._observe(at)
        checkpoint = target.ledger(asset).set_rate(rate_bps, at)
        self._clock = at
        self._emit(
            EVENT_RATE_SET,
            authority=target.authority_id,
            asset=asset,
            rate_bps=rate_bps,
            at=at,
            holder=token.holder,
        )
        return checkpoint

    def new_authority(self, authority_id: str, ledgers: list[RateLedger]) -> RewardAuthority:
        """Create an authority linked to the active one and sharing this pool's registry.

        The authority does not take effect until :meth:`switch_authority`.
        """
        if self._active is None:
            return RewardAuthority(authority_id, ledgers, registry=self._registry)
        return self._active.successor(authority_id, ledgers)

    def switch_authority(
        self,
        token: CapabilityToken,
        new_authority: RewardAuthority,
        now: int,
    ) -> RewardAuthority:
        """Make ``new_authority`` the active authority (operator only).

        O(1): no user is visited. The outgoing authority is retired at
        ``now``; what users accrued there up to ``now`` stays there and
        remains claimable.

        Raises:
            UnauthorizedError: If ``token`` is not a valid operator token.
            ValidationError: If ``new_authority`` does not extend the
                current chain.
        """
        self._access.verify(token, Capability.OPERATOR)
        self._observe(now)
        if new_authority is self._active:
            raise ValidationError(f"Authority {new_authority.authority_id} is already active")
        if new_authority.registry is not self._registry:
            raise ValidationError(
                f"Authority {new_authority.authority_id} does not use this pool's registry"
            )
        if new_authority.is_retired:
            raise ValidationError(f"Authority {new_authority.authority_id} is retired")
        if new_authority.authority_id in self._authorities:
            raise ValidationError(
                f"Authority id {new_authority.authority_id} is already in the chain"
            )
        if new_authority.predecessor is not self._active:
            expected = self._active.authority_id if self._active else None
            raise ValidationError(
                f"Authority {new_authority.authority_id} must have predecessor {expected}"
            )

        outgoing = self._active
        if outgoing is not None:
            outgoing.retire(now)
        self._active = new_authority
        self._authority_version += 1
        self._authorities[new_authority.authority_id] = (new_authority, self._authority_version)
        self._clock = now

        logger.info(
            "Switched reward authority %s -> %s (version %d)",
            outgoing.authority_id if outgoing else None,
            new_authority.authority_id,
            self._authority_version,
        )
        self._emit(
            EVENT_AUTHORITY_SWITCHED,
            previous=outgoing.authority_id if outgoing else None,
            authority=new_authority.authority_id,
            version=self._authority_version,
            at=now,
        )
        return new_authority

    def switch_strategy(self, token: CapabilityToken, strategy: Optional[YieldStrategy]) -> int:
        """Move invested principal to ``strategy`` (operator only).

        If the incoming strategy rejects the funds, they go back into the
        outgoing strategy and it stays in place.

        Returns:
            Amount moved from the outgoing strategy.

        Raises:
            UnauthorizedError: If ``token`` is not a valid operator token.
            StrategyError: If either strategy cannot move the funds.
        """
        self._access.verify(token, Capability.OPERATOR)
        outgoing = self._strategy
        moved = 0
        if outgoing is not None:
            balance = outgoing.balance()
            if balance > 0:
                moved = outgoing.divest(balance)
        if strategy is not None and moved > 0:
            try:
                strategy.invest(moved)
            except LenderPoolError:
                outgoing.invest(moved)
                raise
        self._strategy = strategy
        logger.info("Switched yield strategy (moved %d)", moved)
        self._emit(EVENT_STRATEGY_SWITCHED, moved=moved)
        return moved

    def set_eligibility_gate(self, token: CapabilityToken, gate: Optional[EligibilityGate]) -> None:
        """Replace the eligibility gate (operator only)."""
        self._access.verify(token, Capability.OPERATOR)
        self._eligibility = gate
        logger.info("Eligibility gate set to %r", gate)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _observe(self, now: int) -> None:
        if self._clock is not None and now < self._clock:
            raise NonMonotonicTimeError(f"Instant {now} precedes last accepted instant {self._clock}")

    def _require_active(self) -> RewardAuthority:
        if self._active is None:
            raise ValidationError("No active reward authority")
        return self._active

    def _resolve(self, authority: Optional[AuthorityRef]) -> RewardAuthority:
        active = self._require_active()
        if authority is None:
            return active
        authority_id = authority if isinstance(authority, str) else authority.authority_id
        entry = self._authorities.get(authority_id)
        if entry is None or (not isinstance(authority, str) and entry[0] is not authority):
            raise ValidationError(
                f"Authority {authority_id} is not in the chain of {active.authority_id}"
            )
        return entry[0]

    def _registered_authorities(self, user: str) -> list[RewardAuthority]:
        """Authorities of this pool the user registered with, newest first."""
        entries = [
            self._authorities[authority_id]
            for authority_id in self._registry.authorities_for(user)
            if authority_id in self._authorities
        ]
        entries.sort(key=lambda entry: entry[1], reverse=True)
        return [authority for authority, _ in entries]

    def _tracked_by_active(self, user: str, now: int) -> bool:
        """Whether the active authority tracks ``user``; validates ``now`` if so."""
        if self._active is None or not self._active.is_registered(user):
            return False
        self._active.check_time(user, now)
        return True

    def _ensure_liquidity(self, amount: int) -> None:
        available = self._principal.balance_of(self._principal.account)
        if available >= amount:
            return
        if self._strategy is None:
            raise InsufficientAuthorizationError(
                f"Custody holds {available}, cannot pay out {amount}"
            )
        self._strategy.divest(amount - available)

    def _check_reserves(self, payout: Mapping[str, int]) -> None:
        for asset, amount in payout.items():
            if amount == 0:
                continue
            reserve = self._reserves.get(asset)
            if reserve is None:
                raise ValidationError(f"No reward reserve configured for {asset}")
            available = reserve.balance_of(reserve.account)
            if available < amount:
                raise InsufficientAuthorizationError(
                    f"Reward reserve for {asset} holds {available}, cannot pay {amount}"
                )

    def _pay(self, user: str, payout: Mapping[str, int]) -> None:
        for asset, amount in payout.items():
            if amount and not self._reserves[asset].transfer_out(user, amount):
                raise InsufficientAuthorizationError(
                    f"Reward transfer of {amount} {asset} to {user} was declined"
                )

    def _emit(self, event_type: str, **payload: object) -> None:
        self._events.emit(Event(event_type=event_type, source=EVENT_SOURCE, payload=payload))


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"Amount must be an integer, got {amount!r}")
    if amount <= 0:
        raise ValidationError(f"Amount must be > 0, got {amount}")
