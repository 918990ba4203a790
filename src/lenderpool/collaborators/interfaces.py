"""
Collaborator Contracts

Structural interfaces for the services the pool depends on but does not
implement: value custody, eligibility gating, principal idling in a yield
strategy, and receipt redemption.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class AssetTransferService(Protocol):
    """Moves one asset in and out of a custody ``account``.

    Transfers report failure by returning ``False``; the pool treats any
    failure as aborting the whole operation.
    """

    @property
    def account(self) -> str: ...

    def transfer_in(self, from_account: str, amount: int) -> bool: ...

    def transfer_out(self, to_account: str, amount: int) -> bool: ...

    def balance_of(self, account: str) -> int: ...


@runtime_checkable
class EligibilityGate(Protocol):
    """Decides whether a user may hold ``requested_deposit`` of principal."""

    @property
    def threshold(self) -> int: ...

    def is_eligible(self, user: str, requested_deposit: int) -> bool: ...


@runtime_checkable
class YieldStrategy(Protocol):
    """Idles uninvested principal in an external yield source."""

    def invest(self, amount: int) -> None: ...

    def divest(self, amount: int) -> int: ...

    def balance(self) -> int: ...


@runtime_checkable
class RedemptionPool(Protocol):
    """Swaps a derivative receipt back to principal 1:1 when funded."""

    def redeem(self, user: str, amount: int) -> int: ...

    def liquidity(self) -> int: ...
