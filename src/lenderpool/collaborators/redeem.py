"""
Redeem Pool

Swaps a derivative receipt token back to the principal token 1:1,
as long as the pool holds enough principal.

The redeem pool stands apart from reward accrual: :class:`PoolLedger`
pays withdrawals in the principal asset itself and never mints receipts.
A deployment that pays out receipts mints them through its own transfer
service and lets holders swap them back here.
"""

from __future__ import annotations

import logging

from lenderpool.collaborators.assets import InMemoryToken
from lenderpool.exceptions import (
    InsufficientPrincipalError,
    RedemptionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class RedeemPool:
    """In-memory :class:`RedemptionPool`.

    Args:
        principal: Token paid out on redemption.
        receipt: Derivative receipt token burned on redemption.
        account: Account holding the pool's principal liquidity.
    """

    def __init__(self, principal: InMemoryToken, receipt: InMemoryToken, account: str) -> None:
        self.principal = principal
        self.receipt = receipt
        self.account = account

    def fund(self, sender: str, amount: int) -> None:
        """Move ``amount`` of principal from ``sender`` into the pool."""
        if amount <= 0:
            raise ValidationError("Amount is 0")
        if not self.principal.transfer(sender, self.account, amount):
            raise InsufficientPrincipalError(f"{sender} cannot fund {amount}")
        logger.info("Redeem pool funded with %d by %s", amount, sender)

    def liquidity(self) -> int:
        return self.principal.balance_of(self.account)

    def redeem(self, user: str, amount: int) -> int:
        """Burn ``amount`` of the user's receipt and pay the same principal.

        Raises:
            ValidationError: If ``amount`` is not positive.
            InsufficientPrincipalError: If the user holds fewer receipts.
            RedemptionError: If the pool cannot cover ``amount``.
        """
        if amount <= 0:
            raise ValidationError("Amount is 0")
        if self.receipt.balance_of(user) < amount:
            raise InsufficientPrincipalError(
                f"Burn amount exceeds balance: {user} holds {self.receipt.balance_of(user)}"
            )
        if self.liquidity() < amount:
            raise RedemptionError(f"Insufficient balance in pool: {self.liquidity()} < {amount}")

        self.receipt.burn(user, amount)
        self.principal.transfer(self.account, user, amount)
        logger.info("Redeemed %d %s for %s", amount, self.receipt.symbol, user)
        return amount
