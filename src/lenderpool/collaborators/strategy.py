"""
Token Yield Strategy

In-memory :class:`YieldStrategy` that parks principal in a dedicated
strategy account of the principal token. Yield shows up as any extra
balance minted into that account.
"""

from __future__ import annotations

import logging

from lenderpool.collaborators.assets import InMemoryToken
from lenderpool.exceptions import StrategyError, ValidationError

logger = logging.getLogger(__name__)


class TokenYieldStrategy:
    """Moves principal between the pool's custody account and a strategy account.

    Args:
        token: The principal token.
        pool_account: Custody account of the lender pool.
        strategy_account: Account holding invested principal.
    """

    def __init__(self, token: InMemoryToken, pool_account: str, strategy_account: str) -> None:
        self.token = token
        self.pool_account = pool_account
        self.strategy_account = strategy_account

    def invest(self, amount: int) -> None:
        if amount <= 0:
            raise ValidationError(f"invest amount must be > 0, got {amount}")
        if not self.token.transfer(self.pool_account, self.strategy_account, amount):
            raise StrategyError(
                f"Pool account {self.pool_account} cannot fund investment of {amount}"
            )
        logger.info("Invested %d %s into %s", amount, self.token.symbol, self.strategy_account)

    def divest(self, amount: int) -> int:
        """Return ``amount`` of principal to the pool account.

        Raises:
            StrategyError: If the strategy holds less than ``amount``.
        """
        if amount <= 0:
            raise ValidationError(f"divest amount must be > 0, got {amount}")
        if self.balance() < amount:
            raise StrategyError(
                f"Balance less than requested: {self.balance()} < {amount}"
            )
        self.token.transfer(self.strategy_account, self.pool_account, amount)
        logger.info("Divested %d %s from %s", amount, self.token.symbol, self.strategy_account)
        return amount

    def balance(self) -> int:
        return self.token.balance_of(self.strategy_account)
