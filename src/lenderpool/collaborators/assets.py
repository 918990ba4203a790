"""
In-Memory Assets

Simple fungible token with balances and allowances, plus a custody view
that satisfies :class:`AssetTransferService`. Data is lost on restart;
suitable for development, simulation and testing.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from lenderpool.constants import DEFAULT_PRINCIPAL_DECIMALS
from lenderpool.exceptions import ValidationError

logger = logging.getLogger(__name__)


class InMemoryToken:
    """A fungible asset held in process memory.

    Args:
        symbol: Asset symbol (e.g. ``"USDT"``).
        decimals: Number of decimals of the smallest unit.
    """

    def __init__(self, symbol: str, decimals: int = DEFAULT_PRINCIPAL_DECIMALS) -> None:
        self.symbol = symbol
        self.decimals = decimals
        self._balances: dict[str, int] = defaultdict(int)
        self._allowances: dict[tuple[str, str], int] = defaultdict(int)
        self.total_supply = 0

    def units(self, amount: float | int | str) -> int:
        """Convert a whole-token amount to smallest units (``units("1.5")``)."""
        return to_units(amount, self.decimals)

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def mint(self, account: str, amount: int) -> None:
        _check_amount(amount)
        self._balances[account] += amount
        self.total_supply += amount

    def burn(self, account: str, amount: int) -> bool:
        _check_amount(amount)
        if self._balances.get(account, 0) < amount:
            return False
        self._balances[account] -= amount
        self.total_supply -= amount
        return True

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError(f"allowance must be >= 0, got {amount}")
        self._allowances[(owner, spender)] = amount

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move ``amount`` from ``sender`` to ``recipient``; ``False`` if short."""
        _check_amount(amount)
        if self._balances.get(sender, 0) < amount:
            logger.debug("%s transfer of %d from %s declined: balance too low", self.symbol, amount, sender)
            return False
        self._balances[sender] -= amount
        self._balances[recipient] += amount
        return True

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        """Spend ``owner``'s allowance to ``spender``; ``False`` if not covered."""
        _check_amount(amount)
        if self.allowance(owner, spender) < amount:
            logger.debug(
                "%s transfer of %d from %s declined: allowance to %s too low",
                self.symbol, amount, owner, spender,
            )
            return False
        if not self.transfer(owner, recipient, amount):
            return False
        self._allowances[(owner, spender)] -= amount
        return True


class CustodyAccount:
    """:class:`AssetTransferService` over an :class:`InMemoryToken` account.

    ``transfer_in`` pulls from a user against the allowance they granted to
    the custody account; ``transfer_out`` pays from the custody balance.
    """

    def __init__(self, token: InMemoryToken, account: str) -> None:
        self.token = token
        self._account = account

    @property
    def account(self) -> str:
        return self._account

    def transfer_in(self, from_account: str, amount: int) -> bool:
        return self.token.transfer_from(self._account, from_account, self._account, amount)

    def transfer_out(self, to_account: str, amount: int) -> bool:
        return self.token.transfer(self._account, to_account, amount)

    def balance_of(self, account: str) -> int:
        return self.token.balance_of(account)

    def __repr__(self) -> str:
        return f"CustodyAccount(token={self.token.symbol!r}, account={self._account!r})"


def to_units(amount: float | int | str, decimals: int) -> int:
    """Convert a decimal amount of whole tokens to integer smallest units.

    Digits beyond ``decimals`` are truncated.
    """
    text = str(amount).strip()
    sign = -1 if text.startswith("-") else 1
    whole, _, frac = text.lstrip("+-").partition(".")
    if not (whole or frac) or not (whole + frac).isdigit():
        raise ValidationError(f"Not a decimal amount: {amount!r}")
    frac = (frac + "0" * decimals)[:decimals]
    return sign * (int(whole or "0") * 10**decimals + int(frac or "0"))


def from_units(amount: int, decimals: int) -> str:
    """Render integer smallest units as a decimal string of whole tokens."""
    if decimals == 0:
        return str(amount)
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    return f"{sign}{whole}.{frac:0{decimals}d}"


def _check_amount(amount: int) -> None:
    if amount < 0:
        raise ValidationError(f"amount must be >= 0, got {amount}")
