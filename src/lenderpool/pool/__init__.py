"""Lender pool principal ledger and authority switch protocol."""

from .ledger import AuthorityRef, PoolLedger

__all__ = [
    "AuthorityRef",
    "PoolLedger",
]
