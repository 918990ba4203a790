"""
Reward accrual and the reward-authority chain.

Rate ledgers integrate a changing rate over time, authorities hold
per-user unclaimed balances, and the registry records who opted in where.
"""

from .rate_ledger import RateCheckpoint, RateLedger
from .registry import Registration, RegistrationRegistry
from .authority import RewardAuthority, UserAccrual
from .chain import chain_ids, find_in_chain, in_chain, iter_chain

__all__ = [
    "RateCheckpoint",
    "RateLedger",
    "Registration",
    "RegistrationRegistry",
    "RewardAuthority",
    "UserAccrual",
    "chain_ids",
    "find_in_chain",
    "in_chain",
    "iter_chain",
]
