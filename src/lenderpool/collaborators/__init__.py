"""
External collaborators of the lender pool.

Structural contracts plus in-memory implementations for development,
simulation and testing.
"""

from .interfaces import (
    AssetTransferService,
    EligibilityGate,
    RedemptionPool,
    YieldStrategy,
)
from .assets import CustodyAccount, InMemoryToken, from_units, to_units
from .verification import VerificationGate
from .strategy import TokenYieldStrategy
from .redeem import RedeemPool

__all__ = [
    "AssetTransferService",
    "EligibilityGate",
    "RedemptionPool",
    "YieldStrategy",
    "CustodyAccount",
    "InMemoryToken",
    "VerificationGate",
    "from_units",
    "to_units",
    "TokenYieldStrategy",
    "RedeemPool",
]
