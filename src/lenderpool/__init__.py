"""
LenderPool - Deposit-weighted reward accrual for a lending pool

Principal · Rate Ledgers · Reward Authorities · Authority Switching

Users deposit a principal asset into a pool and earn one or two reward
assets at operator-set annual rates. Reward authorities can be replaced
at any time without touching users' unclaimed balances under the old
authority.

Version: 0.1.0
"""

__version__ = "0.1.0"

from .exceptions import (
    LenderPoolError,
    ValidationError,
    EligibilityError,
    InsufficientPrincipalError,
    InsufficientAuthorizationError,
    NotRegisteredError,
    NothingToClaimError,
    NonMonotonicTimeError,
    UnauthorizedError,
    ChainDepthError,
    StrategyError,
    RedemptionError,
    ConfigError,
)

# Reward accrual
from .reward import (
    RateCheckpoint,
    RateLedger,
    Registration,
    RegistrationRegistry,
    RewardAuthority,
    iter_chain,
)

# Pool
from .pool import PoolLedger
from .config import PoolConfig, load_config, save_config

# Access control
from .access import Capability, CapabilityIssuer, CapabilityToken

# Collaborators
from .collaborators import (
    AssetTransferService,
    EligibilityGate,
    RedemptionPool,
    YieldStrategy,
    CustodyAccount,
    InMemoryToken,
    VerificationGate,
    TokenYieldStrategy,
    RedeemPool,
)

# Events
from .events import Event, EventBus, InMemoryEventBus

# Simulation
from .simulation import Scenario, ScenarioResult, load_scenario, run_scenario

__all__ = [
    "__version__",
    # Exceptions
    "LenderPoolError",
    "ValidationError",
    "EligibilityError",
    "InsufficientPrincipalError",
    "InsufficientAuthorizationError",
    "NotRegisteredError",
    "NothingToClaimError",
    "NonMonotonicTimeError",
    "UnauthorizedError",
    "ChainDepthError",
    "StrategyError",
    "RedemptionError",
    "ConfigError",
    # Reward
    "RateCheckpoint",
    "RateLedger",
    "Registration",
    "RegistrationRegistry",
    "RewardAuthority",
    "iter_chain",
    # Pool
    "PoolLedger",
    "PoolConfig",
    "load_config",
    "save_config",
    # Access
    "Capability",
    "CapabilityIssuer",
    "CapabilityToken",
    # Collaborators
    "AssetTransferService",
    "EligibilityGate",
    "RedemptionPool",
    "YieldStrategy",
    "CustodyAccount",
    "InMemoryToken",
    "VerificationGate",
    "TokenYieldStrategy",
    "RedeemPool",
    # Events
    "Event",
    "EventBus",
    "InMemoryEventBus",
    # Simulation
    "Scenario",
    "ScenarioResult",
    "load_scenario",
    "run_scenario",
]
