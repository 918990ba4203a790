# Copyright (c) LenderPool Contributors. All rights reserved.
# Licensed under the MIT License.
"""Centralized exception hierarchy for LenderPool.

All LenderPool exceptions inherit from LenderPoolError. Every failure is
local and synchronous; an operation that raises has not written any ledger
state.
"""


class LenderPoolError(Exception):
    """Base exception for all LenderPool errors."""


class ValidationError(LenderPoolError):
    """Malformed input: zero or negative amounts, malformed rates, bad links."""


class EligibilityError(LenderPoolError):
    """Deposit rejected by the eligibility gate."""


class InsufficientPrincipalError(LenderPoolError):
    """Withdrawal exceeds the user's principal."""


class InsufficientAuthorizationError(LenderPoolError):
    """The asset transfer collaborator declined a transfer."""


class NotRegisteredError(LenderPoolError):
    """Settle or claim against an authority the user never registered with."""


class NothingToClaimError(LenderPoolError):
    """Claim with zero accrued reward for every requested asset."""


class NonMonotonicTimeError(LenderPoolError):
    """A supplied instant is earlier than one already used."""


class UnauthorizedError(LenderPoolError):
    """Capability token missing, forged, revoked or out of scope."""


class ChainDepthError(LenderPoolError):
    """Raised when an authority chain walk exceeds the configured max hops."""


class StrategyError(LenderPoolError):
    """The yield strategy cannot serve the requested amount."""


class RedemptionError(LenderPoolError):
    """The redemption pool cannot serve the requested amount."""


class ConfigError(LenderPoolError):
    """Invalid configuration or scenario file."""


__all__ = [
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
]
