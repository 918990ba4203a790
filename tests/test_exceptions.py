"""Tests for the centralized exception hierarchy."""

import pytest

from lenderpool.exceptions import (
    ChainDepthError,
    ConfigError,
    EligibilityError,
    InsufficientAuthorizationError,
    InsufficientPrincipalError,
    LenderPoolError,
    NonMonotonicTimeError,
    NotRegisteredError,
    NothingToClaimError,
    RedemptionError,
    StrategyError,
    UnauthorizedError,
    ValidationError,
)

ALL_ERRORS = [
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
]


class TestExceptionHierarchy:
    """Verify the exception class hierarchy is correct."""

    def test_base_exception_exists(self):
        assert issubclass(LenderPoolError, Exception)

    @pytest.mark.parametrize("exc_cls", ALL_ERRORS)
    def test_direct_subclasses_of_lenderpool_error(self, exc_cls):
        assert exc_cls.__bases__ == (LenderPoolError,)

    def test_distinct_from_builtin_value_error(self):
        assert not issubclass(ValidationError, ValueError)


class TestExceptionMessages:
    def test_message_propagation(self):
        err = NothingToClaimError("nothing accrued")
        assert str(err) == "nothing accrued"

    def test_catch_by_base_class(self):
        with pytest.raises(LenderPoolError):
            raise ChainDepthError("too deep")
