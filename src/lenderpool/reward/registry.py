"""
Registration Registry

Explicit per-(user, authority) opt-in records. A registration fixes the
instant and principal an authority uses as the basis for a user's accrual,
so no user silently inherits rewards for a period they were not tracked.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

from lenderpool.exceptions import NotRegisteredError, ValidationError

logger = logging.getLogger(__name__)


class Registration(BaseModel):
    """Immutable record of a user opting in to one reward authority."""

    model_config = {"frozen": True}

    user: str = Field(..., description="Depositor identifier")
    authority_id: str = Field(..., description="Authority the user registered with")
    registered_at: int = Field(..., description="Instant the registration was created")
    principal_at_registration: int = Field(..., description="Pool principal when registering")

    @field_validator("user", "authority_id")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValidationError("user and authority_id must not be empty")
        return v

    @field_validator("principal_at_registration")
    @classmethod
    def validate_principal(cls, v: int) -> int:
        if v < 0:
            raise ValidationError(f"principal_at_registration must be >= 0, got {v}")
        return v


class RegistrationRegistry:
    """Registry of registrations, shared by every authority in a chain.

    Keeps a per-user index of the authorities a user registered with, so
    finding what a user may be owed never needs to visit authorities they
    never opted in to.
    """

    def __init__(self) -> None:
        self._registrations: dict[tuple[str, str], Registration] = {}
        self._by_user: dict[str, list[str]] = {}

    def register(
        self,
        user: str,
        authority_id: str,
        principal: int,
        now: int,
    ) -> Registration:
        """Create the registration if absent.

        Registering again is a no-op that returns the existing record;
        ``registered_at`` is never moved.

        Returns:
            The (new or existing) registration.
        """
        key = (user, authority_id)
        existing = self._registrations.get(key)
        if existing is not None:
            logger.debug("User %s already registered with %s", user, authority_id)
            return existing

        registration = Registration(
            user=user,
            authority_id=authority_id,
            registered_at=now,
            principal_at_registration=principal,
        )
        self._registrations[key] = registration
        self._by_user.setdefault(user, []).append(authority_id)
        logger.info("Registered user %s with authority %s at %d", user, authority_id, now)
        return registration

    def is_registered(self, user: str, authority_id: str) -> bool:
        return (user, authority_id) in self._registrations

    def get(self, user: str, authority_id: str) -> Registration:
        """Return the registration for ``(user, authority_id)``.

        Raises:
            NotRegisteredError: If the user never registered with the authority.
        """
        registration = self._registrations.get((user, authority_id))
        if registration is None:
            raise NotRegisteredError(
                f"User {user} is not registered with authority {authority_id}"
            )
        return registration

    def authorities_for(self, user: str) -> list[str]:
        """Authority ids the user registered with, oldest registration first."""
        return list(self._by_user.get(user, []))

    def __len__(self) -> int:
        return len(self._registrations)
