"""Tests for the registration registry."""

import pytest

from lenderpool.exceptions import NotRegisteredError, ValidationError
from lenderpool.reward.registry import Registration, RegistrationRegistry


class TestRegistrationRegistry:
    def test_register_creates_record(self):
        registry = RegistrationRegistry()
        registration = registry.register("alice", "rm-1", 500, now=10)

        assert isinstance(registration, Registration)
        assert registration.registered_at == 10
        assert registration.principal_at_registration == 500
        assert registry.is_registered("alice", "rm-1")
        assert len(registry) == 1

    def test_register_twice_keeps_first_record(self):
        registry = RegistrationRegistry()
        first = registry.register("alice", "rm-1", 500, now=10)
        second = registry.register("alice", "rm-1", 900, now=99)

        assert second is first
        assert registry.get("alice", "rm-1").registered_at == 10
        assert registry.get("alice", "rm-1").principal_at_registration == 500
        assert len(registry) == 1

    def test_registration_is_per_authority(self):
        registry = RegistrationRegistry()
        registry.register("alice", "rm-1", 0, now=0)
        assert not registry.is_registered("alice", "rm-2")
        assert not registry.is_registered("bob", "rm-1")

    def test_get_unknown_raises(self):
        registry = RegistrationRegistry()
        with pytest.raises(NotRegisteredError, match="not registered"):
            registry.get("alice", "rm-1")

    def test_authorities_for_in_registration_order(self):
        registry = RegistrationRegistry()
        registry.register("alice", "rm-2", 0, now=0)
        registry.register("alice", "rm-1", 0, now=1)
        registry.register("alice", "rm-2", 0, now=2)
        assert registry.authorities_for("alice") == ["rm-2", "rm-1"]
        assert registry.authorities_for("bob") == []

    def test_empty_user_rejected(self):
        registry = RegistrationRegistry()
        with pytest.raises(ValidationError):
            registry.register("", "rm-1", 0, now=0)

    def test_negative_principal_rejected(self):
        registry = RegistrationRegistry()
        with pytest.raises(ValidationError):
            registry.register("alice", "rm-1", -1, now=0)
        assert len(registry) == 0
