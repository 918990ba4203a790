"""Capability-token access control for privileged pool operations."""

from .capability import Capability, CapabilityIssuer, CapabilityToken

__all__ = [
    "Capability",
    "CapabilityIssuer",
    "CapabilityToken",
]
