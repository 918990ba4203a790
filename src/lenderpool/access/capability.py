"""
Capability Tokens

Explicit, signed authorization tokens passed into privileged pool
operations instead of ambient role state. A token names its holder, one
capability and an optional resource scope (an authority id), and is
signed with the issuer's Ed25519 key so it cannot be forged or widened.
"""

from __future__ import annotations

import base64
import enum
import json
import logging
import uuid
from datetime import datetime
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import ed25519
from pydantic import BaseModel, Field

from lenderpool.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


class Capability(str, enum.Enum):
    """Privileged operations a token can authorize."""

    RATE_SETTER = "rate:set"
    OPERATOR = "pool:operate"


class CapabilityToken(BaseModel):
    """A signed grant of one capability to one holder.

    ``resource`` narrows the grant to a single authority id; ``None``
    means the grant applies to every authority.
    """

    token_id: str = Field(default_factory=lambda: f"cap_{uuid.uuid4().hex[:12]}")
    holder: str = Field(..., description="Identifier of the caller holding the token")
    capability: Capability = Field(..., description="Granted capability")
    resource: Optional[str] = Field(None, description="Authority id this grant is scoped to")
    issued_at: datetime = Field(default_factory=datetime.utcnow)
    signature: Optional[str] = Field(None, description="Base64-encoded Ed25519 signature")

    def signable_bytes(self) -> bytes:
        """Canonical bytes covered by the signature (excludes the signature)."""
        data = self.model_dump(mode="json", exclude={"signature"})
        return json.dumps(data, sort_keys=True).encode()

    def allows(self, capability: Capability, resource: Optional[str] = None) -> bool:
        """Whether this token's grant covers ``capability`` on ``resource``."""
        if self.capability != capability:
            return False
        if self.resource is not None and self.resource != resource:
            return False
        return True


class CapabilityIssuer:
    """Issues, verifies and revokes capability tokens.

    Args:
        private_key: Ed25519 signing key. A new key is generated when omitted.

    Example:
        >>> issuer = CapabilityIssuer()
        >>> token = issuer.issue("ops@pool", Capability.OPERATOR)
        >>> issuer.verify(token, Capability.OPERATOR)
    """

    def __init__(self, private_key: Optional[ed25519.Ed25519PrivateKey] = None) -> None:
        self._private_key = private_key or ed25519.Ed25519PrivateKey.generate()
        self._revoked: set[str] = set()

    @property
    def public_key(self) -> ed25519.Ed25519PublicKey:
        """Return the public key corresponding to the signing key."""
        return self._private_key.public_key()

    def issue(
        self,
        holder: str,
        capability: Capability,
        resource: Optional[str] = None,
    ) -> CapabilityToken:
        """Create and sign a token granting ``capability`` to ``holder``."""
        token = CapabilityToken(holder=holder, capability=capability, resource=resource)
        sig = self._private_key.sign(token.signable_bytes())
        signed = token.model_copy(update={"signature": base64.b64encode(sig).decode()})
        logger.info(
            "Issued %s token %s to %s (resource=%s)",
            capability.value,
            signed.token_id,
            holder,
            resource or "*",
        )
        return signed

    def revoke(self, token: CapabilityToken) -> None:
        """Revoke ``token`` immediately."""
        self._revoked.add(token.token_id)
        logger.info("Revoked token %s held by %s", token.token_id, token.holder)

    def is_revoked(self, token: CapabilityToken) -> bool:
        return token.token_id in self._revoked

    def verify(
        self,
        token: Optional[CapabilityToken],
        capability: Capability,
        resource: Optional[str] = None,
    ) -> CapabilityToken:
        """Check that ``token`` authorizes ``capability`` on ``resource``.

        Returns:
            The verified token.

        Raises:
            UnauthorizedError: If the token is missing, unsigned, forged,
                revoked, or grants a different capability or resource.
        """
        if token is None:
            raise UnauthorizedError(f"{capability.value} requires a capability token")
        if not token.signature:
            raise UnauthorizedError(f"Token {token.token_id} has no signature")
        try:
            self.public_key.verify(base64.b64decode(token.signature), token.signable_bytes())
        except (InvalidSignature, ValueError) as exc:
            raise UnauthorizedError(f"Token {token.token_id} signature is invalid") from exc
        if token.token_id in self._revoked:
            raise UnauthorizedError(f"Token {token.token_id} has been revoked")
        if not token.allows(capability, resource):
            raise UnauthorizedError(
                f"Token {token.token_id} grants {token.capability.value} on "
                f"{token.resource or '*'}, not {capability.value} on {resource or '*'}"
            )
        logger.debug("Verified %s token %s for %s", capability.value, token.token_id, token.holder)
        return token
