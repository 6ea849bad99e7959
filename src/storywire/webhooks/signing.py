"""HMAC-SHA256 signing of webhook payloads.

The signature covers the exact bytes placed on the wire. Receivers verify
by recomputing the HMAC over the raw request body with the shared secret
and comparing in constant time against the ``X-Signature`` header.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import TYPE_CHECKING

from storywire.exceptions import ConfigurationError

if TYPE_CHECKING:
    from storywire.config import Settings

SIGNATURE_LENGTH = 64


def compute_signature(payload: bytes, secret: str) -> str:
    """Compute the HMAC-SHA256 signature of a payload.

    Args:
        payload: Serialized request body.
        secret: Shared secret for HMAC.

    Returns:
        Lowercase hex digest, always 64 characters.
    """
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=payload,
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(payload: bytes, secret: str, signature: str) -> bool:
    """Verify a payload signature in constant time.

    Args:
        payload: Raw request body as received.
        secret: Shared secret for HMAC.
        signature: Value of the ``X-Signature`` header.

    Returns:
        True if the signature matches, False otherwise.
    """
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


class Signer:
    """Signs payloads with the process-wide webhook secret.

    The secret is captured once and never exposed through ``repr``.

    Example:
        ```python
        signer = Signer.from_settings(settings)
        signature = signer.sign(payload.to_bytes())
        ```
    """

    __slots__ = ("_secret",)

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ConfigurationError("Webhook signing secret must not be empty")
        self._secret = secret

    @classmethod
    def from_settings(cls, settings: Settings) -> Signer:
        """Create a signer from the configured webhook secret."""
        return cls(settings.effective_webhook_secret)

    def sign(self, payload: bytes) -> str:
        """Return the 64-character lowercase hex HMAC-SHA256 of ``payload``."""
        return compute_signature(payload, self._secret)

    def verify(self, payload: bytes, signature: str) -> bool:
        """Check a signature produced with the same secret."""
        return verify_signature(payload, self._secret, signature)

    def __repr__(self) -> str:
        return "Signer(secret='**********')"
