"""GitHub webhook signature verification."""

from __future__ import annotations

import hashlib
import hmac
import logging
import string
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="
_HEX_DIGITS = set(string.hexdigits)


def constant_time_equals(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without returning early on the first mismatch."""

    if len(a) != len(b):
        return False
    result = 0
    for x, y in zip(a, b):
        result |= x ^ y
    return result == 0


class SignatureVerifier:
    def __init__(self, secret: str | bytes | None):
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        self._secret = secret or b""

    def sign(self, payload: bytes) -> str:
        """Return the hex HMAC-SHA256 digest of ``payload``."""
        return hmac.new(self._secret, payload, hashlib.sha256).hexdigest()

    def verify(self, payload: bytes, signature: Optional[str]) -> bool:
        """Check ``signature`` (``sha256=<hex>``) against the raw request body.

        ``payload`` must be the bytes exactly as received; hashing a
        re-serialized JSON body will not reproduce the sender's digest.
        Returns False for a missing, malformed or mismatching signature and
        when no secret is configured.
        """
        if not self._secret:
            logger.error("No webhook secret configured; rejecting delivery")
            return False
        if not signature:
            logger.warning("No signature provided")
            return False

        provided = signature.strip()
        if provided.startswith(SIGNATURE_PREFIX):
            provided = provided[len(SIGNATURE_PREFIX):]
        elif "=" in provided:
            logger.warning(f"Unsupported signature scheme: {provided.split('=', 1)[0]}")
            return False
        if not provided or not set(provided) <= _HEX_DIGITS:
            logger.warning("Malformed signature header")
            return False

        expected = self.sign(payload)
        return constant_time_equals(expected.encode("ascii"), provided.lower().encode("ascii"))
