"""Keyed-hash helpers for RTC token signing and webhook verification.

Token signatures use HMAC-SHA256 and are returned as raw bytes. Paystack
webhooks are signed with HMAC-SHA512 over the raw request body and carried as
lowercase hex in ``X-Paystack-Signature``.
"""
from __future__ import annotations

import hashlib
import hmac

from ..core.errors import ConfigurationError

TOKEN_SIGNATURE_SIZE = hashlib.sha256().digest_size


def sign_token(key: str, data: bytes) -> bytes:
    """Return the HMAC-SHA256 digest of ``data`` keyed by ``key``."""

    return hmac.new(key.encode("utf-8"), data, hashlib.sha256).digest()


def compute_webhook_signature(secret: str, body: bytes) -> str:
    """Return the hex HMAC-SHA512 of the raw webhook body."""

    if not secret:
        raise ConfigurationError("Webhook secret is not configured")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()


def verify_webhook_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Compare the supplied signature against the expected digest in constant time."""

    expected = compute_webhook_signature(secret, body)
    if not signature:
        return False
    candidate = signature.strip().lower()
    return hmac.compare_digest(expected.encode("ascii"), candidate.encode("ascii", "replace"))
