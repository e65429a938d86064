"""Domain errors raised by the token and payment services."""
from __future__ import annotations


class CommerceError(RuntimeError):
    """Base class for access-control and settlement failures."""

    status_code: int = 500


class ConfigurationError(CommerceError):
    """Raised when a signing or verification secret is not provisioned."""

    status_code = 500


class TokenRequestError(CommerceError):
    """Raised when a token request is missing required input."""

    status_code = 400


class SignatureMismatch(CommerceError):
    """Raised when a webhook signature is absent or does not verify."""

    status_code = 401


class MalformedPayload(CommerceError):
    """Raised when a webhook body cannot be parsed as JSON."""

    status_code = 400


class Unauthorized(CommerceError):
    """Raised when the caller could not be authenticated."""

    status_code = 401


class ProviderUnavailable(CommerceError):
    """Raised when an upstream provider rejects or fails a request. Retryable."""

    status_code = 502


class LedgerWriteError(CommerceError):
    """Raised when a ledger row could not be persisted."""

    status_code = 500
