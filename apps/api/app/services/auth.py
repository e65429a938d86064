"""Caller authentication against the Supabase auth service."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from ..core.config import Settings
from ..core.errors import ConfigurationError, ProviderUnavailable, Unauthorized

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthenticatedUser:
    id: str
    email: str | None = None


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer`` header."""

    if not authorization:
        raise Unauthorized("No authorization header")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Unauthorized")
    return token.strip()


class SupabaseAuthClient:
    """Resolve access tokens to users via ``GET /auth/v1/user``."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseAuthClient":
        return cls(settings.supabase_url, settings.supabase_anon_key, timeout=settings.paystack_timeout_seconds)

    async def get_user(self, access_token: str) -> AuthenticatedUser:
        if not self._base_url or not self._api_key:
            raise ConfigurationError("Auth service is not configured")

        headers = {"Authorization": f"Bearer {access_token}", "apikey": self._api_key}
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get("/auth/v1/user", headers=headers)
            except httpx.HTTPError as exc:
                logger.error("Auth lookup failed: %s", exc)
                raise ProviderUnavailable("Auth service unavailable") from exc

        if response.status_code in (401, 403):
            raise Unauthorized("Unauthorized")
        if response.status_code >= 400:
            logger.error("Auth lookup returned status=%s", response.status_code)
            raise ProviderUnavailable("Auth service unavailable")

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderUnavailable("Auth service returned an invalid response") from exc
        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            raise Unauthorized("Unauthorized")
        return AuthenticatedUser(id=str(user_id), email=body.get("email"))


async def authenticate(authorization: str | None, client: SupabaseAuthClient) -> AuthenticatedUser:
    """Return the user behind a bearer header or raise :class:`Unauthorized`."""

    token = bearer_token(authorization)
    return await client.get_user(token)
