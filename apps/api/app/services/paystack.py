"""Paystack REST client used to open charges."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..core.config import Settings
from ..core.errors import ConfigurationError, ProviderUnavailable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PaystackInitialization:
    authorization_url: str
    access_code: str
    reference: str


class PaystackClient:
    """Thin async wrapper over the Paystack transaction API."""

    def __init__(
        self,
        secret_key: str,
        *,
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaystackClient":
        return cls(
            settings.paystack_secret_key,
            base_url=settings.paystack_base_url,
            timeout=settings.paystack_timeout_seconds,
        )

    async def initialize_transaction(
        self,
        *,
        amount: int,
        email: str,
        metadata: dict[str, Any],
        callback_url: str | None = None,
        currency: str | None = None,
    ) -> PaystackInitialization:
        """Open a charge for ``amount`` minor units and return the checkout handle."""

        if not self._secret_key:
            raise ConfigurationError("Paystack secret key is not configured")

        body: dict[str, Any] = {"amount": amount, "email": email, "metadata": metadata}
        if callback_url:
            body["callback_url"] = callback_url
        if currency:
            body["currency"] = currency

        payload = await self._post("/transaction/initialize", body)
        data = payload.get("data") or {}
        try:
            return PaystackInitialization(
                authorization_url=str(data["authorization_url"]),
                access_code=str(data["access_code"]),
                reference=str(data["reference"]),
            )
        except KeyError as exc:
            raise ProviderUnavailable(f"Paystack response missing {exc.args[0]}") from exc

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._secret_key}"}
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(path, json=body, headers=headers)
            except httpx.TimeoutException as exc:
                logger.error("Paystack request timed out: %s", path)
                raise ProviderUnavailable("Payment provider timed out") from exc
            except httpx.HTTPError as exc:
                logger.error("Paystack request failed: %s %s", path, exc)
                raise ProviderUnavailable("Payment provider unavailable") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderUnavailable("Payment provider returned an invalid response") from exc

        if not isinstance(payload, dict) or not payload.get("status"):
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.error("Paystack error status=%s message=%s", response.status_code, message)
            raise ProviderUnavailable(message or "Failed to initialize payment")
        return payload
