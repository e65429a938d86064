"""Paystack webhook payload contracts."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PaystackCustomer(_Payload):
    email: str | None = None


class PaystackMetadata(_Payload):
    user_id: str | None = None
    product_id: str | None = None
    transaction_id: str | None = None

    @field_validator("user_id", "product_id", "transaction_id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        if value is None or value == "":
            return None
        if isinstance(value, (int, str)):
            return str(value)
        return value


class PaystackAuthorization(_Payload):
    card_type: str | None = None


class PaystackEventData(_Payload):
    reference: str
    amount: int | None = None
    currency: str | None = None
    status: str | None = None
    channel: str | None = None
    customer: PaystackCustomer | None = None
    metadata: PaystackMetadata | None = None
    authorization: PaystackAuthorization | None = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _empty_metadata(cls, value: object) -> object:
        """Paystack sends an empty string when a charge carries no metadata."""

        if not isinstance(value, dict):
            return None
        return value


class PaystackEvent(_Payload):
    event: str
    data: PaystackEventData = Field(...)


class WebhookAck(BaseModel):
    received: bool = True
