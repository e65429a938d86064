"""Schemas for payment initialization."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PaymentInitializeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: int = Field(..., gt=0, description="Amount in major currency units")
    email: str = Field(..., min_length=3)
    product_id: str | None = Field(default=None, alias="productId")
    product_name: str | None = Field(default=None, alias="productName")


class PaymentInitializeResponse(BaseModel):
    authorization_url: str
    access_code: str
    reference: str
