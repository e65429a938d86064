"""Data contracts for RTC endpoints."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RtcTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel_name: str = Field(..., alias="channelName", description="Channel to join")
    uid: int | None = Field(default=None, ge=0, le=0xFFFFFFFF, description="Numeric user id, 0 lets the SDK assign one")
    role: Literal["publisher", "subscriber"] = Field(default="publisher")


class RtcTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., description="Signed 007 access token")
    app_id: str = Field(..., alias="appId")
    channel_name: str = Field(..., alias="channelName")
    uid: int
