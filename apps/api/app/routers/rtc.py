"""RTC token issuance endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import Settings, get_settings
from ..core.errors import CommerceError
from ..schemas.rtc import RtcTokenRequest, RtcTokenResponse
from ..services import rtc as rtc_service

router = APIRouter()


@router.post("/token", response_model=RtcTokenResponse)
async def create_rtc_token(
    payload: RtcTokenRequest,
    settings: Settings = Depends(get_settings),
) -> RtcTokenResponse:
    """Return a channel access token for the community video call."""

    try:
        return await rtc_service.issue_token(payload, settings)
    except CommerceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
