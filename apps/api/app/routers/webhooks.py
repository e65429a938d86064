"""Inbound payment provider webhooks."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..db.session import get_session
from ..services import webhooks as webhooks_service

router = APIRouter()


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Verify and reconcile a Paystack event against the ledger."""

    raw_body = await request.body()
    signature = request.headers.get(webhooks_service.SIGNATURE_HEADER)
    result = await webhooks_service.handle_webhook(raw_body, signature, session, settings)
    return JSONResponse(status_code=result.status_code, content=result.body)
