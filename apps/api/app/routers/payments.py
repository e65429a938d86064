"""Payment initialization endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..core.errors import CommerceError
from ..db.session import get_session
from ..schemas import payments as schemas
from ..services import payments as payments_service
from ..services.auth import AuthenticatedUser, SupabaseAuthClient, authenticate
from ..services.paystack import PaystackClient

router = APIRouter()


def get_paystack_client(settings: Settings = Depends(get_settings)) -> PaystackClient:
    return PaystackClient.from_settings(settings)


def get_auth_client(settings: Settings = Depends(get_settings)) -> SupabaseAuthClient:
    return SupabaseAuthClient.from_settings(settings)


async def get_current_user(
    authorization: str | None = Header(default=None),
    client: SupabaseAuthClient = Depends(get_auth_client),
) -> AuthenticatedUser:
    """Resolve the bearer token on the request to a user."""

    try:
        return await authenticate(authorization, client)
    except CommerceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


@router.post("/initialize", response_model=schemas.PaymentInitializeResponse)
async def initialize_payment(
    payload: schemas.PaymentInitializeRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    origin: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
    client: PaystackClient = Depends(get_paystack_client),
    settings: Settings = Depends(get_settings),
) -> schemas.PaymentInitializeResponse:
    """Open a checkout for the caller and return the provider redirect."""

    callback_url = f"{origin.rstrip('/')}/marketplace" if origin else None
    try:
        return await payments_service.initiate_payment(
            payload, user, session, client, settings, callback_url=callback_url
        )
    except CommerceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
