"""Payment initialization: open a Paystack charge and record a pending transaction."""
from __future__ import annotations

import logging
import re

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.errors import LedgerWriteError
from ..repositories import products as products_repo
from ..repositories import transactions as transactions_repo
from ..schemas import payments as schemas
from .auth import AuthenticatedUser
from .paystack import PaystackClient

MINOR_UNITS_PER_MAJOR = 100
PAYMENT_METHOD = "paystack"

_UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

logger = logging.getLogger(__name__)


def is_catalog_identifier(value: str | None) -> bool:
    """Return True if ``value`` is shaped like a catalog product id."""

    return bool(value) and _UUID_PATTERN.match(value) is not None


async def initiate_payment(
    payload: schemas.PaymentInitializeRequest,
    user: AuthenticatedUser,
    session: AsyncSession,
    client: PaystackClient,
    settings: Settings,
    *,
    callback_url: str | None = None,
) -> schemas.PaymentInitializeResponse:
    """Open a provider charge, then persist it as a pending transaction.

    The provider is called first so a failed or timed-out charge never leaves a
    ledger row behind. If the insert fails afterwards the charge still exists
    provider-side; that is logged with its reference for manual reconciliation.
    """

    logger.info("Initializing payment user=%s amount=%s product=%s", user.id, payload.amount, payload.product_id)

    initialization = await client.initialize_transaction(
        amount=payload.amount * MINOR_UNITS_PER_MAJOR,
        email=payload.email,
        metadata={
            "user_id": user.id,
            "product_id": payload.product_id,
            "product_name": payload.product_name,
        },
        callback_url=settings.paystack_callback_url or callback_url,
    )

    try:
        async with session.begin():
            product_id = None
            if is_catalog_identifier(payload.product_id) and await products_repo.exists(session, payload.product_id):
                product_id = payload.product_id
            elif payload.product_id:
                logger.info("Dropping unknown product reference %r from ledger row", payload.product_id)

            await transactions_repo.create_pending(
                session,
                buyer_id=user.id,
                amount=payload.amount,
                currency=settings.paystack_currency,
                payment_reference=initialization.reference,
                product_id=product_id,
                payment_method=PAYMENT_METHOD,
            )
    except SQLAlchemyError as exc:
        logger.exception("Failed to store transaction for reference=%s", initialization.reference)
        raise LedgerWriteError("Failed to store transaction") from exc

    return schemas.PaymentInitializeResponse(
        authorization_url=initialization.authorization_url,
        access_code=initialization.access_code,
        reference=initialization.reference,
    )
