"""Paystack webhook verification and ledger reconciliation.

Settlement is split into a pure transition (:func:`next_status`) and an apply
step that loads the transaction under a row lock, moves it out of ``pending``
at most once, and records the purchase. Status update and purchase insert
commit together. Terminal states absorb every later event, so duplicate and
reordered deliveries converge on the same ledger state.
"""
from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.errors import MalformedPayload
from ..models.transaction import Transaction, TransactionStatus
from ..repositories import purchases as purchases_repo
from ..repositories import transactions as transactions_repo
from ..schemas.webhooks import PaystackEvent, WebhookAck
from .signatures import verify_webhook_signature

SIGNATURE_HEADER = "X-Paystack-Signature"

logger = logging.getLogger(__name__)


class ChargeEvent(str, enum.Enum):
    SUCCESS = "charge.success"
    FAILED = "charge.failed"


class ReconcileOutcome(str, enum.Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    IGNORED = "ignored"


EVENT_TARGETS: dict[str, TransactionStatus] = {
    ChargeEvent.SUCCESS.value: TransactionStatus.COMPLETED,
    ChargeEvent.FAILED.value: TransactionStatus.FAILED,
}


@dataclass(slots=True)
class WebhookResult:
    status_code: int
    body: dict[str, Any] = field(default_factory=lambda: WebhookAck().model_dump())
    outcome: ReconcileOutcome | None = None


def target_status(event: str) -> TransactionStatus | None:
    """Return the status an event drives a pending transaction to, if any."""

    return EVENT_TARGETS.get(event)


def next_status(current: TransactionStatus, event: str) -> TransactionStatus | None:
    """Return the new status for ``current`` after ``event``, or None if nothing changes."""

    if current is not TransactionStatus.PENDING:
        return None
    return target_status(event)


def parse_event(raw_body: bytes) -> PaystackEvent | None:
    """Parse a verified webhook body.

    Raises :class:`MalformedPayload` for bytes that are not JSON. Returns None
    for JSON that does not look like a charge event.
    """

    try:
        document = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayload("Webhook body is not valid JSON") from exc

    try:
        return PaystackEvent.model_validate(document)
    except ValidationError:
        return None


async def apply_event(
    session: AsyncSession,
    event: PaystackEvent,
    *,
    now: datetime | None = None,
) -> ReconcileOutcome:
    """Apply a charge event to the ledger idempotently."""

    target = target_status(event.event)
    if target is None:
        logger.info("Unhandled event type: %s", event.event)
        return ReconcileOutcome.IGNORED

    now = now or datetime.now(timezone.utc)
    reference = event.data.reference
    metadata = event.data.metadata
    card_type = event.data.authorization.card_type if event.data.authorization else None

    async with session.begin():
        transaction, via_metadata = await _locate(session, reference, metadata.transaction_id if metadata else None)
        if transaction is None:
            logger.warning("No transaction found for reference=%s event=%s", reference, event.event)
            return ReconcileOutcome.NOT_FOUND

        current = transaction.payment_status
        new_status = next_status(current, event.event)
        if new_status is None:
            if current is target:
                logger.info("Duplicate %s for transaction=%s, skipping", event.event, transaction.id)
                return ReconcileOutcome.DUPLICATE
            logger.warning(
                "Conflicting %s for transaction=%s already %s; leaving ledger unchanged",
                event.event,
                transaction.id,
                current.value,
            )
            return ReconcileOutcome.CONFLICT

        transactions_repo.apply_status(
            transaction,
            new_status,
            updated_at=now,
            card_type=card_type,
            payment_reference=reference if via_metadata else None,
        )
        session.add(transaction)
        logger.info("Transaction %s moved %s -> %s", transaction.id, current.value, new_status.value)

        if new_status is TransactionStatus.COMPLETED and transaction.product_id:
            purchase = await purchases_repo.create_once(
                session,
                user_id=transaction.buyer_id,
                product_id=transaction.product_id,
                transaction_id=transaction.id,
                purchased_at=now,
            )
            if purchase is None:
                logger.info("Purchase already exists for transaction=%s", transaction.id)
            else:
                logger.info("Purchase %s created for transaction=%s", purchase.id, transaction.id)

    return ReconcileOutcome.APPLIED


async def handle_webhook(
    raw_body: bytes,
    signature: str | None,
    session: AsyncSession,
    settings: Settings,
) -> WebhookResult:
    """Verify, parse and reconcile one webhook delivery."""

    secret = settings.paystack_secret_key
    if not secret:
        logger.error("PAYSTACK_SECRET_KEY not configured")
        return WebhookResult(status_code=500, body={"error": "Webhook not configured"})

    if not signature:
        logger.warning("Webhook rejected: no signature header")
        return WebhookResult(status_code=401, body={"error": "No signature provided"})

    if not verify_webhook_signature(secret, raw_body, signature):
        logger.warning("Webhook rejected: invalid signature")
        return WebhookResult(status_code=401, body={"error": "Invalid signature"})

    try:
        event = parse_event(raw_body)
    except MalformedPayload:
        logger.warning("Webhook rejected: body is not valid JSON")
        return WebhookResult(status_code=400, body={"error": "Malformed payload"})

    if event is None:
        logger.info("Ignoring webhook with unrecognized shape")
        return WebhookResult(status_code=200, outcome=ReconcileOutcome.IGNORED)

    logger.info("Paystack event=%s reference=%s", event.event, event.data.reference)
    try:
        outcome = await apply_event(session, event)
    except SQLAlchemyError:
        logger.exception("Webhook processing failed for reference=%s", event.data.reference)
        return WebhookResult(status_code=500, body={"error": "Webhook processing failed"})

    return WebhookResult(status_code=200, outcome=outcome)


async def _locate(
    session: AsyncSession,
    reference: str,
    transaction_id: str | None,
) -> tuple[Transaction | None, bool]:
    transaction = await transactions_repo.get_by_reference(session, reference, for_update=True)
    if transaction is not None:
        return transaction, False
    if transaction_id:
        transaction = await transactions_repo.get_by_id(session, transaction_id, for_update=True)
        if transaction is not None:
            return transaction, True
    return None, False
