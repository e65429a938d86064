"""Transaction ledger repository helpers."""
from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.transaction import Transaction, TransactionStatus


async def get_by_id(session: AsyncSession, transaction_id: str, *, for_update: bool = False) -> Transaction | None:
    """Return a transaction by identifier."""

    stmt: Select[tuple[Transaction]] = select(Transaction).where(Transaction.id == transaction_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_reference(session: AsyncSession, reference: str, *, for_update: bool = False) -> Transaction | None:
    """Return the transaction created for a provider reference."""

    stmt: Select[tuple[Transaction]] = select(Transaction).where(Transaction.payment_reference == reference)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_pending(
    session: AsyncSession,
    *,
    buyer_id: str,
    amount: int,
    currency: str,
    payment_reference: str,
    product_id: str | None = None,
    payment_method: str = "paystack",
) -> Transaction:
    """Insert a new pending transaction and return it."""

    transaction = Transaction(
        id=str(uuid4()),
        buyer_id=buyer_id,
        product_id=product_id,
        amount=amount,
        currency=currency,
        payment_method=payment_method,
        payment_reference=payment_reference,
        payment_status=TransactionStatus.PENDING,
    )
    session.add(transaction)
    await session.flush()
    return transaction


def apply_status(
    transaction: Transaction,
    status: TransactionStatus,
    *,
    updated_at: datetime,
    card_type: str | None = None,
    payment_reference: str | None = None,
) -> None:
    """Mutate a loaded transaction to its new settlement state."""

    transaction.payment_status = status
    transaction.updated_at = updated_at
    if card_type:
        transaction.card_type = card_type
    if payment_reference and not transaction.payment_reference:
        transaction.payment_reference = payment_reference
