"""Purchase persistence helpers."""
from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.purchase import Purchase


async def exists_for_transaction(session: AsyncSession, transaction_id: str) -> bool:
    """Return True if a purchase was already recorded for the transaction."""

    stmt = select(func.count(Purchase.id)).where(Purchase.transaction_id == transaction_id)
    result = await session.execute(stmt)
    return result.scalar_one() > 0


async def create_once(
    session: AsyncSession,
    *,
    user_id: str,
    product_id: str,
    transaction_id: str,
    purchased_at: datetime,
) -> Purchase | None:
    """Insert a purchase unless one exists for the transaction.

    The insert runs in a savepoint so a unique-constraint violation from a
    concurrent delivery only rolls back the insert. Returns None in that case.
    """

    if await exists_for_transaction(session, transaction_id):
        return None

    purchase = Purchase(
        id=str(uuid4()),
        user_id=user_id,
        product_id=product_id,
        transaction_id=transaction_id,
        purchased_at=purchased_at,
    )
    try:
        async with session.begin_nested():
            session.add(purchase)
    except IntegrityError:
        return None
    return purchase
