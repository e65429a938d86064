"""Product catalog lookups."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.product import Product


async def exists(session: AsyncSession, product_id: str) -> bool:
    """Return True if the catalog contains the product."""

    stmt = select(func.count(Product.id)).where(Product.id == product_id)
    result = await session.execute(stmt)
    return result.scalar_one() > 0
