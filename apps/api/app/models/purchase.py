"""Purchase model."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from .transaction import Transaction

from .base import Base, utcnow


class Purchase(Base):
    """Entitlement granted to a buyer once their transaction completes."""

    __tablename__ = "purchases"
    # One purchase per transaction; duplicate webhook deliveries collide here.
    __table_args__ = (UniqueConstraint("transaction_id", name="uq_purchases_transaction_id"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    transaction_id: Mapped[str] = mapped_column(ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    transaction: Mapped["Transaction"] = relationship("Transaction", back_populates="purchase")
