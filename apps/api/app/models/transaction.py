"""Payment transaction ledger model."""
from __future__ import annotations

from datetime import datetime
import enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from .purchase import Purchase

from .base import Base, utcnow


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class Transaction(Base):
    """A single payment attempt and its settlement state."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    buyer_id: Mapped[str] = mapped_column(String, nullable=False)
    product_id: Mapped[str | None] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"))
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String, default="NGN", nullable=False)
    payment_method: Mapped[str] = mapped_column(String, nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String, unique=True, index=True)
    payment_status: Mapped[TransactionStatus] = mapped_column(
        Enum(
            TransactionStatus,
            name="payment_status",
            values_callable=lambda members: [member.value for member in members],
        ),
        default=TransactionStatus.PENDING,
        nullable=False,
    )
    card_type: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    purchase: Mapped["Purchase | None"] = relationship("Purchase", back_populates="transaction")
