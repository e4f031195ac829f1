import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class PaymentHistory(Base):
    """Append-only log of point allocations and payment events.

    ``external_event_id`` is the PayPal subscription id (or a billing-cycle
    key derived from it). It is unique per user only, never globally.
    """

    __tablename__ = "payment_history"
    __table_args__ = (
        Index("ix_payment_history_user_id", "user_id"),
        Index("ix_payment_history_user_event", "user_id", "external_event_id"),
        Index("ix_payment_history_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    external_event_id: Mapped[str | None] = mapped_column(String(255))
    event_kind: Mapped[str] = mapped_column(String(50), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD", server_default="USD")
    paypal_payment_id: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    def __repr__(self) -> str:
        return f"<PaymentHistory {self.event_kind} {self.external_event_id} points={self.points}>"
