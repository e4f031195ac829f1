import uuid
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class UserSubscription(Base):
    """A user's PayPal subscription and its lifecycle status."""

    __tablename__ = "user_subscriptions"
    __table_args__ = (
        Index("ix_user_subscriptions_user_id", "user_id"),
        Index("ix_user_subscriptions_paypal_id", "paypal_subscription_id", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    paypal_subscription_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    plan_type: Mapped[str] = mapped_column(
        Enum("free", "pro", "business", "enterprise", name="subscription_plan_type"),
        nullable=False,
        default="free",
    )
    status: Mapped[str] = mapped_column(
        Enum("created", "active", "cancelled", "suspended", "expired", name="subscription_status"),
        nullable=False,
        default="created",
        server_default="created",
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    activated_at: Mapped[datetime | None]
    cancelled_at: Mapped[datetime | None]
    suspended_at: Mapped[datetime | None]
    expired_at: Mapped[datetime | None]
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )

    user: Mapped["User"] = relationship(back_populates="subscriptions")

    def __repr__(self) -> str:
        return f"<UserSubscription {self.paypal_subscription_id} {self.plan_type}/{self.status}>"
