import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class UserPoints(Base):
    """Points balance — one row per user, mutated only by the ledger."""

    __tablename__ = "user_points"
    __table_args__ = (
        Index("ix_user_points_user_id", "user_id", unique=True),
        CheckConstraint("points_remaining >= 0", name="ck_user_points_remaining_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    points_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    # High-water mark of lifetime allocation, display only
    points_total: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    last_reset: Mapped[datetime | None] = mapped_column(server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )

    user: Mapped["User"] = relationship(back_populates="points")

    def __repr__(self) -> str:
        return f"<UserPoints user={self.user_id} remaining={self.points_remaining}>"
