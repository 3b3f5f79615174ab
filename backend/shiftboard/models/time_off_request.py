from __future__ import annotations

from datetime import datetime

from sqlalchemy import Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftboard.core.db import Base


class TimeOffRequest(Base):
    __tablename__ = "time_off_requests"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_time_off_user_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    date: Mapped[object] = mapped_column(Date, nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # pending -> approved | rejected, never back
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)

    responded_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])
    responder = relationship("User", foreign_keys=[responded_by])
