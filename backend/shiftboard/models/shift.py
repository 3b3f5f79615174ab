from __future__ import annotations

from datetime import datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftboard.core.db import Base

_BINDING = text("status IN ('confirmed', 'completed')")


class Shift(Base):
    """One user's assignment to one store on one date, based on a shift pattern."""

    __tablename__ = "shifts"
    __table_args__ = (
        # at most one confirmed/completed shift per user and date
        Index(
            "uq_shifts_user_date_binding",
            "user_id",
            "date",
            unique=True,
            postgresql_where=_BINDING,
            sqlite_where=_BINDING,
        ),
        Index("ix_shifts_store_date", "store_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    store_id: Mapped[str] = mapped_column(ForeignKey("stores.id"), index=True)
    date: Mapped[object] = mapped_column(Date, nullable=False, index=True)

    pattern_id: Mapped[str] = mapped_column(ForeignKey("shift_patterns.id"), index=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")  # draft/confirmed/completed
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user = relationship("User")
    store = relationship("Store")
    pattern = relationship("ShiftPattern")
