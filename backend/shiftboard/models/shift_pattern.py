from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from shiftboard.core.db import Base


class ShiftPattern(Base):
    """Reusable work-time template (e.g. "Lunch" 11:00-16:00)."""

    __tablename__ = "shift_patterns"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    start_time: Mapped[object] = mapped_column(Time, nullable=False)
    end_time: Mapped[object] = mapped_column(Time, nullable=False)

    color: Mapped[str] = mapped_column(String(32), nullable=False)
    break_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # minutes

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
