from __future__ import annotations

from datetime import datetime

from sqlalchemy import Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftboard.core.db import Base


class EmergencyRequest(Base):
    """Call for a substitute on an existing shift."""

    __tablename__ = "emergency_requests"

    id: Mapped[int] = mapped_column(primary_key=True)

    original_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    store_id: Mapped[str] = mapped_column(ForeignKey("stores.id"), index=True)
    date: Mapped[object] = mapped_column(Date, nullable=False, index=True)
    shift_pattern_id: Mapped[str] = mapped_column(ForeignKey("shift_patterns.id"), index=True)

    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # open -> filled | cancelled, terminal afterwards
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    original_user = relationship("User")
    store = relationship("Store")
    shift_pattern = relationship("ShiftPattern")
    volunteers = relationship(
        "EmergencyVolunteer",
        back_populates="emergency_request",
        cascade="all, delete-orphan",
        order_by="EmergencyVolunteer.responded_at",
    )
