from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftboard.core.db import Base


class EmergencyVolunteer(Base):
    """A staff member's offer to cover an emergency request."""

    __tablename__ = "emergency_volunteers"
    __table_args__ = (
        UniqueConstraint("emergency_request_id", "user_id", name="uq_emergency_volunteer"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    emergency_request_id: Mapped[int] = mapped_column(ForeignKey("emergency_requests.id"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    responded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    emergency_request = relationship("EmergencyRequest", back_populates="volunteers")
    user = relationship("User")
