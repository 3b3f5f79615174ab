from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shiftboard.core.db import Base


class LoginIdSequence(Base):
    """Per-scope counter behind human-readable login ids ("mgr", "kyo", "stf:<store id>", ...)."""

    __tablename__ = "login_id_sequences"

    scope: Mapped[str] = mapped_column(String(80), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
