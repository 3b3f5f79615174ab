"""Per-user, per-date rules for writing a shift.

A confirmed (or completed) shift is binding: nothing else may be written on
that user's date. Writing a binding shift evicts the user's drafts on that
date. Two drafts on the same date are not allowed.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from shiftboard.core.errors import ConflictError
from shiftboard.models import Shift, ShiftStatus
from shiftboard.models.enums import BINDING_SHIFT_STATUSES

log = logging.getLogger("shiftboard.shift_conflicts")

UNKNOWN_STORE = "不明な店舗"


def shifts_on_date(db: Session, *, user_id: int, day: date, exclude_id: int | None = None) -> list[Shift]:
    q = (
        select(Shift)
        .where(Shift.user_id == user_id, Shift.date == day)
        .options(selectinload(Shift.store))
        .order_by(Shift.id)
    )
    if exclude_id is not None:
        q = q.where(Shift.id != exclude_id)
    return list(db.execute(q).scalars().all())


def conflict_for(existing: Shift, message: str) -> ConflictError:
    store_name = existing.store.name if existing.store else UNKNOWN_STORE
    return ConflictError(
        message.format(status=existing.status, store=store_name),
        conflictType=existing.status,
        conflictingStore=store_name,
        conflictingStoreId=existing.store_id,
    )


def resolve_shift_conflicts(
    db: Session,
    *,
    user_id: int,
    day: date,
    new_status: str,
    exclude_id: int | None = None,
) -> int:
    """Check the (user, day) slot before a shift is written there.

    Raises ConflictError when the write is not allowed. When ``new_status`` is
    binding, the user's other drafts on ``day`` are deleted (flushed, not
    committed) and their count is returned.
    """
    existing = shifts_on_date(db, user_id=user_id, day=day, exclude_id=exclude_id)

    for s in existing:
        if s.status in BINDING_SHIFT_STATUSES:
            raise conflict_for(s, "User already has a {status} shift at {store} on this date")

    drafts = [s for s in existing if s.status == ShiftStatus.DRAFT.value]

    if new_status in BINDING_SHIFT_STATUSES:
        if drafts:
            db.execute(delete(Shift).where(Shift.id.in_([s.id for s in drafts])))
            db.flush()
            log.info("user %s on %s: %d draft shift(s) replaced by %s", user_id, day, len(drafts), new_status)
        return len(drafts)

    if drafts:
        raise conflict_for(drafts[0], "User already has a draft shift at {store} on this date")
    return 0
