from __future__ import annotations

import logging
import datetime as dt
from datetime import date, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shiftboard.auth.deps import get_current_user
from shiftboard.auth.guards import require_manager
from shiftboard.core.db import get_db
from shiftboard.core.errors import commit_or_conflict
from shiftboard.models import Shift, ShiftPattern, ShiftStatus, Store, User
from shiftboard.services import notifications
from shiftboard.services.payloads import shift_payload
from shiftboard.services.shift_conflicts import resolve_shift_conflicts

log = logging.getLogger("shiftboard.shifts")

router = APIRouter(prefix="/shifts", tags=["shifts"])

BINDING_RACE = "User already has a confirmed shift on this date"


def _check_status(v: str) -> str:
    if v not in {s.value for s in ShiftStatus}:
        raise ValueError('Status must be "draft", "confirmed", or "completed"')
    return v


class ShiftCreateIn(BaseModel):
    user_id: int = Field(..., gt=0)
    store_id: str = Field(..., min_length=1)
    date: dt.date
    pattern_id: str = Field(..., min_length=1)
    status: str = ShiftStatus.DRAFT.value
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        return _check_status(v)


class ShiftUpdateIn(BaseModel):
    id: int = Field(..., gt=0)
    user_id: int | None = Field(default=None, gt=0)
    store_id: str | None = Field(default=None, min_length=1)
    date: dt.date | None = None
    pattern_id: str | None = Field(default=None, min_length=1)
    status: str | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        return v if v is None else _check_status(v)


class WeekStatusIn(BaseModel):
    store_id: str = Field(..., min_length=1)
    week_start: dt.date
    week_end: dt.date | None = None
    status: str
    notify: bool = False

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        return _check_status(v)


# ---------- Helpers ----------

def _require_refs(db: Session, *, user_id: int | None, store_id: str | None, pattern_id: str | None) -> None:
    if user_id is not None and db.get(User, user_id) is None:
        raise HTTPException(status_code=400, detail="User not found")
    if store_id is not None and db.get(Store, store_id) is None:
        raise HTTPException(status_code=400, detail="Store not found")
    if pattern_id is not None and db.get(ShiftPattern, pattern_id) is None:
        raise HTTPException(status_code=400, detail="Shift pattern not found")


def _with_relations(q):
    return q.options(selectinload(Shift.user), selectinload(Shift.store), selectinload(Shift.pattern))


def _load_shift(db: Session, shift_id: int) -> Shift:
    return db.execute(
        _with_relations(select(Shift).where(Shift.id == shift_id)).execution_options(populate_existing=True)
    ).scalar_one()


# ---------- Routes ----------

@router.get("")
def list_shifts(
    user_id: int | None = Query(default=None),
    store_id: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = _with_relations(select(Shift))
    if user_id is not None:
        q = q.where(Shift.user_id == user_id)
    if store_id:
        q = q.where(Shift.store_id == store_id)
    if date_from:
        q = q.where(Shift.date >= date_from)
    if date_to:
        q = q.where(Shift.date <= date_to)
    if status:
        q = q.where(Shift.status == status)

    rows = db.execute(q.order_by(Shift.date, Shift.store_id, Shift.id)).scalars().all()
    return {"data": [shift_payload(s) for s in rows]}


@router.post("", status_code=201)
def create_shift(
    payload: ShiftCreateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    _require_refs(db, user_id=payload.user_id, store_id=payload.store_id, pattern_id=payload.pattern_id)

    resolve_shift_conflicts(db, user_id=payload.user_id, day=payload.date, new_status=payload.status)

    shift = Shift(
        user_id=payload.user_id,
        store_id=payload.store_id,
        date=payload.date,
        pattern_id=payload.pattern_id,
        status=payload.status,
        notes=payload.notes,
    )
    db.add(shift)
    commit_or_conflict(db, BINDING_RACE, conflictType=ShiftStatus.CONFIRMED.value)
    log.info("shift %s created (%s, user %s, %s)", shift.id, shift.status, shift.user_id, shift.date)

    return {"data": shift_payload(_load_shift(db, shift.id))}


@router.put("")
def update_shift(
    payload: ShiftUpdateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    shift = db.get(Shift, payload.id)
    if not shift:
        raise HTTPException(status_code=404, detail="Shift not found")

    _require_refs(db, user_id=payload.user_id, store_id=payload.store_id, pattern_id=payload.pattern_id)

    # the slot being written is the effective (user, date) after the update
    resolve_shift_conflicts(
        db,
        user_id=payload.user_id or shift.user_id,
        day=payload.date or shift.date,
        new_status=payload.status or shift.status,
        exclude_id=shift.id,
    )

    for field in ("user_id", "store_id", "date", "pattern_id", "status", "notes"):
        value = getattr(payload, field)
        if value is not None:
            setattr(shift, field, value)

    commit_or_conflict(db, BINDING_RACE, conflictType=ShiftStatus.CONFIRMED.value)
    return {"data": shift_payload(_load_shift(db, shift.id))}


@router.delete("")
def delete_shift(
    id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    shift = db.get(Shift, id)
    if not shift:
        raise HTTPException(status_code=404, detail="Shift not found")

    db.delete(shift)
    db.commit()
    return {"data": {"id": id}, "message": "Shift deleted successfully"}


@router.patch("")
def update_week_status(
    payload: WeekStatusIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    """Set one status on every shift of a store within a week."""
    week_end = payload.week_end or (payload.week_start + timedelta(days=6))
    if week_end < payload.week_start:
        raise HTTPException(status_code=400, detail="week_end must not be before week_start")

    shifts = db.execute(
        _with_relations(
            select(Shift).where(
                Shift.store_id == payload.store_id,
                Shift.date >= payload.week_start,
                Shift.date <= week_end,
            )
        ).order_by(Shift.date, Shift.id)
    ).scalars().all()

    if not shifts:
        raise HTTPException(status_code=404, detail="No shifts found for the specified week")

    for s in shifts:
        s.status = payload.status
    commit_or_conflict(db, "Some users would have two confirmed shifts on the same date")

    log.info(
        "store %s week %s..%s: %d shift(s) set to %s by %s",
        payload.store_id,
        payload.week_start,
        week_end,
        len(shifts),
        payload.status,
        manager.id,
    )

    if payload.notify and payload.status == ShiftStatus.CONFIRMED.value:
        by_user: dict[int, list[Shift]] = {}
        for s in shifts:
            by_user.setdefault(s.user_id, []).append(s)
        for user_shifts in by_user.values():
            u = user_shifts[0].user
            if u is None or not u.email:
                continue
            background.add_task(
                notifications.notify_shift_confirmation, u.email, u.name, notifications.shift_lines(user_shifts)
            )

    return {
        "data": [shift_payload(s) for s in shifts],
        "updated_count": len(shifts),
        "message": f"{len(shifts)} shifts updated to {payload.status}",
    }
