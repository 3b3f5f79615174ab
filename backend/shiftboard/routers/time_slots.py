from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftboard.auth.deps import get_current_user
from shiftboard.auth.guards import require_manager
from shiftboard.core.db import get_db
from shiftboard.core.errors import ConflictError
from shiftboard.core.timefmt import fmt_time, normalize_time, parse_time, to_minutes
from shiftboard.models import Store, TimeSlot, User
from shiftboard.services.payloads import time_slot_payload

log = logging.getLogger("shiftboard.time_slots")

router = APIRouter(prefix="/time-slots", tags=["time-slots"])


class TimeSlotCreateIn(BaseModel):
    store_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    start_time: str
    end_time: str
    display_order: int = Field(0, ge=0)

    @field_validator("start_time", "end_time")
    @classmethod
    def valid_time(cls, v):
        return normalize_time(v)


class TimeSlotUpdateIn(BaseModel):
    id: str = Field(..., min_length=1)
    name: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    display_order: int | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def valid_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Name cannot be empty")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def valid_time(cls, v):
        return v if v is None else normalize_time(v)


def _require_start_before_end(start: str, end: str) -> None:
    if to_minutes(start) >= to_minutes(end):
        raise HTTPException(status_code=400, detail="Start time must be before end time")


def _check_overlap(db: Session, *, store_id: str, start: str, end: str, exclude_id: str | None = None) -> None:
    q = select(TimeSlot).where(TimeSlot.store_id == store_id)
    if exclude_id is not None:
        q = q.where(TimeSlot.id != exclude_id)
    for other in db.execute(q).scalars().all():
        o_start, o_end = fmt_time(other.start_time), fmt_time(other.end_time)
        if to_minutes(start) < to_minutes(o_end) and to_minutes(o_start) < to_minutes(end):
            raise ConflictError(
                f'Time slot overlaps with "{other.name}" ({o_start}-{o_end})',
                fields=["start_time", "end_time"],
            )


@router.get("")
def list_time_slots(
    store_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not store_id:
        raise HTTPException(status_code=400, detail="Store ID is required")

    rows = db.execute(
        select(TimeSlot).where(TimeSlot.store_id == store_id).order_by(TimeSlot.display_order, TimeSlot.start_time)
    ).scalars().all()
    return {"data": [time_slot_payload(t) for t in rows]}


@router.post("", status_code=201)
def create_time_slot(
    payload: TimeSlotCreateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    if db.get(Store, payload.store_id) is None:
        raise HTTPException(status_code=400, detail="Store not found")

    _require_start_before_end(payload.start_time, payload.end_time)
    _check_overlap(db, store_id=payload.store_id, start=payload.start_time, end=payload.end_time)

    slot = TimeSlot(
        id=f"{payload.store_id}_slot_{uuid.uuid4().hex[:12]}",
        store_id=payload.store_id,
        name=payload.name.strip(),
        start_time=parse_time(payload.start_time),
        end_time=parse_time(payload.end_time),
        display_order=payload.display_order,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    log.info("time slot %s created for store %s", slot.id, slot.store_id)

    return {"data": time_slot_payload(slot)}


@router.put("")
def update_time_slot(
    payload: TimeSlotUpdateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    slot = db.get(TimeSlot, payload.id)
    if not slot:
        raise HTTPException(status_code=404, detail="Time slot not found")

    start = payload.start_time or fmt_time(slot.start_time)
    end = payload.end_time or fmt_time(slot.end_time)
    _require_start_before_end(start, end)
    _check_overlap(db, store_id=slot.store_id, start=start, end=end, exclude_id=slot.id)

    if payload.name is not None:
        slot.name = payload.name.strip()
    if payload.display_order is not None:
        slot.display_order = payload.display_order
    slot.start_time = parse_time(start)
    slot.end_time = parse_time(end)
    db.commit()
    db.refresh(slot)

    return {"data": time_slot_payload(slot)}


@router.delete("")
def delete_time_slot(
    id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    slot = db.get(TimeSlot, id)
    if not slot:
        raise HTTPException(status_code=404, detail="Time slot not found")

    db.delete(slot)
    db.commit()
    return {"data": {"id": id}, "message": "Time slot deleted successfully"}
