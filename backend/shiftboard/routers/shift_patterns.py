from __future__ import annotations

import logging
from datetime import time

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from shiftboard.auth.deps import get_current_user
from shiftboard.auth.guards import require_manager
from shiftboard.core.db import get_db
from shiftboard.core.errors import ConflictError, commit_or_conflict
from shiftboard.core.timefmt import parse_time
from shiftboard.models import EmergencyRequest, Shift, ShiftPattern, User
from shiftboard.services.payloads import pattern_payload

log = logging.getLogger("shiftboard.shift_patterns")

router = APIRouter(prefix="/shift-patterns", tags=["shift-patterns"])


class PatternCreateIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=100)
    start_time: time
    end_time: time
    color: str = Field(..., min_length=1, max_length=32)
    break_time: int = Field(0, ge=0, le=24 * 60)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def valid_time(cls, v):
        return parse_time(v) if isinstance(v, str) else v


class PatternUpdateIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str | None = Field(default=None, min_length=1, max_length=100)
    start_time: time | None = None
    end_time: time | None = None
    color: str | None = Field(default=None, min_length=1, max_length=32)
    break_time: int | None = Field(default=None, ge=0, le=24 * 60)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def valid_time(cls, v):
        return parse_time(v) if isinstance(v, str) else v


def _require_pattern(db: Session, pattern_id: str) -> ShiftPattern:
    p = db.get(ShiftPattern, pattern_id)
    if not p:
        raise HTTPException(status_code=404, detail="Shift pattern not found")
    return p


@router.get("")
def list_patterns(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = db.execute(select(ShiftPattern).order_by(ShiftPattern.start_time, ShiftPattern.id)).scalars().all()
    return {"data": [pattern_payload(p) for p in rows]}


@router.post("", status_code=201)
def create_pattern(
    payload: PatternCreateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    if db.get(ShiftPattern, payload.id) is not None:
        raise ConflictError("Shift pattern ID already exists")

    p = ShiftPattern(
        id=payload.id,
        name=payload.name.strip(),
        start_time=payload.start_time,
        end_time=payload.end_time,
        color=payload.color,
        break_time=payload.break_time,
    )
    db.add(p)
    commit_or_conflict(db, "Shift pattern ID already exists")
    db.refresh(p)

    return {"data": pattern_payload(p)}


@router.put("")
def update_pattern(
    payload: PatternUpdateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    p = _require_pattern(db, payload.id)
    for field in ("name", "start_time", "end_time", "color", "break_time"):
        value = getattr(payload, field)
        if value is not None:
            setattr(p, field, value)
    db.commit()
    db.refresh(p)

    return {"data": pattern_payload(p)}


@router.delete("")
def delete_pattern(
    id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    p = _require_pattern(db, id)

    in_use = db.execute(
        select(
            or_(
                exists().where(Shift.pattern_id == id),
                exists().where(EmergencyRequest.shift_pattern_id == id),
            )
        )
    ).scalar()
    if in_use:
        raise ConflictError("Shift pattern is still used by shifts or emergency requests")

    db.delete(p)
    db.commit()
    log.info("shift pattern %s deleted by %s", id, manager.id)

    return {"data": {"id": id}, "message": "Shift pattern deleted successfully"}
