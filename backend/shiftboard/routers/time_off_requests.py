from __future__ import annotations

import datetime as dt
import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shiftboard.auth.deps import get_current_user
from shiftboard.auth.guards import require_manager, require_self_or_manager
from shiftboard.core.db import get_db
from shiftboard.core.errors import ConflictError, commit_or_conflict
from shiftboard.core.timefmt import business_today
from shiftboard.models import TimeOffRequest, TimeOffStatus, User
from shiftboard.services import notifications
from shiftboard.services.payloads import time_off_payload
from shiftboard.services.time_off import DECISIONS, MAX_BULK_IDS, decide_pending

log = logging.getLogger("shiftboard.time_off_requests")

router = APIRouter(prefix="/time-off-requests", tags=["time-off-requests"])

DUPLICATE = "Time off request already exists for this date"


def _check_decision(v: str) -> str:
    if v not in DECISIONS:
        raise ValueError('Status must be either "approved" or "rejected"')
    return v


class TimeOffCreateIn(BaseModel):
    user_id: int | None = Field(default=None, gt=0)  # defaults to the caller
    date: dt.date
    reason: str

    @field_validator("reason")
    @classmethod
    def valid_reason(cls, v):
        v = v.strip()
        if len(v) < 5 or len(v) > 500:
            raise ValueError("Reason must be between 5 and 500 characters")
        return v


class TimeOffDecisionIn(BaseModel):
    id: int = Field(..., gt=0)
    status: str

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        return _check_decision(v)


class TimeOffBulkIn(BaseModel):
    request_ids: list[int]
    status: str

    @field_validator("request_ids")
    @classmethod
    def valid_ids(cls, v):
        if not v:
            raise ValueError("Request IDs array is required")
        if len(v) > MAX_BULK_IDS:
            raise ValueError(f"Maximum {MAX_BULK_IDS} requests can be processed at once")
        return v

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        return _check_decision(v)


def _load(db: Session, request_id: int) -> TimeOffRequest:
    return db.execute(
        select(TimeOffRequest)
        .where(TimeOffRequest.id == request_id)
        .options(selectinload(TimeOffRequest.user), selectinload(TimeOffRequest.responder))
        .execution_options(populate_existing=True)
    ).scalar_one()


def _queue_response_mail(background: BackgroundTasks, r: TimeOffRequest) -> None:
    if r.user is None or not r.user.email:
        return
    background.add_task(
        notifications.notify_time_off_response,
        r.user.email,
        r.user.name,
        r.date.isoformat(),
        r.status,
        r.reason,
    )


@router.get("")
def list_time_off_requests(
    user_id: int | None = Query(default=None),
    status: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = select(TimeOffRequest).options(
        selectinload(TimeOffRequest.user), selectinload(TimeOffRequest.responder)
    )
    if user_id is not None:
        q = q.where(TimeOffRequest.user_id == user_id)
    if status:
        q = q.where(TimeOffRequest.status == status)
    if date_from:
        q = q.where(TimeOffRequest.date >= date_from)
    if date_to:
        q = q.where(TimeOffRequest.date <= date_to)

    rows = db.execute(q.order_by(TimeOffRequest.created_at.desc(), TimeOffRequest.id.desc())).scalars().all()
    return {"data": [time_off_payload(r) for r in rows]}


@router.post("", status_code=201)
def create_time_off_request(
    payload: TimeOffCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    user_id = payload.user_id or user.id
    require_self_or_manager(user, user_id)
    if db.get(User, user_id) is None:
        raise HTTPException(status_code=400, detail="User not found")

    if payload.date < business_today():
        raise HTTPException(status_code=400, detail="Cannot request time off for past dates")

    exists = db.execute(
        select(TimeOffRequest.id).where(TimeOffRequest.user_id == user_id, TimeOffRequest.date == payload.date)
    ).scalar_one_or_none()
    if exists is not None:
        raise ConflictError(DUPLICATE)

    r = TimeOffRequest(user_id=user_id, date=payload.date, reason=payload.reason, status=TimeOffStatus.PENDING.value)
    db.add(r)
    commit_or_conflict(db, DUPLICATE)
    log.info("time-off request %s for user %s on %s", r.id, user_id, payload.date)

    return {"data": time_off_payload(_load(db, r.id))}


@router.put("")
def decide_time_off_request(
    payload: TimeOffDecisionIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    r = db.get(TimeOffRequest, payload.id)
    if not r:
        raise HTTPException(status_code=404, detail="Time off request not found")
    if r.status != TimeOffStatus.PENDING.value:
        raise ConflictError(f"Time off request has already been {r.status}")

    decide_pending(db, request_ids=[r.id], status=payload.status, responder_id=manager.id)
    db.commit()

    r = _load(db, r.id)
    _queue_response_mail(background, r)
    return {"data": time_off_payload(r)}


@router.patch("")
def bulk_decide_time_off_requests(
    payload: TimeOffBulkIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    rows = decide_pending(db, request_ids=payload.request_ids, status=payload.status, responder_id=manager.id)
    db.commit()

    data = [time_off_payload(_load(db, r.id)) for r in rows]
    for r in rows:
        _queue_response_mail(background, r)

    return {
        "data": data,
        "updated_count": len(rows),
        "message": f"{len(rows)} requests {payload.status}",
    }


@router.delete("")
def delete_time_off_request(
    id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    r = db.get(TimeOffRequest, id)
    if not r:
        raise HTTPException(status_code=404, detail="Time off request not found")
    require_self_or_manager(user, r.user_id)

    # decided requests are history
    if r.status != TimeOffStatus.PENDING.value:
        raise ConflictError("Only pending requests can be withdrawn")

    db.delete(r)
    db.commit()
    return {"data": {"id": id}, "message": "Time off request deleted successfully"}
