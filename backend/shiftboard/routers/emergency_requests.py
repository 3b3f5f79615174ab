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
from shiftboard.core.errors import commit_or_conflict
from shiftboard.core.timefmt import fmt_time
from shiftboard.models import (
    EmergencyRequest,
    EmergencyStatus,
    EmergencyVolunteer,
    ShiftPattern,
    Store,
    User,
    UserStore,
)
from shiftboard.services import emergency, notifications
from shiftboard.services.payloads import emergency_payload

log = logging.getLogger("shiftboard.emergency_requests")

router = APIRouter(prefix="/emergency-requests", tags=["emergency-requests"])


class EmergencyCreateIn(BaseModel):
    original_user_id: int | None = Field(default=None, gt=0)  # defaults to the caller
    store_id: str = Field(..., min_length=1)
    date: dt.date
    shift_pattern_id: str = Field(..., min_length=1)
    reason: str = Field(..., max_length=1000)

    @field_validator("reason")
    @classmethod
    def valid_reason(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Reason is required")
        return v


class EmergencyStatusIn(BaseModel):
    id: int = Field(..., gt=0)
    status: str

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        if v not in {s.value for s in EmergencyStatus}:
            raise ValueError('Status must be either "open", "filled", or "cancelled"')
        return v


class VolunteerDecisionIn(BaseModel):
    emergency_request_id: int = Field(..., gt=0)
    volunteer_id: int = Field(..., gt=0)
    action: str

    @field_validator("action")
    @classmethod
    def valid_action(cls, v):
        if v not in ("accept", "reject"):
            raise ValueError('Action must be either "accept" or "reject"')
        return v


# ---------- Helpers ----------

def _with_relations(q):
    return q.options(
        selectinload(EmergencyRequest.original_user),
        selectinload(EmergencyRequest.store),
        selectinload(EmergencyRequest.shift_pattern),
        selectinload(EmergencyRequest.volunteers).selectinload(EmergencyVolunteer.user),
    )


def _require_request(db: Session, request_id: int) -> EmergencyRequest:
    er = db.execute(
        _with_relations(select(EmergencyRequest).where(EmergencyRequest.id == request_id)).execution_options(
            populate_existing=True
        )
    ).scalar_one_or_none()
    if er is None:
        raise HTTPException(status_code=404, detail="Emergency request not found")
    return er


def _store_recipients(db: Session, *, store_id: str, exclude_user_id: int) -> list[str]:
    emails = db.execute(
        select(User.email)
        .join(UserStore, UserStore.user_id == User.id)
        .where(UserStore.store_id == store_id, User.id != exclude_user_id)
        .distinct()
    ).scalars().all()
    return [e for e in emails if e]


# ---------- Routes ----------

@router.get("")
def list_emergency_requests(
    id: int | None = Query(default=None),
    store_id: str | None = Query(default=None),
    status: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if id is not None:
        return {"data": emergency_payload(_require_request(db, id))}

    q = _with_relations(select(EmergencyRequest))
    if store_id:
        q = q.where(EmergencyRequest.store_id == store_id)
    if status:
        q = q.where(EmergencyRequest.status == status)
    if date_from:
        q = q.where(EmergencyRequest.date >= date_from)
    if date_to:
        q = q.where(EmergencyRequest.date <= date_to)

    rows = db.execute(q.order_by(EmergencyRequest.date, EmergencyRequest.id)).scalars().all()
    return {"data": [emergency_payload(er) for er in rows]}


@router.post("", status_code=201)
def create_emergency_request(
    payload: EmergencyCreateIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    original_user_id = payload.original_user_id or user.id
    require_self_or_manager(user, original_user_id)

    if db.get(User, original_user_id) is None:
        raise HTTPException(status_code=400, detail="User not found")
    store = db.get(Store, payload.store_id)
    if store is None:
        raise HTTPException(status_code=400, detail="Store not found")
    pattern = db.get(ShiftPattern, payload.shift_pattern_id)
    if pattern is None:
        raise HTTPException(status_code=400, detail="Shift pattern not found")

    er = EmergencyRequest(
        original_user_id=original_user_id,
        store_id=payload.store_id,
        date=payload.date,
        shift_pattern_id=payload.shift_pattern_id,
        reason=payload.reason,
        status=EmergencyStatus.OPEN.value,
    )
    db.add(er)
    db.commit()
    log.info("emergency request %s opened for %s on %s", er.id, payload.store_id, payload.date)

    recipients = _store_recipients(db, store_id=store.id, exclude_user_id=original_user_id)
    if recipients:
        details = notifications.EmergencyDetails(
            store_name=store.name,
            date=payload.date.isoformat(),
            pattern_name=pattern.name,
            start_time=fmt_time(pattern.start_time),
            end_time=fmt_time(pattern.end_time),
            reason=payload.reason,
        )
        background.add_task(notifications.notify_emergency_request, recipients, details)

    return {"data": emergency_payload(_require_request(db, er.id))}


@router.put("")
def update_emergency_status(
    payload: EmergencyStatusIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    er = _require_request(db, payload.id)
    emergency.check_transition(er, payload.status)

    er.status = payload.status
    db.commit()
    log.info("emergency request %s -> %s by %s", er.id, er.status, manager.id)

    return {"data": emergency_payload(_require_request(db, er.id))}


@router.patch("")
def resolve_volunteer(
    payload: VolunteerDecisionIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    """Accept or reject one volunteer of an emergency request."""
    er = _require_request(db, payload.emergency_request_id)

    volunteer = db.get(EmergencyVolunteer, payload.volunteer_id)
    if volunteer is None or volunteer.emergency_request_id != er.id:
        raise HTTPException(status_code=404, detail="Volunteer not found")

    if payload.action == "reject":
        emergency.reject_volunteer(db, er=er, volunteer=volunteer)
        db.commit()
        return {"data": {"id": payload.volunteer_id}, "message": "Volunteer rejected successfully"}

    shift = emergency.accept_volunteer(db, er=er, volunteer=volunteer)
    commit_or_conflict(db, "Volunteer already has a confirmed shift on this date", conflictType="confirmed")
    log.info("emergency request %s filled by user %s (shift %s)", er.id, volunteer.user_id, shift.id)

    er = _require_request(db, er.id)
    v_user = volunteer.user
    if v_user is not None and v_user.email:
        pattern = er.shift_pattern
        message = (
            f"{er.date.isoformat()} {er.store.name} {pattern.name} "
            f"({fmt_time(pattern.start_time)}-{fmt_time(pattern.end_time)}) の代打が確定しました。"
        )
        background.add_task(notifications.notify_generic, v_user.email, v_user.name, "【代打確定】シフトが確定しました", message)

    return {
        "data": emergency_payload(er),
        "shift_id": shift.id,
        "message": "Volunteer accepted and shift updated successfully",
    }


@router.delete("")
def delete_emergency_request(
    id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    er = db.get(EmergencyRequest, id)
    if er is None:
        raise HTTPException(status_code=404, detail="Emergency request not found")
    require_self_or_manager(user, er.original_user_id)

    db.delete(er)  # volunteers go with it
    db.commit()
    return {"data": {"id": id}, "message": "Emergency request deleted successfully"}
