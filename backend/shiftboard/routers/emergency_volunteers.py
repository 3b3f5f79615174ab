from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shiftboard.auth.deps import get_current_user
from shiftboard.auth.guards import require_self_or_manager
from shiftboard.core.db import get_db
from shiftboard.core.errors import commit_or_conflict
from shiftboard.models import EmergencyRequest, EmergencyVolunteer, User
from shiftboard.services.emergency import submit_volunteer
from shiftboard.services.payloads import volunteer_payload

log = logging.getLogger("shiftboard.emergency_volunteers")

router = APIRouter(prefix="/emergency-volunteers", tags=["emergency-volunteers"])


class VolunteerCreateIn(BaseModel):
    emergency_request_id: int = Field(..., gt=0)
    user_id: int | None = Field(default=None, gt=0)  # defaults to the caller


def _with_relations(q):
    return q.options(
        selectinload(EmergencyVolunteer.user),
        selectinload(EmergencyVolunteer.emergency_request).selectinload(EmergencyRequest.store),
        selectinload(EmergencyVolunteer.emergency_request).selectinload(EmergencyRequest.shift_pattern),
    )


@router.get("")
def list_volunteers(
    emergency_request_id: int | None = Query(default=None),
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = _with_relations(select(EmergencyVolunteer))
    if emergency_request_id is not None:
        q = q.where(EmergencyVolunteer.emergency_request_id == emergency_request_id)
    if user_id is not None:
        q = q.where(EmergencyVolunteer.user_id == user_id)

    rows = db.execute(q.order_by(EmergencyVolunteer.responded_at.desc(), EmergencyVolunteer.id.desc())).scalars().all()
    return {"data": [volunteer_payload(v) for v in rows]}


@router.post("", status_code=201)
def volunteer(
    payload: VolunteerCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    user_id = payload.user_id or user.id
    require_self_or_manager(user, user_id)
    if db.get(User, user_id) is None:
        raise HTTPException(status_code=400, detail="User not found")

    v = submit_volunteer(db, emergency_request_id=payload.emergency_request_id, user_id=user_id)
    commit_or_conflict(db, "User has already volunteered for this emergency request")
    log.info("user %s volunteered for emergency request %s", user_id, payload.emergency_request_id)

    v = db.execute(_with_relations(select(EmergencyVolunteer).where(EmergencyVolunteer.id == v.id))).scalar_one()
    return {"data": volunteer_payload(v)}


@router.delete("")
def withdraw_volunteer(
    id: int | None = Query(default=None),
    emergency_request_id: int | None = Query(default=None),
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if id is not None:
        v = db.get(EmergencyVolunteer, id)
    elif emergency_request_id is not None and user_id is not None:
        v = db.execute(
            select(EmergencyVolunteer).where(
                EmergencyVolunteer.emergency_request_id == emergency_request_id,
                EmergencyVolunteer.user_id == user_id,
            )
        ).scalar_one_or_none()
    else:
        raise HTTPException(
            status_code=400,
            detail="Either volunteer ID or both emergency_request_id and user_id are required",
        )

    if v is None:
        raise HTTPException(status_code=404, detail="Volunteer not found")
    require_self_or_manager(user, v.user_id)

    vid = v.id
    db.delete(v)
    db.commit()
    return {"data": {"id": vid}, "message": "Volunteer withdrawn successfully"}
