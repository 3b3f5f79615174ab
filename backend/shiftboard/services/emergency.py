"""Substitute (代打) workflow: volunteering for and resolving emergency requests."""
from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftboard.core.errors import ConflictError
from shiftboard.models import EmergencyRequest, EmergencyStatus, EmergencyVolunteer, Shift, ShiftStatus
from shiftboard.services.shift_conflicts import conflict_for, shifts_on_date

log = logging.getLogger("shiftboard.emergency")

# forward-only status changes
ALLOWED_TRANSITIONS = {
    EmergencyStatus.OPEN.value: {EmergencyStatus.FILLED.value, EmergencyStatus.CANCELLED.value},
    EmergencyStatus.FILLED.value: set(),
    EmergencyStatus.CANCELLED.value: set(),
}


def _require_open(er: EmergencyRequest, message: str) -> None:
    if er.status != EmergencyStatus.OPEN.value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def check_transition(er: EmergencyRequest, new_status: str) -> None:
    if new_status == er.status:
        return
    if new_status not in ALLOWED_TRANSITIONS.get(er.status, set()):
        raise ConflictError(f'Cannot change emergency request status from "{er.status}" to "{new_status}"')


def submit_volunteer(db: Session, *, emergency_request_id: int, user_id: int) -> EmergencyVolunteer:
    duplicate = db.execute(
        select(EmergencyVolunteer.id).where(
            EmergencyVolunteer.emergency_request_id == emergency_request_id,
            EmergencyVolunteer.user_id == user_id,
        )
    ).scalar_one_or_none()
    if duplicate is not None:
        raise ConflictError("User has already volunteered for this emergency request")

    er = db.get(EmergencyRequest, emergency_request_id)
    if er is None:
        raise HTTPException(status_code=404, detail="Emergency request not found")
    _require_open(er, "Emergency request is not available for volunteering")

    # any shift on that date, at any store, blocks the application
    existing = shifts_on_date(db, user_id=user_id, day=er.date)
    if existing:
        raise conflict_for(
            existing[0],
            "Cannot apply for this emergency request: You already have a {status} shift at {store} on this date",
        )

    v = EmergencyVolunteer(emergency_request_id=er.id, user_id=user_id)
    db.add(v)
    db.flush()
    return v


def reject_volunteer(db: Session, *, er: EmergencyRequest, volunteer: EmergencyVolunteer) -> None:
    """Drop the application. The request keeps its status."""
    _require_open(er, "Emergency request is no longer open")
    db.delete(volunteer)
    db.flush()


def accept_volunteer(db: Session, *, er: EmergencyRequest, volunteer: EmergencyVolunteer) -> Shift:
    """Hand the shift to the volunteer and mark the request filled.

    Everything is flushed into the caller's transaction; nothing is committed
    here. Other volunteers' rows stay as history.
    """
    _require_open(er, "Emergency request is no longer open")

    existing = shifts_on_date(db, user_id=volunteer.user_id, day=er.date)
    if existing:
        name = volunteer.user.name if volunteer.user else "User"
        name = name.replace("{", "{{").replace("}", "}}")
        raise conflict_for(
            existing[0],
            f"Cannot approve volunteer: {name} already has a {{status}} shift at {{store}} on this date",
        )

    shift = db.execute(
        select(Shift)
        .where(
            Shift.user_id == er.original_user_id,
            Shift.store_id == er.store_id,
            Shift.date == er.date,
            Shift.pattern_id == er.shift_pattern_id,
        )
        .order_by(Shift.id)
        .limit(1)
    ).scalar_one_or_none()

    if shift is not None:
        shift.user_id = volunteer.user_id
        log.info("emergency %s: shift %s reassigned %s -> %s", er.id, shift.id, er.original_user_id, volunteer.user_id)
    else:
        shift = Shift(
            user_id=volunteer.user_id,
            store_id=er.store_id,
            date=er.date,
            pattern_id=er.shift_pattern_id,
            status=ShiftStatus.CONFIRMED.value,
        )
        db.add(shift)
        log.info("emergency %s: original shift missing, confirmed shift created for %s", er.id, volunteer.user_id)

    er.status = EmergencyStatus.FILLED.value
    db.flush()
    return shift
