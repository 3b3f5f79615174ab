"""Dict builders shared by routers, workflows and the cron job."""
from __future__ import annotations

from shiftboard.core.timefmt import fmt_time
from shiftboard.models import (
    EmergencyRequest,
    EmergencyVolunteer,
    Shift,
    ShiftPattern,
    Store,
    TimeOffRequest,
    TimeSlot,
    User,
)


def _iso(v):
    return v.isoformat() if v is not None else None


def user_brief(u: User | None) -> dict | None:
    if u is None:
        return None
    return {"id": u.id, "name": u.name, "role": u.role, "skill_level": u.skill_level}


def store_brief(s: Store | None) -> dict | None:
    if s is None:
        return None
    return {"id": s.id, "name": s.name}


def pattern_payload(p: ShiftPattern | None) -> dict | None:
    if p is None:
        return None
    return {
        "id": p.id,
        "name": p.name,
        "start_time": fmt_time(p.start_time),
        "end_time": fmt_time(p.end_time),
        "color": p.color,
        "break_time": p.break_time,
    }


def user_payload(u: User) -> dict:
    # never expose password_hash
    return {
        "id": u.id,
        "name": u.name,
        "phone": u.phone,
        "email": u.email,
        "role": u.role,
        "skill_level": u.skill_level,
        "memo": u.memo,
        "login_id": u.login_id,
        "is_first_login": bool(u.is_first_login),
        "last_login_at": _iso(u.last_login_at),
        "created_at": _iso(u.created_at),
        "updated_at": _iso(u.updated_at),
        "user_stores": [
            {"store_id": us.store_id, "is_flexible": bool(us.is_flexible), "stores": store_brief(us.store)}
            for us in u.user_stores
        ],
    }


def store_payload(s: Store) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "required_staff": s.required_staff or {},
        "created_at": _iso(s.created_at),
        "updated_at": _iso(s.updated_at),
        "user_stores": [
            {"user_id": us.user_id, "is_flexible": bool(us.is_flexible), "users": user_brief(us.user)}
            for us in s.user_stores
        ],
    }


def time_slot_payload(t: TimeSlot) -> dict:
    return {
        "id": t.id,
        "store_id": t.store_id,
        "name": t.name,
        "start_time": fmt_time(t.start_time),
        "end_time": fmt_time(t.end_time),
        "display_order": t.display_order,
    }


def shift_payload(s: Shift) -> dict:
    return {
        "id": s.id,
        "user_id": s.user_id,
        "store_id": s.store_id,
        "date": s.date.isoformat(),
        "pattern_id": s.pattern_id,
        "status": s.status,
        "notes": s.notes,
        "created_at": _iso(s.created_at),
        "updated_at": _iso(s.updated_at),
        "users": user_brief(s.user),
        "stores": store_brief(s.store),
        "shift_patterns": pattern_payload(s.pattern),
    }


def time_off_payload(r: TimeOffRequest) -> dict:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "date": r.date.isoformat(),
        "reason": r.reason,
        "status": r.status,
        "responded_by": r.responded_by,
        "responded_at": _iso(r.responded_at),
        "created_at": _iso(r.created_at),
        "users": user_brief(r.user),
        "responded_by_user": {"id": r.responder.id, "name": r.responder.name} if r.responder else None,
    }


def volunteer_payload(v: EmergencyVolunteer, *, with_request: bool = True) -> dict:
    out = {
        "id": v.id,
        "emergency_request_id": v.emergency_request_id,
        "user_id": v.user_id,
        "responded_at": _iso(v.responded_at),
        "users": user_brief(v.user),
    }
    if with_request:
        er = v.emergency_request
        out["emergency_requests"] = {
            "id": er.id,
            "date": er.date.isoformat(),
            "reason": er.reason,
            "status": er.status,
            "stores": store_brief(er.store),
            "shift_patterns": pattern_payload(er.shift_pattern),
        }
    return out


def emergency_payload(er: EmergencyRequest, *, with_volunteers: bool = True) -> dict:
    out = {
        "id": er.id,
        "original_user_id": er.original_user_id,
        "store_id": er.store_id,
        "date": er.date.isoformat(),
        "shift_pattern_id": er.shift_pattern_id,
        "reason": er.reason,
        "status": er.status,
        "created_at": _iso(er.created_at),
        "original_user": user_brief(er.original_user),
        "stores": store_brief(er.store),
        "shift_patterns": pattern_payload(er.shift_pattern),
    }
    if with_volunteers:
        out["emergency_volunteers"] = [volunteer_payload(v, with_request=False) for v in er.volunteers]
    return out
