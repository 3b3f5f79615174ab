from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session, selectinload

from shiftboard.auth.deps import get_current_user
from shiftboard.auth.guards import require_manager
from shiftboard.core.db import get_db
from shiftboard.core.errors import commit_or_conflict
from shiftboard.models import (
    EmergencyRequest,
    EmergencyVolunteer,
    Shift,
    SkillLevel,
    Store,
    TimeOffRequest,
    User,
    UserRole,
    UserStore,
)
from shiftboard.services.login_ids import next_login_id
from shiftboard.services.payloads import user_payload

log = logging.getLogger("shiftboard.users")

router = APIRouter(prefix="/users", tags=["users"])

PHONE_RE = re.compile(r"^[\d\-+()\s]+$")
DUPLICATE_EMAIL = "This email address is already registered"


# ---------- Schemas ----------

def _check_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2 or len(v) > 50:
        raise ValueError("Name must be between 2 and 50 characters")
    return v


def _check_phone(v: str) -> str:
    v = v.strip()
    if not PHONE_RE.match(v):
        raise ValueError("Invalid phone number format")
    return v


def _check_role(v: str) -> str:
    if v not in {r.value for r in UserRole}:
        raise ValueError('Role must be either "manager" or "staff"')
    return v


def _check_skill(v: str) -> str:
    if v not in {s.value for s in SkillLevel}:
        raise ValueError('Skill level must be "training", "regular", or "veteran"')
    return v


class UserCreateIn(BaseModel):
    name: str
    phone: str
    email: EmailStr
    role: str
    skill_level: str
    memo: str | None = Field(default=None, max_length=2000)
    stores: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def valid_name(cls, v):
        return _check_name(v)

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v):
        return _check_phone(v)

    @field_validator("role")
    @classmethod
    def valid_role(cls, v):
        return _check_role(v)

    @field_validator("skill_level")
    @classmethod
    def valid_skill_level(cls, v):
        return _check_skill(v)


class UserUpdateIn(BaseModel):
    id: int = Field(..., gt=0)
    name: str | None = None
    phone: str | None = None
    email: EmailStr | None = None
    role: str | None = None
    skill_level: str | None = None
    memo: str | None = Field(default=None, max_length=2000)
    stores: Optional[list[str]] = None  # replaces all links when given

    @field_validator("name")
    @classmethod
    def valid_name(cls, v):
        return v if v is None else _check_name(v)

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v):
        return v if v is None else v.lower()

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v):
        return v if v is None else _check_phone(v)

    @field_validator("role")
    @classmethod
    def valid_role(cls, v):
        return v if v is None else _check_role(v)

    @field_validator("skill_level")
    @classmethod
    def valid_skill_level(cls, v):
        return v if v is None else _check_skill(v)


# ---------- Helpers ----------

def _require_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _require_stores(db: Session, store_ids: list[str]) -> list[str]:
    # keep the caller's order; the first store decides the login-id prefix
    ids = list(dict.fromkeys(s.strip() for s in store_ids if s and s.strip()))
    if not ids:
        return []
    found = set(db.execute(select(Store.id).where(Store.id.in_(ids))).scalars().all())
    missing = [s for s in ids if s not in found]
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown store: {', '.join(missing)}")
    return ids


def _email_taken(db: Session, email: str, *, exclude_id: int | None = None) -> bool:
    q = select(User.id).where(User.email == email)
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return db.execute(q).first() is not None


def _load_user(db: Session, user_id: int) -> User:
    return db.execute(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.user_stores).selectinload(UserStore.store))
        .execution_options(populate_existing=True)
    ).scalar_one()


# ---------- Routes ----------

@router.get("")
def list_users(
    id: int | None = Query(default=None),
    store_id: str | None = Query(default=None),
    role: str | None = Query(default=None),
    login_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = select(User).options(selectinload(User.user_stores).selectinload(UserStore.store))
    if id is not None:
        q = q.where(User.id == id)
    if role:
        q = q.where(User.role == role)
    if login_id:
        q = q.where(User.login_id == login_id)
    if store_id:
        q = q.where(User.id.in_(select(UserStore.user_id).where(UserStore.store_id == store_id)))

    rows = db.execute(q.order_by(User.created_at.desc(), User.id.desc())).scalars().all()
    return {"data": [user_payload(u) for u in rows]}


@router.post("", status_code=201)
def create_user(
    payload: UserCreateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    store_ids = _require_stores(db, payload.stores)
    if _email_taken(db, payload.email):
        raise HTTPException(status_code=409, detail=DUPLICATE_EMAIL)

    login_id = next_login_id(db, role=payload.role, first_store_id=store_ids[0] if store_ids else None)

    user = User(
        name=payload.name,
        phone=payload.phone,
        email=payload.email,
        role=payload.role,
        skill_level=payload.skill_level,
        memo=payload.memo,
        login_id=login_id,
        is_first_login=True,
    )
    user.user_stores = [UserStore(store_id=store_id, is_flexible=False) for store_id in store_ids]
    db.add(user)

    commit_or_conflict(db, DUPLICATE_EMAIL)
    log.info("user %s (%s) created by %s", user.id, login_id, manager.id)

    return {"data": user_payload(_load_user(db, user.id))}


@router.put("")
def update_user(
    payload: UserUpdateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    user = _require_user(db, payload.id)

    if payload.email is not None and _email_taken(db, payload.email, exclude_id=user.id):
        raise HTTPException(status_code=409, detail=DUPLICATE_EMAIL)

    for field in ("name", "phone", "email", "role", "skill_level", "memo"):
        value = getattr(payload, field)
        if value is not None:
            setattr(user, field, value)

    if payload.stores is not None:
        store_ids = _require_stores(db, payload.stores)
        # keep flexible flags for stores that stay linked
        flexible = set(
            db.execute(
                select(UserStore.store_id).where(UserStore.user_id == user.id, UserStore.is_flexible.is_(True))
            ).scalars().all()
        )
        db.execute(delete(UserStore).where(UserStore.user_id == user.id))
        for store_id in store_ids:
            db.add(UserStore(user_id=user.id, store_id=store_id, is_flexible=store_id in flexible))

    commit_or_conflict(db, DUPLICATE_EMAIL)
    return {"data": user_payload(_load_user(db, user.id))}


@router.delete("")
def delete_user(
    id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    user = _require_user(db, id)
    if user.id == manager.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    own_requests = select(EmergencyRequest.id).where(EmergencyRequest.original_user_id == user.id)

    db.execute(delete(EmergencyVolunteer).where(
        or_(EmergencyVolunteer.user_id == user.id, EmergencyVolunteer.emergency_request_id.in_(own_requests))
    ))
    db.execute(delete(EmergencyRequest).where(EmergencyRequest.original_user_id == user.id))
    db.execute(update(TimeOffRequest).where(TimeOffRequest.responded_by == user.id).values(responded_by=None))
    db.execute(delete(TimeOffRequest).where(TimeOffRequest.user_id == user.id))
    db.execute(delete(Shift).where(Shift.user_id == user.id))
    db.execute(delete(UserStore).where(UserStore.user_id == user.id))
    db.delete(user)
    db.commit()

    log.info("user %s deleted by %s", id, manager.id)
    return {"data": {"id": id}, "message": "User deleted successfully"}
