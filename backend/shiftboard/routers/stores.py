from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import delete, exists, or_, select
from sqlalchemy.orm import Session, selectinload

from shiftboard.auth.deps import get_current_user
from shiftboard.auth.guards import require_manager
from shiftboard.core.db import get_db
from shiftboard.core.errors import ConflictError, commit_or_conflict
from shiftboard.core.timefmt import WEEKDAYS
from shiftboard.models import EmergencyRequest, Shift, Store, TimeSlot, User, UserStore
from shiftboard.services.payloads import store_payload

log = logging.getLogger("shiftboard.stores")

router = APIRouter(prefix="/stores", tags=["stores"])


def _check_required_staff(v: dict) -> dict:
    out: dict[str, dict[str, int]] = {}
    for day, slots in (v or {}).items():
        if day not in WEEKDAYS:
            raise ValueError(f'Unknown weekday "{day}"')
        if not isinstance(slots, dict):
            raise ValueError(f"required_staff.{day} must be an object")
        day_out = {}
        for slot, n in slots.items():
            if isinstance(n, bool) or not isinstance(n, int) or n < 0:
                raise ValueError(f"required_staff.{day}.{slot} must be a non-negative integer")
            day_out[str(slot)] = n
        out[day] = day_out
    return out


class StoreCreateIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-z0-9_-]+$")
    name: str = Field(..., min_length=1, max_length=200)
    required_staff: dict

    @field_validator("required_staff")
    @classmethod
    def valid_required_staff(cls, v):
        return _check_required_staff(v)


class StoreUpdateIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    required_staff: dict | None = None

    @field_validator("required_staff")
    @classmethod
    def valid_required_staff(cls, v):
        return v if v is None else _check_required_staff(v)


def _require_store(db: Session, store_id: str) -> Store:
    store = db.get(Store, store_id)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return store


def _load_store(db: Session, store_id: str) -> Store:
    return db.execute(
        select(Store)
        .where(Store.id == store_id)
        .options(selectinload(Store.user_stores).selectinload(UserStore.user))
        .execution_options(populate_existing=True)
    ).scalar_one()


@router.get("")
def list_stores(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = db.execute(
        select(Store).options(selectinload(Store.user_stores).selectinload(UserStore.user)).order_by(Store.name)
    ).scalars().all()
    return {"data": [store_payload(s) for s in rows]}


@router.post("", status_code=201)
def create_store(
    payload: StoreCreateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    if db.get(Store, payload.id) is not None:
        raise ConflictError("Store ID already exists")

    db.add(Store(id=payload.id, name=payload.name.strip(), required_staff=payload.required_staff))
    commit_or_conflict(db, "Store ID already exists")
    log.info("store %s created by %s", payload.id, manager.id)

    return {"data": store_payload(_load_store(db, payload.id))}


@router.put("")
def update_store(
    payload: StoreUpdateIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    store = _require_store(db, payload.id)
    if payload.name is not None:
        store.name = payload.name.strip()
    if payload.required_staff is not None:
        store.required_staff = payload.required_staff
    db.commit()

    return {"data": store_payload(_load_store(db, store.id))}


@router.delete("")
def delete_store(
    id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    store = _require_store(db, id)

    in_use = db.execute(
        select(
            or_(
                exists().where(Shift.store_id == id),
                exists().where(EmergencyRequest.store_id == id),
            )
        )
    ).scalar()
    if in_use:
        raise ConflictError("Store still has shifts or emergency requests")

    db.execute(delete(TimeSlot).where(TimeSlot.store_id == id))
    db.execute(delete(UserStore).where(UserStore.store_id == id))
    db.delete(store)
    db.commit()

    log.info("store %s deleted by %s", id, manager.id)
    return {"data": {"id": id}, "message": "Store deleted successfully"}
