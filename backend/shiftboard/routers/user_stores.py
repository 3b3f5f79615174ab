from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shiftboard.auth.guards import require_manager
from shiftboard.core.db import get_db
from shiftboard.models import Store, User, UserStore

log = logging.getLogger("shiftboard.user_stores")

router = APIRouter(prefix="/user-stores", tags=["user-stores"])


class FlexibleIn(BaseModel):
    store_id: str = Field(..., min_length=1)
    flexible_users: list[int]


@router.put("/flexible")
def set_flexible_staff(
    payload: FlexibleIn,
    db: Session = Depends(get_db),
    manager: User = Depends(require_manager),
):
    """Mark exactly ``flexible_users`` as support staff of the store."""
    if db.get(Store, payload.store_id) is None:
        raise HTTPException(status_code=404, detail="Store not found")

    user_ids = sorted(set(payload.flexible_users))

    db.execute(update(UserStore).where(UserStore.store_id == payload.store_id).values(is_flexible=False))
    if user_ids:
        db.execute(
            update(UserStore)
            .where(UserStore.store_id == payload.store_id, UserStore.user_id.in_(user_ids))
            .values(is_flexible=True)
        )
    db.commit()

    # users without a link to this store are ignored
    applied = db.execute(
        select(UserStore.user_id).where(UserStore.store_id == payload.store_id, UserStore.is_flexible.is_(True))
    ).scalars().all()
    log.info("store %s flexible staff set to %s by %s", payload.store_id, sorted(applied), manager.id)

    return {
        "data": {"store_id": payload.store_id, "flexible_users": sorted(applied)},
        "message": "Flexible staff settings updated successfully",
    }
