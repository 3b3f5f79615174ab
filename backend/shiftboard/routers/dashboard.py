from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shiftboard.auth.deps import get_current_user
from shiftboard.core.db import get_db
from shiftboard.core.timefmt import business_today, weekday_key
from shiftboard.models import EmergencyRequest, EmergencyStatus, Shift, Store, TimeOffRequest, TimeOffStatus, User
from shiftboard.models.enums import BINDING_SHIFT_STATUSES

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def summary(
    day: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Staffing of every store on one day plus the open work items."""
    day = day or business_today()
    weekday = weekday_key(day)

    counts = db.execute(
        select(Shift.store_id, Shift.pattern_id, Shift.status, func.count(Shift.id))
        .where(Shift.date == day)
        .group_by(Shift.store_id, Shift.pattern_id, Shift.status)
    ).all()

    scheduled: dict[str, dict[str, int]] = {}
    confirmed: dict[str, int] = {}
    for store_id, pattern_id, status, n in counts:
        per_pattern = scheduled.setdefault(store_id, {})
        per_pattern[pattern_id] = per_pattern.get(pattern_id, 0) + n
        if status in BINDING_SHIFT_STATUSES:
            confirmed[store_id] = confirmed.get(store_id, 0) + n

    stores = []
    for store in db.execute(select(Store).order_by(Store.name)).scalars().all():
        required = dict((store.required_staff or {}).get(weekday, {}))
        per_pattern = scheduled.get(store.id, {})
        # slots are keyed like shift pattern ids (morning / lunch / evening)
        shortage = {slot: n - per_pattern.get(slot, 0) for slot, n in required.items() if per_pattern.get(slot, 0) < n}
        total_required = sum(required.values())
        total_scheduled = sum(per_pattern.values())
        stores.append(
            {
                "store_id": store.id,
                "name": store.name,
                "required": required,
                "scheduled": per_pattern,
                "total_required": total_required,
                "total_scheduled": total_scheduled,
                "total_confirmed": confirmed.get(store.id, 0),
                "shortage": shortage,
                "is_staffed": total_scheduled >= total_required and not shortage,
            }
        )

    pending = db.execute(
        select(func.count(TimeOffRequest.id)).where(TimeOffRequest.status == TimeOffStatus.PENDING.value)
    ).scalar_one()
    open_emergencies = db.execute(
        select(func.count(EmergencyRequest.id)).where(EmergencyRequest.status == EmergencyStatus.OPEN.value)
    ).scalar_one()

    return {
        "data": {
            "date": day.isoformat(),
            "weekday": weekday,
            "stores": stores,
            "pending_time_off_requests": pending,
            "open_emergency_requests": open_emergencies,
        }
    }
