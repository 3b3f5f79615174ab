from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool

from shiftboard.models import Shift, ShiftStatus
from shiftboard.services.notifications import (
    TodayNotification,
    send_batch_today_shift_notifications,
    shift_lines,
)

log = logging.getLogger("shiftboard.daily_notifications")


def collect_today_notifications(db: Session, day: date) -> tuple[int, list[TodayNotification]]:
    """Confirmed shifts for ``day`` grouped per user.

    Returns (number of shifts found, one notification per user with an email).
    """
    shifts = (
        db.execute(
            select(Shift)
            .where(Shift.date == day, Shift.status == ShiftStatus.CONFIRMED.value)
            .options(selectinload(Shift.user), selectinload(Shift.store), selectinload(Shift.pattern))
            .order_by(Shift.user_id, Shift.id)
        )
        .scalars()
        .all()
    )

    by_user: dict[int, TodayNotification] = {}
    for s in shifts:
        if s.user is None or not s.user.email:
            log.warning("no email for shift %s (user %s), skipped", s.id, s.user_id)
            continue
        item = by_user.get(s.user_id)
        if item is None:
            item = by_user[s.user_id] = TodayNotification(email=s.user.email, user_name=s.user.name)
        item.shifts.extend(shift_lines([s]))

    return len(shifts), list(by_user.values())


async def run_daily_shift_notifications(db: Session, day: date) -> dict:
    # the sync query runs off the event loop; only the mail fan-out is awaited here
    total, items = await run_in_threadpool(collect_today_notifications, db, day)
    log.info("daily notifications for %s: %d confirmed shifts, %d users", day.isoformat(), total, len(items))

    results = await send_batch_today_shift_notifications(items)
    return {
        "date": day.isoformat(),
        "stats": {
            "totalShifts": total,
            "usersNotified": len(items),
            "emailResults": results,
        },
    }
