from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shiftboard.models import TimeOffRequest, TimeOffStatus

log = logging.getLogger("shiftboard.time_off")

MAX_BULK_IDS = 100
DECISIONS = (TimeOffStatus.APPROVED.value, TimeOffStatus.REJECTED.value)


def decide_pending(db: Session, *, request_ids: list[int], status: str, responder_id: int) -> list[TimeOffRequest]:
    """Approve or reject the still-pending requests among ``request_ids``.

    Already decided rows are skipped, untouched. Returns the rows that were
    changed; the caller commits.
    """
    if status not in DECISIONS:
        raise ValueError(f"unsupported decision: {status}")
    if len(request_ids) > MAX_BULK_IDS:
        raise ValueError(f"at most {MAX_BULK_IDS} ids per call")
    if not request_ids:
        return []

    rows = db.execute(
        select(TimeOffRequest)
        .where(
            TimeOffRequest.id.in_(set(request_ids)),
            TimeOffRequest.status == TimeOffStatus.PENDING.value,
        )
        .options(selectinload(TimeOffRequest.user))
        .order_by(TimeOffRequest.id)
        .with_for_update()
    ).scalars().all()

    now = datetime.utcnow()
    for r in rows:
        r.status = status
        r.responded_by = responder_id
        r.responded_at = now

    db.flush()
    log.info("%d of %d time-off request(s) %s by %s", len(rows), len(request_ids), status, responder_id)
    return list(rows)
