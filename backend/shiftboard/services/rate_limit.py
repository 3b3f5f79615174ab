from __future__ import annotations

from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from shiftboard.models import RateLimitHit


def check_rate_limit(db: Session, identifier: str, *, limit: int, window_seconds: int) -> None:
    """Record one hit for ``identifier`` and raise 429 once the window is full.

    Hits live in the database so every API instance sees the same count.
    The hit is committed even when the caller's request later fails.
    """
    now = datetime.utcnow()
    since = now - timedelta(seconds=window_seconds)

    # stale hits of every identifier go, so one-off ids do not pile up
    db.execute(delete(RateLimitHit).where(RateLimitHit.hit_at < since))
    count = db.execute(
        select(func.count(RateLimitHit.id)).where(RateLimitHit.identifier == identifier)
    ).scalar_one()

    if count >= limit:
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(window_seconds)},
        )

    db.add(RateLimitHit(identifier=identifier, hit_at=now))
    db.commit()
