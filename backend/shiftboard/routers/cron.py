from __future__ import annotations

import hmac
import logging
from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from shiftboard.core.config import settings
from shiftboard.core.db import get_db
from shiftboard.core.timefmt import business_today
from shiftboard.services.daily_notifications import run_daily_shift_notifications

log = logging.getLogger("shiftboard.cron")

router = APIRouter(prefix="/cron", tags=["cron"])


def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Bearer check against CRON_SECRET; open when the secret is unset."""
    secret = settings.CRON_SECRET
    if not secret:
        return
    if not authorization or not hmac.compare_digest(authorization, f"Bearer {secret}"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.api_route("/daily-shift-notifications", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
async def daily_shift_notifications(
    day: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
):
    target = day or business_today()
    log.info("daily shift notifications for %s", target.isoformat())

    result = await run_daily_shift_notifications(db, target)
    if result["stats"]["totalShifts"] == 0:
        result["message"] = "No confirmed shifts for today"
    else:
        result["message"] = "Daily shift notifications processed"
    return {"data": result}
