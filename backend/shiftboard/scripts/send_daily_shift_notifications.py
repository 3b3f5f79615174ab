"""Send today's confirmed shifts to every scheduled user by email.

Meant to run once a day (e.g. 00:00 JST) from cron, as an alternative to
calling GET /cron/daily-shift-notifications:

  python -m shiftboard.scripts.send_daily_shift_notifications [YYYY-MM-DD]

Env:
  - DATABASE_URL, JWT_SECRET (as for the API)
  - MAIL_* settings; MAIL_SUPPRESS_SEND=1 renders without sending
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date

from shiftboard.core.config import settings
from shiftboard.core.db import SessionLocal
from shiftboard.core.logging_config import setup_logging
from shiftboard.core.timefmt import business_today
from shiftboard.services.daily_notifications import run_daily_shift_notifications

log = logging.getLogger("shiftboard.scripts.daily_notifications")


def main(argv: list[str] | None = None) -> int:
    """Returns the number of users whose mail was sent."""
    args = sys.argv[1:] if argv is None else argv
    day = date.fromisoformat(args[0]) if args else business_today()

    with SessionLocal() as db:
        result = asyncio.run(run_daily_shift_notifications(db, day))

    emails = result["stats"]["emailResults"]
    for err in emails["errors"]:
        log.warning(err)
    return emails["success"]


if __name__ == "__main__":
    setup_logging(level=settings.LOG_LEVEL)
    n = main()
    print(f"sent={n}")
