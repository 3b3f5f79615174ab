from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger("shiftboard.errors")


class ConflictError(HTTPException):
    """409 with machine-readable extras (conflictType, conflictingStore, ...)."""

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)
        self.extra = {k: v for k, v in extra.items() if v is not None}


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query"))
        msg = err.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


def install_error_handlers(app: FastAPI) -> None:
    """Render every failure as {"error": ...} with the matching status code."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        body: dict[str, Any] = {"error": exc.detail}
        body.update(getattr(exc, "extra", {}))
        return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": _validation_message(exc)}, status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        log.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)


def commit_or_conflict(db, message: str, **extra: Any) -> None:
    """Commit, turning a uniqueness violation into a 409."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # likely a unique constraint
        raise ConflictError(message, **extra)
