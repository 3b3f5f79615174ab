import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from shiftboard.core.config import settings
from shiftboard.core.errors import install_error_handlers
from shiftboard.core.logging_config import setup_logging
from shiftboard.routers import (
    auth,
    cron,
    dashboard,
    email,
    emergency_requests,
    emergency_volunteers,
    shift_patterns,
    shifts,
    stores,
    time_off_requests,
    time_slots,
    user_stores,
    users,
)

setup_logging(level=settings.LOG_LEVEL)
log = logging.getLogger("shiftboard.api")

app = FastAPI(title="Shift Board API")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every HTTP request: method, path, status, duration."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    log.info("%s %s %s %.2fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_error_handlers(app)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(stores.router)
app.include_router(shift_patterns.router)
app.include_router(time_slots.router)
app.include_router(shifts.router)
app.include_router(time_off_requests.router)
app.include_router(emergency_requests.router)
app.include_router(emergency_volunteers.router)
app.include_router(user_stores.router)
app.include_router(dashboard.router)
app.include_router(cron.router)
app.include_router(email.router)


@app.get("/health")
def health():
    return {"status": "ok"}
