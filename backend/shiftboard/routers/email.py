from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from shiftboard.auth.guards import require_manager
from shiftboard.models import User
from shiftboard.services import mailer, notifications
from shiftboard.services.notifications import EmergencyDetails, ShiftLine

log = logging.getLogger("shiftboard.email")

router = APIRouter(prefix="/email", tags=["email"])

class ShiftLineIn(BaseModel):
    date: str
    storeName: str
    shiftPattern: str
    startTime: str
    endTime: str

    def to_line(self) -> ShiftLine:
        return ShiftLine(
            date=self.date,
            store_name=self.storeName,
            pattern_name=self.shiftPattern,
            start_time=self.startTime,
            end_time=self.endTime,
        )


class EmergencyDetailsIn(BaseModel):
    storeName: str
    date: str
    shiftPattern: str
    startTime: str
    endTime: str
    reason: str


class EmailIn(BaseModel):
    """One body for every ``type``; each type reads its own fields."""

    model_config = ConfigDict(extra="ignore")

    type: str
    # basic
    to: EmailStr | list[EmailStr] | None = None
    subject: str | None = None
    html: str | None = None
    text: str | None = None
    # per-user templates
    userEmail: EmailStr | None = None
    userName: str | None = None
    shifts: list[ShiftLineIn] | None = None
    todayShifts: list[ShiftLineIn] | None = None
    requestDate: str | None = None
    status: str | None = None
    reason: str | None = None
    title: str | None = None
    message: str | None = None
    # emergency-request
    userEmails: list[EmailStr] | None = None
    details: EmergencyDetailsIn | None = None


class EmailTestIn(BaseModel):
    testEmail: EmailStr | None = None
    testType: str = "all"

    @field_validator("testEmail", mode="before")
    @classmethod
    def blank_as_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


def _need(payload: EmailIn, *fields: str) -> None:
    missing = [f for f in fields if getattr(payload, f) in (None, "", [])]
    if missing:
        raise HTTPException(status_code=400, detail=f"Required fields: {', '.join(missing)}")


async def _dispatch(payload: EmailIn) -> None:
    t = payload.type
    if t == "basic":
        _need(payload, "to", "subject")
        body = payload.html or payload.text or ""
        await mailer.send_email(payload.to, payload.subject, body)
    elif t == "shift-confirmation":
        _need(payload, "userEmail", "userName", "shifts")
        await notifications.send_shift_confirmation(
            payload.userEmail, payload.userName, [s.to_line() for s in payload.shifts]
        )
    elif t == "time-off-response":
        _need(payload, "userEmail", "userName", "requestDate", "status")
        if payload.status not in ("approved", "rejected"):
            raise HTTPException(status_code=400, detail='Status must be either "approved" or "rejected"')
        await notifications.send_time_off_response(
            payload.userEmail, payload.userName, payload.requestDate, payload.status, payload.reason
        )
    elif t == "emergency-request":
        _need(payload, "userEmails", "details")
        d = payload.details
        await notifications.send_emergency_request(
            payload.userEmails,
            EmergencyDetails(
                store_name=d.storeName,
                date=d.date,
                pattern_name=d.shiftPattern,
                start_time=d.startTime,
                end_time=d.endTime,
                reason=d.reason,
            ),
        )
    elif t == "notification":
        _need(payload, "userEmail", "userName", "title", "message")
        await notifications.send_notification(payload.userEmail, payload.userName, payload.title, payload.message)
    elif t == "today-shift-notification":
        _need(payload, "userEmail", "userName", "todayShifts")
        await notifications.send_today_shift(
            payload.userEmail, payload.userName, [s.to_line() for s in payload.todayShifts]
        )
    else:
        raise HTTPException(status_code=400, detail="Invalid email type")


@router.post("")
async def send_email(payload: EmailIn, manager: User = Depends(require_manager)):
    try:
        await _dispatch(payload)
    except mailer.EmailSendError as e:
        raise HTTPException(status_code=500, detail=f"Failed to send email: {e}")

    log.info("email of type %s sent by %s", payload.type, manager.id)
    return {"data": {"type": payload.type}, "message": "Email sent successfully"}


# ---------- /email/test ----------

_SAMPLE_LINES = [
    ShiftLine(date="2025-01-15", store_name="京橋店", pattern_name="モーニング", start_time="08:00", end_time="13:00"),
    ShiftLine(date="2025-01-16", store_name="天満店", pattern_name="ランチ", start_time="11:00", end_time="16:00"),
]


async def _attempt(label: str, coro) -> dict:
    try:
        await coro
    except mailer.EmailSendError as e:
        log.warning("email test %s failed: %s", label, e)
        return {"success": False, "error": str(e)}
    return {"success": True, "message": f"{label} email sent successfully"}


def _basic_test(to: str):
    html = (
        "<h1>メール送信テスト</h1>"
        "<p>このメールはシフト管理システムのメール送信機能のテストです。</p>"
        f"<p>送信時間: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}</p>"
    )
    return mailer.send_email(to, "シフト管理システム - メール送信テスト", html)


@router.post("/test")
async def run_email_test(payload: EmailTestIn, manager: User = Depends(require_manager)):
    if payload.testEmail is None:
        raise HTTPException(status_code=400, detail="Test email address is required")
    to = payload.testEmail

    if payload.testType == "basic":
        results = {"basic": await _attempt("Basic", _basic_test(to))}
    else:
        results = {
            "basic": await _attempt("Basic", _basic_test(to)),
            "shiftConfirmation": await _attempt(
                "Shift confirmation", notifications.send_shift_confirmation(to, "テストユーザー", _SAMPLE_LINES)
            ),
            "timeOffResponse": await _attempt(
                "Time-off response",
                notifications.send_time_off_response(to, "テストユーザー", "2025-01-20", "approved", "家族の用事"),
            ),
            "emergencyRequest": await _attempt(
                "Emergency request",
                notifications.send_emergency_request(
                    [to],
                    EmergencyDetails(
                        store_name="京橋店",
                        date="2025-01-18",
                        pattern_name="イブニング",
                        start_time="17:00",
                        end_time="22:00",
                        reason="体調不良のため",
                    ),
                ),
            ),
            "notification": await _attempt(
                "Notification",
                notifications.send_notification(to, "テストユーザー", "テスト通知", "これはテスト通知です。\n改行も確認します。"),
            ),
        }

    passed = sum(1 for r in results.values() if r["success"])
    log.info("email test to %s: %d/%d passed", to, passed, len(results))
    return {
        "data": {"results": results, "testEmail": to, "testType": payload.testType},
        "message": "Email test completed",
    }
