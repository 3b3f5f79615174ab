"""Email templates and the helpers that send them.

``send_*`` coroutines raise EmailSendError; ``notify_*`` coroutines are meant
for FastAPI background tasks and only log failures.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from html import escape

from shiftboard.core.config import settings
from shiftboard.core.timefmt import fmt_time
from shiftboard.services import mailer

log = logging.getLogger("shiftboard.notifications")

_FONT = "font-family: 'Hiragino Sans', 'Hiragino Kaku Gothic ProN', sans-serif; line-height: 1.6; color: #333;"
_FOOTER = (
    '<div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #eee; color: #666; font-size: 14px;">'
    "<p>このメールは自動送信されています。</p><p>シフト管理システム</p></div>"
)


@dataclass(frozen=True)
class ShiftLine:
    date: str
    store_name: str
    pattern_name: str
    start_time: str
    end_time: str


@dataclass(frozen=True)
class EmergencyDetails:
    store_name: str
    date: str
    pattern_name: str
    start_time: str
    end_time: str
    reason: str


@dataclass
class TodayNotification:
    email: str
    user_name: str
    shifts: list[ShiftLine] = field(default_factory=list)


def shift_lines(shifts) -> list[ShiftLine]:
    """Flatten loaded Shift rows (store and pattern relationships) into template lines."""
    return [
        ShiftLine(
            date=s.date.isoformat(),
            store_name=s.store.name if s.store else s.store_id,
            pattern_name=s.pattern.name if s.pattern else s.pattern_id,
            start_time=fmt_time(s.pattern.start_time) if s.pattern else "",
            end_time=fmt_time(s.pattern.end_time) if s.pattern else "",
        )
        for s in shifts
    ]


def _page(title: str, heading_color: str, body: str) -> str:
    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8">'
        f"<title>{escape(title)}</title></head>"
        f'<body style="{_FONT}"><div style="max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<h1 style="color: {heading_color}; border-bottom: 2px solid {heading_color}; padding-bottom: 10px;">'
        f"{escape(title)}</h1>{body}{_FOOTER}</div></body></html>"
    )


def render_shift_confirmation(user_name: str, lines: list[ShiftLine]) -> tuple[str, str]:
    cell = 'style="padding: 10px; border: 1px solid #ddd;"'
    rows = "".join(
        f"<tr><td {cell}>{escape(x.date)}</td><td {cell}>{escape(x.store_name)}</td>"
        f"<td {cell}>{escape(x.pattern_name)}</td><td {cell}>{escape(x.start_time)} - {escape(x.end_time)}</td></tr>"
        for x in lines
    )
    body = (
        f"<p>お疲れ様です、{escape(user_name)}さん。</p>"
        "<p>以下のシフトが確定いたしましたので、お知らせいたします。</p>"
        '<table style="width: 100%; border-collapse: collapse; margin: 20px 0;">'
        "<thead><tr><th>日付</th><th>店舗</th><th>シフト</th><th>時間</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
    )
    return f"【シフト確定】{user_name}さんのシフトが確定しました", _page("シフト確定のお知らせ", "#3b82f6", body)


def render_time_off_response(
    user_name: str, request_date: str, status: str, reason: str | None = None
) -> tuple[str, str]:
    approved = status == "approved"
    status_text = "承認" if approved else "拒否"
    color = "#10b981" if approved else "#ef4444"
    reason_html = f"<p><strong>理由:</strong> {escape(reason)}</p>" if reason else ""
    outcome = (
        "<p>希望休が承認されました。当日は休日をお楽しみください。</p>"
        if approved
        else "<p>申し訳ございませんが、今回の希望休は承認できませんでした。ご理解のほどよろしくお願いいたします。</p>"
    )
    body = (
        f"<p>お疲れ様です、{escape(user_name)}さん。</p>"
        f"<p>{escape(request_date)}の希望休申請について、以下の通り{status_text}いたします。</p>"
        '<div style="background-color: #f9fafb; padding: 20px; border-radius: 8px; margin: 20px 0;">'
        f"<h3>申請結果: {status_text}</h3><p><strong>対象日:</strong> {escape(request_date)}</p>{reason_html}</div>"
        f"{outcome}"
    )
    subject = f"【希望休申請{status_text}】{request_date}の申請について"
    return subject, _page(f"希望休申請の{status_text}について", color, body)


def render_emergency_request(details: EmergencyDetails) -> tuple[str, str]:
    link = f"{settings.APP_BASE_URL.rstrip('/')}/emergency"
    body = (
        "<p>お疲れ様です。</p>"
        "<p>以下のシフトで代打を募集しております。ご都合がつく方はご連絡をお願いいたします。</p>"
        '<div style="background-color: #fef2f2; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #ef4444;">'
        f"<p><strong>店舗:</strong> {escape(details.store_name)}</p>"
        f"<p><strong>日付:</strong> {escape(details.date)}</p>"
        f"<p><strong>シフト:</strong> {escape(details.pattern_name)}</p>"
        f"<p><strong>時間:</strong> {escape(details.start_time)} - {escape(details.end_time)}</p>"
        f"<p><strong>理由:</strong> {escape(details.reason)}</p></div>"
        f'<p style="text-align: center;"><a href="{escape(link)}">代打に応募する</a></p>'
    )
    subject = f"【代打募集】{details.date} {details.store_name} {details.pattern_name}の代打募集"
    return subject, _page("代打募集のお知らせ", "#ef4444", body)


def render_today_shift(user_name: str, lines: list[ShiftLine]) -> tuple[str, str]:
    cards = "".join(
        '<div style="background-color: #f0f9ff; padding: 15px; border-radius: 8px; margin: 10px 0; border-left: 4px solid #3b82f6;">'
        f"<h3>{escape(x.store_name)}</h3><p><strong>{escape(x.pattern_name)}</strong></p>"
        f"<p><strong>時間:</strong> {escape(x.start_time)} - {escape(x.end_time)}</p></div>"
        for x in lines
    )
    day = escape(lines[0].date) if lines else ""
    body = (
        f"<p>おはようございます、{escape(user_name)}さん。</p>"
        f"<p>本日（{day}）のシフトをお知らせいたします。</p>{cards}"
        "<p><strong>出勤時間の確認をお願いします</strong><br>遅刻や欠勤の場合は、早めにご連絡をお願いいたします。</p>"
        "<p>今日も一日よろしくお願いいたします！</p>"
    )
    return f"【今日のシフト】{user_name}さん、お疲れ様です！", _page("今日のシフトのお知らせ", "#1e40af", body)


def render_notification(user_name: str, title: str, message: str) -> tuple[str, str]:
    paragraphs = "".join(f"<p>{escape(line)}</p>" for line in message.split("\n"))
    body = (
        f"<p>お疲れ様です、{escape(user_name)}さん。</p>"
        f'<div style="background-color: #f9fafb; padding: 20px; border-radius: 8px; margin: 20px 0;">{paragraphs}</div>'
    )
    return title, _page(title, "#3b82f6", body)


# ---------- senders (raise EmailSendError) ----------

async def send_shift_confirmation(email: str, user_name: str, lines: list[ShiftLine]) -> None:
    subject, html = render_shift_confirmation(user_name, lines)
    await mailer.send_email(email, subject, html)


async def send_time_off_response(
    email: str, user_name: str, request_date: str, status: str, reason: str | None = None
) -> None:
    subject, html = render_time_off_response(user_name, request_date, status, reason)
    await mailer.send_email(email, subject, html)


async def send_emergency_request(emails: list[str], details: EmergencyDetails) -> None:
    subject, html = render_emergency_request(details)
    await mailer.send_email(emails, subject, html)


async def send_today_shift(email: str, user_name: str, lines: list[ShiftLine]) -> bool:
    """Returns False (nothing sent) when there are no shifts."""
    if not lines:
        return False
    subject, html = render_today_shift(user_name, lines)
    await mailer.send_email(email, subject, html)
    return True


async def send_notification(email: str, user_name: str, title: str, message: str) -> None:
    subject, html = render_notification(user_name, title, message)
    await mailer.send_email(email, subject, html)


# ---------- best-effort wrappers for background tasks ----------

async def notify_shift_confirmation(email: str, user_name: str, lines: list[ShiftLine]) -> bool:
    try:
        await send_shift_confirmation(email, user_name, lines)
        return True
    except mailer.EmailSendError as e:
        log.warning("shift confirmation to %s not sent: %s", email, e)
        return False


async def notify_time_off_response(
    email: str, user_name: str, request_date: str, status: str, reason: str | None = None
) -> bool:
    try:
        await send_time_off_response(email, user_name, request_date, status, reason)
        return True
    except mailer.EmailSendError as e:
        log.warning("time-off response to %s not sent: %s", email, e)
        return False


async def notify_emergency_request(emails: list[str], details: EmergencyDetails) -> bool:
    if not emails:
        return False
    try:
        await send_emergency_request(emails, details)
        return True
    except mailer.EmailSendError as e:
        log.warning("emergency request mail (%d recipients) not sent: %s", len(emails), e)
        return False


async def notify_generic(email: str, user_name: str, title: str, message: str) -> bool:
    try:
        await send_notification(email, user_name, title, message)
        return True
    except mailer.EmailSendError as e:
        log.warning("notification to %s not sent: %s", email, e)
        return False


# ---------- daily batch ----------

async def send_batch_today_shift_notifications(
    items: list[TodayNotification],
    *,
    batch_size: int | None = None,
    delay_seconds: float | None = None,
) -> dict:
    """Send today's-shift mails in small concurrent batches.

    A failed recipient is tallied and does not stop the batch. Nothing is retried.
    """
    size = max(1, batch_size or settings.EMAIL_BATCH_SIZE)
    delay = settings.EMAIL_BATCH_DELAY_SECONDS if delay_seconds is None else delay_seconds
    results: dict = {"success": 0, "failed": 0, "skipped": 0, "errors": []}

    async def _one(item: TodayNotification) -> None:
        try:
            sent = await send_today_shift(item.email, item.user_name, item.shifts)
        except mailer.EmailSendError as e:
            results["failed"] += 1
            results["errors"].append(f"Failed to send to {item.email}: {e}")
            return
        if sent:
            results["success"] += 1
        else:
            results["skipped"] += 1

    for i in range(0, len(items), size):
        await asyncio.gather(*(_one(item) for item in items[i : i + size]))
        if i + size < len(items) and delay > 0:
            await asyncio.sleep(delay)

    log.info(
        "daily shift mails: %d sent, %d failed, %d skipped",
        results["success"],
        results["failed"],
        results["skipped"],
    )
    return results
