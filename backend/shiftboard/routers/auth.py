from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftboard.auth.deps import get_current_user, get_jwt_config
from shiftboard.auth.guards import require_self_or_manager
from shiftboard.auth.jwt_tokens import create_access_token
from shiftboard.auth.passwords import MIN_PASSWORD_LENGTH, get_password_hash, verify_password
from shiftboard.core.config import settings
from shiftboard.core.db import get_db
from shiftboard.models import User
from shiftboard.services.payloads import user_payload
from shiftboard.services.rate_limit import check_rate_limit

log = logging.getLogger("shiftboard.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

BAD_CREDENTIALS = "ログインIDまたはパスワードが正しくありません"


class LoginIn(BaseModel):
    login_id: str = Field(default="", max_length=32)
    password: str = Field(default="", max_length=256)


class PasswordIn(BaseModel):
    login_id: str = Field(default="", max_length=32)
    new_password: str = Field(default="", max_length=256)


def _user_by_login_id(db: Session, login_id: str) -> User | None:
    return db.execute(select(User).where(User.login_id == login_id.strip())).scalar_one_or_none()


def _check_new_password(payload: PasswordIn) -> None:
    if not payload.login_id.strip() or not payload.new_password:
        raise HTTPException(status_code=400, detail="ログインIDと新しいパスワードが必要です")
    if len(payload.new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="パスワードは6文字以上で入力してください")


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        domain=settings.COOKIE_DOMAIN,
        path="/",
        max_age=settings.ACCESS_TOKEN_TTL_SECONDS,
    )


@router.post("/login")
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    login_id = payload.login_id.strip()
    if not login_id or not payload.password:
        raise HTTPException(status_code=400, detail="ログインIDとパスワードが必要です")

    check_rate_limit(
        db,
        f"login:{login_id}",
        limit=settings.LOGIN_RATE_LIMIT,
        window_seconds=settings.LOGIN_RATE_WINDOW_SECONDS,
    )

    user = _user_by_login_id(db, login_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=BAD_CREDENTIALS)

    if user.is_first_login:
        raise HTTPException(status_code=403, detail="初回ログインです。パスワードを設定してください。")
    if not user.password_hash:
        raise HTTPException(status_code=403, detail="パスワードが設定されていません")

    if not verify_password(payload.password, user.password_hash):
        log.info("failed login for %s", login_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=BAD_CREDENTIALS)

    user.last_login_at = datetime.utcnow()
    db.commit()

    token = create_access_token(get_jwt_config(), user.id, user.role)
    _set_session_cookie(response, token)
    log.info("user %s logged in", user.id)

    return {
        "data": {
            "user": {"id": user.id, "name": user.name, "email": user.email, "role": user.role},
            "access_token": token,
        }
    }


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(key="access_token", domain=settings.COOKIE_DOMAIN, path="/")
    return {"data": {"ok": True}}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"data": user_payload(user)}


@router.post("/set-password")
def set_password(payload: PasswordIn, db: Session = Depends(get_db)):
    """First login: the account has no password yet."""
    _check_new_password(payload)

    user = _user_by_login_id(db, payload.login_id)
    if user is None:
        raise HTTPException(status_code=404, detail="ユーザーが見つかりません")
    if not user.is_first_login:
        raise HTTPException(status_code=400, detail="パスワードは既に設定されています")

    user.password_hash = get_password_hash(payload.new_password)
    user.is_first_login = False
    db.commit()
    log.info("user %s set the first password", user.id)

    return {"data": {"ok": True}, "message": "パスワードが設定されました"}


@router.post("/reset-password")
def reset_password(
    payload: PasswordIn,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    _check_new_password(payload)

    user = _user_by_login_id(db, payload.login_id)
    if user is None:
        raise HTTPException(status_code=404, detail="ユーザーが見つかりません")
    require_self_or_manager(current, user.id)

    if user.is_first_login:
        raise HTTPException(status_code=400, detail="初回ログインです。通常のパスワード設定を行ってください")
    if not user.password_hash:
        raise HTTPException(status_code=400, detail="パスワードが設定されていません。管理者にお問い合わせください")

    user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    log.info("password reset for user %s by %s", user.id, current.id)

    return {"data": {"ok": True}, "message": "パスワードが更新されました"}
