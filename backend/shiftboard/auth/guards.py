from __future__ import annotations

from fastapi import Depends, HTTPException, status

from shiftboard.auth.deps import get_current_user
from shiftboard.models import User, UserRole


def is_manager(user: User) -> bool:
    return user.role == UserRole.MANAGER.value


def require_manager(user: User = Depends(get_current_user)) -> User:
    if not is_manager(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager role required",
        )
    return user


def require_self_or_manager(user: User, target_user_id: int) -> None:
    """Staff may only act on their own records; managers may act for anyone."""
    if user.id != target_user_id and not is_manager(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
