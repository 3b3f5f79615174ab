"""Human-readable login ids: ``mgr-001`` for managers, ``<store code>-001`` for staff."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shiftboard.models import LoginIdSequence, Store, User, UserRole, UserStore

MANAGER_SCOPE = "mgr"
FALLBACK_STORE_CODE = "stf"

# store name -> 3-letter code
STORE_CODES = {
    "京橋店": "kyo",
    "天満店": "ten",
    "本町店": "hon",
}


def store_code(store_name: str | None) -> str:
    return STORE_CODES.get((store_name or "").strip(), FALLBACK_STORE_CODE)


def _existing_count(db: Session, *, role: str, store_id: str | None) -> int:
    if role == UserRole.MANAGER.value:
        q = select(func.count(User.id)).where(User.role == UserRole.MANAGER.value)
    else:
        q = (
            select(func.count(func.distinct(User.id)))
            .join(UserStore, UserStore.user_id == User.id)
            .where(User.role == UserRole.STAFF.value, UserStore.store_id == store_id)
        )
    return int(db.execute(q).scalar_one())


def next_login_id(db: Session, *, role: str, first_store_id: str | None) -> str:
    """Allocate the next id in the user's scope.

    Must run before the new user row is flushed. The counter row is locked
    (``SELECT ... FOR UPDATE``) so concurrent creations in one scope queue
    up instead of computing the same number.
    """
    if role == UserRole.MANAGER.value:
        scope = prefix = MANAGER_SCOPE
    else:
        store = db.get(Store, first_store_id) if first_store_id else None
        scope = prefix = store_code(store.name if store else None)
        if prefix == FALLBACK_STORE_CODE and store is not None:
            # unmapped stores share the prefix but count separately
            scope = f"{FALLBACK_STORE_CODE}:{store.id}"

    seq = db.execute(
        select(LoginIdSequence).where(LoginIdSequence.scope == scope).with_for_update()
    ).scalar_one_or_none()
    if seq is None:
        # first use: continue after whatever ids already exist
        seq = LoginIdSequence(scope=scope, last_value=_existing_count(db, role=role, store_id=first_store_id))
        db.add(seq)

    while True:
        seq.last_value += 1
        candidate = f"{prefix}-{seq.last_value:03d}"
        taken = db.execute(select(User.id).where(User.login_id == candidate)).scalar_one_or_none()
        if taken is None:
            break

    db.flush()
    return candidate
