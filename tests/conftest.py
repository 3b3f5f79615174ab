import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("CRON_SECRET", "cron-secret")
os.environ.setdefault("MAIL_SUPPRESS_SEND", "1")
os.environ.setdefault("EMAIL_BATCH_DELAY_SECONDS", "0")
os.environ.setdefault("COOKIE_SECURE", "0")

from datetime import time  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from shiftboard.auth.deps import get_jwt_config  # noqa: E402
from shiftboard.auth.jwt_tokens import create_access_token  # noqa: E402
from shiftboard.auth.passwords import get_password_hash  # noqa: E402
from shiftboard.core.db import Base, SessionLocal, engine, get_db  # noqa: E402
from shiftboard.main import app  # noqa: E402
from shiftboard.models import Shift, ShiftPattern, Store, User, UserStore  # noqa: E402
from shiftboard.services import mailer  # noqa: E402

REQUIRED = {
    "monday": {"morning": 2, "evening": 2},
    "saturday": {"morning": 3, "evening": 3},
}


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    def _get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class Outbox:
    def __init__(self):
        self.sent = []
        self.fail_for = set()

    async def send(self, to, subject, html):
        recipients = [to] if isinstance(to, str) else list(to)
        if self.fail_for.intersection(recipients):
            raise mailer.EmailSendError("mailbox unavailable")
        self.sent.append({"to": recipients, "subject": subject, "html": html})

    def to(self, address):
        return [m for m in self.sent if address in m["to"]]


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    box = Outbox()
    monkeypatch.setattr(mailer, "send_email", box.send)
    return box


# ---------- data helpers ----------

@pytest.fixture
def stores(db):
    rows = [
        Store(id="kyobashi", name="京橋店", required_staff=REQUIRED),
        Store(id="tenma", name="天満店", required_staff=REQUIRED),
        Store(id="honcho", name="本町店", required_staff={}),
    ]
    db.add_all(rows)
    db.commit()
    return {s.id: s for s in rows}


@pytest.fixture
def patterns(db):
    rows = [
        ShiftPattern(id="morning", name="モーニング", start_time=time(9, 0), end_time=time(13, 0), color="#fde68a"),
        ShiftPattern(id="evening", name="イブニング", start_time=time(17, 0), end_time=time(22, 0), color="#c7d2fe"),
    ]
    db.add_all(rows)
    db.commit()
    return {p.id: p for p in rows}


def make_user(db, *, name, email, role="staff", stores=(), login_id=None, password=None, **kw):
    user = User(
        name=name,
        phone="090-0000-0000",
        email=email,
        role=role,
        skill_level=kw.pop("skill_level", "regular"),
        login_id=login_id,
        password_hash=get_password_hash(password) if password else None,
        is_first_login=kw.pop("is_first_login", password is None),
        **kw,
    )
    user.user_stores = [UserStore(store_id=s) for s in stores]
    db.add(user)
    db.commit()
    return user


def make_shift(db, *, user, store_id, day, pattern_id="morning", status="draft"):
    s = Shift(user_id=user.id, store_id=store_id, date=day, pattern_id=pattern_id, status=status)
    db.add(s)
    db.commit()
    return s


def auth(user):
    token = create_access_token(get_jwt_config(), user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def manager(db, stores):
    return make_user(
        db, name="山田 店長", email="manager@example.com", role="manager", login_id="mgr-001", password="secret123"
    )


@pytest.fixture
def alice(db, stores):
    return make_user(db, name="佐藤 アリス", email="alice@example.com", stores=["kyobashi"], login_id="kyo-001")


@pytest.fixture
def bob(db, stores):
    return make_user(db, name="鈴木 ボブ", email="bob@example.com", stores=["tenma", "kyobashi"], login_id="ten-001")
