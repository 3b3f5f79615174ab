from shiftboard.auth.deps import get_jwt_config
from shiftboard.auth.jwt_tokens import create_access_token
from shiftboard.auth.passwords import verify_password
from shiftboard.core.config import settings
from shiftboard.models import RateLimitHit, User

from conftest import auth, make_user


def _login(client, login_id, password):
    return client.post("/auth/login", json={"login_id": login_id, "password": password})


def test_login_success(client, db, manager):
    r = _login(client, "mgr-001", "secret123")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["user"]["role"] == "manager"
    assert "password_hash" not in data["user"]
    assert r.cookies.get("access_token") == data["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["data"]["login_id"] == "mgr-001"

    db.expire_all()
    assert db.get(User, manager.id).last_login_at is not None


def test_login_wrong_password(client, manager):
    r = _login(client, "mgr-001", "wrong-password")
    assert r.status_code == 401
    assert r.json()["error"] == "ログインIDまたはパスワードが正しくありません"


def test_login_unknown_user(client, manager):
    assert _login(client, "mgr-999", "secret123").status_code == 401


def test_login_missing_fields(client):
    assert _login(client, "", "").status_code == 400


def test_login_first_login_must_set_password(client, alice):
    r = _login(client, "kyo-001", "anything")
    assert r.status_code == 403


def test_login_rate_limited(client, db, manager):
    for _ in range(settings.LOGIN_RATE_LIMIT):
        assert _login(client, "mgr-001", "wrong-password").status_code == 401

    r = _login(client, "mgr-001", "secret123")
    assert r.status_code == 429
    assert r.headers["Retry-After"] == str(settings.LOGIN_RATE_WINDOW_SECONDS)
    assert db.query(RateLimitHit).count() == settings.LOGIN_RATE_LIMIT


def test_set_password_then_login(client, db, alice):
    r = client.post("/auth/set-password", json={"login_id": "kyo-001", "new_password": "hello123"})
    assert r.status_code == 200

    db.expire_all()
    u = db.get(User, alice.id)
    assert u.is_first_login is False
    assert verify_password("hello123", u.password_hash)

    assert _login(client, "kyo-001", "hello123").status_code == 200

    # only once
    r = client.post("/auth/set-password", json={"login_id": "kyo-001", "new_password": "again123"})
    assert r.status_code == 400


def test_set_password_too_short(client, alice):
    r = client.post("/auth/set-password", json={"login_id": "kyo-001", "new_password": "abc"})
    assert r.status_code == 400
    assert r.json()["error"] == "パスワードは6文字以上で入力してください"


def test_reset_password_self_or_manager(client, db, stores, manager):
    staff = make_user(db, name="高橋 次郎", email="jiro@example.com", stores=["tenma"], login_id="ten-002", password="first123")
    other = make_user(db, name="伊藤 三郎", email="saburo@example.com", stores=["tenma"], login_id="ten-003", password="other123")

    r = client.post("/auth/reset-password", json={"login_id": "ten-002", "new_password": "second123"}, headers=auth(other))
    assert r.status_code == 403

    r = client.post("/auth/reset-password", json={"login_id": "ten-002", "new_password": "second123"}, headers=auth(staff))
    assert r.status_code == 200

    r = client.post("/auth/reset-password", json={"login_id": "ten-002", "new_password": "third123"}, headers=auth(manager))
    assert r.status_code == 200
    assert _login(client, "ten-002", "third123").status_code == 200


def test_reset_password_requires_session(client, manager):
    r = client.post("/auth/reset-password", json={"login_id": "mgr-001", "new_password": "second123"})
    assert r.status_code == 401


def test_bad_token(client):
    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid token"}


def test_token_role_must_match_user(client, manager):
    forged = create_access_token(get_jwt_config(), manager.id, "staff")
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401
    assert r.json() == {"error": "Session expired"}


def test_role_change_revokes_old_token(client, db, manager, alice):
    headers = auth(alice)
    assert client.get("/auth/me", headers=headers).status_code == 200

    alice.role = "manager"
    db.commit()

    assert client.get("/auth/me", headers=headers).status_code == 401
    assert client.get("/auth/me", headers=auth(alice)).status_code == 200


def test_logout_clears_cookie(client):
    r = client.post("/auth/logout")
    assert r.status_code == 200
    assert "access_token" in r.headers.get("set-cookie", "")
