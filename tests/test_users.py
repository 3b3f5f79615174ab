from datetime import date

from sqlalchemy import select

from conftest import auth, make_shift, make_user
from shiftboard.models import LoginIdSequence, Shift, Store, User
from shiftboard.services.login_ids import next_login_id, store_code


def _new_user(**over):
    body = {
        "name": "中村 一郎",
        "phone": "06-1234-5678",
        "email": "Ichiro@Example.com",
        "role": "staff",
        "skill_level": "training",
        "stores": ["kyobashi"],
    }
    body.update(over)
    return body


def test_store_code():
    assert store_code("京橋店") == "kyo"
    assert store_code("天満店") == "ten"
    assert store_code("本町店") == "hon"
    assert store_code("梅田店") == "stf"
    assert store_code(None) == "stf"


def test_create_staff_assigns_store_login_id(client, manager, alice):
    r = client.post("/users", json=_new_user(), headers=auth(manager))
    assert r.status_code == 201
    data = r.json()["data"]
    # alice already holds kyo-001
    assert data["login_id"] == "kyo-002"
    assert data["email"] == "ichiro@example.com"
    assert data["is_first_login"] is True
    assert [us["store_id"] for us in data["user_stores"]] == ["kyobashi"]
    assert data["user_stores"][0]["stores"]["name"] == "京橋店"


def test_create_manager_login_id(client, manager):
    r = client.post("/users", json=_new_user(role="manager", stores=[]), headers=auth(manager))
    assert r.json()["data"]["login_id"] == "mgr-002"


def test_login_ids_keep_counting(db, stores):
    first = next_login_id(db, role="staff", first_store_id="honcho")
    second = next_login_id(db, role="staff", first_store_id="honcho")
    db.commit()
    assert (first, second) == ("hon-001", "hon-002")
    assert db.get(LoginIdSequence, "hon").last_value == 2


def test_login_id_skips_taken_values(db, stores):
    make_user(db, name="既存 ユーザー", email="old@example.com", role="staff", login_id="stf-001")
    # no store link, so the counter starts at zero and must skip stf-001
    assert next_login_id(db, role="staff", first_store_id=None) == "stf-002"


def test_unmapped_stores_count_separately(db, stores):
    db.add_all([Store(id="umeda", name="梅田店", required_staff={}), Store(id="namba", name="難波店", required_staff={})])
    db.commit()
    make_user(db, name="梅田 一", email="u1@example.com", stores=["umeda"], login_id="stf-001")
    make_user(db, name="梅田 二", email="u2@example.com", stores=["umeda"], login_id="stf-002")

    # namba has no staff yet, so its counter starts at zero and skips umeda's ids
    assert next_login_id(db, role="staff", first_store_id="namba") == "stf-003"
    # umeda continues after its own two staff
    assert next_login_id(db, role="staff", first_store_id="umeda") == "stf-004"
    db.commit()

    assert db.get(LoginIdSequence, "stf:namba").last_value == 3
    assert db.get(LoginIdSequence, "stf:umeda").last_value == 4
    assert db.get(LoginIdSequence, "stf") is None


def test_duplicate_email(client, manager, alice):
    r = client.post("/users", json=_new_user(email="ALICE@example.com"), headers=auth(manager))
    assert r.status_code == 409
    assert r.json()["error"] == "This email address is already registered"


def test_validation_errors(client, manager):
    r = client.post("/users", json=_new_user(email="not-an-email"), headers=auth(manager))
    assert r.status_code == 400
    assert "valid email address" in r.json()["error"]

    r = client.post("/users", json=_new_user(name="A"), headers=auth(manager))
    assert "Name must be between 2 and 50 characters" in r.json()["error"]

    r = client.post("/users", json=_new_user(stores=["umeda"]), headers=auth(manager))
    assert r.status_code == 400
    assert r.json()["error"] == "Unknown store: umeda"


def test_staff_cannot_create(client, alice):
    assert client.post("/users", json=_new_user(), headers=auth(alice)).status_code == 403


def test_list_by_store(client, manager, alice, bob):
    r = client.get("/users", params={"store_id": "tenma"}, headers=auth(alice))
    assert [u["id"] for u in r.json()["data"]] == [bob.id]
    assert all("password_hash" not in u for u in r.json()["data"])


def test_update_replaces_store_links(client, manager, bob):
    r = client.put("/users", json={"id": bob.id, "stores": ["honcho"], "skill_level": "veteran"}, headers=auth(manager))
    assert r.status_code == 200
    data = r.json()["data"]
    assert [us["store_id"] for us in data["user_stores"]] == ["honcho"]
    assert data["skill_level"] == "veteran"


def test_delete_user_removes_dependents(client, db, patterns, manager, alice):
    uid = alice.id
    make_shift(db, user=alice, store_id="kyobashi", day=date(2025, 3, 10))

    r = client.delete(f"/users?id={uid}", headers=auth(manager))
    assert r.status_code == 200

    db.expire_all()
    assert db.get(User, uid) is None
    assert db.execute(select(Shift)).scalars().all() == []


def test_cannot_delete_self(client, manager):
    r = client.delete(f"/users?id={manager.id}", headers=auth(manager))
    assert r.status_code == 400


def test_malformed_email_is_not_stored(client, db, manager):
    r = client.post("/users", json=_new_user(email="a..b@example..com"), headers=auth(manager))
    assert r.status_code == 400
    assert db.execute(select(User).where(User.email == "a..b@example..com")).first() is None

    r = client.put("/users", json={"id": manager.id, "email": "manager@@example.com"}, headers=auth(manager))
    assert r.status_code == 400
