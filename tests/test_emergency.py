from datetime import date

from sqlalchemy import func, select

from conftest import auth, make_shift, make_user
from shiftboard.models import EmergencyRequest, EmergencyVolunteer, Shift

DAY = date(2025, 3, 15)


def _open(client, user, **over):
    body = {"store_id": "kyobashi", "date": DAY.isoformat(), "shift_pattern_id": "evening", "reason": "体調不良のため"}
    body.update(over)
    return client.post("/emergency-requests", json=body, headers=auth(user))


def _volunteer(client, user, er_id):
    return client.post("/emergency-volunteers", json={"emergency_request_id": er_id}, headers=auth(user))


def test_open_request_mails_store_staff(client, db, patterns, alice, bob, outbox):
    make_shift(db, user=alice, store_id="kyobashi", day=DAY, pattern_id="evening", status="confirmed")

    r = _open(client, alice)
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["status"] == "open"
    assert data["original_user_id"] == alice.id

    # bob works at kyobashi too; alice is the requester
    assert len(outbox.sent) == 1
    assert outbox.sent[0]["to"] == ["bob@example.com"]
    assert "代打募集" in outbox.sent[0]["subject"]


def test_volunteer_flow_accept(client, db, patterns, manager, alice, bob, outbox):
    original = make_shift(db, user=alice, store_id="kyobashi", day=DAY, pattern_id="evening", status="confirmed")
    er_id = _open(client, alice).json()["data"]["id"]

    r = _volunteer(client, bob, er_id)
    assert r.status_code == 201
    vid = r.json()["data"]["id"]

    r = client.patch(
        "/emergency-requests",
        json={"emergency_request_id": er_id, "volunteer_id": vid, "action": "accept"},
        headers=auth(manager),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["shift_id"] == original.id
    assert body["data"]["status"] == "filled"

    db.expire_all()
    assert db.get(Shift, original.id).user_id == bob.id
    assert any("代打確定" in m["subject"] for m in outbox.to("bob@example.com"))


def test_accept_without_original_shift_creates_one(client, db, patterns, manager, alice, bob):
    er_id = _open(client, alice).json()["data"]["id"]
    vid = _volunteer(client, bob, er_id).json()["data"]["id"]

    r = client.patch(
        "/emergency-requests",
        json={"emergency_request_id": er_id, "volunteer_id": vid, "action": "accept"},
        headers=auth(manager),
    )
    assert r.status_code == 200
    shift = db.get(Shift, r.json()["shift_id"])
    assert (shift.user_id, shift.status, shift.pattern_id) == (bob.id, "confirmed", "evening")


def test_duplicate_volunteer(client, db, patterns, alice, bob):
    er_id = _open(client, alice).json()["data"]["id"]
    assert _volunteer(client, bob, er_id).status_code == 201
    r = _volunteer(client, bob, er_id)
    assert r.status_code == 409
    assert r.json()["error"] == "User has already volunteered for this emergency request"

    count = db.execute(select(func.count(EmergencyVolunteer.id))).scalar_one()
    assert count == 1


def test_volunteer_with_shift_that_day(client, db, patterns, alice, bob):
    make_shift(db, user=bob, store_id="tenma", day=DAY, pattern_id="morning")
    er_id = _open(client, alice).json()["data"]["id"]

    r = _volunteer(client, bob, er_id)
    assert r.status_code == 409
    body = r.json()
    assert "天満店" in body["error"]
    assert body["conflictingStoreId"] == "tenma"
    assert body["conflictType"] == "draft"


def test_volunteer_on_closed_request(client, patterns, manager, alice, bob):
    er_id = _open(client, alice).json()["data"]["id"]
    r = client.put("/emergency-requests", json={"id": er_id, "status": "cancelled"}, headers=auth(manager))
    assert r.status_code == 200

    r = _volunteer(client, bob, er_id)
    assert r.status_code == 400
    assert r.json()["error"] == "Emergency request is not available for volunteering"


def test_status_only_moves_forward(client, patterns, manager, alice):
    er_id = _open(client, alice).json()["data"]["id"]
    client.put("/emergency-requests", json={"id": er_id, "status": "filled"}, headers=auth(manager))

    r = client.put("/emergency-requests", json={"id": er_id, "status": "open"}, headers=auth(manager))
    assert r.status_code == 409


def test_accept_blocked_when_volunteer_got_a_shift(client, db, patterns, manager, alice, bob):
    er_id = _open(client, alice).json()["data"]["id"]
    vid = _volunteer(client, bob, er_id).json()["data"]["id"]
    # booked elsewhere after volunteering
    make_shift(db, user=bob, store_id="tenma", day=DAY, pattern_id="morning", status="confirmed")

    r = client.patch(
        "/emergency-requests",
        json={"emergency_request_id": er_id, "volunteer_id": vid, "action": "accept"},
        headers=auth(manager),
    )
    assert r.status_code == 409
    assert r.json()["error"].startswith(f"Cannot approve volunteer: {bob.name} already has a confirmed shift at 天満店")

    db.expire_all()
    assert db.get(EmergencyRequest, er_id).status == "open"


def test_reject_volunteer(client, db, patterns, manager, alice, bob):
    er_id = _open(client, alice).json()["data"]["id"]
    vid = _volunteer(client, bob, er_id).json()["data"]["id"]

    r = client.patch(
        "/emergency-requests",
        json={"emergency_request_id": er_id, "volunteer_id": vid, "action": "reject"},
        headers=auth(manager),
    )
    assert r.status_code == 200
    db.expire_all()
    assert db.get(EmergencyVolunteer, vid) is None
    assert db.get(EmergencyRequest, er_id).status == "open"


def test_volunteer_of_other_request_not_found(client, patterns, manager, alice, bob):
    first = _open(client, alice).json()["data"]["id"]
    second = _open(client, alice, date="2025-03-16").json()["data"]["id"]
    vid = _volunteer(client, bob, first).json()["data"]["id"]

    r = client.patch(
        "/emergency-requests",
        json={"emergency_request_id": second, "volunteer_id": vid, "action": "accept"},
        headers=auth(manager),
    )
    assert r.status_code == 404


def test_withdraw_volunteer(client, db, stores, patterns, alice, bob):
    carol = make_user(db, name="小林 キャロル", email="carol@example.com", stores=["kyobashi"])
    er_id = _open(client, alice).json()["data"]["id"]
    vid = _volunteer(client, bob, er_id).json()["data"]["id"]

    assert client.delete("/emergency-volunteers", headers=auth(bob)).status_code == 400
    assert client.delete(f"/emergency-volunteers?id={vid}", headers=auth(carol)).status_code == 403

    r = client.delete(
        "/emergency-volunteers", params={"emergency_request_id": er_id, "user_id": bob.id}, headers=auth(bob)
    )
    assert r.status_code == 200


def test_delete_request_removes_volunteers(client, db, patterns, alice, bob):
    er_id = _open(client, alice).json()["data"]["id"]
    _volunteer(client, bob, er_id)

    assert client.delete(f"/emergency-requests?id={er_id}", headers=auth(bob)).status_code == 403
    assert client.delete(f"/emergency-requests?id={er_id}", headers=auth(alice)).status_code == 200

    db.expire_all()
    assert db.execute(select(EmergencyVolunteer)).scalars().all() == []


def test_get_by_id(client, patterns, alice, bob):
    er_id = _open(client, alice).json()["data"]["id"]
    _volunteer(client, bob, er_id)

    r = client.get("/emergency-requests", params={"id": er_id}, headers=auth(bob))
    assert r.status_code == 200
    assert [v["user_id"] for v in r.json()["data"]["emergency_volunteers"]] == [bob.id]

    assert client.get("/emergency-requests", params={"id": 999}, headers=auth(bob)).status_code == 404
