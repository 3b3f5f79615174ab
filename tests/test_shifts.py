from datetime import date, timedelta

from sqlalchemy import select

from conftest import auth, make_shift, make_user
from shiftboard.models import Shift

DAY = date(2025, 3, 10)  # monday


def _create(client, manager, **body):
    body.setdefault("pattern_id", "morning")
    body.setdefault("date", DAY.isoformat())
    return client.post("/shifts", json=body, headers=auth(manager))


def test_create_requires_manager(client, patterns, manager, alice):
    r = _create(client, alice, user_id=alice.id, store_id="kyobashi")
    assert r.status_code == 403
    assert r.json() == {"error": "Manager role required"}


def test_create_requires_authentication(client, patterns, alice):
    r = client.post("/shifts", json={"user_id": alice.id, "store_id": "kyobashi", "date": "2025-03-10", "pattern_id": "morning"})
    assert r.status_code == 401


def test_create_draft(client, patterns, manager, alice):
    r = _create(client, manager, user_id=alice.id, store_id="kyobashi")
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["status"] == "draft"
    assert data["stores"] == {"id": "kyobashi", "name": "京橋店"}
    assert data["shift_patterns"]["start_time"] == "09:00"
    assert data["users"]["name"] == alice.name


def test_confirmed_evicts_draft(client, db, patterns, manager, bob):
    make_shift(db, user=bob, store_id="tenma", day=DAY)

    r = _create(client, manager, user_id=bob.id, store_id="kyobashi", status="confirmed")
    assert r.status_code == 201

    db.expire_all()
    rows = db.execute(select(Shift).where(Shift.user_id == bob.id)).scalars().all()
    assert [(s.store_id, s.status) for s in rows] == [("kyobashi", "confirmed")]


def test_draft_blocked_by_confirmed(client, db, patterns, manager, bob):
    existing = make_shift(db, user=bob, store_id="tenma", day=DAY, status="confirmed")
    existing_id = existing.id

    r = _create(client, manager, user_id=bob.id, store_id="kyobashi")
    assert r.status_code == 409
    body = r.json()
    assert body["error"] == "User already has a confirmed shift at 天満店 on this date"
    assert body["conflictType"] == "confirmed"
    assert body["conflictingStore"] == "天満店"
    assert body["conflictingStoreId"] == "tenma"

    db.expire_all()
    rows = db.execute(select(Shift).where(Shift.user_id == bob.id)).scalars().all()
    assert [(s.id, s.store_id, s.pattern_id, s.status) for s in rows] == [(existing_id, "tenma", "morning", "confirmed")]


def test_second_draft_rejected(client, db, patterns, manager, bob):
    make_shift(db, user=bob, store_id="tenma", day=DAY)

    r = _create(client, manager, user_id=bob.id, store_id="kyobashi", pattern_id="evening")
    assert r.status_code == 409
    assert r.json()["conflictType"] == "draft"
    assert r.json()["error"] == "User already has a draft shift at 天満店 on this date"


def test_completed_blocks_confirmed(client, db, patterns, manager, alice):
    make_shift(db, user=alice, store_id="kyobashi", day=DAY, status="completed")

    r = _create(client, manager, user_id=alice.id, store_id="kyobashi", status="confirmed", pattern_id="evening")
    assert r.status_code == 409
    assert r.json()["conflictType"] == "completed"


def test_other_dates_do_not_conflict(client, db, patterns, manager, alice):
    make_shift(db, user=alice, store_id="kyobashi", day=DAY, status="confirmed")

    r = _create(client, manager, user_id=alice.id, store_id="kyobashi", date=(DAY + timedelta(days=1)).isoformat())
    assert r.status_code == 201


def test_unknown_references_are_bad_requests(client, patterns, manager, alice):
    r = _create(client, manager, user_id=alice.id, store_id="nowhere")
    assert r.status_code == 400
    assert r.json()["error"] == "Store not found"

    r = _create(client, manager, user_id=alice.id, store_id="kyobashi", pattern_id="midnight")
    assert r.status_code == 400


def test_invalid_status_is_bad_request(client, patterns, manager, alice):
    r = _create(client, manager, user_id=alice.id, store_id="kyobashi", status="maybe")
    assert r.status_code == 400
    assert 'Status must be "draft", "confirmed", or "completed"' in r.json()["error"]


def test_update_to_confirmed_ignores_itself(client, db, patterns, manager, alice):
    s = make_shift(db, user=alice, store_id="kyobashi", day=DAY)

    r = client.put("/shifts", json={"id": s.id, "status": "confirmed"}, headers=auth(manager))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "confirmed"


def test_update_moving_onto_taken_date(client, db, patterns, manager, alice):
    make_shift(db, user=alice, store_id="kyobashi", day=DAY, status="confirmed")
    other = make_shift(db, user=alice, store_id="kyobashi", day=DAY + timedelta(days=1))

    r = client.put("/shifts", json={"id": other.id, "date": DAY.isoformat()}, headers=auth(manager))
    assert r.status_code == 409


def test_delete(client, db, patterns, manager, alice):
    s = make_shift(db, user=alice, store_id="kyobashi", day=DAY)

    r = client.delete(f"/shifts?id={s.id}", headers=auth(manager))
    assert r.status_code == 200
    r = client.delete(f"/shifts?id={s.id}", headers=auth(manager))
    assert r.status_code == 404


def test_list_filters(client, db, patterns, manager, alice, bob):
    make_shift(db, user=alice, store_id="kyobashi", day=DAY)
    make_shift(db, user=bob, store_id="tenma", day=DAY)
    make_shift(db, user=bob, store_id="tenma", day=DAY + timedelta(days=3))

    r = client.get("/shifts", params={"store_id": "tenma", "date_to": DAY.isoformat()}, headers=auth(alice))
    assert r.status_code == 200
    assert [s["user_id"] for s in r.json()["data"]] == [bob.id]


# ---------- week status ----------

def test_week_patch_confirms_and_notifies(client, db, patterns, manager, alice, bob, outbox):
    make_shift(db, user=alice, store_id="kyobashi", day=DAY)
    make_shift(db, user=alice, store_id="kyobashi", day=DAY + timedelta(days=2), pattern_id="evening")
    make_shift(db, user=bob, store_id="kyobashi", day=DAY + timedelta(days=6))
    make_shift(db, user=bob, store_id="kyobashi", day=DAY + timedelta(days=7))  # next week

    r = client.patch(
        "/shifts",
        json={"store_id": "kyobashi", "week_start": DAY.isoformat(), "status": "confirmed", "notify": True},
        headers=auth(manager),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["updated_count"] == 3
    assert {s["status"] for s in body["data"]} == {"confirmed"}

    assert len(outbox.to("alice@example.com")) == 1
    assert len(outbox.to("bob@example.com")) == 1
    assert "シフト確定" in outbox.to("alice@example.com")[0]["subject"]


def test_week_patch_without_notify_sends_nothing(client, db, patterns, manager, alice, outbox):
    make_shift(db, user=alice, store_id="kyobashi", day=DAY)

    r = client.patch(
        "/shifts",
        json={"store_id": "kyobashi", "week_start": DAY.isoformat(), "status": "confirmed"},
        headers=auth(manager),
    )
    assert r.status_code == 200
    assert outbox.sent == []


def test_week_patch_no_match(client, patterns, manager):
    r = client.patch(
        "/shifts",
        json={"store_id": "kyobashi", "week_start": DAY.isoformat(), "status": "confirmed"},
        headers=auth(manager),
    )
    assert r.status_code == 404
    assert r.json()["error"] == "No shifts found for the specified week"


def test_week_patch_double_booking_rolls_back(client, db, patterns, manager, bob):
    make_shift(db, user=bob, store_id="tenma", day=DAY, status="confirmed")
    draft = make_shift(db, user=bob, store_id="kyobashi", day=DAY)

    r = client.patch(
        "/shifts",
        json={"store_id": "kyobashi", "week_start": DAY.isoformat(), "status": "confirmed"},
        headers=auth(manager),
    )
    assert r.status_code == 409

    db.expire_all()
    assert db.get(Shift, draft.id).status == "draft"


def test_week_patch_explicit_end(client, db, patterns, manager, alice):
    make_shift(db, user=alice, store_id="kyobashi", day=DAY)
    make_shift(db, user=alice, store_id="kyobashi", day=DAY + timedelta(days=2))

    r = client.patch(
        "/shifts",
        json={
            "store_id": "kyobashi",
            "week_start": DAY.isoformat(),
            "week_end": (DAY + timedelta(days=1)).isoformat(),
            "status": "completed",
        },
        headers=auth(manager),
    )
    assert r.json()["updated_count"] == 1


def test_shift_of_deleted_store_name_fallback(db, patterns, stores):
    # conflicts report a placeholder when the store row is gone
    from shiftboard.services.shift_conflicts import UNKNOWN_STORE, conflict_for

    user = make_user(db, name="田中 花子", email="hanako@example.com", stores=["honcho"])
    s = make_shift(db, user=user, store_id="honcho", day=DAY, status="confirmed")
    s.store = None
    err = conflict_for(s, "User already has a {status} shift at {store} on this date")
    assert err.status_code == 409
    assert err.detail == f"User already has a confirmed shift at {UNKNOWN_STORE} on this date"
