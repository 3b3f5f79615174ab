from datetime import date

from conftest import auth, make_shift


# ---------- stores ----------

def test_create_store(client, manager):
    body = {"id": "umeda", "name": "梅田店", "required_staff": {"friday": {"evening": 4}}}
    r = client.post("/stores", json=body, headers=auth(manager))
    assert r.status_code == 201
    assert r.json()["data"]["required_staff"] == {"friday": {"evening": 4}}

    r = client.post("/stores", json=body, headers=auth(manager))
    assert r.status_code == 409
    assert r.json()["error"] == "Store ID already exists"


def test_required_staff_validation(client, manager):
    r = client.post(
        "/stores", json={"id": "umeda", "name": "梅田店", "required_staff": {"funday": {}}}, headers=auth(manager)
    )
    assert r.status_code == 400
    r = client.post(
        "/stores",
        json={"id": "umeda", "name": "梅田店", "required_staff": {"monday": {"morning": -1}}},
        headers=auth(manager),
    )
    assert r.status_code == 400


def test_list_stores_with_staff(client, alice, bob):
    r = client.get("/stores", headers=auth(alice))
    data = {s["id"]: s for s in r.json()["data"]}
    assert sorted(us["user_id"] for us in data["kyobashi"]["user_stores"]) == sorted([alice.id, bob.id])


def test_delete_store_in_use(client, db, patterns, manager, alice):
    make_shift(db, user=alice, store_id="kyobashi", day=date(2025, 3, 10))
    r = client.delete("/stores?id=kyobashi", headers=auth(manager))
    assert r.status_code == 409

    assert client.delete("/stores?id=honcho", headers=auth(manager)).status_code == 200
    assert client.delete("/stores?id=honcho", headers=auth(manager)).status_code == 404


def test_flexible_staff(client, manager, alice, bob):
    r = client.put(
        "/user-stores/flexible",
        json={"store_id": "kyobashi", "flexible_users": [bob.id, 9999]},
        headers=auth(manager),
    )
    assert r.status_code == 200
    assert r.json()["data"]["flexible_users"] == [bob.id]

    r = client.get("/users", params={"id": bob.id}, headers=auth(manager))
    flags = {us["store_id"]: us["is_flexible"] for us in r.json()["data"][0]["user_stores"]}
    assert flags == {"tenma": False, "kyobashi": True}

    r = client.put("/user-stores/flexible", json={"store_id": "kyobashi", "flexible_users": []}, headers=auth(manager))
    assert r.json()["data"]["flexible_users"] == []


def test_flexible_unknown_store(client, manager):
    r = client.put("/user-stores/flexible", json={"store_id": "nowhere", "flexible_users": []}, headers=auth(manager))
    assert r.status_code == 404


# ---------- shift patterns ----------

def test_pattern_times_are_normalized(client, manager):
    r = client.post(
        "/shift-patterns",
        json={"id": "lunch", "name": "ランチ", "start_time": "11:00:00", "end_time": "16:00", "color": "#bbf7d0"},
        headers=auth(manager),
    )
    assert r.status_code == 201
    assert (r.json()["data"]["start_time"], r.json()["data"]["end_time"]) == ("11:00", "16:00")


def test_pattern_in_use_cannot_be_deleted(client, db, patterns, manager, alice):
    make_shift(db, user=alice, store_id="kyobashi", day=date(2025, 3, 10))
    assert client.delete("/shift-patterns?id=morning", headers=auth(manager)).status_code == 409
    assert client.delete("/shift-patterns?id=evening", headers=auth(manager)).status_code == 200


# ---------- time slots ----------

def _slot(client, manager, start, end, name="ランチ"):
    return client.post(
        "/time-slots",
        json={"store_id": "kyobashi", "name": name, "start_time": start, "end_time": end},
        headers=auth(manager),
    )


def test_time_slot_normalizes_times(client, manager):
    r = _slot(client, manager, "9:05", "13:00:00")
    assert r.status_code == 201
    data = r.json()["data"]
    assert (data["start_time"], data["end_time"]) == ("09:05", "13:00")
    assert data["id"].startswith("kyobashi_slot_")


def test_time_slot_rejects_bad_format(client, manager):
    r = _slot(client, manager, "9:5:00", "13:00")
    assert r.status_code == 400
    assert "Invalid time format" in r.json()["error"]


def test_time_slot_start_after_end(client, manager):
    r = _slot(client, manager, "13:00", "09:00")
    assert r.status_code == 400
    assert r.json()["error"] == "Start time must be before end time"


def test_time_slot_overlap(client, manager):
    assert _slot(client, manager, "09:00", "13:00").status_code == 201
    r = _slot(client, manager, "12:00", "15:00", name="午後")
    assert r.status_code == 409
    assert r.json()["fields"] == ["start_time", "end_time"]
    # touching is fine
    assert _slot(client, manager, "13:00", "15:00", name="午後").status_code == 201


def test_time_slot_update_keeps_own_range(client, manager):
    slot = _slot(client, manager, "09:00", "13:00").json()["data"]
    _slot(client, manager, "17:00", "22:00", name="夜")

    r = client.put("/time-slots", json={"id": slot["id"], "end_time": "14:00"}, headers=auth(manager))
    assert r.status_code == 200
    r = client.put("/time-slots", json={"id": slot["id"], "end_time": "18:00"}, headers=auth(manager))
    assert r.status_code == 409


def test_time_slots_need_store(client, alice):
    r = client.get("/time-slots", headers=auth(alice))
    assert r.status_code == 400
    assert r.json()["error"] == "Store ID is required"
