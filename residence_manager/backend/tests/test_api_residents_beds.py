# backend/tests/test_api_residents_beds.py
from __future__ import annotations

from sqlalchemy import update

from residence.models import Bed, Resident
from residence.routers import residents as residents_router
from residence.services.occupancy_engine import OccupancyEngine, SqlOccupancyStore, StaleOccupancyError

STAFF = {"X-User-Email": "Staff@House.Local"}


def _create_resident(client, **body):
    payload = {"firstName": "Michael", "lastName": "Johnson", **body}
    r = client.post("/api/residents", json=payload, headers=STAFF)
    assert r.status_code == 201, r.text
    return r.json()


def _bed(client, bed_id):
    r = client.get(f"/api/beds/{bed_id}")
    assert r.status_code == 200
    return r.json()


def _resident(client, resident_id):
    r = client.get(f"/api/residents/{resident_id}")
    assert r.status_code == 200
    return r.json()


def _integrity_ok(client) -> bool:
    r = client.get("/api/occupancy/integrity")
    assert r.status_code == 200
    return r.json()["ok"]


class _BeatenOnceStore(SqlOccupancyStore):
    """The first write finds its rows changed; `winner` writes what the other request did."""

    def __init__(self, db, winner=None):
        super().__init__(db)
        self.winner = winner
        self.beaten = False

    def apply(self, changes):
        if not self.beaten:
            self.beaten = True
            if self.winner is not None:
                self.winner(self.db)
            raise StaleOccupancyError("rows changed since read")
        super().apply(changes)


def _lose_next_write(monkeypatch, winner=None):
    def factory(db, actor=None):
        return OccupancyEngine(_BeatenOnceStore(db, winner), actor=actor)

    monkeypatch.setattr(residents_router, "engine_for", factory)


def test_assign_then_same_bed_again_is_no_change(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client)["resident"]

    r = client.patch(f"/api/residents/{r1['id']}", json={"bedId": b1, "moveInDate": "2026-01-05T00:00:00"}, headers=STAFF)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["outcome"] == "assigned"
    assert body["bed"]["status"] == "occupied"
    assert body["resident"]["bed_id"] == b1
    assert body["resident"]["move_in_date"].startswith("2026-01-05")
    assert body["changes"]["beds"] == [{"bed_id": b1, "before": "available", "after": "occupied"}]

    again = client.patch(f"/api/residents/{r1['id']}", json={"bed_id": b1}, headers=STAFF)
    assert again.status_code == 200
    assert again.json()["outcome"] == "no_change"
    assert again.json()["changes"] == {"beds": [], "residents": []}
    assert _bed(client, b1)["status"] == "occupied"
    assert _integrity_ok(client)


def test_bed_taken_by_someone_else_is_409_and_nothing_moves(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client, bedId=b1)["resident"]
    r2 = _create_resident(client, firstName="Sarah", lastName="Thompson")["resident"]

    r = client.patch(f"/api/residents/{r2['id']}", json={"bedId": b1, "notes": "wants the window"}, headers=STAFF)
    assert r.status_code == 409
    assert r.json()["detail"] == {"error": "bed_occupied", "bed_id": b1, "occupant_resident_id": r1["id"]}

    # the plain field edit in the same request is rolled back too
    assert _resident(client, r2["id"])["notes"] is None
    assert _resident(client, r2["id"])["bed_id"] is None
    assert _resident(client, r1["id"])["bed_id"] == b1
    assert _integrity_ok(client)


def test_transfer_frees_old_bed(client, layout):
    b1, b2 = layout["bed_ids"][:2]
    r1 = _create_resident(client, bedId=b1)["resident"]

    r = client.patch(f"/api/residents/{r1['id']}", json={"bedId": b2}, headers=STAFF)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["outcome"] == "assigned"
    assert body["previous_bed"]["id"] == b1
    assert body["previous_bed"]["status"] == "available"
    assert body["bed"]["status"] == "occupied"
    assert _bed(client, b1)["status"] == "available"
    assert _bed(client, b2)["status"] == "occupied"
    assert _resident(client, r1["id"])["bed_id"] == b2
    assert _integrity_ok(client)


def test_bed_to_maintenance_evicts_resident(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client, bedId=b1)["resident"]

    r = client.patch(f"/api/beds/{b1}", json={"status": "maintenance", "notes": "leak"}, headers=STAFF)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["outcome"] == "released"
    assert body["displaced_resident_id"] == r1["id"]
    assert body["bed"]["status"] == "maintenance"
    assert body["bed"]["notes"] == "leak"
    assert _resident(client, r1["id"])["bed_id"] is None
    assert _integrity_ok(client)


def test_maintenance_bed_is_unavailable(client, layout):
    mb = layout["maintenance_bed_id"]
    r1 = _create_resident(client)["resident"]

    r = client.patch(f"/api/residents/{r1['id']}", json={"bedId": mb}, headers=STAFF)
    assert r.status_code == 409
    assert r.json()["detail"] == {"error": "bed_unavailable", "bed_id": mb, "status": "maintenance"}


def test_create_resident_on_taken_bed_creates_nothing(client, layout):
    b1 = layout["bed_ids"][0]
    _create_resident(client, bedId=b1)

    r = client.post("/api/residents", json={"firstName": "Robert", "lastName": "Davis", "bedId": b1}, headers=STAFF)
    assert r.status_code == 409
    names = [x["first_name"] for x in client.get("/api/residents").json()]
    assert names == ["Michael"]


def test_unknown_ids_are_404(client, layout):
    r1 = _create_resident(client)["resident"]

    r = client.patch(f"/api/residents/{r1['id']}", json={"bedId": 9999})
    assert r.status_code == 404
    assert r.json()["detail"] == {"error": "entity_not_found", "kind": "bed", "id": 9999}

    assert client.patch("/api/residents/9999", json={"bedId": layout["bed_ids"][0]}).status_code == 404
    assert client.patch("/api/beds/9999", json={"status": "available"}).status_code == 404


def test_unassign_with_null_bed(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client, bedId=b1)["resident"]

    r = client.patch(f"/api/residents/{r1['id']}", json={"bedId": None}, headers=STAFF)
    assert r.status_code == 200
    assert r.json()["outcome"] == "unassigned"
    assert r.json()["previous_bed"]["status"] == "available"
    assert _bed(client, b1)["status"] == "available"


def test_plain_patch_does_not_touch_occupancy(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client, bedId=b1)["resident"]

    r = client.patch(f"/api/residents/{r1['id']}", json={"paymentStatus": "overdue"}, headers=STAFF)
    assert r.status_code == 200
    assert r.json()["outcome"] == "updated"
    assert r.json()["resident"]["payment_status"] == "overdue"
    assert r.json()["resident"]["bed_id"] == b1


def test_bed_status_cannot_be_set_to_occupied_directly(client, layout):
    r = client.patch(f"/api/beds/{layout['bed_ids'][0]}", json={"status": "occupied"})
    assert r.status_code == 422


def test_delete_resident_frees_bed(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client, bedId=b1)["resident"]

    assert client.delete(f"/api/residents/{r1['id']}", headers=STAFF).status_code == 204
    assert _bed(client, b1)["status"] == "available"
    assert client.get(f"/api/residents/{r1['id']}").status_code == 404
    assert _integrity_ok(client)


def test_delete_occupied_bed_and_its_room_are_refused(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client, bedId=b1)["resident"]

    r = client.delete(f"/api/beds/{b1}")
    assert r.status_code == 409
    assert r.json()["detail"]["occupant_resident_id"] == r1["id"]

    r = client.delete(f"/api/rooms/{layout['room_id']}")
    assert r.status_code == 409
    assert r.json()["detail"] == {"error": "beds_occupied", "occupied_beds": 1}

    assert client.delete(f"/api/houses/{layout['house_id']}").status_code == 409


def test_bed_resident_lookup_and_joined_views(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client, bedId=b1)["resident"]

    r = client.get(f"/api/beds/{b1}/resident")
    assert r.status_code == 200
    assert r.json()["id"] == r1["id"]
    assert client.get(f"/api/beds/{layout['bed_ids'][1]}/resident").status_code == 404

    with_rooms = client.get("/api/beds/with-rooms", params={"house_id": layout["house_id"]}).json()
    assert len(with_rooms) == 4
    assert all(b["room"]["id"] == layout["room_id"] for b in with_rooms)

    with_beds = client.get("/api/residents/with-beds").json()
    assert with_beds[0]["bed"]["id"] == b1
    assert with_beds[0]["bed"]["room"]["name"] == "Room 1"

    unassigned = client.get("/api/residents", params={"unassigned": "true"}).json()
    assert unassigned == []
    occupied = client.get("/api/beds", params={"status": "occupied"}).json()
    assert [b["id"] for b in occupied] == [b1]


def test_occupancy_writes_are_audited_with_actor(client, layout):
    b1 = layout["bed_ids"][0]
    r1 = _create_resident(client)["resident"]
    client.patch(f"/api/residents/{r1['id']}", json={"bedId": b1}, headers=STAFF)

    events = client.get("/api/audit", params={"entity_type": "Resident", "entity_id": str(r1["id"])}).json()
    actions = [e["action"] for e in events]
    assert "resident.assign" in actions
    assert "resident.create" in actions
    assert all(e["actor"] == "staff@house.local" for e in events)


def test_request_id_is_echoed(client):
    r = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "abc-123"
    assert client.get("/api/health").headers["X-Request-ID"]


def test_create_with_bed_that_loses_a_race_is_409_not_404(client, layout, monkeypatch):
    b1 = layout["bed_ids"][0]
    _lose_next_write(monkeypatch)

    r = client.post("/api/residents", json={"firstName": "Anna", "lastName": "Brooks", "bedId": b1}, headers=STAFF)
    assert r.status_code == 409, r.text
    assert r.json()["detail"] == {"error": "bed_occupied", "bed_id": b1, "occupant_resident_id": None}

    assert client.get("/api/residents").json() == []
    assert _bed(client, b1)["status"] == "available"
    assert _integrity_ok(client)


def test_patch_keeps_field_edits_when_the_winner_made_the_same_move(client, layout, monkeypatch):
    b1, b2 = layout["bed_ids"][:2]
    r1 = _create_resident(client, bedId=b1)["resident"]

    def winner(db):
        db.execute(update(Resident).where(Resident.id == r1["id"]).values(bed_id=b2))
        db.execute(update(Bed).where(Bed.id == b1).values(status="available"))
        db.execute(update(Bed).where(Bed.id == b2).values(status="occupied"))

    _lose_next_write(monkeypatch, winner)
    r = client.patch(f"/api/residents/{r1['id']}", json={"bedId": b2, "notes": "late checkout"}, headers=STAFF)
    assert r.status_code == 200, r.text
    assert r.json()["outcome"] == "no_change"

    row = _resident(client, r1["id"])
    assert row["notes"] == "late checkout"
    assert row["bed_id"] == b2
    assert _integrity_ok(client)


def test_patch_that_loses_a_race_is_409_and_keeps_nothing(client, layout, monkeypatch):
    b1, b2 = layout["bed_ids"][:2]
    r1 = _create_resident(client, bedId=b1)["resident"]

    _lose_next_write(monkeypatch)
    r = client.patch(f"/api/residents/{r1['id']}", json={"bedId": b2, "notes": "wants the window"}, headers=STAFF)
    assert r.status_code == 409
    assert r.json()["detail"]["bed_id"] == b2

    row = _resident(client, r1["id"])
    assert row["notes"] is None
    assert row["bed_id"] == b1
    assert _integrity_ok(client)
