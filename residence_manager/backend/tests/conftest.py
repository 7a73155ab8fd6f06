# backend/tests/conftest.py
from __future__ import annotations

import os

# keep the app off the on-disk sqlite file while under test
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from residence.db import Base, get_db, make_engine
from residence import models  # noqa: F401
from residence.domain.occupancy import BedSnapshot, ChangeSet, ResidentSnapshot
from residence.main import app
from residence.models import Bed, House, Resident, Room
from residence.services.occupancy_engine import StaleOccupancyError


@pytest.fixture()
def db_engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(db_engine):
    Session = sessionmaker(bind=db_engine, autoflush=False, autocommit=False, future=True)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def layout(db):
    """One house, one room, three available beds and one in maintenance."""
    house = House(name="Serenity House", address="123 Main St")
    db.add(house)
    db.flush()
    room = Room(house_id=house.id, name="Room 1", floor=1)
    db.add(room)
    db.flush()
    beds = [Bed(room_id=room.id, name=f"Bed {i}") for i in (1, 2, 3)]
    beds.append(Bed(room_id=room.id, name="Bed 4", status="maintenance", notes="Frame needs repair"))
    db.add_all(beds)
    db.commit()
    return {
        "house_id": house.id,
        "room_id": room.id,
        "bed_ids": [b.id for b in beds[:3]],
        "maintenance_bed_id": beds[3].id,
    }


@pytest.fixture()
def make_resident(db):
    def _make(first: str = "Michael", last: str = "Johnson", **kw) -> Resident:
        row = Resident(first_name=first, last_name=last, **kw)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make


class FakeOccupancyStore:
    """
    Dict-backed OccupancyStore. apply() is compare-and-swap like the SQL
    store; before_apply runs once, ahead of the CAS, to stand in for a
    writer that commits between our read and our write.
    """

    def __init__(self, beds: Optional[dict[int, str]] = None, residents: Optional[dict[int, Optional[int]]] = None):
        self.beds: dict[int, str] = dict(beds or {})
        self.residents: dict[int, Optional[int]] = dict(residents or {})
        self.events: list[dict] = []
        self.commits = 0
        self.rollbacks = 0
        self.before_apply: Optional[Callable[["FakeOccupancyStore"], None]] = None
        # ("bed" | "resident", id) for every locking read, in order
        self.locks: list[tuple[str, int]] = []
        self._snapshot = None

    def load_bed(self, bed_id, *, lock=False):
        if lock:
            self.locks.append(("bed", bed_id))
        status = self.beds.get(bed_id)
        return BedSnapshot(bed_id, status) if status is not None else None

    def load_beds(self, bed_ids, *, lock=False):
        found = {}
        for bed_id in sorted(set(bed_ids)):
            snap = self.load_bed(bed_id, lock=lock)
            if snap is not None:
                found[bed_id] = snap
        return found

    def load_resident(self, resident_id, *, lock=False):
        if lock:
            self.locks.append(("resident", resident_id))
        if resident_id not in self.residents:
            return None
        return ResidentSnapshot(resident_id, self.residents[resident_id])

    def find_occupant(self, bed_id):
        holders = sorted(rid for rid, b in self.residents.items() if b == bed_id)
        return holders[0] if holders else None

    def apply(self, changes: ChangeSet) -> None:
        if self.before_apply is not None:
            hook, self.before_apply = self.before_apply, None
            hook(self)

        if self._snapshot is None:
            self._snapshot = (dict(self.beds), dict(self.residents))

        beds = dict(self.beds)
        residents = dict(self.residents)
        for rc in changes.residents:
            if rc.resident_id not in residents or residents[rc.resident_id] != rc.bed_before:
                raise StaleOccupancyError("resident moved", resident_id=rc.resident_id, bed_id=rc.bed_before)
            if rc.bed_after is not None and any(
                b == rc.bed_after for rid, b in residents.items() if rid != rc.resident_id
            ):
                raise StaleOccupancyError("bed taken", resident_id=rc.resident_id, bed_id=rc.bed_after)
            residents[rc.resident_id] = rc.bed_after
        for bc in changes.beds:
            if beds.get(bc.bed_id) != bc.before:
                raise StaleOccupancyError("bed status moved", bed_id=bc.bed_id)
            beds[bc.bed_id] = bc.after

        self.beds, self.residents = beds, residents

    def record(self, **event) -> None:
        self.events.append(event)

    def commit(self) -> None:
        self._snapshot = None
        self.commits += 1

    def rollback(self) -> None:
        if self._snapshot is not None:
            self.beds, self.residents = self._snapshot
            self._snapshot = None
        self.rollbacks += 1


@pytest.fixture()
def fake_store():
    return FakeOccupancyStore
