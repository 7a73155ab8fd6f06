# backend/tests/test_seed_demo.py
from __future__ import annotations

from sqlalchemy import func, select

from residence.cli.seed_demo import seed_demo_into
from residence.models import Bed, Resident
from residence.services.dashboard_rollups import compute_rollup
from residence.services.integrity import integrity_report


def test_seed_demo_is_consistent_and_idempotent(db):
    out = seed_demo_into(db)
    assert out.created
    assert out.houses == 2
    assert out.beds == 14
    assert out.assigned == 4

    assert integrity_report(db)["ok"]
    rollup = compute_rollup(db)
    assert rollup.occupied_beds == 4
    assert rollup.maintenance_beds == 2
    assert rollup.overdue_payments == 1
    assert rollup.low_inventory_items == 2

    michael = db.scalar(select(Resident).where(Resident.first_name == "Michael"))
    assert db.get(Bed, michael.bed_id).name == "Bed 3"

    again = seed_demo_into(db)
    assert not again.created
    assert db.scalar(select(func.count(Resident.id))) == 4
