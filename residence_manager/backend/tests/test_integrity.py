# backend/tests/test_integrity.py
from __future__ import annotations

from sqlalchemy import update

from residence.cli.__main__ import main
from residence.models import Bed
from residence.services.integrity import integrity_report
from residence.services.dashboard_rollups import occupancy_rate


def test_report_flags_corrupt_rows(client, db, layout, make_resident):
    b1, b2 = layout["bed_ids"][:2]
    make_resident(bed_id=b1)  # references an "available" bed
    db.execute(update(Bed).where(Bed.id == b2).values(status="occupied"))
    db.commit()

    report = client.get("/api/occupancy/integrity").json()
    assert report["ok"] is False
    assert report["beds"] == 4
    assert {v["code"] for v in report["violations"]} == {
        "resident_on_unoccupied_bed",
        "occupied_without_resident",
    }


def test_assign_repairs_a_dangling_available_reference(client, db, layout, make_resident):
    b1 = layout["bed_ids"][0]
    r = make_resident(bed_id=b1)

    out = client.patch(f"/api/residents/{r.id}", json={"bedId": b1})
    assert out.status_code == 200
    assert out.json()["outcome"] == "assigned"
    assert integrity_report(db)["ok"]


def test_occupied_flag_without_resident_blocks_assignment(client, db, layout, make_resident):
    b1 = layout["bed_ids"][0]
    db.execute(update(Bed).where(Bed.id == b1).values(status="occupied"))
    db.commit()
    r = make_resident()

    out = client.patch(f"/api/residents/{r.id}", json={"bedId": b1})
    assert out.status_code == 409
    assert out.json()["detail"]["occupant_resident_id"] is None


def test_occupancy_rate_rounds_half_up():
    assert occupancy_rate(0, 0) == 0
    assert occupancy_rate(1, 8) == 13
    assert occupancy_rate(2, 3) == 67
    assert occupancy_rate(14, 14) == 100


def test_cli_check_integrity_exit_code(db, layout, make_resident, monkeypatch, capsys):
    import residence.cli.__main__ as cli

    monkeypatch.setattr(cli, "SessionLocal", lambda: db)
    monkeypatch.setattr(db, "close", lambda: None)
    assert main(["check-integrity"]) == 0

    make_resident(bed_id=layout["bed_ids"][0])
    assert main(["check-integrity"]) == 1
    assert "resident_on_unoccupied_bed" in capsys.readouterr().out
