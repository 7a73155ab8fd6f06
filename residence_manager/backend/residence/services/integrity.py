# backend/residence/services/integrity.py
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.occupancy import BedSnapshot, ResidentSnapshot, find_invariant_violations
from ..models import Bed, Resident


def integrity_report(db: Session) -> dict[str, Any]:
    """Full-table occupancy check. Read-only; used by the API and the CLI."""
    beds = [BedSnapshot(int(r.id), str(r.status)) for r in db.execute(select(Bed.id, Bed.status))]
    residents = [
        ResidentSnapshot(int(r.id), int(r.bed_id) if r.bed_id is not None else None)
        for r in db.execute(select(Resident.id, Resident.bed_id))
    ]
    violations = find_invariant_violations(beds, residents)
    return {
        "ok": not violations,
        "beds": len(beds),
        "residents": len(residents),
        "violations": [v.as_dict() for v in violations],
    }
