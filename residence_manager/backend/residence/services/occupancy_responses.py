# backend/residence/services/occupancy_responses.py
from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..domain.occupancy import BedOccupiedByOther, BedUnavailable, EntityNotFound
from ..models import Bed, Resident


def raise_for_rejection(result: Any) -> None:
    """
    Map a rejected occupancy outcome onto an HTTP error.

    404 for a missing bed/resident, 409 for maintenance locks and occupancy
    conflicts. The detail carries the ids the UI needs to say
    "already assigned to X".
    """
    if result.ok:
        return

    if isinstance(result, EntityNotFound):
        raise HTTPException(
            status_code=404,
            detail={"error": result.outcome, "kind": result.kind, "id": result.id},
        )
    if isinstance(result, BedUnavailable):
        raise HTTPException(
            status_code=409,
            detail={"error": result.outcome, "bed_id": result.bed_id, "status": result.status},
        )
    if isinstance(result, BedOccupiedByOther):
        raise HTTPException(
            status_code=409,
            detail={
                "error": result.outcome,
                "bed_id": result.bed_id,
                "occupant_resident_id": result.occupant_resident_id,
            },
        )
    raise HTTPException(status_code=500, detail={"error": "unknown_outcome", "outcome": result.outcome})


def occupancy_payload(
    db: Session,
    result: Any,
    *,
    resident_id: Optional[int] = None,
    bed_id: Optional[int] = None,
) -> dict[str, Any]:
    """Build the OccupancyResultOut body from a successful outcome (rows re-read after the write)."""
    rid = getattr(result, "resident_id", None) or resident_id
    bid = getattr(result, "bed_id", None) or bed_id
    prev_id = getattr(result, "previous_bed_id", None)

    resident = db.get(Resident, int(rid)) if rid is not None else None
    bed = db.get(Bed, int(bid)) if bid is not None else None
    previous_bed = db.get(Bed, int(prev_id)) if prev_id is not None else None

    for row in (resident, bed, previous_bed):
        if row is not None:
            db.refresh(row)

    return {
        "outcome": result.outcome,
        "resident": resident,
        "bed": bed,
        "previous_bed": previous_bed,
        "displaced_resident_id": getattr(result, "displaced_resident_id", None),
        "changes": result.changes.as_dict(),
    }
