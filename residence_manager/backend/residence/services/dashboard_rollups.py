# backend/residence/services/dashboard_rollups.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import Bed, House, InventoryItem, MaintenanceRequest, Resident


@dataclass(frozen=True)
class FacilityRollup:
    total_houses: int
    total_beds: int
    occupied_beds: int
    available_beds: int
    maintenance_beds: int
    occupancy_rate: int
    total_residents: int
    unassigned_residents: int
    overdue_payments: int
    pending_maintenance: int
    urgent_maintenance: int
    low_inventory_items: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _count(db: Session, q) -> int:
    return int(db.scalar(q) or 0)


def occupancy_rate(occupied: int, total: int) -> int:
    """Whole percent, halves rounded up. 0 when there are no beds."""
    if total <= 0:
        return 0
    return int(occupied * 100 / total + 0.5)


def compute_rollup(db: Session) -> FacilityRollup:
    """
    Dashboard counters. Each is one aggregate query; "overdue payments" counts
    residents whose payment_status is overdue, not invoices.
    """
    by_status = {
        str(status): int(n)
        for status, n in db.execute(select(Bed.status, func.count(Bed.id)).group_by(Bed.status))
    }
    total_beds = sum(by_status.values())
    occupied = by_status.get("occupied", 0)

    return FacilityRollup(
        total_houses=_count(db, select(func.count(House.id))),
        total_beds=total_beds,
        occupied_beds=occupied,
        available_beds=by_status.get("available", 0),
        maintenance_beds=by_status.get("maintenance", 0),
        occupancy_rate=occupancy_rate(occupied, total_beds),
        total_residents=_count(db, select(func.count(Resident.id))),
        unassigned_residents=_count(db, select(func.count(Resident.id)).where(Resident.bed_id.is_(None))),
        overdue_payments=_count(
            db, select(func.count(Resident.id)).where(Resident.payment_status == "overdue")
        ),
        pending_maintenance=_count(
            db, select(func.count(MaintenanceRequest.id)).where(MaintenanceRequest.status == "pending")
        ),
        urgent_maintenance=_count(
            db, select(func.count(MaintenanceRequest.id)).where(MaintenanceRequest.priority == "urgent")
        ),
        low_inventory_items=_count(
            db,
            select(func.count(InventoryItem.id)).where(
                InventoryItem.current_quantity < InventoryItem.minimum_quantity
            ),
        ),
    )
