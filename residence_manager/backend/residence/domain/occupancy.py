# backend/residence/domain/occupancy.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Optional, Union

# -----------------------------------------------------------------------------
# Occupancy rules (bed <-> resident)
# -----------------------------------------------------------------------------
# Pure decision layer. Given snapshots of the rows an operation touches, decide
# whether the request is allowed and, if so, the exact change set that keeps
# beds.status and residents.bed_id consistent. No I/O happens here; the
# transactional side lives in services/occupancy_engine.py.
#
# Invariants:
#   - beds.status == "occupied"  <=>  exactly one resident has bed_id == bed.id
#   - beds.status == "maintenance" =>  no resident references the bed
#   - a resident references at most one bed (one column, trivially)
#
# Checks always run in this order so error precedence is stable:
#   1. existence  2. maintenance lock  3. occupancy conflict  4. no-op  5. apply
# -----------------------------------------------------------------------------

AVAILABLE = "available"
OCCUPIED = "occupied"
MAINTENANCE = "maintenance"

BED_STATUSES = (AVAILABLE, OCCUPIED, MAINTENANCE)

ReleaseTarget = Literal["available", "maintenance"]

# Allowed bed status edges. maintenance -> occupied is intentionally absent.
BED_TRANSITIONS: dict[str, frozenset[str]] = {
    AVAILABLE: frozenset({OCCUPIED, MAINTENANCE}),
    OCCUPIED: frozenset({AVAILABLE, MAINTENANCE}),
    MAINTENANCE: frozenset({AVAILABLE}),
}


def can_transition(before: str, after: str) -> bool:
    return after in BED_TRANSITIONS.get(before, frozenset())


# -------------------- snapshots --------------------

@dataclass(frozen=True)
class BedSnapshot:
    id: int
    status: str


@dataclass(frozen=True)
class ResidentSnapshot:
    id: int
    bed_id: Optional[int]


# -------------------- change set --------------------

@dataclass(frozen=True)
class BedChange:
    bed_id: int
    before: str
    after: str

    def as_dict(self) -> dict[str, Any]:
        return {"bed_id": self.bed_id, "before": self.before, "after": self.after}


@dataclass(frozen=True)
class ResidentChange:
    resident_id: int
    bed_before: Optional[int]
    bed_after: Optional[int]
    # extra resident columns written alongside bed_id (move-in metadata)
    fields: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "resident_id": self.resident_id,
            "bed_before": self.bed_before,
            "bed_after": self.bed_after,
            "fields": dict(self.fields),
        }


@dataclass(frozen=True)
class ChangeSet:
    """
    Every write an operation needs. Applied as one unit or not at all.

    Resident changes are listed before bed changes: a resident always leaves
    a bed before the bed is handed to anyone else.
    """

    residents: tuple[ResidentChange, ...] = ()
    beds: tuple[BedChange, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.residents and not self.beds

    def touched_bed_ids(self) -> list[int]:
        ids = {c.bed_id for c in self.beds}
        for r in self.residents:
            ids.update(b for b in (r.bed_before, r.bed_after) if b is not None)
        return sorted(ids)

    def touched_resident_ids(self) -> list[int]:
        return sorted({c.resident_id for c in self.residents})

    def as_dict(self) -> dict[str, Any]:
        return {
            "beds": [c.as_dict() for c in self.beds],
            "residents": [c.as_dict() for c in self.residents],
        }


# -------------------- outcomes --------------------

@dataclass(frozen=True)
class EntityNotFound:
    kind: Literal["bed", "resident"]
    id: int

    ok = False
    outcome = "entity_not_found"


@dataclass(frozen=True)
class BedUnavailable:
    bed_id: int
    status: str = MAINTENANCE

    ok = False
    outcome = "bed_unavailable"


@dataclass(frozen=True)
class BedOccupiedByOther:
    bed_id: int
    # None when the bed is flagged occupied but nobody references it
    occupant_resident_id: Optional[int]

    ok = False
    outcome = "bed_occupied"


@dataclass(frozen=True)
class NoChange:
    resident_id: Optional[int] = None
    bed_id: Optional[int] = None

    ok = True
    outcome = "no_change"
    changes = ChangeSet()


@dataclass(frozen=True)
class Assigned:
    resident_id: int
    bed_id: int
    previous_bed_id: Optional[int]
    changes: ChangeSet

    ok = True
    outcome = "assigned"

    @property
    def is_transfer(self) -> bool:
        return self.previous_bed_id is not None


@dataclass(frozen=True)
class Unassigned:
    resident_id: int
    previous_bed_id: int
    changes: ChangeSet

    ok = True
    outcome = "unassigned"


@dataclass(frozen=True)
class Released:
    bed_id: int
    status: str
    displaced_resident_id: Optional[int]
    changes: ChangeSet

    ok = True
    outcome = "released"


Rejection = Union[EntityNotFound, BedUnavailable, BedOccupiedByOther]
AssignmentResult = Union[Assigned, Unassigned, NoChange, EntityNotFound, BedUnavailable, BedOccupiedByOther]
# conflicts only appear on release when a concurrent write wins
ReleaseResult = Union[Released, NoChange, EntityNotFound, BedOccupiedByOther, BedUnavailable]


# -------------------- decisions --------------------

def decide_assign(
    resident: Optional[ResidentSnapshot],
    bed: Optional[BedSnapshot],
    *,
    resident_id: int,
    bed_id: int,
    occupant_id: Optional[int],
    previous_bed: Optional[BedSnapshot] = None,
    fields: Optional[dict[str, Any]] = None,
) -> AssignmentResult:
    """
    occupant_id: resident currently referencing `bed` (None if nobody).
    previous_bed: the bed `resident` holds now, when it differs from `bed`.
    fields: move-in metadata to write with the assignment (already filtered
            to supplied values by the caller).
    """
    # 1. existence
    if resident is None:
        return EntityNotFound("resident", resident_id)
    if bed is None:
        return EntityNotFound("bed", bed_id)

    # 2. maintenance lock
    if bed.status == MAINTENANCE:
        return BedUnavailable(bed.id, bed.status)

    # 3. occupancy conflict
    if occupant_id is not None and occupant_id != resident.id:
        return BedOccupiedByOther(bed.id, occupant_id)
    if bed.status == OCCUPIED and occupant_id is None:
        return BedOccupiedByOther(bed.id, None)

    # 4. no-op
    if resident.bed_id == bed.id and bed.status == OCCUPIED:
        return NoChange(resident.id, bed.id)

    # 5. apply
    bed_changes: list[BedChange] = []
    prev_id = resident.bed_id if resident.bed_id != bed.id else None
    if prev_id is not None and previous_bed is not None and previous_bed.status == OCCUPIED:
        bed_changes.append(BedChange(previous_bed.id, previous_bed.status, AVAILABLE))
    if bed.status != OCCUPIED:
        bed_changes.append(BedChange(bed.id, bed.status, OCCUPIED))

    changes = ChangeSet(
        residents=(ResidentChange(resident.id, resident.bed_id, bed.id, dict(fields or {})),),
        beds=tuple(bed_changes),
    )
    return Assigned(resident.id, bed.id, prev_id, changes)


def decide_unassign(
    resident: Optional[ResidentSnapshot],
    *,
    resident_id: int,
    previous_bed: Optional[BedSnapshot] = None,
) -> AssignmentResult:
    if resident is None:
        return EntityNotFound("resident", resident_id)

    if resident.bed_id is None:
        return NoChange(resident.id, None)

    bed_changes: tuple[BedChange, ...] = ()
    if previous_bed is not None and previous_bed.status == OCCUPIED:
        bed_changes = (BedChange(previous_bed.id, previous_bed.status, AVAILABLE),)

    changes = ChangeSet(
        residents=(ResidentChange(resident.id, resident.bed_id, None),),
        beds=bed_changes,
    )
    return Unassigned(resident.id, resident.bed_id, changes)


def decide_release(
    bed: Optional[BedSnapshot],
    *,
    bed_id: int,
    occupant_id: Optional[int],
    target: str,
) -> ReleaseResult:
    """Move a bed to `available` or `maintenance`, evicting any occupant first."""
    if target not in (AVAILABLE, MAINTENANCE):
        raise ValueError(f"release target must be available|maintenance, got {target!r}")

    if bed is None:
        return EntityNotFound("bed", bed_id)

    if occupant_id is None and bed.status == target:
        return NoChange(None, bed.id)

    if bed.status != target and not can_transition(bed.status, target):
        raise ValueError(f"illegal bed transition {bed.status} -> {target}")

    residents: tuple[ResidentChange, ...] = ()
    if occupant_id is not None:
        residents = (ResidentChange(occupant_id, bed.id, None),)

    bed_changes: tuple[BedChange, ...] = ()
    if bed.status != target:
        bed_changes = (BedChange(bed.id, bed.status, target),)

    return Released(bed.id, target, occupant_id, ChangeSet(residents=residents, beds=bed_changes))


# -------------------- integrity --------------------

@dataclass(frozen=True)
class InvariantViolation:
    code: str
    bed_id: Optional[int]
    resident_ids: tuple[int, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "bed_id": self.bed_id, "resident_ids": list(self.resident_ids)}


def find_invariant_violations(
    beds: Iterable[BedSnapshot],
    residents: Iterable[ResidentSnapshot],
) -> list[InvariantViolation]:
    """
    Check the one-to-one occupancy mapping over a full snapshot.

    Codes:
      shared_bed            two or more residents reference the same bed
      occupied_without_resident
      resident_on_unoccupied_bed
      dangling_bed_reference resident points at a bed that does not exist
    """
    status_by_bed = {b.id: b.status for b in beds}
    holders: dict[int, list[int]] = {}
    out: list[InvariantViolation] = []

    for r in residents:
        if r.bed_id is None:
            continue
        if r.bed_id not in status_by_bed:
            out.append(InvariantViolation("dangling_bed_reference", r.bed_id, (r.id,)))
            continue
        holders.setdefault(r.bed_id, []).append(r.id)

    for bed_id in sorted(status_by_bed):
        status = status_by_bed[bed_id]
        ids = tuple(sorted(holders.get(bed_id, [])))
        if len(ids) > 1:
            out.append(InvariantViolation("shared_bed", bed_id, ids))
        if status == OCCUPIED and not ids:
            out.append(InvariantViolation("occupied_without_resident", bed_id))
        if status != OCCUPIED and ids:
            out.append(InvariantViolation("resident_on_unoccupied_bed", bed_id, ids))

    return out
