# backend/residence/services/occupancy_engine.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Actor
from ..domain.audit import audit_write
from ..domain.occupancy import (
    AssignmentResult,
    BedOccupiedByOther,
    BedSnapshot,
    BedUnavailable,
    ChangeSet,
    MAINTENANCE,
    ReleaseResult,
    ResidentSnapshot,
    decide_assign,
    decide_release,
    decide_unassign,
)
from ..models import Bed, Resident

log = logging.getLogger(__name__)

# resident columns an assignment may carry along
ASSIGNMENT_FIELDS = ("move_in_date", "expected_duration", "notes")


class StaleOccupancyError(Exception):
    """The rows changed between read and write; the change set was not applied."""

    def __init__(self, message: str, *, bed_id: Optional[int] = None, resident_id: Optional[int] = None):
        super().__init__(message)
        self.bed_id = bed_id
        self.resident_id = resident_id


class OccupancyStore(Protocol):
    def load_bed(self, bed_id: int, *, lock: bool = False) -> Optional[BedSnapshot]: ...

    def load_beds(self, bed_ids: Iterable[int], *, lock: bool = False) -> dict[int, BedSnapshot]: ...

    def load_resident(self, resident_id: int, *, lock: bool = False) -> Optional[ResidentSnapshot]: ...

    def find_occupant(self, bed_id: int) -> Optional[int]: ...

    def apply(self, changes: ChangeSet) -> None: ...

    def record(self, *, actor: Optional[str], action: str, entity_type: str, entity_id: int, payload: dict) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class SqlOccupancyStore:
    """
    OccupancyStore over a SQLAlchemy session.

    Reads take row locks (SELECT ... FOR UPDATE) on backends that support them.
    Lock order is beds by ascending id, then residents.
    Writes are compare-and-swap: each UPDATE is guarded by the value that was
    read, so a concurrent winner makes the rowcount 0 and the whole change set
    is abandoned. The unique index on residents.bed_id is the last line.

    apply() runs inside a SAVEPOINT and only ever rolls back to it, so work the
    caller already has pending in the session survives a lost race.
    """

    def __init__(self, db: Session):
        self.db = db

    def _locking(self, q):
        if self.db.get_bind().dialect.name == "sqlite":
            return q
        return q.with_for_update()

    def load_bed(self, bed_id: int, *, lock: bool = False) -> Optional[BedSnapshot]:
        q = select(Bed.id, Bed.status).where(Bed.id == int(bed_id))
        if lock:
            q = self._locking(q)
        row = self.db.execute(q).first()
        return BedSnapshot(int(row.id), str(row.status)) if row else None

    def load_beds(self, bed_ids: Iterable[int], *, lock: bool = False) -> dict[int, BedSnapshot]:
        ids = sorted({int(b) for b in bed_ids})
        if not ids:
            return {}
        q = select(Bed.id, Bed.status).where(Bed.id.in_(ids)).order_by(Bed.id)
        if lock:
            q = self._locking(q)
        return {int(row.id): BedSnapshot(int(row.id), str(row.status)) for row in self.db.execute(q)}

    def load_resident(self, resident_id: int, *, lock: bool = False) -> Optional[ResidentSnapshot]:
        q = select(Resident.id, Resident.bed_id).where(Resident.id == int(resident_id))
        if lock:
            q = self._locking(q)
        row = self.db.execute(q).first()
        if not row:
            return None
        return ResidentSnapshot(int(row.id), int(row.bed_id) if row.bed_id is not None else None)

    def find_occupant(self, bed_id: int) -> Optional[int]:
        q = select(Resident.id).where(Resident.bed_id == int(bed_id)).order_by(Resident.id).limit(1)
        rid = self.db.scalar(q)
        return int(rid) if rid is not None else None

    def apply(self, changes: ChangeSet) -> None:
        now = datetime.utcnow()
        # caller's pending rows go out ahead of the savepoint
        self.db.flush()
        try:
            with self.db.begin_nested():
                for rc in changes.residents:
                    cond = Resident.bed_id.is_(None) if rc.bed_before is None else Resident.bed_id == rc.bed_before
                    values: dict[str, Any] = {"bed_id": rc.bed_after, "updated_at": now, **rc.fields}
                    res = self.db.execute(
                        update(Resident).where(Resident.id == rc.resident_id, cond).values(**values)
                    )
                    if res.rowcount != 1:
                        raise StaleOccupancyError(
                            f"resident {rc.resident_id} no longer on bed {rc.bed_before}",
                            resident_id=rc.resident_id,
                            bed_id=rc.bed_before,
                        )

                for bc in changes.beds:
                    res = self.db.execute(
                        update(Bed)
                        .where(Bed.id == bc.bed_id, Bed.status == bc.before)
                        .values(status=bc.after, updated_at=now)
                    )
                    if res.rowcount != 1:
                        raise StaleOccupancyError(
                            f"bed {bc.bed_id} is no longer {bc.before}",
                            bed_id=bc.bed_id,
                        )
        except IntegrityError as e:
            # uq_residents_bed_id: someone else took the bed first
            claimed = [rc for rc in changes.residents if rc.bed_after is not None]
            raise StaleOccupancyError(
                f"bed already referenced: {e.orig}",
                bed_id=claimed[0].bed_after if claimed else None,
                resident_id=claimed[0].resident_id if claimed else None,
            ) from e

    def record(self, *, actor: Optional[str], action: str, entity_type: str, entity_id: int, payload: dict) -> None:
        audit_write(self.db, actor=actor, action=action, entity_type=entity_type, entity_id=entity_id, after=payload)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()


class OccupancyEngine:
    """
    Stateless front door for every bed/resident mutation.

    Each call is one read -> decide -> write against the injected store.
    Rejections come back as typed outcomes (see domain/occupancy.py); only
    store failures raise. Nothing is retried: a caller that loses a race gets
    the fresh conflict and picks another bed.

    commit=False leaves the transaction open so a router can bundle the
    assignment with other edits to the same resident.
    """

    def __init__(self, store: OccupancyStore, *, actor: Optional[Actor] = None):
        self.store = store
        self.actor = actor.label if actor else None

    # -------------------- operations --------------------

    def assign(
        self,
        resident_id: int,
        bed_id: int,
        *,
        move_in_date: Optional[datetime] = None,
        expected_duration: Optional[str] = None,
        notes: Optional[str] = None,
        commit: bool = True,
    ) -> AssignmentResult:
        supplied = zip(ASSIGNMENT_FIELDS, (move_in_date, expected_duration, notes))
        fields = {k: v for k, v in supplied if v is not None}

        result = self._decide_assign(resident_id, bed_id, fields)
        if not result.ok or result.changes.empty:
            self._log_outcome(result, resident_id=resident_id, bed_id=bed_id)
            return result

        return self._apply(
            result,
            action="resident.transfer" if result.is_transfer else "resident.assign",
            entity=("Resident", result.resident_id),
            commit=commit,
            redecide=lambda: self._decide_assign(resident_id, bed_id, fields),
        )

    def unassign(self, resident_id: int, *, commit: bool = True) -> AssignmentResult:
        result = self._decide_unassign(resident_id)
        if not result.ok or result.changes.empty:
            self._log_outcome(result, resident_id=resident_id)
            return result

        return self._apply(
            result,
            action="resident.unassign",
            entity=("Resident", result.resident_id),
            commit=commit,
            redecide=lambda: self._decide_unassign(resident_id),
        )

    def release(self, bed_id: int, reason: str, *, commit: bool = True) -> ReleaseResult:
        """
        Put a bed into `available` or `maintenance`. A current occupant is
        evicted in the same write and reported as displaced_resident_id.
        """
        result = self._decide_release(bed_id, reason)
        if not result.ok or result.changes.empty:
            self._log_outcome(result, bed_id=bed_id)
            return result

        return self._apply(
            result,
            action=f"bed.release.{reason}",
            entity=("Bed", result.bed_id),
            commit=commit,
            redecide=lambda: self._decide_release(bed_id, reason),
        )

    # -------------------- read + decide --------------------

    def _decide_assign(self, resident_id: int, bed_id: int, fields: dict[str, Any]) -> AssignmentResult:
        current = self.store.load_resident(resident_id)
        held = current.bed_id if current is not None else None
        beds = self.store.load_beds([bed_id] if held is None else [bed_id, held], lock=True)
        resident = self.store.load_resident(resident_id, lock=True) if current is not None else None
        bed = beds.get(bed_id)

        occupant_id = None
        previous_bed = None
        if resident is not None and bed is not None:
            occupant_id = self.store.find_occupant(bed.id)
            if resident.bed_id is not None and resident.bed_id != bed.id:
                # moved since the first read; the CAS on its status settles it
                previous_bed = beds.get(resident.bed_id) or self.store.load_bed(resident.bed_id)

        return decide_assign(
            resident,
            bed,
            resident_id=resident_id,
            bed_id=bed_id,
            occupant_id=occupant_id,
            previous_bed=previous_bed,
            fields=fields,
        )

    def _decide_unassign(self, resident_id: int) -> AssignmentResult:
        current = self.store.load_resident(resident_id)
        if current is None:
            return decide_unassign(None, resident_id=resident_id, previous_bed=None)
        held = self.store.load_bed(current.bed_id, lock=True) if current.bed_id is not None else None
        resident = self.store.load_resident(resident_id, lock=True)

        previous_bed = None
        if resident is not None and resident.bed_id is not None:
            if held is not None and held.id == resident.bed_id:
                previous_bed = held
            else:
                previous_bed = self.store.load_bed(resident.bed_id)
        return decide_unassign(resident, resident_id=resident_id, previous_bed=previous_bed)

    def _decide_release(self, bed_id: int, reason: str) -> ReleaseResult:
        bed = self.store.load_bed(bed_id, lock=True)
        occupant_id = self.store.find_occupant(bed.id) if bed is not None else None
        if occupant_id is not None:
            self.store.load_resident(occupant_id, lock=True)
        return decide_release(bed, bed_id=bed_id, occupant_id=occupant_id, target=reason)

    # -------------------- write --------------------

    def _apply(self, result, *, action: str, entity: tuple[str, int], commit: bool, redecide):
        entity_type, entity_id = entity
        try:
            self.store.apply(result.changes)
            self.store.record(
                actor=self.actor,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                payload={"outcome": result.outcome, **result.changes.as_dict()},
            )
            if commit:
                self.store.commit()
        except StaleOccupancyError as e:
            # apply() already rolled back to its savepoint; with commit=False the transaction is the caller's
            if commit:
                self.store.rollback()
            fresh = self._lost_race(e, redecide())
            log.warning(
                "occupancy write lost a race",
                extra={"actor": self.actor, "outcome": fresh.outcome, "bed_id": e.bed_id, "resident_id": e.resident_id},
            )
            return fresh

        self._log_outcome(result)
        return result

    def _lost_race(self, err: StaleOccupancyError, fresh):
        """
        Outcome for a caller whose write was beaten.

        A fresh rejection or no-op is reported as is. If the fresh read would
        now allow the request, the contended bed is still reported as a
        conflict; applying it would be an automatic retry. A race with no
        identifiable bed re-raises.
        """
        if not fresh.ok or fresh.changes.empty:
            return fresh

        bed_id = err.bed_id
        if bed_id is None:
            bed_id = getattr(fresh, "bed_id", None) or getattr(fresh, "previous_bed_id", None)
        if bed_id is None:
            raise err

        bed = self.store.load_bed(bed_id)
        if bed is not None and bed.status == MAINTENANCE:
            return BedUnavailable(bed.id, bed.status)
        return BedOccupiedByOther(bed_id, self.store.find_occupant(bed_id))

    def _log_outcome(self, result, **ids) -> None:
        extra: dict[str, Any] = {"actor": self.actor, "outcome": result.outcome}
        for k in ("resident_id", "bed_id", "previous_bed_id", "displaced_resident_id"):
            v = getattr(result, k, None)
            if v is None:
                v = ids.get(k)
            if v is not None:
                extra[k] = v
        log.info("occupancy %s", result.outcome, extra=extra)


def engine_for(db: Session, actor: Optional[Actor] = None) -> OccupancyEngine:
    return OccupancyEngine(SqlOccupancyStore(db), actor=actor)
