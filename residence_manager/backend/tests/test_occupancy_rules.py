# backend/tests/test_occupancy_rules.py
from __future__ import annotations

import pytest

from residence.domain.occupancy import (
    Assigned,
    BedOccupiedByOther,
    BedSnapshot,
    BedUnavailable,
    EntityNotFound,
    NoChange,
    Released,
    ResidentSnapshot,
    Unassigned,
    can_transition,
    decide_assign,
    decide_release,
    decide_unassign,
    find_invariant_violations,
)


def test_assign_to_available_bed_writes_resident_then_bed():
    out = decide_assign(
        ResidentSnapshot(1, None),
        BedSnapshot(10, "available"),
        resident_id=1,
        bed_id=10,
        occupant_id=None,
    )
    assert isinstance(out, Assigned)
    assert out.previous_bed_id is None
    assert not out.is_transfer
    assert [(c.resident_id, c.bed_before, c.bed_after) for c in out.changes.residents] == [(1, None, 10)]
    assert [(c.bed_id, c.before, c.after) for c in out.changes.beds] == [(10, "available", "occupied")]


def test_existence_is_checked_before_anything_else():
    out = decide_assign(None, None, resident_id=7, bed_id=10, occupant_id=None)
    assert out == EntityNotFound("resident", 7)

    out = decide_assign(ResidentSnapshot(7, None), None, resident_id=7, bed_id=10, occupant_id=None)
    assert out == EntityNotFound("bed", 10)


def test_maintenance_lock_wins_over_occupancy_conflict():
    # a maintenance bed with a stray reference still reports the lock first
    out = decide_assign(
        ResidentSnapshot(1, None),
        BedSnapshot(10, "maintenance"),
        resident_id=1,
        bed_id=10,
        occupant_id=2,
    )
    assert out == BedUnavailable(10, "maintenance")
    assert out.ok is False


def test_bed_held_by_someone_else_is_a_conflict():
    out = decide_assign(
        ResidentSnapshot(2, None),
        BedSnapshot(10, "occupied"),
        resident_id=2,
        bed_id=10,
        occupant_id=1,
    )
    assert out == BedOccupiedByOther(10, 1)


def test_occupied_flag_without_occupant_is_a_conflict_with_no_holder():
    out = decide_assign(
        ResidentSnapshot(2, None),
        BedSnapshot(10, "occupied"),
        resident_id=2,
        bed_id=10,
        occupant_id=None,
    )
    assert out == BedOccupiedByOther(10, None)


def test_same_bed_again_is_no_change():
    out = decide_assign(
        ResidentSnapshot(1, 10),
        BedSnapshot(10, "occupied"),
        resident_id=1,
        bed_id=10,
        occupant_id=1,
    )
    assert isinstance(out, NoChange)
    assert out.ok
    assert out.changes.empty


def test_reference_to_available_bed_is_repaired():
    out = decide_assign(
        ResidentSnapshot(1, 10),
        BedSnapshot(10, "available"),
        resident_id=1,
        bed_id=10,
        occupant_id=1,
    )
    assert isinstance(out, Assigned)
    assert out.previous_bed_id is None
    assert [(c.bed_id, c.after) for c in out.changes.beds] == [(10, "occupied")]


def test_transfer_frees_previous_bed_in_the_same_change_set():
    out = decide_assign(
        ResidentSnapshot(1, 10),
        BedSnapshot(11, "available"),
        resident_id=1,
        bed_id=11,
        occupant_id=None,
        previous_bed=BedSnapshot(10, "occupied"),
        fields={"notes": "moved downstairs"},
    )
    assert isinstance(out, Assigned)
    assert out.is_transfer
    assert out.previous_bed_id == 10
    assert [(c.bed_id, c.before, c.after) for c in out.changes.beds] == [
        (10, "occupied", "available"),
        (11, "available", "occupied"),
    ]
    assert out.changes.residents[0].fields == {"notes": "moved downstairs"}
    assert out.changes.touched_bed_ids() == [10, 11]
    assert out.changes.touched_resident_ids() == [1]


def test_unassign():
    out = decide_unassign(ResidentSnapshot(1, 10), resident_id=1, previous_bed=BedSnapshot(10, "occupied"))
    assert isinstance(out, Unassigned)
    assert out.previous_bed_id == 10
    assert [(c.bed_id, c.after) for c in out.changes.beds] == [(10, "available")]

    assert isinstance(decide_unassign(ResidentSnapshot(1, None), resident_id=1), NoChange)
    assert decide_unassign(None, resident_id=3) == EntityNotFound("resident", 3)


def test_release_to_maintenance_evicts_occupant():
    out = decide_release(BedSnapshot(10, "occupied"), bed_id=10, occupant_id=1, target="maintenance")
    assert isinstance(out, Released)
    assert out.displaced_resident_id == 1
    assert out.changes.as_dict() == {
        "beds": [{"bed_id": 10, "before": "occupied", "after": "maintenance"}],
        "residents": [{"resident_id": 1, "bed_before": 10, "bed_after": None, "fields": {}}],
    }


def test_release_is_no_change_when_already_there_and_empty():
    out = decide_release(BedSnapshot(10, "maintenance"), bed_id=10, occupant_id=None, target="maintenance")
    assert isinstance(out, NoChange)


def test_release_rejects_unknown_target():
    with pytest.raises(ValueError):
        decide_release(BedSnapshot(10, "available"), bed_id=10, occupant_id=None, target="occupied")


def test_release_from_status_outside_the_table_is_refused():
    with pytest.raises(ValueError, match="illegal bed transition"):
        decide_release(BedSnapshot(10, "retired"), bed_id=10, occupant_id=None, target="available")


def test_release_missing_bed():
    assert decide_release(None, bed_id=99, occupant_id=None, target="available") == EntityNotFound("bed", 99)


def test_transitions():
    assert can_transition("available", "occupied")
    assert can_transition("occupied", "maintenance")
    assert can_transition("maintenance", "available")
    assert not can_transition("maintenance", "occupied")
    assert not can_transition("bogus", "available")


def test_invariant_scan_reports_every_kind():
    beds = [
        BedSnapshot(1, "occupied"),   # fine
        BedSnapshot(2, "occupied"),   # nobody home
        BedSnapshot(3, "available"),  # somebody home
        BedSnapshot(4, "occupied"),   # shared
    ]
    residents = [
        ResidentSnapshot(10, 1),
        ResidentSnapshot(11, 3),
        ResidentSnapshot(12, 4),
        ResidentSnapshot(13, 4),
        ResidentSnapshot(14, 99),
        ResidentSnapshot(15, None),
    ]
    codes = {(v.code, v.bed_id, v.resident_ids) for v in find_invariant_violations(beds, residents)}
    assert codes == {
        ("dangling_bed_reference", 99, (14,)),
        ("occupied_without_resident", 2, ()),
        ("resident_on_unoccupied_bed", 3, (11,)),
        ("shared_bed", 4, (12, 13)),
    }


def test_invariant_scan_clean_state():
    beds = [BedSnapshot(1, "occupied"), BedSnapshot(2, "available"), BedSnapshot(3, "maintenance")]
    residents = [ResidentSnapshot(10, 1), ResidentSnapshot(11, None)]
    assert find_invariant_violations(beds, residents) == []
