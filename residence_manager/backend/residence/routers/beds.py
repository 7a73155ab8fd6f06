# backend/residence/routers/beds.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import Bed, Resident, Room
from ..schemas import (
    BedCreate,
    BedOut,
    BedStatus,
    BedUpdate,
    BedWithRoomOut,
    OccupancyResultOut,
    ResidentOut,
)
from ..services.occupancy_engine import engine_for
from ..services.occupancy_responses import occupancy_payload, raise_for_rejection
from ..services.ownership import must_get_bed, must_get_room

router = APIRouter(prefix="/beds", tags=["beds"])


@router.get("", response_model=list[BedOut])
def list_beds(
    room_id: int | None = Query(default=None),
    status: BedStatus | None = Query(default=None),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(Bed)
    if room_id is not None:
        q = q.where(Bed.room_id == room_id)
    if status is not None:
        q = q.where(Bed.status == status)
    q = q.order_by(Bed.id).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.get("/with-rooms", response_model=list[BedWithRoomOut])
def list_beds_with_rooms(
    house_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = select(Bed).join(Room, Bed.room_id == Room.id).options(joinedload(Bed.room))
    if house_id is not None:
        q = q.where(Room.house_id == house_id)
    q = q.order_by(Room.floor, Room.id, Bed.id)
    return list(db.scalars(q).unique().all())


@router.post("", response_model=BedOut, status_code=201)
def create_bed(payload: BedCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    must_get_room(db, payload.room_id)

    row = Bed(**payload.model_dump())
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="bed.create", entity_type="Bed", entity_id=row.id, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.get("/{bed_id}", response_model=BedOut)
def get_bed(bed_id: int, db: Session = Depends(get_db)):
    return must_get_bed(db, bed_id)


@router.get("/{bed_id}/resident", response_model=ResidentOut)
def get_bed_resident(bed_id: int, db: Session = Depends(get_db)):
    must_get_bed(db, bed_id)
    row = db.scalar(select(Resident).where(Resident.bed_id == bed_id))
    if not row:
        raise HTTPException(status_code=404, detail="no resident assigned to this bed")
    return row


@router.patch("/{bed_id}", response_model=OccupancyResultOut)
def update_bed(
    bed_id: int,
    payload: BedUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """
    Plain fields are written directly. A status change is a release: any
    occupant is evicted in the same transaction and reported back as
    displaced_resident_id.
    """
    row = must_get_bed(db, bed_id)
    data = payload.model_dump(exclude_unset=True)
    status = data.pop("status", None)

    if data:
        before = row_dict(row)
        for k, v in data.items():
            setattr(row, k, v)
        db.flush()
        audit_write(db, actor=actor.label, action="bed.update", entity_type="Bed", entity_id=row.id, before=before, after=row_dict(row))

    if status is None:
        db.commit()
        db.refresh(row)
        return {"outcome": "updated", "bed": row}

    result = engine_for(db, actor).release(row.id, status, commit=False)
    if not result.ok:
        db.rollback()
        raise_for_rejection(result)

    db.commit()
    return occupancy_payload(db, result, bed_id=row.id)


@router.delete("/{bed_id}", status_code=204)
def delete_bed(bed_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_bed(db, bed_id)

    occupant = db.scalar(select(Resident.id).where(Resident.bed_id == row.id))
    if occupant is not None:
        raise HTTPException(
            status_code=409,
            detail={"error": "bed_occupied", "bed_id": row.id, "occupant_resident_id": int(occupant)},
        )

    audit_write(db, actor=actor.label, action="bed.delete", entity_type="Bed", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
