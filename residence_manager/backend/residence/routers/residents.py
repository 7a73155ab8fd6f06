# backend/residence/routers/residents.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session, joinedload

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import Bed, Resident
from ..schemas import (
    OccupancyResultOut,
    PaymentStatus,
    ResidentCreate,
    ResidentOut,
    ResidentUpdate,
    ResidentWithBedOut,
)
from ..services.occupancy_engine import engine_for
from ..services.occupancy_responses import occupancy_payload, raise_for_rejection
from ..services.ownership import must_get_resident

router = APIRouter(prefix="/residents", tags=["residents"])


@router.get("", response_model=list[ResidentOut])
def list_residents(
    payment_status: PaymentStatus | None = Query(default=None),
    unassigned: bool | None = Query(default=None),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(Resident)
    if payment_status is not None:
        q = q.where(Resident.payment_status == payment_status)
    if unassigned is True:
        q = q.where(Resident.bed_id.is_(None))
    elif unassigned is False:
        q = q.where(Resident.bed_id.is_not(None))
    q = q.order_by(Resident.last_name, Resident.first_name, Resident.id).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.get("/with-beds", response_model=list[ResidentWithBedOut])
def list_residents_with_beds(db: Session = Depends(get_db)):
    q = (
        select(Resident)
        .options(joinedload(Resident.bed).joinedload(Bed.room))
        .order_by(desc(Resident.created_at), desc(Resident.id))
    )
    return list(db.scalars(q).unique().all())


@router.post("", response_model=OccupancyResultOut, status_code=201)
def create_resident(payload: ResidentCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    """
    Create a resident. A bed_id in the body is assigned in the same
    transaction; if the bed cannot be taken nothing is created.
    """
    data = payload.model_dump()
    bed_id = data.pop("bed_id", None)

    row = Resident(**data)
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="resident.create", entity_type="Resident", entity_id=row.id, after=row_dict(row))

    if bed_id is None:
        db.commit()
        db.refresh(row)
        return {"outcome": "created", "resident": row}

    result = engine_for(db, actor).assign(row.id, bed_id, commit=False)
    if not result.ok:
        db.rollback()
        raise_for_rejection(result)

    db.commit()
    return occupancy_payload(db, result, resident_id=row.id, bed_id=bed_id)


@router.get("/{resident_id}", response_model=ResidentWithBedOut)
def get_resident(resident_id: int, db: Session = Depends(get_db)):
    return must_get_resident(db, resident_id)


@router.patch("/{resident_id}", response_model=OccupancyResultOut)
def update_resident(
    resident_id: int,
    payload: ResidentUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """
    Partial update. Only a bed_id present in the body touches occupancy:
      - same bed as now        -> no_change
      - a different bed        -> assigned (transfer when one was held)
      - null                   -> unassigned
    The bed move and the other field edits commit together or not at all.
    """
    row = must_get_resident(db, resident_id)
    data = payload.model_dump(exclude_unset=True)
    bed_touched = "bed_id" in data
    bed_id = data.pop("bed_id", None)

    if data:
        before = row_dict(row)
        for k, v in data.items():
            setattr(row, k, v)
        db.flush()
        audit_write(db, actor=actor.label, action="resident.update", entity_type="Resident", entity_id=row.id, before=before, after=row_dict(row))

    if not bed_touched:
        db.commit()
        db.refresh(row)
        return {"outcome": "updated", "resident": row}

    engine = engine_for(db, actor)
    if bed_id is None:
        result = engine.unassign(row.id, commit=False)
    else:
        result = engine.assign(row.id, bed_id, commit=False)

    if not result.ok:
        db.rollback()
        raise_for_rejection(result)

    db.commit()
    return occupancy_payload(db, result, resident_id=row.id, bed_id=bed_id)


@router.delete("/{resident_id}", status_code=204)
def delete_resident(resident_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_resident(db, resident_id)

    if row.bed_id is not None:
        result = engine_for(db, actor).unassign(row.id, commit=False)
        if not result.ok:
            db.rollback()
            raise_for_rejection(result)

    db.refresh(row)
    audit_write(db, actor=actor.label, action="resident.delete", entity_type="Resident", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
