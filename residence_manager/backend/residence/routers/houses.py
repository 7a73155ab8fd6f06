# backend/residence/routers/houses.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import House
from ..schemas import HouseCreate, HouseOut, HouseUpdate
from ..services.ownership import ensure_no_occupied_beds, must_get_house

router = APIRouter(prefix="/houses", tags=["houses"])


@router.get("", response_model=list[HouseOut])
def list_houses(
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(House).order_by(House.id).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.post("", response_model=HouseOut, status_code=201)
def create_house(payload: HouseCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = House(**payload.model_dump())
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="house.create", entity_type="House", entity_id=row.id, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.get("/{house_id}", response_model=HouseOut)
def get_house(house_id: int, db: Session = Depends(get_db)):
    return must_get_house(db, house_id)


@router.patch("/{house_id}", response_model=HouseOut)
def update_house(
    house_id: int,
    payload: HouseUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    row = must_get_house(db, house_id)
    before = row_dict(row)

    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(row, k, v)

    db.flush()
    audit_write(db, actor=actor.label, action="house.update", entity_type="House", entity_id=row.id, before=before, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{house_id}", status_code=204)
def delete_house(house_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_house(db, house_id)
    ensure_no_occupied_beds(db, house_id=row.id)

    audit_write(db, actor=actor.label, action="house.delete", entity_type="House", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
