# backend/residence/routers/rooms.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import Room
from ..schemas import RoomCreate, RoomOut, RoomUpdate
from ..services.ownership import ensure_no_occupied_beds, must_get_house, must_get_room

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("", response_model=list[RoomOut])
def list_rooms(
    house_id: int | None = Query(default=None),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(Room)
    if house_id is not None:
        q = q.where(Room.house_id == house_id)
    q = q.order_by(Room.floor, Room.id).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.post("", response_model=RoomOut, status_code=201)
def create_room(payload: RoomCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    must_get_house(db, payload.house_id)

    row = Room(**payload.model_dump())
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="room.create", entity_type="Room", entity_id=row.id, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.get("/{room_id}", response_model=RoomOut)
def get_room(room_id: int, db: Session = Depends(get_db)):
    return must_get_room(db, room_id)


@router.patch("/{room_id}", response_model=RoomOut)
def update_room(
    room_id: int,
    payload: RoomUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    row = must_get_room(db, room_id)
    before = row_dict(row)

    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(row, k, v)

    db.flush()
    audit_write(db, actor=actor.label, action="room.update", entity_type="Room", entity_id=row.id, before=before, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{room_id}", status_code=204)
def delete_room(room_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_room(db, room_id)
    ensure_no_occupied_beds(db, room_id=row.id)

    audit_write(db, actor=actor.label, action="room.delete", entity_type="Room", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
