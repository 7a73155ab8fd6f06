# backend/residence/routers/maintenance.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import MaintenanceRequest
from ..schemas import (
    MaintenancePriority,
    MaintenanceRequestCreate,
    MaintenanceRequestOut,
    MaintenanceRequestUpdate,
    MaintenanceStatus,
)
from ..services.ownership import must_get_maintenance_request, must_get_resident, must_get_room

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


def _stamp_completion(row: MaintenanceRequest) -> None:
    if row.status == "completed":
        if row.completed_at is None:
            row.completed_at = datetime.utcnow()
    else:
        row.completed_at = None


@router.get("", response_model=list[MaintenanceRequestOut])
def list_maintenance_requests(
    room_id: int | None = Query(default=None),
    status: MaintenanceStatus | None = Query(default=None),
    priority: MaintenancePriority | None = Query(default=None),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(MaintenanceRequest)
    if room_id is not None:
        q = q.where(MaintenanceRequest.room_id == room_id)
    if status is not None:
        q = q.where(MaintenanceRequest.status == status)
    if priority is not None:
        q = q.where(MaintenanceRequest.priority == priority)
    q = q.order_by(desc(MaintenanceRequest.requested_at), desc(MaintenanceRequest.id)).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.post("", response_model=MaintenanceRequestOut, status_code=201)
def create_maintenance_request(
    payload: MaintenanceRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    must_get_room(db, payload.room_id)
    if payload.requested_by is not None:
        must_get_resident(db, payload.requested_by)

    data = payload.model_dump()
    if data.get("requested_at") is None:
        data["requested_at"] = datetime.utcnow()

    row = MaintenanceRequest(**data)
    _stamp_completion(row)
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="maintenance.create", entity_type="MaintenanceRequest", entity_id=row.id, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.get("/{request_id}", response_model=MaintenanceRequestOut)
def get_maintenance_request(request_id: int, db: Session = Depends(get_db)):
    return must_get_maintenance_request(db, request_id)


@router.patch("/{request_id}", response_model=MaintenanceRequestOut)
def update_maintenance_request(
    request_id: int,
    payload: MaintenanceRequestUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Room-level work orders. Bed status is not touched here; use PATCH /beds/{id}."""
    row = must_get_maintenance_request(db, request_id)
    before = row_dict(row)

    for k, v in payload.model_dump(exclude_unset=True).items():
        if v is None and k in ("status", "priority", "description"):
            continue
        setattr(row, k, v)
    _stamp_completion(row)

    db.flush()
    audit_write(db, actor=actor.label, action="maintenance.update", entity_type="MaintenanceRequest", entity_id=row.id, before=before, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{request_id}", status_code=204)
def delete_maintenance_request(request_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_maintenance_request(db, request_id)
    audit_write(db, actor=actor.label, action="maintenance.delete", entity_type="MaintenanceRequest", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
