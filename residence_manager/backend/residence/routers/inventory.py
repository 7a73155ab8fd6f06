# backend/residence/routers/inventory.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import InventoryItem
from ..schemas import InventoryItemCreate, InventoryItemOut, InventoryItemUpdate
from ..services.ownership import must_get_house, must_get_inventory_item

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=list[InventoryItemOut])
def list_inventory(
    house_id: int | None = Query(default=None),
    category: str | None = Query(default=None),
    low_stock: bool = Query(default=False),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(InventoryItem)
    if house_id is not None:
        q = q.where(InventoryItem.house_id == house_id)
    if category:
        q = q.where(InventoryItem.category == category)
    if low_stock:
        q = q.where(InventoryItem.current_quantity < InventoryItem.minimum_quantity)
    q = q.order_by(InventoryItem.house_id, InventoryItem.category, InventoryItem.name).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.post("", response_model=InventoryItemOut, status_code=201)
def create_inventory_item(
    payload: InventoryItemCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    must_get_house(db, payload.house_id)

    data = payload.model_dump()
    if data.get("minimum_quantity") is None:
        data["minimum_quantity"] = settings.low_stock_default_minimum

    row = InventoryItem(**data)
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="inventory.create", entity_type="InventoryItem", entity_id=row.id, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.get("/{item_id}", response_model=InventoryItemOut)
def get_inventory_item(item_id: int, db: Session = Depends(get_db)):
    return must_get_inventory_item(db, item_id)


@router.patch("/{item_id}", response_model=InventoryItemOut)
def update_inventory_item(
    item_id: int,
    payload: InventoryItemUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    row = must_get_inventory_item(db, item_id)
    before = row_dict(row)

    for k, v in payload.model_dump(exclude_unset=True).items():
        # minimum_quantity is NOT NULL; an explicit null keeps the current value
        if k == "minimum_quantity" and v is None:
            continue
        setattr(row, k, v)

    db.flush()
    audit_write(db, actor=actor.label, action="inventory.update", entity_type="InventoryItem", entity_id=row.id, before=before, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{item_id}", status_code=204)
def delete_inventory_item(item_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_inventory_item(db, item_id)
    audit_write(db, actor=actor.label, action="inventory.delete", entity_type="InventoryItem", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
