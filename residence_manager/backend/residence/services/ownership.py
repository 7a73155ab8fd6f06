# backend/residence/services/ownership.py
from __future__ import annotations

from typing import TypeVar

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import (
    Bed,
    House,
    InventoryItem,
    Invoice,
    MaintenanceRequest,
    Message,
    Payment,
    Resident,
    Room,
)

T = TypeVar("T")


def _must_get(db: Session, model: type[T], row_id: int, label: str) -> T:
    row = db.get(model, int(row_id))
    if not row:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def must_get_house(db: Session, house_id: int) -> House:
    return _must_get(db, House, house_id, "house")


def must_get_room(db: Session, room_id: int) -> Room:
    return _must_get(db, Room, room_id, "room")


def must_get_bed(db: Session, bed_id: int) -> Bed:
    return _must_get(db, Bed, bed_id, "bed")


def must_get_resident(db: Session, resident_id: int) -> Resident:
    return _must_get(db, Resident, resident_id, "resident")


def must_get_invoice(db: Session, invoice_id: int) -> Invoice:
    return _must_get(db, Invoice, invoice_id, "invoice")


def must_get_payment(db: Session, payment_id: int) -> Payment:
    return _must_get(db, Payment, payment_id, "payment")


def must_get_inventory_item(db: Session, item_id: int) -> InventoryItem:
    return _must_get(db, InventoryItem, item_id, "inventory item")


def must_get_message(db: Session, message_id: int) -> Message:
    return _must_get(db, Message, message_id, "message")


def must_get_maintenance_request(db: Session, request_id: int) -> MaintenanceRequest:
    return _must_get(db, MaintenanceRequest, request_id, "maintenance request")


def ensure_no_occupied_beds(db: Session, *, house_id: int | None = None, room_id: int | None = None) -> None:
    """
    Refuse to delete layout that still has people in it.

    Deleting a house or room cascades to its beds; a resident pointing at one
    of those beds must be moved or unassigned first.
    """
    q = select(func.count(Resident.id)).join(Bed, Resident.bed_id == Bed.id)
    if room_id is not None:
        q = q.where(Bed.room_id == int(room_id))
    if house_id is not None:
        q = q.join(Room, Bed.room_id == Room.id).where(Room.house_id == int(house_id))

    occupied = int(db.scalar(q) or 0)
    if occupied:
        raise HTTPException(
            status_code=409,
            detail={"error": "beds_occupied", "occupied_beds": occupied},
        )
