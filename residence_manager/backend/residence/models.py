# backend/residence/models.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

BED_STATUSES = ("available", "occupied", "maintenance")
PAYMENT_STATUSES = ("paid", "partial", "unpaid", "overdue")
INVOICE_STATUSES = ("pending", "paid", "overdue", "cancelled")
RECIPIENT_TYPES = ("individual", "house", "all")
MAINTENANCE_STATUSES = ("pending", "in_progress", "completed")
MAINTENANCE_PRIORITIES = ("low", "medium", "high", "urgent")


def _in(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


# -----------------------------
# Facility layout
# -----------------------------
class House(TimestampMixin, Base):
    __tablename__ = "houses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    rooms: Mapped[List["Room"]] = relationship(back_populates="house", cascade="all, delete-orphan")
    inventory_items: Mapped[List["InventoryItem"]] = relationship(
        back_populates="house", cascade="all, delete-orphan"
    )


class Room(TimestampMixin, Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    house_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("houses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    floor: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    house: Mapped["House"] = relationship(back_populates="rooms")
    beds: Mapped[List["Bed"]] = relationship(back_populates="room", cascade="all, delete-orphan")
    maintenance_requests: Mapped[List["MaintenanceRequest"]] = relationship(
        back_populates="room", cascade="all, delete-orphan"
    )


class Bed(TimestampMixin, Base):
    __tablename__ = "beds"
    __table_args__ = (CheckConstraint(_in("status", BED_STATUSES), name="ck_beds_status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    # only the occupancy engine moves a bed into or out of "occupied"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available", index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    room: Mapped["Room"] = relationship(back_populates="beds")


# -----------------------------
# Residents / billing
# -----------------------------
class Resident(TimestampMixin, Base):
    __tablename__ = "residents"
    __table_args__ = (
        # NULLs never collide, so this is exactly "at most one resident per bed"
        UniqueConstraint("bed_id", name="uq_residents_bed_id"),
        CheckConstraint(_in("payment_status", PAYMENT_STATUSES), name="ck_residents_payment_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    emergency_contact: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="unpaid")
    move_in_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expected_duration: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    bed_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("beds.id"), nullable=True)

    bed: Mapped[Optional["Bed"]] = relationship()
    invoices: Mapped[List["Invoice"]] = relationship(back_populates="resident", cascade="all, delete-orphan")
    payments: Mapped[List["Payment"]] = relationship(back_populates="resident", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Invoice(TimestampMixin, Base):
    __tablename__ = "invoices"
    __table_args__ = (CheckConstraint(_in("status", INVOICE_STATUSES), name="ck_invoices_status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resident_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("residents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    resident: Mapped["Resident"] = relationship(back_populates="invoices")


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resident_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("residents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, index=True
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date_paid: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(60), nullable=False)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    resident: Mapped["Resident"] = relationship(back_populates="payments")


# -----------------------------
# Operations
# -----------------------------
class InventoryItem(TimestampMixin, Base):
    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    house_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("houses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    category: Mapped[str] = mapped_column(String(80), nullable=False)
    current_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minimum_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    amazon_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    house: Mapped["House"] = relationship(back_populates="inventory_items")

    @property
    def is_low_stock(self) -> bool:
        return int(self.current_quantity or 0) < int(self.minimum_quantity or 0)


class Message(TimestampMixin, Base):
    __tablename__ = "messages"
    __table_args__ = (CheckConstraint(_in("recipient_type", RECIPIENT_TYPES), name="ck_messages_recipient_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    sender: Mapped[str] = mapped_column(String(160), nullable=False)
    recipient_type: Mapped[str] = mapped_column(String(20), nullable=False)
    recipient_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # resident or house id
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class MaintenanceRequest(TimestampMixin, Base):
    __tablename__ = "maintenance_requests"
    __table_args__ = (
        CheckConstraint(_in("status", MAINTENANCE_STATUSES), name="ck_maintenance_status"),
        CheckConstraint(_in("priority", MAINTENANCE_PRIORITIES), name="ck_maintenance_priority"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    requested_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("residents.id", ondelete="SET NULL"), nullable=True
    )
    requested_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    room: Mapped["Room"] = relationship(back_populates="maintenance_requests")


# -----------------------------
# Audit
# -----------------------------
class AuditEvent(Base):
    __tablename__ = "audit_events"
    __table_args__ = (Index("ix_audit_events_entity", "entity_type", "entity_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
