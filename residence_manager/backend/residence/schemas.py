# backend/residence/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Literal, Optional

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

BedStatus = Literal["available", "occupied", "maintenance"]
# "occupied" is only reachable through a resident assignment
SettableBedStatus = Literal["available", "maintenance"]
PaymentStatus = Literal["paid", "partial", "unpaid", "overdue"]
InvoiceStatus = Literal["pending", "paid", "overdue", "cancelled"]
RecipientType = Literal["individual", "house", "all"]
MaintenanceStatus = Literal["pending", "in_progress", "completed"]
MaintenancePriority = Literal["low", "medium", "high", "urgent"]


class InModel(BaseModel):
    """Request bodies: accept both snake_case and the UI's camelCase keys."""

    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
    )


class OutModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -------------------- Houses / Rooms / Beds --------------------

class HouseCreate(InModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    description: Optional[str] = None


class HouseUpdate(InModel):
    name: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class HouseOut(OutModel):
    id: int
    name: str
    address: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class RoomCreate(InModel):
    house_id: int
    name: str = Field(..., min_length=1)
    floor: int = 1


class RoomUpdate(InModel):
    name: Optional[str] = Field(default=None, min_length=1)
    floor: Optional[int] = None


class RoomOut(OutModel):
    id: int
    house_id: int
    name: str
    floor: int
    created_at: datetime
    updated_at: datetime


class BedCreate(InModel):
    room_id: int
    name: str = Field(..., min_length=1)
    status: SettableBedStatus = "available"
    notes: Optional[str] = None


class BedUpdate(InModel):
    """
    name/notes are plain edits. status goes through the occupancy engine:
    maintenance or available both evict a current occupant.
    """

    name: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    status: Optional[SettableBedStatus] = None


class BedOut(OutModel):
    id: int
    room_id: int
    name: str
    status: BedStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BedWithRoomOut(BedOut):
    room: RoomOut


# -------------------- Residents --------------------

class ResidentCreate(InModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    payment_status: PaymentStatus = "unpaid"
    move_in_date: Optional[datetime] = None
    expected_duration: Optional[str] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    bed_id: Optional[int] = None


class ResidentUpdate(InModel):
    """
    Partial update. When bed_id is present in the body (even as null) the
    occupancy engine decides between assign / transfer / unassign.
    """

    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    move_in_date: Optional[datetime] = None
    expected_duration: Optional[str] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    bed_id: Optional[int] = None


class ResidentOut(OutModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    payment_status: PaymentStatus
    move_in_date: Optional[datetime] = None
    expected_duration: Optional[str] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    bed_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ResidentWithBedOut(ResidentOut):
    bed: Optional[BedWithRoomOut] = None


# -------------------- Occupancy --------------------

class BedChangeOut(BaseModel):
    bed_id: int
    before: str
    after: str


class ResidentChangeOut(BaseModel):
    resident_id: int
    bed_before: Optional[int] = None
    bed_after: Optional[int] = None
    fields: dict[str, Any] = Field(default_factory=dict)


class ChangeSetOut(BaseModel):
    beds: List[BedChangeOut] = Field(default_factory=list)
    residents: List[ResidentChangeOut] = Field(default_factory=list)


class OccupancyResultOut(BaseModel):
    """
    Occupancy write response. `changes` lists exactly the rows that moved so
    the client can invalidate those and nothing else.
    """

    outcome: str
    resident: Optional[ResidentOut] = None
    bed: Optional[BedOut] = None
    previous_bed: Optional[BedOut] = None
    displaced_resident_id: Optional[int] = None
    changes: ChangeSetOut = Field(default_factory=ChangeSetOut)


class InvariantViolationOut(BaseModel):
    code: str
    bed_id: Optional[int] = None
    resident_ids: List[int] = Field(default_factory=list)


class IntegrityReportOut(BaseModel):
    ok: bool
    beds: int
    residents: int
    violations: List[InvariantViolationOut]


# -------------------- Billing --------------------

class InvoiceCreate(InModel):
    resident_id: int
    invoice_number: str = Field(..., min_length=1, max_length=50)
    amount_cents: int = Field(..., ge=0)
    due_date: date
    status: InvoiceStatus = "pending"
    description: Optional[str] = None


class InvoiceUpdate(InModel):
    amount_cents: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[date] = None
    status: Optional[InvoiceStatus] = None
    description: Optional[str] = None


class InvoiceOut(OutModel):
    id: int
    resident_id: int
    invoice_number: str
    amount_cents: int
    due_date: date
    status: InvoiceStatus
    description: Optional[str] = None
    created_at: datetime


class PaymentCreate(InModel):
    resident_id: int
    invoice_id: Optional[int] = None
    amount_cents: int = Field(..., gt=0)
    date_paid: datetime
    payment_method: str = Field(..., min_length=1)
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class PaymentUpdate(InModel):
    invoice_id: Optional[int] = None
    amount_cents: Optional[int] = Field(default=None, gt=0)
    date_paid: Optional[datetime] = None
    payment_method: Optional[str] = Field(default=None, min_length=1)
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class PaymentOut(OutModel):
    id: int
    resident_id: int
    invoice_id: Optional[int] = None
    amount_cents: int
    date_paid: datetime
    payment_method: str
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


# -------------------- Inventory / Messages / Maintenance --------------------

class InventoryItemCreate(InModel):
    house_id: int
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    current_quantity: int = Field(default=0, ge=0)
    minimum_quantity: Optional[int] = Field(default=None, ge=0)
    amazon_url: Optional[str] = None
    notes: Optional[str] = None


class InventoryItemUpdate(InModel):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    current_quantity: Optional[int] = Field(default=None, ge=0)
    minimum_quantity: Optional[int] = Field(default=None, ge=0)
    amazon_url: Optional[str] = None
    notes: Optional[str] = None


class InventoryItemOut(OutModel):
    id: int
    house_id: int
    name: str
    category: str
    current_quantity: int
    minimum_quantity: int
    amazon_url: Optional[str] = None
    notes: Optional[str] = None
    is_low_stock: bool
    updated_at: datetime


class MessageCreate(InModel):
    subject: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    sender: str = Field(..., min_length=1)
    recipient_type: RecipientType
    recipient_id: Optional[int] = None
    sent_at: Optional[datetime] = None


class MessageOut(OutModel):
    id: int
    subject: str
    content: str
    sent_at: datetime
    sender: str
    recipient_type: RecipientType
    recipient_id: Optional[int] = None
    is_read: bool


class MaintenanceRequestCreate(InModel):
    room_id: int
    description: str = Field(..., min_length=1)
    requested_by: Optional[int] = None
    requested_at: Optional[datetime] = None
    status: MaintenanceStatus = "pending"
    priority: MaintenancePriority = "medium"
    notes: Optional[str] = None


class MaintenanceRequestUpdate(InModel):
    description: Optional[str] = Field(default=None, min_length=1)
    status: Optional[MaintenanceStatus] = None
    priority: Optional[MaintenancePriority] = None
    notes: Optional[str] = None


class MaintenanceRequestOut(OutModel):
    id: int
    room_id: int
    description: str
    requested_by: Optional[int] = None
    requested_at: datetime
    status: MaintenanceStatus
    priority: MaintenancePriority
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None


# -------------------- Dashboard / Audit --------------------

class StatsOut(BaseModel):
    total_houses: int
    total_beds: int
    occupied_beds: int
    available_beds: int
    maintenance_beds: int
    occupancy_rate: int
    total_residents: int
    unassigned_residents: int
    overdue_payments: int
    pending_maintenance: int
    urgent_maintenance: int
    low_inventory_items: int


class AuditEventOut(OutModel):
    id: int
    actor: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    before_json: Optional[str] = None
    after_json: Optional[str] = None
    created_at: datetime
