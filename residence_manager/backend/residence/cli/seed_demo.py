# backend/residence/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from residence.auth import Actor
from residence.db import SessionLocal
from residence.models import (
    Bed,
    House,
    InventoryItem,
    Invoice,
    MaintenanceRequest,
    Payment,
    Resident,
    Room,
)
from residence.services.occupancy_engine import engine_for

SEED_ACTOR = Actor(email="seed@residence.local")

HOUSES = [
    ("Serenity House", "123 Main St", "Main recovery house"),
    ("Recovery Haven", "456 Oak Ave", "Secondary recovery house"),
]

# room name, floor, [(bed name, maintenance note or None)]
SERENITY_LAYOUT = [
    ("Room 1", 1, [("Bed 1", None), ("Bed 2", None)]),
    ("Room 2", 1, [("Bed 3", None), ("Bed 4", "Frame needs repair"), ("Bed 5", None)]),
    ("Room 3", 1, [("Bed 6", None), ("Bed 7", None)]),
    ("Room 4", 2, [("Bed 8", None), ("Bed 9", None)]),
    ("Room 5", 2, [("Bed 10", None), ("Bed 11", None), ("Bed 12", None)]),
    ("Room 6", 2, [("Bed 13", "Mattress replacement needed"), ("Bed 14", None)]),
]

RESIDENTS = [
    # first, last, email, phone, emergency contact, payment status, move-in, duration, bed
    ("Michael", "Johnson", "michael.j@example.com", "555-123-4567", "Jane Johnson, 555-987-6543", "paid", datetime(2023, 6, 15), "3 months", "Bed 3"),
    ("Sarah", "Thompson", "sarah.t@example.com", "555-222-3333", "Mark Thompson, 555-444-5555", "partial", datetime(2023, 4, 22), "6 months", "Bed 2"),
    ("Robert", "Davis", "robert.d@example.com", "555-666-7777", "Lisa Davis, 555-888-9999", "overdue", datetime(2023, 7, 3), "3 months", "Bed 8"),
    ("Jennifer", "Martinez", "jennifer.m@example.com", "555-333-2222", "Carlos Martinez, 555-111-0000", "paid", datetime(2023, 5, 19), "9 months", "Bed 14"),
]

INVENTORY = [
    ("Toilet Paper", "Bathroom", 12, 10, "https://www.amazon.com/dp/B07LCNXJMN"),
    ("Paper Towels", "Kitchen", 4, 6, "https://www.amazon.com/dp/B07LCNXJMN"),
    ("Laundry Detergent", "Laundry", 2, 3, "https://www.amazon.com/dp/B01DABQM0K"),
]


@dataclass(frozen=True)
class SeedResult:
    created: bool
    houses: int
    beds: int
    residents: int
    assigned: int
    serenity_house_id: Optional[int]


def _add(db: Session, row):
    db.add(row)
    db.flush()
    return row


def seed_demo_into(db: Session) -> SeedResult:
    """
    Load the demo facility. Safe to re-run: an existing "Serenity House"
    means the demo is already there and nothing is written.

    Beds start available (or maintenance); every occupied bed comes from a
    resident assignment through the occupancy engine.
    """
    existing = db.scalar(select(House).where(House.name == HOUSES[0][0]))
    if existing is not None:
        return SeedResult(False, 0, 0, 0, 0, existing.id)

    houses = [_add(db, House(name=n, address=a, description=d)) for n, a, d in HOUSES]
    serenity = houses[0]

    rooms: dict[str, Room] = {}
    beds: dict[str, Bed] = {}
    for room_name, floor, bed_specs in SERENITY_LAYOUT:
        room = _add(db, Room(house_id=serenity.id, name=room_name, floor=floor))
        rooms[room_name] = room
        for bed_name, maintenance_note in bed_specs:
            status = "maintenance" if maintenance_note else "available"
            beds[bed_name] = _add(db, Bed(room_id=room.id, name=bed_name, status=status, notes=maintenance_note))

    residents: list[Resident] = []
    for first, last, email, phone, contact, pay, _move_in, _duration, _bed in RESIDENTS:
        residents.append(
            _add(
                db,
                Resident(
                    first_name=first,
                    last_name=last,
                    email=email,
                    phone=phone,
                    emergency_contact=contact,
                    payment_status=pay,
                ),
            )
        )
    db.commit()

    engine = engine_for(db, SEED_ACTOR)
    assigned = 0
    for resident, (*_, move_in, duration, bed_name) in zip(residents, RESIDENTS):
        result = engine.assign(resident.id, beds[bed_name].id, move_in_date=move_in, expected_duration=duration)
        if not result.ok:
            raise RuntimeError(f"demo assignment failed for {resident.full_name}: {result.outcome}")
        assigned += 1

    for name, category, qty, minimum, url in INVENTORY:
        db.add(
            InventoryItem(
                house_id=serenity.id,
                name=name,
                category=category,
                current_quantity=qty,
                minimum_quantity=minimum,
                amazon_url=url,
            )
        )

    michael, sarah, _robert, jennifer = residents
    inv1 = _add(db, Invoice(resident_id=michael.id, invoice_number="INV-2023-001", amount_cents=45000, due_date=date(2023, 8, 1), status="paid"))
    inv2 = _add(db, Invoice(resident_id=sarah.id, invoice_number="INV-2023-002", amount_cents=60000, due_date=date(2023, 8, 1), status="pending"))

    db.add(
        Payment(
            resident_id=michael.id,
            invoice_id=inv1.id,
            amount_cents=45000,
            date_paid=datetime(2023, 8, 1),
            payment_method="Credit Card",
        )
    )
    db.add(
        Payment(
            resident_id=sarah.id,
            invoice_id=inv2.id,
            amount_cents=30000,
            date_paid=datetime(2023, 8, 3),
            payment_method="Cash",
            notes="Partial payment, remainder due by 15th",
        )
    )

    db.add(
        MaintenanceRequest(
            room_id=rooms["Room 6"].id,
            description="Bathroom sink is leaking",
            requested_by=jennifer.id,
            requested_at=datetime(2023, 8, 10),
            priority="medium",
            status="pending",
        )
    )
    db.add(
        MaintenanceRequest(
            room_id=rooms["Room 2"].id,
            description="Bed frame is broken",
            requested_at=datetime(2023, 8, 8),
            priority="high",
            status="in_progress",
            notes="Parts ordered, will repair by Friday",
        )
    )
    db.commit()

    return SeedResult(
        created=True,
        houses=len(houses),
        beds=len(beds),
        residents=len(residents),
        assigned=assigned,
        serenity_house_id=serenity.id,
    )


def seed_demo() -> SeedResult:
    db = SessionLocal()
    try:
        return seed_demo_into(db)
    finally:
        db.close()
