# backend/residence/routers/payments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import Payment
from ..schemas import PaymentCreate, PaymentOut, PaymentUpdate
from ..services.ownership import must_get_invoice, must_get_payment, must_get_resident

router = APIRouter(prefix="/payments", tags=["billing"])


def _check_invoice(db: Session, invoice_id: int | None, resident_id: int) -> None:
    if invoice_id is None:
        return
    inv = must_get_invoice(db, invoice_id)
    if inv.resident_id != resident_id:
        raise HTTPException(status_code=409, detail="invoice belongs to another resident")


@router.get("", response_model=list[PaymentOut])
def list_payments(
    resident_id: int | None = Query(default=None),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(Payment)
    if resident_id is not None:
        q = q.where(Payment.resident_id == resident_id)
    q = q.order_by(desc(Payment.date_paid), desc(Payment.id)).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.post("", response_model=PaymentOut, status_code=201)
def create_payment(payload: PaymentCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    must_get_resident(db, payload.resident_id)
    _check_invoice(db, payload.invoice_id, payload.resident_id)

    row = Payment(**payload.model_dump())
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="payment.create", entity_type="Payment", entity_id=row.id, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(payment_id: int, db: Session = Depends(get_db)):
    return must_get_payment(db, payment_id)


@router.patch("/{payment_id}", response_model=PaymentOut)
def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    row = must_get_payment(db, payment_id)
    data = payload.model_dump(exclude_unset=True)
    if "invoice_id" in data:
        _check_invoice(db, data["invoice_id"], row.resident_id)

    before = row_dict(row)
    for k, v in data.items():
        setattr(row, k, v)

    db.flush()
    audit_write(db, actor=actor.label, action="payment.update", entity_type="Payment", entity_id=row.id, before=before, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{payment_id}", status_code=204)
def delete_payment(payment_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_payment(db, payment_id)
    audit_write(db, actor=actor.label, action="payment.delete", entity_type="Payment", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
