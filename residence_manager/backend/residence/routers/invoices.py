# backend/residence/routers/invoices.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import Invoice
from ..schemas import InvoiceCreate, InvoiceOut, InvoiceStatus, InvoiceUpdate
from ..services.ownership import must_get_invoice, must_get_resident

router = APIRouter(prefix="/invoices", tags=["billing"])


@router.get("", response_model=list[InvoiceOut])
def list_invoices(
    resident_id: int | None = Query(default=None),
    status: InvoiceStatus | None = Query(default=None),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(Invoice)
    if resident_id is not None:
        q = q.where(Invoice.resident_id == resident_id)
    if status is not None:
        q = q.where(Invoice.status == status)
    q = q.order_by(desc(Invoice.due_date), desc(Invoice.id)).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.post("", response_model=InvoiceOut, status_code=201)
def create_invoice(payload: InvoiceCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    must_get_resident(db, payload.resident_id)

    taken = db.scalar(select(Invoice.id).where(Invoice.invoice_number == payload.invoice_number))
    if taken is not None:
        raise HTTPException(
            status_code=409,
            detail={"error": "duplicate_invoice_number", "invoice_number": payload.invoice_number},
        )

    row = Invoice(**payload.model_dump())
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="invoice.create", entity_type="Invoice", entity_id=row.id, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    return must_get_invoice(db, invoice_id)


@router.patch("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    row = must_get_invoice(db, invoice_id)
    before = row_dict(row)

    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(row, k, v)

    db.flush()
    audit_write(db, actor=actor.label, action="invoice.update", entity_type="Invoice", entity_id=row.id, before=before, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{invoice_id}", status_code=204)
def delete_invoice(invoice_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_invoice(db, invoice_id)
    audit_write(db, actor=actor.label, action="invoice.delete", entity_type="Invoice", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
