# backend/residence/routers/messages.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write, row_dict
from ..models import Message
from ..schemas import MessageCreate, MessageOut, RecipientType
from ..services.ownership import must_get_house, must_get_message, must_get_resident

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=list[MessageOut])
def list_messages(
    recipient_type: RecipientType | None = Query(default=None),
    recipient_id: int | None = Query(default=None),
    unread: bool = Query(default=False),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(Message)
    if recipient_type is not None:
        q = q.where(Message.recipient_type == recipient_type)
    if recipient_id is not None:
        q = q.where(Message.recipient_id == recipient_id)
    if unread:
        q = q.where(Message.is_read.is_(False))
    q = q.order_by(desc(Message.sent_at), desc(Message.id)).offset(offset).limit(limit)
    return list(db.scalars(q).all())


@router.post("", response_model=MessageOut, status_code=201)
def create_message(payload: MessageCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    # recipient_id points at a resident or a house depending on recipient_type
    if payload.recipient_type == "all":
        if payload.recipient_id is not None:
            raise HTTPException(status_code=422, detail="recipient_id must be empty when recipient_type is 'all'")
    elif payload.recipient_id is None:
        raise HTTPException(status_code=422, detail=f"recipient_id is required for recipient_type '{payload.recipient_type}'")
    elif payload.recipient_type == "individual":
        must_get_resident(db, payload.recipient_id)
    else:
        must_get_house(db, payload.recipient_id)

    data = payload.model_dump()
    if data.get("sent_at") is None:
        data["sent_at"] = datetime.utcnow()

    row = Message(**data)
    db.add(row)
    db.flush()
    audit_write(db, actor=actor.label, action="message.create", entity_type="Message", entity_id=row.id, after=row_dict(row))
    db.commit()
    db.refresh(row)
    return row


@router.get("/{message_id}", response_model=MessageOut)
def get_message(message_id: int, db: Session = Depends(get_db)):
    return must_get_message(db, message_id)


@router.post("/{message_id}/read", response_model=MessageOut)
def mark_message_read(message_id: int, db: Session = Depends(get_db)):
    row = must_get_message(db, message_id)
    if not row.is_read:
        row.is_read = True
        db.commit()
        db.refresh(row)
    return row


@router.delete("/{message_id}", status_code=204)
def delete_message(message_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = must_get_message(db, message_id)
    audit_write(db, actor=actor.label, action="message.delete", entity_type="Message", entity_id=row.id, before=row_dict(row))
    db.delete(row)
    db.commit()
