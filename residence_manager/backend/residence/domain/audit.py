# backend/residence/domain/audit.py
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import AuditEvent


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def row_dict(row: Any) -> dict[str, Any]:
    """Column values of an ORM row, JSON-friendly."""
    out: dict[str, Any] = {}
    for col in row.__table__.columns:
        v = getattr(row, col.key, None)
        if isinstance(v, (datetime, date)):
            v = v.isoformat()
        out[col.key] = v
    return out


def audit_write(
    db: Session,
    *,
    actor: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    commit: bool = False,
) -> AuditEvent:
    """
    Preferred audit writer.

    - Does NOT commit by default (so routers/services can bundle writes in one txn).
    - Returns the AuditEvent row for tests / introspection.
    """
    row = AuditEvent(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    return row
