# backend/residence/routers/occupancy.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import IntegrityReportOut
from ..services.integrity import integrity_report

router = APIRouter(prefix="/occupancy", tags=["occupancy"])


@router.get("/integrity", response_model=IntegrityReportOut)
def occupancy_integrity(db: Session = Depends(get_db)):
    return integrity_report(db)
