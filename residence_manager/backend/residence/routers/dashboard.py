# backend/residence/routers/dashboard.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import StatsOut
from ..services.dashboard_rollups import compute_rollup

router = APIRouter(tags=["dashboard"])


@router.get("/stats", response_model=StatsOut)
def stats(db: Session = Depends(get_db)):
    return compute_rollup(db).as_dict()
