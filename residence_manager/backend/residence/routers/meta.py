# backend/residence/routers/meta.py
from __future__ import annotations

from fastapi import APIRouter

from ..config import settings

router = APIRouter(tags=["meta"])


@router.get("/health", response_model=dict)
def health():
    return {"status": "ok"}


@router.get("/meta/version", response_model=dict)
def version():
    return {"name": "residence-manager", "version": settings.app_version, "env": settings.app_env}
