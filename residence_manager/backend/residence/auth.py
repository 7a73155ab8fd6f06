# backend/residence/auth.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

ACTOR_HEADER = "X-User-Email"


@dataclass(frozen=True)
class Actor:
    """
    Who is making the change. Staff identity is asserted by the front end
    through a header; it is recorded on audit events and log lines only.
    """

    email: Optional[str] = None

    @property
    def label(self) -> str:
        return self.email or "anonymous"


def get_actor(x_user_email: Optional[str] = Header(default=None, alias=ACTOR_HEADER)) -> Actor:
    email = (x_user_email or "").strip().lower() or None
    return Actor(email=email)
