from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from purchasing.app.core.identity import Actor, require_admin
from purchasing.app.db.models.core_types import Role
from purchasing.app.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def current_actor(
    user_id: int | None = Header(default=None, alias="X-User-Id"),
    role: str | None = Header(default=None, alias="X-User-Role"),
) -> Actor:
    """Identity is resolved upstream; we only read what the gateway forwards."""
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        parsed = Role((role or Role.field.value).lower())
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown role")
    return Actor(user_id=user_id, role=parsed)


def admin_actor(actor: Actor = Depends(current_actor)) -> Actor:
    return require_admin(actor)
