from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from purchasing.app.api.deps import current_actor, get_db
from purchasing.app.core.identity import Actor
from purchasing.app.schemas.returns import ReturnRead
from purchasing.services import procurement

router = APIRouter(prefix="/returns")


@router.get("", response_model=list[ReturnRead])
def list_returns(
    order_id: int | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
):
    return procurement.list_returns(db, order_id=order_id)


@router.get("/{return_id}", response_model=ReturnRead)
def get_return(return_id: int, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return procurement.get_return(db, return_id)
