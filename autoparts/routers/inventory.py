from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.parts import (
    adjust_quantity,
    create_part,
    delete_part,
    list_low_stock,
    list_parts,
    require_part,
    search_parts,
    update_part,
)
from ..db.session import get_db
from ..deps.auth import AuthContext, require_api_or_jwt
from ..deps.feed import get_change_feed
from ..schemas.part import PartCreate, PartOut, PartRemoval, PartUpdate, StockAdjustment
from ..services.changes import ChangeFeed

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"], dependencies=[Depends(require_api_or_jwt)])


@router.get("", response_model=list[PartOut])
def api_list_parts(limit: int = 100, offset: int = 0, include_retired: bool = False, db: Session = Depends(get_db)):
    return list_parts(db, limit=limit, offset=offset, include_retired=include_retired)


@router.get("/search/{query}", response_model=list[PartOut])
def api_search_parts(query: str, db: Session = Depends(get_db)):
    return search_parts(db, query)


@router.get("/low-stock/items", response_model=list[PartOut])
def api_low_stock(db: Session = Depends(get_db)):
    return list_low_stock(db)


@router.get("/{part_id}", response_model=PartOut)
def api_get_part(part_id: int, db: Session = Depends(get_db)):
    return require_part(db, part_id)


@router.post("", response_model=PartOut, status_code=201)
def api_create_part(
    payload: PartCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_api_or_jwt),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return create_part(db, payload.model_dump(), actor=auth.subject, feed=feed)


@router.put("/{part_id}", response_model=PartOut)
def api_update_part(
    part_id: int,
    payload: PartUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_api_or_jwt),
    feed: ChangeFeed = Depends(get_change_feed),
):
    part = require_part(db, part_id)
    return update_part(db, part, payload.model_dump(exclude_none=True), actor=auth.subject, feed=feed)


@router.delete("/{part_id}", response_model=PartRemoval)
def api_delete_part(part_id: int, db: Session = Depends(get_db), feed: ChangeFeed = Depends(get_change_feed)):
    part = require_part(db, part_id)
    return PartRemoval(status=delete_part(db, part, feed=feed), part_id=part_id)


@router.post("/{part_id}/adjust", response_model=PartOut, status_code=201)
def api_adjust_stock(
    part_id: int,
    payload: StockAdjustment,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_api_or_jwt),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return adjust_quantity(
        db,
        part_id,
        payload.delta,
        reason=payload.reason,
        note=payload.note,
        actor=auth.subject,
        clamp=payload.clamp,
        feed=feed,
    )
