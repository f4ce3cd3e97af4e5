from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.config import settings
from ..db.session import get_db
from ..deps.auth import require_api_or_jwt
from ..schemas.sync import MirrorSnapshot, SnapshotWritten
from ..services.snapshot import build_snapshot, write_snapshot

router = APIRouter(prefix="/api/v1/sync", tags=["sync"], dependencies=[Depends(require_api_or_jwt)])


@router.get("/snapshot", response_model=MirrorSnapshot)
def api_get_snapshot(db: Session = Depends(get_db)):
    return build_snapshot(db)


@router.post("/snapshot", response_model=SnapshotWritten, status_code=201)
def api_write_snapshot(db: Session = Depends(get_db)):
    counts = write_snapshot(build_snapshot(db))
    return SnapshotWritten(directory=str(settings.mirror_dir), counts=counts)
