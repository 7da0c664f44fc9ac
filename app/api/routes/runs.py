"""Traversal run endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps.db import get_db
from models import Run


router = APIRouter(prefix="/api/runs", tags=["runs"])


@router.get("/")
def list_runs(connector: str | None = Query(None), db: Session = Depends(get_db)) -> list[dict]:
    query = db.query(Run)
    if connector:
        query = query.filter(Run.connector == connector)
    runs = query.order_by(Run.started_at.desc()).limit(50).all()
    return [
        {
            "id": run.id,
            "connector": run.connector,
            "status": run.status,
            "started_at": run.started_at,
            "finished_at": run.finished_at,
            "item_count": run.item_count,
            "error_log": run.error_log,
        }
        for run in runs
    ]
