"""Health check endpoint."""

from fastapi import APIRouter, Depends

from api.deps.manager import get_manager_context
from manager.context import ManagerContext


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def healthcheck(context: ManagerContext = Depends(get_manager_context)) -> dict[str, object]:
    return {"status": "ok", "scheduled": context.scheduler.tracked_connectors()}
