"""Connector manager configuration endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from api.deps.manager import get_manager
from connectors.errors import PersistentStoreError
from manager.production import ProductionManager


router = APIRouter(prefix="/api/manager-config", tags=["config"])


class FeederGatePayload(BaseModel):
    host: str
    port: int = Field(ge=1, le=65535)


@router.put("/")
def set_manager_config(
    payload: FeederGatePayload, manager: ProductionManager = Depends(get_manager)
) -> dict[str, object]:
    try:
        config = manager.set_connector_manager_config(payload.host, payload.port)
    except PersistentStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return {"host": config.host, "port": config.port}
