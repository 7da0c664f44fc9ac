"""Connector management endpoints."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from api.deps.manager import get_manager
from connectors.base import AuthenticationIdentity, ConfigureResponse
from connectors.errors import (
    ConnectorExistsError,
    ConnectorNotFoundError,
    ConnectorTypeNotFoundError,
    InstantiatorError,
    PersistentStoreError,
)
from manager.production import ConnectorStatus, ProductionManager


router = APIRouter(prefix="/api", tags=["connectors"])


class ConnectorConfigPayload(BaseModel):
    name: str
    type: str
    config: dict[str, str] = Field(default_factory=dict)
    language: str | None = None


class ConnectorUpdatePayload(BaseModel):
    type: str
    config: dict[str, str] = Field(default_factory=dict)
    language: str | None = None


class SchedulePayload(BaseModel):
    load: int
    retry_delay_millis: int
    time_intervals: str


class AuthorizePayload(BaseModel):
    username: str
    docids: list[str]


@contextmanager
def _manager_errors() -> Iterator[None]:
    try:
        yield
    except (ConnectorNotFoundError, ConnectorTypeNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Not found: {exc}") from exc
    except ConnectorExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (InstantiatorError, PersistentStoreError) as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def _apply_config(
    manager: ProductionManager,
    name: str,
    type_name: str,
    config: dict[str, str],
    language: str | None,
    update: bool,
) -> dict[str, Any]:
    with _manager_errors():
        response = manager.set_connector_config(name, type_name, config, language, update)
    if response is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=response.model_dump())
    return manager.get_connector_status(name).model_dump()


@router.get("/connector-types")
def list_connector_types(manager: ProductionManager = Depends(get_manager)) -> list[str]:
    return manager.get_connector_type_names()


@router.get("/connector-types/{type_name}/form")
def get_config_form(
    type_name: str,
    language: str | None = Query(None),
    manager: ProductionManager = Depends(get_manager),
) -> ConfigureResponse:
    with _manager_errors():
        return manager.get_config_form(type_name, language)


@router.get("/connectors")
def list_connectors(manager: ProductionManager = Depends(get_manager)) -> list[ConnectorStatus]:
    return manager.get_connector_statuses()


@router.post("/connectors", status_code=status.HTTP_201_CREATED)
def create_connector(
    payload: ConnectorConfigPayload, manager: ProductionManager = Depends(get_manager)
) -> dict[str, Any]:
    return _apply_config(manager, payload.name, payload.type, payload.config, payload.language, update=False)


@router.get("/connectors/{name}")
def get_connector(name: str, manager: ProductionManager = Depends(get_manager)) -> ConnectorStatus:
    try:
        return manager.get_connector_status(name)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connector not found") from exc


@router.put("/connectors/{name}")
def update_connector(
    name: str, payload: ConnectorUpdatePayload, manager: ProductionManager = Depends(get_manager)
) -> dict[str, Any]:
    return _apply_config(manager, name, payload.type, payload.config, payload.language, update=True)


@router.delete("/connectors/{name}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_connector(name: str, manager: ProductionManager = Depends(get_manager)) -> Response:
    with _manager_errors():
        manager.remove_connector(name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/connectors/{name}/config")
def get_connector_config(name: str, manager: ProductionManager = Depends(get_manager)) -> dict[str, str]:
    with _manager_errors():
        return manager.get_connector_config(name)


@router.get("/connectors/{name}/form")
def get_connector_form(
    name: str,
    language: str | None = Query(None),
    manager: ProductionManager = Depends(get_manager),
) -> ConfigureResponse:
    with _manager_errors():
        return manager.get_config_form_for_connector(name, language)


@router.put("/connectors/{name}/schedule")
def set_schedule(
    name: str, payload: SchedulePayload, manager: ProductionManager = Depends(get_manager)
) -> dict[str, str]:
    with _manager_errors():
        schedule = manager.set_schedule(name, payload.load, payload.retry_delay_millis, payload.time_intervals)
    return {"schedule": schedule.format()}


@router.post("/connectors/{name}/restart", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def restart_traversal(name: str, manager: ProductionManager = Depends(get_manager)) -> Response:
    with _manager_errors():
        manager.restart_connector_traversal(name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/connectors/{name}/authenticate")
def authenticate(
    name: str, identity: AuthenticationIdentity, manager: ProductionManager = Depends(get_manager)
) -> dict[str, bool]:
    return {"valid": manager.authenticate(name, identity)}


@router.post("/connectors/{name}/authorize")
def authorize(
    name: str, payload: AuthorizePayload, manager: ProductionManager = Depends(get_manager)
) -> dict[str, list[str]]:
    return {"authorized": sorted(manager.authorize_docids(name, payload.docids, payload.username))}
