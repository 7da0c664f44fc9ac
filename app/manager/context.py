"""Wiring of the stores, instantiator, scheduler and manager for one process."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy.orm import sessionmaker

from connectors.base import ConnectorTypeRegistry, registry
from connectors.http import HttpxClient
from connectors.urls import UrlConstructor
from manager.config import ManagerConfigStore, Settings
from manager.instantiator import ConnectorInstantiator
from manager.production import ProductionManager
from models import SessionLocal
from models.stores import ConnectorConfigStore, ScheduleStore, StateStore
from workers.scheduler import TraversalScheduler, build_scheduler


@dataclass
class ManagerContext:
    settings: Settings
    session_factory: sessionmaker
    schedule_store: ScheduleStore
    instantiator: ConnectorInstantiator
    scheduler: TraversalScheduler
    manager: ProductionManager
    http_client: HttpxClient

    def url_constructor(self, connector_name: str) -> UrlConstructor:
        return UrlConstructor(
            connector_name,
            self.settings.default_feed_type,
            self.settings.content_url_prefix,
        )


def build_context(
    settings: Settings,
    session_factory: sessionmaker,
    scheduler: TraversalScheduler | None = None,
    types: ConnectorTypeRegistry | None = None,
) -> ManagerContext:
    schedule_store = ScheduleStore(session_factory)
    instantiator = ConnectorInstantiator(
        types or registry,
        ConnectorConfigStore(session_factory),
        schedule_store,
        StateStore(session_factory),
    )
    scheduler = scheduler or build_scheduler(schedule_store, settings)
    manager = ProductionManager(
        instantiator,
        scheduler,
        ManagerConfigStore(settings.manager_config_path),
    )
    return ManagerContext(
        settings=settings,
        session_factory=session_factory,
        schedule_store=schedule_store,
        instantiator=instantiator,
        scheduler=scheduler,
        manager=manager,
        http_client=HttpxClient(proxy=settings.http_proxy, timeout=settings.http_timeout),
    )


@lru_cache(maxsize=1)
def get_context() -> ManagerContext:
    return build_context(Settings.from_env(), SessionLocal)
