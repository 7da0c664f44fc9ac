"""Pytest fixtures."""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from typing import Mapping, Sequence  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from connectors.base import (  # noqa: E402
    AuthenticationIdentity,
    AuthenticationResponse,
    AuthorizationResponse,
    ConfigureResponse,
    Connector,
    ConnectorTypeRegistry,
    TraversalBatch,
)
from connectors.utils import Locale  # noqa: E402
from manager.config import Settings  # noqa: E402
from manager.context import build_context  # noqa: E402
from manager.instantiator import ConnectorInstantiator  # noqa: E402
from models import Base, ConnectorConfigStore, ScheduleStore, StateStore  # noqa: E402
from workers.scheduler import TraversalScheduler  # noqa: E402


class FakeAuthenticationManager:
    def __init__(self, valid_users: Sequence[str] = (), error: Exception | None = None) -> None:
        self.valid_users = set(valid_users)
        self.error = error

    def authenticate(self, identity: AuthenticationIdentity) -> AuthenticationResponse:
        if self.error is not None:
            raise self.error
        return AuthenticationResponse(valid=identity.username in self.valid_users)


class FakeAuthorizationManager:
    def __init__(self, allowed: Sequence[str] = (), error: Exception | None = None) -> None:
        self.allowed = set(allowed)
        self.error = error
        self.identities: list[AuthenticationIdentity] = []

    def authorize_docids(
        self, docids: Sequence[str], identity: AuthenticationIdentity
    ) -> list[AuthorizationResponse]:
        self.identities.append(identity)
        if self.error is not None:
            raise self.error
        return [AuthorizationResponse(docid=docid, valid=docid in self.allowed) for docid in docids]


class FakeTraversalManager:
    def __init__(self, batches: Sequence[TraversalBatch] = ()) -> None:
        self.batches = list(batches)
        self.calls: list[tuple[str | None, int]] = []

    def resume_traversal(self, checkpoint: str | None, batch_hint: int) -> TraversalBatch:
        self.calls.append((checkpoint, batch_hint))
        return self.batches.pop(0) if self.batches else TraversalBatch()


class FakeConnector(Connector):
    def __init__(self, config: Mapping[str, str], connector_type: "FakeConnectorType") -> None:
        self.config = dict(config)
        self._type = connector_type

    def authentication_manager(self):
        return self._type.authn

    def authorization_manager(self):
        return self._type.authz

    def traversal_manager(self):
        return self._type.traverser


class FakeConnectorType:
    def __init__(
        self,
        name: str = "fake",
        required: Sequence[str] = ("url",),
        authn: FakeAuthenticationManager | None = None,
        authz: FakeAuthorizationManager | None = None,
        traverser: FakeTraversalManager | None = None,
        fail_make: bool = False,
    ) -> None:
        self.name = name
        self.required = tuple(required)
        self.authn = authn
        self.authz = authz
        self.traverser = traverser
        self.fail_make = fail_make
        self.made: list[FakeConnector] = []

    def get_config_form(self, locale: Locale) -> ConfigureResponse:
        return ConfigureResponse(form_snippet=f"<form lang='{locale}'></form>")

    def get_populated_config_form(self, config: Mapping[str, str], locale: Locale) -> ConfigureResponse:
        return ConfigureResponse(form_snippet=f"<form lang='{locale}'></form>", config_data=dict(config))

    def validate_config(self, config: Mapping[str, str], locale: Locale) -> ConfigureResponse | None:
        missing = [key for key in self.required if not config.get(key)]
        if missing:
            return ConfigureResponse(message=f"Missing {', '.join(missing)}", form_snippet="<form></form>")
        return None

    def make_connector(self, config: Mapping[str, str]) -> FakeConnector:
        if self.fail_make:
            raise RuntimeError("cannot connect")
        connector = FakeConnector(config, self)
        self.made.append(connector)
        return connector


class FakeRedisClient:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool:  # noqa: ARG002
        if nx and key in self.store:
            return False
        self.store[key] = value
        return True

    def delete(self, key: str) -> None:
        self.store.pop(key, None)


class FakeQueue:
    def __init__(self) -> None:
        self.jobs: list[tuple[str, tuple, dict]] = []
        self.removed: list[str] = []

    def enqueue(self, func: str, *args, **kwargs) -> None:
        self.jobs.append((func, args, kwargs))

    def remove(self, job_or_id: str) -> int:
        self.removed.append(job_or_id)
        remaining = [job for job in self.jobs if job[2].get("job_id") != job_or_id]
        count = len(self.jobs) - len(remaining)
        self.jobs = remaining
        return count


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionTesting = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    yield SessionTesting

    Base.metadata.drop_all(engine)


@pytest.fixture
def connector_type() -> FakeConnectorType:
    return FakeConnectorType(
        authn=FakeAuthenticationManager(valid_users=["alice"]),
        authz=FakeAuthorizationManager(allowed=["doc-1", "doc-3"]),
        traverser=FakeTraversalManager(),
    )


@pytest.fixture
def types(connector_type) -> ConnectorTypeRegistry:
    registry = ConnectorTypeRegistry()
    registry.register(connector_type)
    registry.register(FakeConnectorType(name="bare", required=()))
    return registry


@pytest.fixture
def schedule_store(session_factory) -> ScheduleStore:
    return ScheduleStore(session_factory)


@pytest.fixture
def state_store(session_factory) -> StateStore:
    return StateStore(session_factory)


@pytest.fixture
def instantiator(types, session_factory, schedule_store, state_store) -> ConnectorInstantiator:
    return ConnectorInstantiator(types, ConnectorConfigStore(session_factory), schedule_store, state_store)


@pytest.fixture
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def scheduler(schedule_store, fake_redis, fake_queue) -> TraversalScheduler:
    return TraversalScheduler(schedule_store, fake_redis, fake_queue, lock_ttl=60)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite+pysqlite:///:memory:",
        redis_url="redis://test",
        content_url_prefix="http://cm.example:8080/connector-manager/getDocumentContent",
        manager_config_path=tmp_path / "manager.json",
    )


@pytest.fixture
def context(settings, session_factory, scheduler, types):
    return build_context(settings, session_factory, scheduler=scheduler, types=types)
