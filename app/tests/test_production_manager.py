"""Tests for the connector manager façade."""

from __future__ import annotations

from unittest import mock

import pytest

from connectors.base import AuthenticationIdentity
from connectors.errors import (
    ConnectorNotFoundError,
    ConnectorTypeNotFoundError,
    InstantiatorError,
    PersistentStoreError,
    RepositoryError,
    RepositoryLoginError,
)
from manager.instantiator import ConnectorInstantiator
from manager.production import ConnectorStatus, ProductionManager
from models import ConnectorConfigStore

from conftest import FakeAuthenticationManager, FakeAuthorizationManager, FakeConnectorType


class RecordingScheduler:
    def __init__(self, calls: list[tuple[str, str]]) -> None:
        self.calls = calls

    def remove_connector(self, name: str) -> None:
        self.calls.append(("scheduler.remove_connector", name))


class StubInstantiator:
    """Instantiator double that records calls and raises on demand."""

    def __init__(self, calls: list[tuple[str, str]]) -> None:
        self.calls = calls
        self.error: Exception | None = None
        self.authn = None
        self.authz = None
        self.connectors = {"alpha": "fake", "beta": "fake"}
        self.schedules = {"alpha": "alpha:1:0:0-24"}
        self.type_names = ["zeta", "fake", "alpha", "fake"]

    def _maybe_fail(self, call: str, name: str) -> None:
        self.calls.append((call, name))
        if self.error is not None:
            raise self.error

    def get_authentication_manager(self, name):
        self._maybe_fail("get_authentication_manager", name)
        return self.authn

    def get_authorization_manager(self, name):
        self._maybe_fail("get_authorization_manager", name)
        return self.authz

    def get_connector_type_name(self, name):
        if name not in self.connectors:
            raise ConnectorNotFoundError(name)
        return self.connectors[name]

    def get_connector_schedule(self, name):
        if name not in self.connectors:
            raise ConnectorNotFoundError(name)
        return self.schedules.get(name)

    def get_connector_names(self):
        return ["alpha", "ghost", "beta"]

    def get_connector_type_names(self):
        return list(self.type_names)

    def set_connector_schedule(self, name, schedule):
        self._maybe_fail("set_connector_schedule", name)
        self.schedules[name] = schedule

    def remove_connector(self, name):
        self._maybe_fail("instantiator.remove_connector", name)

    def restart_connector_traversal(self, name):
        self._maybe_fail("instantiator.restart_connector_traversal", name)


@pytest.fixture
def calls() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def stub(calls) -> StubInstantiator:
    return StubInstantiator(calls)


@pytest.fixture
def manager(stub, calls) -> ProductionManager:
    return ProductionManager(stub, RecordingScheduler(calls))


def test_authenticate_without_capability_is_invalid(manager):
    assert manager.authenticate("alpha", AuthenticationIdentity(username="alice")) is False


def test_authenticate_delegates_to_connector(manager, stub):
    stub.authn = FakeAuthenticationManager(valid_users=["alice"])
    assert manager.authenticate("alpha", AuthenticationIdentity(username="alice")) is True
    assert manager.authenticate("alpha", AuthenticationIdentity(username="mallory")) is False


@pytest.mark.parametrize(
    "error",
    [ConnectorNotFoundError("alpha"), InstantiatorError("boom"), RepositoryError("down")],
)
def test_authenticate_fails_closed_on_lookup_errors(manager, stub, error, caplog):
    stub.error = error
    with caplog.at_level("WARNING"):
        assert manager.authenticate("alpha", AuthenticationIdentity(username="alice")) is False
    assert caplog.records


@pytest.mark.parametrize("error", [RepositoryLoginError("bad password"), RepositoryError("down")])
def test_authenticate_fails_closed_on_repository_errors(manager, stub, error):
    stub.authn = FakeAuthenticationManager(valid_users=["alice"], error=error)
    assert manager.authenticate("alpha", AuthenticationIdentity(username="alice")) is False


def test_authorize_returns_only_valid_requested_ids(manager, stub):
    stub.authz = FakeAuthorizationManager(allowed=["doc-1", "doc-3", "doc-9"])
    result = manager.authorize_docids("alpha", ["doc-1", "doc-2", "doc-3"], "alice")
    assert result == {"doc-1", "doc-3"}
    assert stub.authz.identities == [AuthenticationIdentity(username="alice")]


def test_authorize_without_capability_is_empty(manager):
    assert manager.authorize_docids("alpha", ["doc-1"], "alice") == set()


@pytest.mark.parametrize(
    "error",
    [ConnectorNotFoundError("alpha"), InstantiatorError("boom"), RepositoryError("down")],
)
def test_authorize_fails_closed(manager, stub, error):
    stub.error = error
    assert manager.authorize_docids("alpha", ["doc-1"], "alice") == set()


def test_authorize_fails_closed_on_connector_errors(manager, stub):
    stub.authz = FakeAuthorizationManager(allowed=["doc-1"], error=RepositoryError("down"))
    assert manager.authorize_docids("alpha", ["doc-1"], "alice") == set()


def test_connector_status_for_known_connector(manager):
    assert manager.get_connector_status("alpha") == ConnectorStatus(
        name="alpha", type="fake", status=0, schedule="alpha:1:0:0-24"
    )


def test_connector_status_for_unknown_connector_is_invalid_argument(manager):
    with pytest.raises(ValueError):
        manager.get_connector_status("ghost")


def test_connector_statuses_follow_registry_order_and_skip_vanished(manager):
    statuses = manager.get_connector_statuses()
    assert [status.name for status in statuses] == ["alpha", "beta"]
    assert statuses[1].schedule is None


def test_connector_type_names_are_sorted_and_unique(manager):
    assert manager.get_connector_type_names() == ["alpha", "fake", "zeta"]


def test_set_schedule_persists_canonical_string(manager, stub):
    schedule = manager.set_schedule("alpha", 100, 5000, "1-3:20-22")
    assert schedule.format() == "alpha:100:5000:1-3:20-22"
    assert stub.schedules["alpha"] == "alpha:100:5000:1-3:20-22"


def test_set_schedule_rejects_invalid_fields_before_persisting(manager, calls):
    with pytest.raises(ValueError):
        manager.set_schedule("alpha", 0, 5000, "0-24")
    assert calls == []


@pytest.mark.parametrize("error", [ConnectorNotFoundError("alpha"), PersistentStoreError("disk")])
def test_set_schedule_propagates_failures(manager, stub, error):
    stub.error = error
    with pytest.raises(type(error)):
        manager.set_schedule("alpha", 1, 0, "0-24")


def test_remove_connector_drops_from_instantiator_then_scheduler(manager, calls):
    manager.remove_connector("alpha")
    assert calls == [
        ("instantiator.remove_connector", "alpha"),
        ("scheduler.remove_connector", "alpha"),
    ]


def test_remove_connector_failure_leaves_scheduler_untouched(manager, stub, calls):
    stub.error = InstantiatorError("locked")
    with pytest.raises(InstantiatorError):
        manager.remove_connector("alpha")
    assert ("scheduler.remove_connector", "alpha") not in calls


def test_restart_drops_from_scheduler_first(manager, calls):
    manager.restart_connector_traversal("alpha")
    assert calls == [
        ("scheduler.remove_connector", "alpha"),
        ("instantiator.restart_connector_traversal", "alpha"),
    ]


def test_set_manager_config_without_store_fails(manager):
    with pytest.raises(PersistentStoreError):
        manager.set_connector_manager_config("gsa.example", 19900)


def test_lifecycle_against_real_stores(context, connector_type):
    manager = context.manager

    assert manager.set_connector_config("alpha", "fake", {"url": "http://repo"}, "en", False) is None
    assert manager.get_connector_config("alpha") == {"url": "http://repo"}

    manager.set_schedule("alpha", 10, 0, "0-24")
    assert manager.get_connector_status("alpha").schedule == "alpha:10:0:0-24"

    identity = AuthenticationIdentity(username="alice")
    assert manager.authenticate("alpha", identity) is True
    assert manager.authorize_docids("alpha", ["doc-1", "doc-2"], "alice") == {"doc-1"}

    form = manager.get_config_form_for_connector("alpha", "pt-br")
    assert form.config_data == {"url": "http://repo"}
    assert "pt_BR" in (form.form_snippet or "")

    context.scheduler.sync()
    assert context.scheduler.tracked_connectors() == ["alpha"]

    manager.remove_connector("alpha")
    assert context.scheduler.tracked_connectors() == []
    with pytest.raises(ConnectorNotFoundError):
        manager.get_connector_config("alpha")
    assert manager.authenticate("alpha", identity) is False


def test_invalid_config_returns_form_with_message(context):
    response = context.manager.set_connector_config("alpha", "fake", {}, None, False)
    assert response is not None
    assert response.message == "Missing url"
    assert context.manager.get_connector_statuses() == []


def test_unknown_type_form_raises(context):
    with pytest.raises(ConnectorTypeNotFoundError):
        context.manager.get_config_form("nope", "en")
    assert context.manager.get_config_form("fake", "fr").form_snippet == "<form lang='fr'></form>"


def test_set_manager_config_persists(context, settings):
    config = context.manager.set_connector_manager_config("gsa.example", 19900)
    assert config.port == 19900
    assert settings.manager_config_path.exists()


def test_config_store_outage_fails_closed(context, types, session_factory, schedule_store, state_store):
    context.manager.set_connector_config("alpha", "fake", {"url": "http://repo"}, "en", False)
    config_store = ConnectorConfigStore(session_factory)
    manager = ProductionManager(
        ConnectorInstantiator(types, config_store, schedule_store, state_store), RecordingScheduler([])
    )

    with mock.patch.object(config_store, "get", side_effect=PersistentStoreError("db down")):
        assert manager.authenticate("alpha", AuthenticationIdentity(username="alice")) is False
        assert manager.authorize_docids("alpha", ["doc-1"], "alice") == set()


def test_statuses_do_not_require_a_working_connector(
    context, types, session_factory, schedule_store, state_store
):
    flaky = FakeConnectorType(name="flaky", required=())
    types.register(flaky)
    context.manager.set_connector_config("alpha", "fake", {"url": "http://repo"}, "en", False)
    context.manager.set_connector_config("beta", "flaky", {}, "en", False)
    context.manager.set_schedule("beta", 5, 0, "0-24")
    flaky.fail_make = True

    manager = ProductionManager(
        ConnectorInstantiator(types, ConnectorConfigStore(session_factory), schedule_store, state_store),
        RecordingScheduler([]),
    )

    assert manager.get_connector_statuses() == [
        ConnectorStatus(name="alpha", type="fake", schedule=None),
        ConnectorStatus(name="beta", type="flaky", schedule="beta:5:0:0-24"),
    ]
    assert manager.get_connector_status("beta").type == "flaky"
    assert manager.get_connector_config("beta") == {}
    assert manager.authenticate("beta", AuthenticationIdentity(username="alice")) is False
