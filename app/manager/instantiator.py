"""Registry of live connector instances backed by the persistent stores."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Mapping

from connectors.base import (
    AuthenticationManager,
    AuthorizationManager,
    ConfigureResponse,
    Connector,
    ConnectorType,
    ConnectorTypeRegistry,
    TraversalManager,
)
from connectors.errors import (
    ConnectorExistsError,
    ConnectorNotFoundError,
    ConnectorTypeNotFoundError,
    InstantiatorError,
    PersistentStoreError,
)
from connectors.utils import Locale
from models.stores import (
    ConnectorConfigStore,
    ConnectorRecord,
    ScheduleStore,
    StateStore,
    TraversalSnapshot,
)


logger = logging.getLogger(__name__)


@dataclass
class ConnectorInstanceInfo:
    name: str
    type_name: str
    config: dict[str, str]
    connector: Connector


class ConnectorInstantiator:
    """Creates, caches and removes connector instances.

    Instances are rebuilt lazily from the configuration store, so a fresh
    process picks up every connector persisted by a previous one. Lookups
    that only need the stored record (type name, configuration, schedule)
    never build the connector.
    """

    def __init__(
        self,
        types: ConnectorTypeRegistry,
        config_store: ConnectorConfigStore,
        schedule_store: ScheduleStore,
        state_store: StateStore,
    ) -> None:
        self._types = types
        self._config_store = config_store
        self._schedule_store = schedule_store
        self._state_store = state_store
        self._instances: dict[str, ConnectorInstanceInfo] = {}
        self._lock = threading.RLock()

    def get_connector_type(self, type_name: str) -> ConnectorType:
        try:
            return self._types.get(type_name)
        except KeyError:
            raise ConnectorTypeNotFoundError(type_name) from None

    def get_connector_type_names(self) -> list[str]:
        return self._types.names()

    def get_connector_names(self) -> list[str]:
        return self._config_store.names()

    def has_connector(self, name: str) -> bool:
        with self._lock:
            return name in self._instances or self._read_record(name) is not None

    def get_connector_type_name(self, name: str) -> str:
        return self._record(name).type_name

    def get_connector_config(self, name: str) -> dict[str, str]:
        return dict(self._record(name).config)

    def get_authentication_manager(self, name: str) -> AuthenticationManager | None:
        return self._instance(name).connector.authentication_manager()

    def get_authorization_manager(self, name: str) -> AuthorizationManager | None:
        return self._instance(name).connector.authorization_manager()

    def get_traverser(self, name: str) -> TraversalManager | None:
        return self._instance(name).connector.traversal_manager()

    def get_connector_schedule(self, name: str) -> str | None:
        self._record(name)
        return self._schedule_store.get_schedule(name)

    def set_connector_schedule(self, name: str, schedule: str) -> None:
        self._record(name)
        self._schedule_store.store_schedule(name, schedule)
        logger.info("Schedule for connector %s set to %s", name, schedule)

    def get_connector_state(self, name: str) -> str | None:
        return self._state_store.get_state(name)

    def set_connector_state(self, name: str, checkpoint: str | None) -> None:
        self._state_store.store_state(name, checkpoint)

    def get_traversal_snapshot(self, name: str) -> TraversalSnapshot:
        return self._state_store.get_snapshot(name)

    def store_traversal_checkpoint(self, name: str, checkpoint: str | None, generation: int) -> bool:
        """Persist a batch checkpoint unless a restart happened since ``generation``."""
        return self._state_store.store_state_if_current(name, checkpoint, generation)

    def get_config_form_for_connector(
        self, name: str, type_name: str, locale: Locale
    ) -> ConfigureResponse:
        config = self.get_connector_config(name)
        try:
            connector_type = self.get_connector_type(type_name)
        except ConnectorTypeNotFoundError as exc:
            raise InstantiatorError(f"Connector {name} has unknown type {type_name}") from exc
        return connector_type.get_populated_config_form(config, locale)

    def set_connector_config(
        self,
        name: str,
        type_name: str,
        config: Mapping[str, str],
        locale: Locale,
        update: bool,
    ) -> ConfigureResponse | None:
        """Validate and apply a complete configuration for ``name``.

        Returns the connector type's response when validation fails and
        ``None`` once the configuration has been stored and the instance
        (re)built.
        """
        with self._lock:
            existing = self._instances.get(name) or self._read_record(name)
            if update and existing is None:
                raise ConnectorNotFoundError(name)
            if not update and existing is not None:
                raise ConnectorExistsError(f"Connector {name} already exists")
            if existing is not None and existing.type_name != type_name:
                raise InstantiatorError(
                    f"Connector {name} is of type {existing.type_name}, not {type_name}"
                )
            try:
                connector_type = self.get_connector_type(type_name)
            except ConnectorTypeNotFoundError as exc:
                raise InstantiatorError(f"Unknown connector type {type_name}") from exc

            response = connector_type.validate_config(config, locale)
            if response is not None and response.message:
                return response

            info = self._build(name, connector_type, dict(config))
            self._config_store.store(name, type_name, info.config)
            self._instances[name] = info
        logger.info("%s connector %s of type %s", "Updated" if update else "Created", name, type_name)
        return None

    def remove_connector(self, name: str) -> None:
        with self._lock:
            self._instances.pop(name, None)
            try:
                self._config_store.remove(name)
            except PersistentStoreError as exc:
                raise InstantiatorError(f"Failed to remove connector {name}") from exc
        logger.info("Removed connector %s", name)

    def restart_connector_traversal(self, name: str) -> None:
        self._record(name)
        try:
            self._state_store.reset_state(name)
            self._schedule_store.mark_run(name, None, None)
        except PersistentStoreError as exc:
            raise InstantiatorError(f"Failed to reset traversal for {name}") from exc
        logger.info("Reset traversal state for connector %s", name)

    def _lookup(self, name: str) -> ConnectorInstanceInfo | None:
        with self._lock:
            info = self._instances.get(name)
            if info is not None:
                return info
            record = self._read_record(name)
            if record is None:
                return None
            try:
                connector_type = self._types.get(record.type_name)
            except KeyError:
                raise InstantiatorError(
                    f"Connector {name} has unknown type {record.type_name}"
                ) from None
            info = self._build(name, connector_type, record.config)
            self._instances[name] = info
            return info

    def _read_record(self, name: str) -> ConnectorRecord | None:
        try:
            return self._config_store.get(name)
        except PersistentStoreError as exc:
            raise InstantiatorError(f"Unable to read connector {name}") from exc

    def _record(self, name: str) -> ConnectorRecord:
        with self._lock:
            info = self._instances.get(name)
        if info is not None:
            return ConnectorRecord(name=info.name, type_name=info.type_name, config=dict(info.config))
        record = self._read_record(name)
        if record is None:
            raise ConnectorNotFoundError(name)
        return record

    def _instance(self, name: str) -> ConnectorInstanceInfo:
        info = self._lookup(name)
        if info is None:
            raise ConnectorNotFoundError(name)
        return info

    @staticmethod
    def _build(name: str, connector_type: ConnectorType, config: dict[str, str]) -> ConnectorInstanceInfo:
        try:
            connector = connector_type.make_connector(config)
        except Exception as exc:
            raise InstantiatorError(f"Unable to instantiate connector {name}") from exc
        return ConnectorInstanceInfo(
            name=name, type_name=connector_type.name, config=config, connector=connector
        )
