"""Connector manager façade used by the management API and the feed pipeline."""

from __future__ import annotations

import logging
from typing import Mapping, Protocol, Sequence

from pydantic import BaseModel

from connectors.base import (
    AuthenticationIdentity,
    AuthenticationManager,
    AuthorizationManager,
    ConfigureResponse,
    ConnectorType,
)
from connectors.errors import (
    ConnectorNotFoundError,
    InstantiatorError,
    PersistentStoreError,
    RepositoryError,
    RepositoryLoginError,
)
from connectors.utils import Locale, locale_from_language
from manager.config import FeederGateConfig, ManagerConfigStore
from manager.schedule import Schedule


logger = logging.getLogger(__name__)


class ConnectorStatus(BaseModel):
    name: str
    type: str
    status: int = 0
    schedule: str | None = None


class Instantiator(Protocol):
    def get_authentication_manager(self, name: str) -> AuthenticationManager | None: ...

    def get_authorization_manager(self, name: str) -> AuthorizationManager | None: ...

    def get_connector_type(self, type_name: str) -> ConnectorType: ...

    def get_connector_type_name(self, name: str) -> str: ...

    def get_connector_schedule(self, name: str) -> str | None: ...

    def set_connector_schedule(self, name: str, schedule: str) -> None: ...

    def get_connector_names(self) -> Sequence[str]: ...

    def get_connector_type_names(self) -> Sequence[str]: ...

    def get_connector_config(self, name: str) -> Mapping[str, str]: ...

    def get_config_form_for_connector(
        self, name: str, type_name: str, locale: Locale
    ) -> ConfigureResponse: ...

    def set_connector_config(
        self,
        name: str,
        type_name: str,
        config: Mapping[str, str],
        locale: Locale,
        update: bool,
    ) -> ConfigureResponse | None: ...

    def remove_connector(self, name: str) -> None: ...

    def restart_connector_traversal(self, name: str) -> None: ...


class Scheduler(Protocol):
    def remove_connector(self, name: str) -> None: ...


class ProductionManager:
    """Keeps the instantiator, its stores and the scheduler consistent.

    There is no lock here; each collaborator synchronises itself. Restarts
    drop the connector from the scheduler before its state is reset, while
    removals only reach the scheduler once the instantiator has let go.
    """

    def __init__(
        self,
        instantiator: Instantiator,
        scheduler: Scheduler,
        config_store: ManagerConfigStore | None = None,
    ) -> None:
        self.instantiator = instantiator
        self.scheduler = scheduler
        self.config_store = config_store

    def authenticate(self, connector_name: str, identity: AuthenticationIdentity) -> bool:
        try:
            authn_manager = self.instantiator.get_authentication_manager(connector_name)
            # Connectors without authentication never validate anyone.
            if authn_manager is None:
                return False
            return bool(authn_manager.authenticate(identity).valid)
        except ConnectorNotFoundError:
            logger.warning("Connector %s not found", connector_name, exc_info=True)
        except InstantiatorError:
            logger.warning("Instantiator failure for connector %s", connector_name, exc_info=True)
        except RepositoryLoginError:
            logger.warning("Login failure for connector %s", connector_name, exc_info=True)
        except RepositoryError:
            logger.warning("Repository failure for connector %s", connector_name, exc_info=True)
        return False

    def authorize_docids(self, connector_name: str, docids: Sequence[str], username: str) -> set[str]:
        requested = set(docids)
        try:
            authz_manager = self.instantiator.get_authorization_manager(connector_name)
            if authz_manager is None:
                logger.warning("Connector %s does not support authorization", connector_name)
                return set()
            identity = AuthenticationIdentity(username=username)
            responses = authz_manager.authorize_docids(list(docids), identity)
            return {
                response.docid
                for response in responses
                if response.valid and response.docid in requested
            }
        except ConnectorNotFoundError:
            logger.warning("Connector %s not found", connector_name, exc_info=True)
        except InstantiatorError:
            logger.warning("Instantiator failure for connector %s", connector_name, exc_info=True)
        except RepositoryError:
            logger.warning("Repository failure for connector %s", connector_name, exc_info=True)
        return set()

    def get_config_form(self, connector_type_name: str, language: str | None) -> ConfigureResponse:
        connector_type = self.instantiator.get_connector_type(connector_type_name)
        return connector_type.get_config_form(locale_from_language(language))

    def get_config_form_for_connector(self, connector_name: str, language: str | None) -> ConfigureResponse:
        type_name = self.instantiator.get_connector_type_name(connector_name)
        locale = locale_from_language(language)
        return self.instantiator.get_config_form_for_connector(connector_name, type_name, locale)

    def get_connector_status(self, connector_name: str) -> ConnectorStatus:
        status = self._lookup_status(connector_name)
        if status is None:
            raise ValueError(f"Unknown connector {connector_name!r}")
        return status

    def get_connector_statuses(self) -> list[ConnectorStatus]:
        statuses = []
        for name in self.instantiator.get_connector_names():
            status = self._lookup_status(name)
            if status is not None:
                statuses.append(status)
        return statuses

    def get_connector_type_names(self) -> list[str]:
        return sorted(set(self.instantiator.get_connector_type_names()))

    def get_connector_type(self, type_name: str) -> ConnectorType:
        return self.instantiator.get_connector_type(type_name)

    def set_connector_config(
        self,
        connector_name: str,
        connector_type_name: str,
        config_data: Mapping[str, str],
        language: str | None,
        update: bool,
    ) -> ConfigureResponse | None:
        return self.instantiator.set_connector_config(
            connector_name,
            connector_type_name,
            config_data,
            locale_from_language(language),
            update,
        )

    def set_connector_manager_config(self, feeder_gate_host: str, feeder_gate_port: int) -> FeederGateConfig:
        if self.config_store is None:
            raise PersistentStoreError("No manager configuration store is configured")
        return self.config_store.store(feeder_gate_host, feeder_gate_port)

    def set_schedule(
        self, connector_name: str, load: int, retry_delay_millis: int, time_intervals: str
    ) -> Schedule:
        schedule = Schedule(connector_name, load, retry_delay_millis, time_intervals)
        self.instantiator.set_connector_schedule(connector_name, schedule.format())
        return schedule

    def remove_connector(self, connector_name: str) -> None:
        self.instantiator.remove_connector(connector_name)
        self.scheduler.remove_connector(connector_name)

    def restart_connector_traversal(self, connector_name: str) -> None:
        self.scheduler.remove_connector(connector_name)
        self.instantiator.restart_connector_traversal(connector_name)
        logger.info("Restarted traversal for connector %s", connector_name)

    def get_connector_config(self, connector_name: str) -> dict[str, str]:
        return dict(self.instantiator.get_connector_config(connector_name))

    def _lookup_status(self, connector_name: str) -> ConnectorStatus | None:
        try:
            type_name = self.instantiator.get_connector_type_name(connector_name)
            schedule = self.instantiator.get_connector_schedule(connector_name)
        except ConnectorNotFoundError:
            logger.warning("Connector %s not found", connector_name)
            return None
        return ConnectorStatus(name=connector_name, type=type_name, status=0, schedule=schedule)
