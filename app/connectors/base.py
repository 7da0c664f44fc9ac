"""Connector SPI definitions and the connector type registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from connectors.utils import Locale


class AuthenticationIdentity(BaseModel):
    username: str
    password: str | None = None
    domain: str | None = None


class AuthenticationResponse(BaseModel):
    valid: bool
    data: str | None = None


class AuthorizationResponse(BaseModel):
    docid: str
    valid: bool


class ConfigureResponse(BaseModel):
    """Form descriptor returned by connector types.

    When returned from a configuration update, a non-empty ``message`` means
    the configuration was rejected and ``form_snippet`` carries the form to
    redisplay.
    """

    message: str | None = None
    form_snippet: str | None = None
    config_data: dict[str, str] | None = None


class TraversalBatch(BaseModel):
    documents: list[dict[str, Any]] = Field(default_factory=list)
    checkpoint: str | None = None


class AuthenticationManager(Protocol):
    def authenticate(self, identity: AuthenticationIdentity) -> AuthenticationResponse:
        ...


class AuthorizationManager(Protocol):
    def authorize_docids(
        self, docids: Sequence[str], identity: AuthenticationIdentity
    ) -> Sequence[AuthorizationResponse]:
        ...


class TraversalManager(Protocol):
    def resume_traversal(self, checkpoint: str | None, batch_hint: int) -> TraversalBatch:
        ...


class Connector(Protocol):
    """A live, configured connector instance.

    Capabilities are optional. Implementations return ``None`` for anything
    they do not support.
    """

    def authentication_manager(self) -> AuthenticationManager | None:
        return None

    def authorization_manager(self) -> AuthorizationManager | None:
        return None

    def traversal_manager(self) -> TraversalManager | None:
        return None


class ConnectorType(Protocol):
    name: str

    def get_config_form(self, locale: Locale) -> ConfigureResponse:
        ...

    def get_populated_config_form(
        self, config: Mapping[str, str], locale: Locale
    ) -> ConfigureResponse:
        ...

    def validate_config(
        self, config: Mapping[str, str], locale: Locale
    ) -> ConfigureResponse | None:
        ...

    def make_connector(self, config: Mapping[str, str]) -> Connector:
        ...


@dataclass
class RegisteredConnectorType:
    connector_type: ConnectorType


class ConnectorTypeRegistry:
    def __init__(self) -> None:
        self._registry: dict[str, RegisteredConnectorType] = {}

    def register(self, connector_type: ConnectorType) -> None:
        self._registry[connector_type.name] = RegisteredConnectorType(connector_type)

    def names(self) -> list[str]:
        return list(self._registry)

    def get(self, name: str) -> ConnectorType:
        return self._registry[name].connector_type


registry = ConnectorTypeRegistry()
