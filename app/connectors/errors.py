"""Exception hierarchy shared by the connector manager."""

from __future__ import annotations


class ConnectorManagerError(Exception):
    """Base class for connector manager failures."""


class ConnectorNotFoundError(ConnectorManagerError):
    """No connector instance is registered under the requested name."""


class ConnectorTypeNotFoundError(ConnectorManagerError):
    """No connector type is registered under the requested name."""


class InstantiatorError(ConnectorManagerError):
    """A connector instance could not be created, configured or removed."""


class ConnectorExistsError(InstantiatorError):
    """A new connector was requested under a name that is already taken."""


class PersistentStoreError(ConnectorManagerError):
    """Reading or writing one of the persistent stores failed."""


class RepositoryError(ConnectorManagerError):
    """Raised by connector implementations for repository-side failures."""


class RepositoryLoginError(RepositoryError):
    """The repository rejected the credentials it was given."""


class RepositoryDocumentError(RepositoryError):
    """A single document is unusable; other documents may still be fine."""


class MalformedDocumentURLError(RepositoryDocumentError):
    """A document declared a URL that is not syntactically valid."""


class MissingAddressingPropertyError(RepositoryDocumentError):
    """A document has neither a search URL nor a doc id."""


class UnknownFeedTypeError(RepositoryDocumentError):
    """A document names a feed type that does not exist."""


__all__ = [
    "ConnectorExistsError",
    "ConnectorManagerError",
    "ConnectorNotFoundError",
    "ConnectorTypeNotFoundError",
    "InstantiatorError",
    "MalformedDocumentURLError",
    "MissingAddressingPropertyError",
    "PersistentStoreError",
    "RepositoryDocumentError",
    "RepositoryError",
    "RepositoryLoginError",
    "UnknownFeedTypeError",
]
