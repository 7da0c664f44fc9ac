"""Connector SPI, URL resolution and shared utilities."""

from .base import (
    AuthenticationIdentity,
    AuthenticationResponse,
    AuthorizationResponse,
    ConfigureResponse,
    Connector,
    ConnectorType,
    TraversalBatch,
    registry,
)
from .urls import DocumentType, FeedType, UrlConstructor

__all__ = [
    "AuthenticationIdentity",
    "AuthenticationResponse",
    "AuthorizationResponse",
    "ConfigureResponse",
    "Connector",
    "ConnectorType",
    "DocumentType",
    "FeedType",
    "TraversalBatch",
    "UrlConstructor",
    "registry",
]
