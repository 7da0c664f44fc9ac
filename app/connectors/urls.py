"""Resolution of the URLs under which documents are fed to the search appliance."""

from __future__ import annotations

import enum
from typing import Any, Mapping
from urllib.parse import urlsplit

from connectors.errors import (
    MalformedDocumentURLError,
    MissingAddressingPropertyError,
    UnknownFeedTypeError,
)
from connectors.utils import (
    CONNECTOR_DOCID_MARKER,
    CONNECTOR_PROTOCOL,
    QUERY_PARAM_CONNECTOR_NAME,
    QUERY_PARAM_DOCID,
    append_query_param,
)

PROPNAME_SEARCHURL = "google:searchurl"
PROPNAME_DOCID = "google:docid"
PROPNAME_FEEDTYPE = "google:feedtype"
PROPNAME_ACLINHERITFROM = "google:aclinheritfrom"
PROPNAME_ACLINHERITFROM_DOCID = "google:aclinheritfrom:docid"
PROPNAME_ACLINHERITFROM_FEEDTYPE = "google:aclinheritfrom:feedtype"

URL_SCHEMES = frozenset({"http", "https", "ftp", "file", "jar", "mailto", "smb"})
HIERARCHICAL_SCHEMES = frozenset({"http", "https", "ftp", "smb"})


class FeedType(str, enum.Enum):
    WEB = "web"
    CONTENT = "content"
    CONTENTURL = "contenturl"

    @classmethod
    def find(cls, name: str) -> "FeedType":
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown feed type {name!r}") from None


class DocumentType(str, enum.Enum):
    RECORD = "record"
    ACL = "acl"


def get_optional_string(document: Mapping[str, Any], name: str) -> str | None:
    """Return the first value of a document property, or None if it is unset."""
    value = document.get(name)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    text = str(value)
    return text or None


def validate_url(url: str, description: str) -> None:
    """Check that ``url`` is at least syntactically a URL."""
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise MalformedDocumentURLError(f"Supplied {description} URL {url} is malformed.") from exc
    scheme = parts.scheme.lower()
    if scheme not in URL_SCHEMES or (scheme in HIERARCHICAL_SCHEMES and not parts.netloc):
        raise MalformedDocumentURLError(f"Supplied {description} URL {url} is malformed.")


class UrlConstructor:
    """Extracts a document's URL or fabricates one from its doc id.

    Instances are immutable and safe to share between threads.
    """

    def __init__(
        self,
        data_source: str,
        default_feed_type: FeedType,
        content_url_prefix: str | None = None,
    ) -> None:
        self._data_source = data_source
        self._default_feed_type = default_feed_type
        self._content_url_prefix = content_url_prefix

    @property
    def data_source(self) -> str:
        return self._data_source

    @property
    def default_feed_type(self) -> FeedType:
        return self._default_feed_type

    def get_record_url(self, document: Mapping[str, Any], document_type: DocumentType) -> str:
        url = self._get_or_construct_url(
            document, PROPNAME_SEARCHURL, PROPNAME_DOCID, self._default_feed_type, document_type
        )
        if url is None:
            raise MissingAddressingPropertyError(
                f"Document has neither property {PROPNAME_DOCID} nor property {PROPNAME_SEARCHURL}"
            )
        return url

    def get_inherit_from_url(self, document: Mapping[str, Any]) -> str | None:
        return self._get_or_construct_url(
            document,
            PROPNAME_ACLINHERITFROM,
            PROPNAME_ACLINHERITFROM_DOCID,
            self._inherit_from_feed_type(document),
            DocumentType.ACL,
        )

    def _inherit_from_feed_type(self, document: Mapping[str, Any]) -> FeedType:
        feed_type = get_optional_string(document, PROPNAME_ACLINHERITFROM_FEEDTYPE)
        if feed_type is None:
            feed_type = get_optional_string(document, PROPNAME_FEEDTYPE)
        if feed_type is None:
            return self._default_feed_type
        try:
            return FeedType.find(feed_type)
        except ValueError as exc:
            raise UnknownFeedTypeError(str(exc)) from exc

    def _get_or_construct_url(
        self,
        document: Mapping[str, Any],
        url_property: str,
        docid_property: str,
        feed_type: FeedType,
        document_type: DocumentType,
    ) -> str | None:
        url = get_optional_string(document, url_property)
        if url is not None:
            if document_type is not DocumentType.ACL:
                validate_url(url, url_property)
            return url

        docid = get_optional_string(document, docid_property)
        if docid is None:
            return None
        return self._construct_url(docid, feed_type)

    def _construct_url(self, docid: str, feed_type: FeedType) -> str:
        if feed_type is FeedType.WEB:
            return docid
        if feed_type is FeedType.CONTENT:
            return f"{CONNECTOR_PROTOCOL}{self._data_source}.localhost{CONNECTOR_DOCID_MARKER}{docid}"
        if feed_type is FeedType.CONTENTURL:
            if not self._content_url_prefix:
                raise RuntimeError("content_url_prefix must not be None or empty")
            url = append_query_param(
                self._content_url_prefix, QUERY_PARAM_CONNECTOR_NAME, self._data_source
            )
            return append_query_param(url, QUERY_PARAM_DOCID, docid)
        raise AssertionError(feed_type)
