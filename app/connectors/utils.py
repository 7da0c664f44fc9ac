"""Utilities shared by the connector manager and connector implementations."""

from __future__ import annotations

import re
from typing import NamedTuple
from urllib.parse import quote_plus

LOCALE_SPLIT_RE = re.compile(r"[-_]")

# Addressing used for documents fed by content rather than by URL.
CONNECTOR_PROTOCOL = "googleconnector://"
CONNECTOR_DOCID_MARKER = "/doc?docid="
QUERY_PARAM_CONNECTOR_NAME = "ConnectorName"
QUERY_PARAM_DOCID = "docid"


class Locale(NamedTuple):
    language: str
    country: str = ""
    variant: str = ""

    def __str__(self) -> str:
        return "_".join(part for part in self if part)


DEFAULT_LOCALE = Locale("en")


def locale_from_language(language: str | None) -> Locale:
    """Turn a tag such as ``en``, ``pt_BR`` or ``de-CH`` into a Locale.

    Missing or blank tags resolve to the default locale.
    """
    if not language or not language.strip():
        return DEFAULT_LOCALE
    parts = LOCALE_SPLIT_RE.split(language.strip(), maxsplit=2)
    lang = parts[0].lower()
    if not lang:
        return DEFAULT_LOCALE
    country = parts[1].upper() if len(parts) > 1 else ""
    variant = parts[2] if len(parts) > 2 else ""
    return Locale(lang, country, variant)


def append_query_param(url: str, name: str, value: str) -> str:
    """Append ``name=value`` to ``url``, encoding the value."""
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{name}={quote_plus(value)}"
