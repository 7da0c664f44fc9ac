"""HTTP exchange abstraction used for delivering feeds."""

from __future__ import annotations

import logging
from typing import Mapping, Protocol

import httpx


logger = logging.getLogger(__name__)


class HttpTransportError(OSError):
    """The HTTP exchange failed before a status code was received."""


class HttpExchange(Protocol):
    def set_proxy(self, proxy: str) -> None:
        ...

    def set_request_header(self, name: str, value: str) -> None:
        ...

    def exchange(self) -> int:
        ...

    def get_response_entity_as_string(self) -> str:
        ...

    def get_response_header_value(self, name: str) -> str | None:
        ...

    def get_response_header_values(self, name: str) -> list[str]:
        ...

    def get_status_code(self) -> int:
        ...

    def close(self) -> None:
        ...


class HttpxExchange:
    """A single request/response pair executed with httpx.

    Request headers set later override earlier ones of the same name. The
    response accessors are only meaningful after ``exchange()`` returned.
    """

    def __init__(
        self,
        method: str,
        url: str,
        data: Mapping[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._method = method
        self._url = url
        self._data = dict(data) if data is not None else None
        self._timeout = timeout
        self._transport = transport
        self._proxy: str | None = None
        self._headers: dict[str, str] = {}
        self._client: httpx.Client | None = None
        self._response: httpx.Response | None = None

    def __enter__(self) -> "HttpxExchange":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def set_proxy(self, proxy: str) -> None:
        self._proxy = proxy if "://" in proxy else f"http://{proxy}"

    def set_request_header(self, name: str, value: str) -> None:
        for existing in list(self._headers):
            if existing.lower() == name.lower():
                del self._headers[existing]
        self._headers[name] = value

    def exchange(self) -> int:
        if self._client is None:
            self._client = httpx.Client(
                proxy=self._proxy,
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=False,
            )
        try:
            self._response = self._client.request(
                self._method, self._url, headers=self._headers, data=self._data
            )
        except httpx.TransportError as exc:
            logger.warning("HTTP %s %s failed: %s", self._method, self._url, exc)
            raise HttpTransportError(str(exc)) from exc
        return self._response.status_code

    def get_response_entity_as_string(self) -> str:
        return self._require_response().text

    def get_response_header_value(self, name: str) -> str | None:
        return self._require_response().headers.get(name)

    def get_response_header_values(self, name: str) -> list[str]:
        return self._require_response().headers.get_list(name)

    def get_status_code(self) -> int:
        return self._require_response().status_code

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _require_response(self) -> httpx.Response:
        if self._response is None:
            raise RuntimeError("exchange() has not been performed")
        return self._response


class HttpxClient:
    """Factory for exchanges sharing one proxy and timeout setting."""

    def __init__(
        self,
        proxy: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._proxy = proxy
        self._timeout = timeout
        self._transport = transport

    @property
    def proxy(self) -> str | None:
        return self._proxy

    @property
    def timeout(self) -> float:
        return self._timeout

    def get_exchange(self, url: str) -> HttpxExchange:
        return self._prepare(HttpxExchange("GET", url, timeout=self._timeout, transport=self._transport))

    def post_exchange(self, url: str, parameters: Mapping[str, str]) -> HttpxExchange:
        return self._prepare(
            HttpxExchange("POST", url, data=parameters, timeout=self._timeout, transport=self._transport)
        )

    def _prepare(self, exchange: HttpxExchange) -> HttpxExchange:
        if self._proxy:
            exchange.set_proxy(self._proxy)
        return exchange
