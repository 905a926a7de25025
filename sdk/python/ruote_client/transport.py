"""HTTP transport for the ruote-kit client, built on httpx."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ruote_client.errors import TransportError

logger = logging.getLogger(__name__)


class HttpTransport:
    """Issues one JSON request per call against a ruote-kit host.

    Query parameters are expected to be already percent-encoded; they are
    appended to the URL as-is.

    Args:
        base_url: Scheme and host of the server (e.g., "http://localhost:8080").
        timeout: Request timeout in seconds.
        api_key: Optional bearer token sent with every request.
        client: Optional pre-built ``httpx.Client``. When given, the caller
            keeps ownership and ``close()`` leaves it open.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        api_key: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _build_headers(self, with_body: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if with_body:
            headers["Content-Type"] = "application/json"
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_url(self, path: str, params: Mapping[str, str] | None) -> str:
        url = f"{self._base_url}{path}"
        if params:
            url += "?" + "&".join(f"{k}={v}" for k, v in params.items())
        return url

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """Make an HTTP request and return the decoded JSON response.

        Returns ``None`` for 204 responses and empty bodies.
        """
        url = self._build_url(path, params)
        logger.debug("%s %s", method, url)
        try:
            resp = self._client.request(
                method,
                url,
                json=json,
                headers=self._build_headers(json is not None),
            )
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise TransportError(None, str(exc) or type(exc).__name__) from exc

        logger.debug("%s %s -> %d", method, url, resp.status_code)
        if resp.status_code >= 400:
            raise TransportError(
                status_code=resp.status_code,
                message=resp.reason_phrase or "Unknown error",
                body=resp.text,
            )
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(
                resp.status_code, "response is not valid JSON", resp.text
            ) from exc

    def close(self) -> None:
        """Close the underlying HTTP client when this instance owns it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
