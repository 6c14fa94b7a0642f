from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Type
from types import TracebackType

import httpx

logger = logging.getLogger(__name__)


class HttpError(Exception):
    """Base class for errors raised by the HTTP client wrapper."""


class HttpRequestError(HttpError):
    """Transport-level failure (connect, read, timeout) after all retries."""

    def __init__(self, message: str, *, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.cause = cause


class HttpResponseError(HttpError):
    """Non-successful HTTP status returned by the remote side."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(
            f"HTTP {response.status_code} for {response.request.method} "
            f"{response.request.url}"
        )
        self.response = response


class AsyncHttpClient:
    """Thin asynchronous HTTP client wrapper around httpx.AsyncClient.

    - Normalizes base URLs and paths.
    - Applies a default timeout.
    - Retries transport errors and 5xx responses with exponential backoff
      (`retry_backoff * 2 ** attempt`); 4xx responses fail immediately.
    - Raises HttpResponseError for non-successful responses and
      HttpRequestError once retries are exhausted.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        *,
        max_retries: int = 0,
        retry_backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_retries = max(0, max_retries)
        self._retry_backoff = retry_backoff
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _request(
        self, method: str, path: str, *, retry: bool = True, **kwargs: Any
    ) -> httpx.Response:
        url = self._url(path)
        max_retries = self._max_retries if retry else 0
        attempt = 0
        while True:
            try:
                resp = await self._client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                if attempt >= max_retries:
                    raise HttpRequestError(
                        f"{method} {url} failed after {attempt + 1} attempt(s): {e}",
                        cause=e,
                    ) from e
                logger.warning("%s %s transport error (%s); retrying", method, url, e)
            else:
                if resp.status_code < 400:
                    return resp
                if resp.status_code < 500 or attempt >= max_retries:
                    raise HttpResponseError(resp)
                logger.warning(
                    "%s %s returned %s; retrying", method, url, resp.status_code
                )

            await asyncio.sleep(self._retry_backoff * (2**attempt))
            attempt += 1

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", path, **kwargs)

    async def post(
        self,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        retry: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        return await self._request("POST", path, json=json, retry=retry, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
