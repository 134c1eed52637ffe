"""Shared HTTP plumbing for upstream provider clients."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ..utils import coerce_int

LOGGER = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = 1.0
MAX_BACKOFF = 30.0

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class UpstreamError(Exception):
    """Base exception for upstream provider failures."""


class UpstreamNotFoundError(UpstreamError):
    """Resource not found (404)."""


def browser_headers(origin: str | None = None, referer: str | None = None) -> dict[str, str]:
    """Headers that mimic a regular browser request."""
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
    }
    if origin:
        headers["Origin"] = origin
    if referer or origin:
        headers["Referer"] = referer or origin
    return headers


class HttpProvider:
    """Base class for clients that talk to a single upstream over HTTP.

    Subclasses set ``name`` and call ``_request``; retries with exponential
    backoff, rate-limit waits and error wrapping happen here.
    """

    name = "upstream"

    def __init__(self, timeout: float = 15.0, headers: dict[str, str] | None = None) -> None:
        self._client = httpx.Client(timeout=timeout, headers=headers or {}, follow_redirects=True)
        self._owns_client = True

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Raises:
            UpstreamNotFoundError: If the resource does not exist (404)
            UpstreamError: When every attempt failed
        """
        last_exception: Exception | None = None
        backoff = RETRY_BACKOFF

        for attempt in range(MAX_RETRIES):
            try:
                response = self._client.request(method, url, **kwargs)
                if response.status_code == 404:
                    raise UpstreamNotFoundError(f"{self.name}: resource not found: {url}")
                if response.status_code == 429:
                    retry_after = coerce_int(response.headers.get("Retry-After"))
                    wait = min(float(retry_after), MAX_BACKOFF) if retry_after is not None else backoff
                    LOGGER.warning("%s rate limited, waiting %.0f seconds", self.name, wait)
                    time.sleep(wait)
                    backoff = min(backoff * 2, MAX_BACKOFF)
                    continue
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code == 404:
                    raise UpstreamNotFoundError(f"{self.name}: resource not found: {url}") from exc
                last_exception = exc
                if attempt < MAX_RETRIES - 1:
                    LOGGER.debug("%s request failed (attempt %d/%d): %s", self.name, attempt + 1, MAX_RETRIES, exc)
                    time.sleep(backoff)
                    backoff = min(backoff * 2, MAX_BACKOFF)
            except httpx.RequestError as exc:
                last_exception = exc
                if attempt < MAX_RETRIES - 1:
                    LOGGER.debug("%s request error (attempt %d/%d): %s", self.name, attempt + 1, MAX_RETRIES, exc)
                    time.sleep(backoff)
                    backoff = min(backoff * 2, MAX_BACKOFF)

        raise UpstreamError(f"{self.name}: failed to fetch {url} after {MAX_RETRIES} attempts") from last_exception

    def _json(self, response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"{self.name}: invalid JSON from {url}") from exc

    def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()
