"""Generic catalog HTTP client: cache + rate limit + concurrency cap + hard timeout.

Hey future me - this is the ONE place that talks HTTP to a catalog. TMDBClient and
MusicBrainzClient subclass it and only add typed methods and payload parsing.

Request pipeline for fetch(endpoint, params):

    cache hit? -> return it (no network, no rate limiter!)
         |
    semaphore (max_concurrent in flight, waiters drained FIFO)
         |
    rate limiter slot
         |
    GET with hard timeout -> CatalogTimeoutError / CatalogConnectionError
         |
    non-2xx -> CatalogHttpError (429 -> RateLimitExceededError + limiter pause)
         |
    cache successful JSON for cache_ttl_seconds

RetryingCatalogClient wraps the "rate limiter slot + GET" part in retry_with_backoff,
so every retry waits for its own rate-limiter slot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any
from urllib.parse import urlencode

import httpx

from shelfcheck.application.cache import InMemoryCache
from shelfcheck.domain.exceptions import (
    CatalogConnectionError,
    CatalogHttpError,
    CatalogTimeoutError,
    ExternalServiceError,
    RateLimitExceededError,
)
from shelfcheck.infrastructure.integrations.retry import (
    RetryPolicy,
    parse_retry_after,
    retry_with_backoff,
)
from shelfcheck.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ParamValue = str | int | float | bool
Params = Mapping[str, ParamValue | None]


def build_cache_key(endpoint: str, params: Params | None = None) -> str:
    """Request signature: endpoint plus params sorted by name (None values dropped)."""
    if not params:
        return endpoint
    items = sorted((k, str(v)) for k, v in params.items() if v is not None)
    return f"{endpoint}?{urlencode(items)}" if items else endpoint


class CatalogClient:
    """Rate-limited, cached, concurrency-capped JSON GET client for one catalog."""

    SERVICE_NAME = "catalog"
    DEFAULT_RATE_LIMIT_BACKOFF = 1.0

    def __init__(
        self,
        *,
        base_url: str,
        rate_limiter: RateLimiter,
        cache: InMemoryCache[str, Any] | None = None,
        max_concurrent: int = 10,
        timeout: float = 30.0,
        cache_ttl_seconds: float = 24 * 60 * 60,
        headers: Mapping[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize catalog client.

        Args:
            base_url: API root, endpoints are appended to it
            rate_limiter: Limiter shared by all requests of this client
            cache: Response cache (a private one is created if omitted)
            max_concurrent: Cap on simultaneous in-flight requests
            timeout: Hard per-request timeout in seconds
            cache_ttl_seconds: TTL of cached responses
            headers: Extra default headers
            http_client: Pre-built client (tests); otherwise created lazily
        """
        self._base_url = base_url.rstrip("/")
        self._rate_limiter = rate_limiter
        self._cache = cache if cache is not None else InMemoryCache(cache_ttl_seconds)
        self._cache_ttl = cache_ttl_seconds
        self._max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._timeout = timeout
        self._headers = {"Accept": "application/json", **(headers or {})}
        self._client = http_client
        self._owns_client = http_client is None
        self._in_flight = 0
        self._requests_sent = 0

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def cache(self) -> InMemoryCache[str, Any]:
        return self._cache

    # Hey future me, lazily created so constructing a client never needs a running loop.
    # Limits mirror max_concurrent - more sockets than the semaphore allows would never be used.
    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=httpx.Timeout(self._timeout),
                limits=httpx.Limits(
                    max_connections=self._max_concurrent,
                    max_keepalive_connections=self._max_concurrent,
                ),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client (only if we created it)."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> CatalogClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Hooks for subclasses
    # -------------------------------------------------------------------------

    def _default_params(self) -> dict[str, ParamValue]:
        """Params sent with every request but NOT part of the cache key (credentials)."""
        return {}

    def _error_message(self, response: httpx.Response) -> str:
        """Extract the remote error message from an error response."""
        try:
            payload = response.json()
        except ValueError:
            return response.reason_phrase or response.text[:200]
        if isinstance(payload, dict):
            for key in ("status_message", "error", "message"):
                if payload.get(key):
                    return str(payload[key])
        return response.reason_phrase

    # -------------------------------------------------------------------------
    # Request pipeline
    # -------------------------------------------------------------------------

    async def fetch(
        self, endpoint: str, params: Params | None = None, *, use_cache: bool = True
    ) -> dict[str, Any]:
        """GET ``endpoint`` and return the decoded JSON object.

        Raises:
            CatalogTimeoutError: request exceeded the hard timeout
            CatalogConnectionError: network failure
            CatalogHttpError: non-2xx response
            ConfigurationError: credentials missing (subclasses)
        """
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        key = build_cache_key(endpoint, clean_params)

        if use_cache:
            cached = await self._cache.get(key)
            if cached is not None:
                logger.debug(f"{self.SERVICE_NAME}: cache hit for {key}")
                return cached

        async with self._semaphore:
            self._in_flight += 1
            try:
                data = await self._dispatch(endpoint, clean_params)
            finally:
                self._in_flight -= 1

        if use_cache:
            await self._cache.set(key, data, self._cache_ttl)
        return data

    async def _dispatch(
        self, endpoint: str, params: dict[str, ParamValue]
    ) -> dict[str, Any]:
        """Wait for a rate-limiter slot, then send."""
        await self._rate_limiter.acquire()
        return await self._send(endpoint, params)

    async def _send(
        self, endpoint: str, params: dict[str, ParamValue]
    ) -> dict[str, Any]:
        request_params = {**params, **self._default_params()}
        client = await self._get_client()
        self._requests_sent += 1

        try:
            async with asyncio.timeout(self._timeout):
                response = await client.get(endpoint, params=request_params)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise CatalogTimeoutError(endpoint, self._timeout, self.SERVICE_NAME) from e
        except httpx.TransportError as e:
            raise CatalogConnectionError(
                f"{self.SERVICE_NAME} connection error on {endpoint}: {e}",
                self.SERVICE_NAME,
            ) from e

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            self._rate_limiter.pause(
                retry_after if retry_after is not None else self.DEFAULT_RATE_LIMIT_BACKOFF
            )
            raise RateLimitExceededError(
                self._error_message(response), retry_after, self.SERVICE_NAME
            )

        if not response.is_success:
            raise CatalogHttpError(
                response.status_code, self._error_message(response), self.SERVICE_NAME
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalServiceError(
                f"{self.SERVICE_NAME} returned invalid JSON for {endpoint}",
                self.SERVICE_NAME,
            ) from e

        # Defensive: callers always get a dict, even for odd top-level arrays
        if isinstance(payload, dict):
            return payload
        return {"results": payload}

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    async def clear_cache(self) -> None:
        await self._cache.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "service": self.SERVICE_NAME,
            "in_flight": self._in_flight,
            "max_concurrent": self._max_concurrent,
            "requests_sent": self._requests_sent,
            "cache": self._cache.get_stats(),
            "rate_limiter": self._rate_limiter.get_stats(),
        }


class RetryingCatalogClient(CatalogClient):
    """Catalog client that retries transient failures with exponential backoff.

    Use for catalogs with strict per-second caps (MusicBrainz) where 503s and
    connection resets are part of normal operation.
    """

    def __init__(
        self,
        *,
        retry_policy: RetryPolicy | None = None,
        retry_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._retry_policy = retry_policy or RetryPolicy()
        self._retry_sleep = retry_sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def _dispatch(
        self, endpoint: str, params: dict[str, ParamValue]
    ) -> dict[str, Any]:
        attempt = super()._dispatch

        return await retry_with_backoff(
            lambda: attempt(endpoint, params),
            self._retry_policy,
            context=f"{self.SERVICE_NAME} GET {endpoint}",
            sleep=self._retry_sleep,
        )


__all__ = ["CatalogClient", "RetryingCatalogClient", "build_cache_key"]
