"""The single network primitive: an HTTP GET with timeout, headers and retry."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import aiohttp
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

import config
from .errors import FetchError

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "fetcher"


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one fetch: a document body or the error that ended it."""

    url: str
    body: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BinaryBody:
    content: bytes
    content_type: str


class Fetcher:
    """Retrying GET client.

    Attempt 1 fires immediately; attempt ``n`` waits
    ``base_delay * 2 ** (n - 2)`` seconds first, so the defaults wait 3s then 6s.
    Every attempt gets the same per-request timeout. Retries are per call;
    nothing is remembered between calls.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._session = session
        self._owns_session = False
        self.headers = {**config.CRAWLER_HEADERS, **(headers or {})}
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds if timeout_seconds is not None else config.CRAWLER_HTTP_TIMEOUT_SECONDS
        )
        self.max_attempts = max_attempts or config.CRAWLER_FETCH_MAX_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else config.CRAWLER_RETRY_BASE_DELAY_SECONDS
        self._sleep = sleep

    async def __aenter__(self):
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=config.CRAWLER_HTTP_CONCURRENCY_LIMIT, ttl_dns_cache=300)
            self._session = aiohttp.ClientSession(timeout=self.timeout, connector=connector)
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def _get(self, url: str, headers: Dict[str, str], read=None):
        if self._session is None:
            raise RuntimeError("Fetcher used outside of its session context")
        async with self._session.get(url, headers=headers, timeout=self.timeout) as response:
            response.raise_for_status()
            if read is not None:
                return await read(response)
            return await response.text()

    def _log_retry(self, url: str, attempts: int):
        def before_sleep(retry_state):
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            LOGGER.info(
                "Retrying fetch for %s in %.0f seconds... (Attempt %d/%d)",
                url,
                delay,
                retry_state.attempt_number + 1,
                attempts,
                extra={"source": LOG_SOURCE},
            )

        return before_sleep

    async def _fetch_with_retry(self, url, headers, max_attempts, read=None):
        attempts = max_attempts or self.max_attempts
        merged_headers = {**self.headers, **(headers or {})}
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            sleep=self._sleep,
            before_sleep=self._log_retry(url, attempts),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._get(url, merged_headers, read)
        except Exception as exc:
            raise FetchError(url, exc) from exc

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        max_attempts: Optional[int] = None,
    ) -> str:
        """Return the document text for ``url`` or raise :class:`FetchError`."""
        return await self._fetch_with_retry(url, headers, max_attempts)

    async def fetch_binary(self, url: str, headers: Optional[Dict[str, str]] = None) -> BinaryBody:
        """Raw bytes and content type for ``url`` (images), same retry policy as :meth:`fetch`."""

        async def read(response):
            return BinaryBody(
                content=await response.read(),
                content_type=response.headers.get("Content-Type", "application/octet-stream"),
            )

        return await self._fetch_with_retry(url, headers, None, read)

    async def fetch_outcome(self, url: str, headers: Optional[Dict[str, str]] = None) -> FetchOutcome:
        """Like :meth:`fetch`, but folds a failure into the returned outcome."""
        try:
            body = await self.fetch(url, headers=headers)
        except FetchError as exc:
            return FetchOutcome(url=url, error=str(exc.cause) or exc.cause.__class__.__name__)
        return FetchOutcome(url=url, body=body)
