"""HTTP transport used by the extraction strategies.

The engine only depends on the Transport protocol: ``fetch(url, headers)``
returning a FetchResponse, or raising TransportError on connection failure,
timeout or a non-2xx status. BrowserTransport is the default implementation,
built on Playwright's APIRequestContext so that requests carry a real
browser's TLS and header fingerprint without rendering pages.

Timeouts are owned here: the engine imposes none of its own.
"""

import random
from collections.abc import Mapping
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Protocol, Self

from playwright.async_api import (
    APIRequestContext,
    Error as PlaywrightError,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)
from pydantic import BaseModel

from cascade.exceptions import TransportError
from cascade.logger import get_logger
from config.settings import GlobalConfig, get_config

log = get_logger(__name__)

# Answers that usually mean the client fingerprint was refused.
BLOCKING_STATUSES = frozenset({403, 429})


class FetchResponse(BaseModel):
    """Status and decoded body of a successful fetch."""

    url: str
    status: int
    body: str


class Transport(Protocol):
    """Capability the strategies consume to reach the source."""

    async def fetch(
        self, url: str, headers: Mapping[str, str] | None = None
    ) -> FetchResponse: ...


class BrowserTransport:
    """Playwright-backed transport with user-agent rotation.

    Attributes:
        config: GlobalConfig instance for runtime configuration.
        _playwright: Playwright instance (initialized on context entry).
        _request: APIRequestContext used for every fetch.

    Example:
        async with BrowserTransport.create() as transport:
            response = await transport.fetch("https://example.com/api/manga")
    """

    def __init__(self, config: GlobalConfig) -> None:
        """Initialize the transport with configuration.

        Note:
            Do not instantiate directly. Use the `create()` class method
            so that Playwright resources are released on exit.
        """
        self.config = config
        self._playwright: Playwright | None = None
        self._request: APIRequestContext | None = None
        self._current_user_agent: str = self._select_user_agent()

    @classmethod
    @asynccontextmanager
    async def create(
        cls, config: GlobalConfig | None = None
    ) -> AsyncGenerator[Self, None]:
        """Factory method with async context manager for lifecycle management.

        Args:
            config: Optional GlobalConfig. Uses singleton if not provided.

        Yields:
            Initialized BrowserTransport instance.

        Raises:
            TransportError: If Playwright cannot be started.
        """
        if config is None:
            config = get_config()

        instance = cls(config)
        try:
            await instance._initialize()
            yield instance
        finally:
            await instance._cleanup()

    def _select_user_agent(self, exclude: str | None = None) -> str:
        pool = [agent for agent in self.config.user_agents if agent != exclude]
        return random.choice(pool or self.config.user_agents)

    def rotate_user_agent(self, reason: str = "requested") -> str:
        """Switch to a different user-agent from the pool for later fetches.

        ``fetch`` calls this when the source answers with a blocking status,
        so the next candidate URL goes out under a fresh fingerprint. A
        single-agent pool keeps its only agent.

        Args:
            reason: Why the rotation happened, for the log.

        Returns:
            The newly selected user-agent string.
        """
        previous = self._current_user_agent
        self._current_user_agent = self._select_user_agent(exclude=previous)
        log.info(
            "User-agent rotated",
            reason=reason,
            previous=previous[:50] + "...",
            current=self._current_user_agent[:50] + "...",
        )
        return self._current_user_agent

    @property
    def user_agent(self) -> str:
        return self._current_user_agent

    async def _initialize(self) -> None:
        """Start Playwright and open the request context.

        Raises:
            TransportError: If any initialization step fails.
        """
        log.info("Initializing request context")

        try:
            self._playwright = await async_playwright().start()
            self._request = await self._playwright.request.new_context(
                ignore_https_errors=True,
                timeout=self.config.request_timeout_ms,
            )
        except Exception as exc:
            await self._cleanup()
            raise TransportError(
                url=f"https://{self.config.source_domain}/",
                reason=f"Request context initialization failed: {exc}",
            ) from exc

        log.info(
            "Request context initialized",
            user_agent=self._current_user_agent[:50] + "...",
            timeout_ms=self.config.request_timeout_ms,
        )

    async def fetch(
        self, url: str, headers: Mapping[str, str] | None = None
    ) -> FetchResponse:
        """GET a URL and return its decoded body.

        Args:
            url: Absolute URL to fetch.
            headers: Extra headers; the current user-agent is always sent.

        Returns:
            FetchResponse for a 2xx answer.

        Raises:
            TransportError: On connection failure, timeout or non-2xx status.
                A 403 or 429 also rotates the user-agent before raising.
        """
        if self._request is None:
            raise TransportError(url=url, reason="Request context not initialized")

        request_headers = {"User-Agent": self._current_user_agent}
        if headers:
            request_headers.update(headers)

        log.debug("Fetching URL", url=url)

        try:
            response = await self._request.get(
                url,
                headers=request_headers,
                timeout=self.config.request_timeout_ms,
                fail_on_status_code=False,
            )
        except PlaywrightTimeoutError as exc:
            raise TransportError(
                url=url,
                reason=f"Timeout after {self.config.request_timeout_ms}ms",
            ) from exc
        except PlaywrightError as exc:
            raise TransportError(url=url, reason=str(exc)) from exc

        status_code = response.status
        if not 200 <= status_code < 300:
            if status_code in BLOCKING_STATUSES:
                self.rotate_user_agent(reason=f"HTTP {status_code}")
            raise TransportError(
                url=url,
                reason=f"HTTP {status_code}",
                status_code=status_code,
            )

        try:
            body = await response.text()
        except PlaywrightError as exc:
            raise TransportError(url=url, reason=f"Body unreadable: {exc}") from exc

        log.debug("Fetch successful", url=url, status_code=status_code, size=len(body))
        return FetchResponse(url=url, status=status_code, body=body)

    async def _cleanup(self) -> None:
        """Release Playwright resources in reverse initialization order."""
        if self._request is not None:
            try:
                await self._request.dispose()
            except Exception as exc:
                log.warning("Error disposing request context", error=str(exc))
            self._request = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.warning("Error stopping playwright", error=str(exc))
            self._playwright = None

        log.info("Transport resources cleaned up")

    @property
    def is_initialized(self) -> bool:
        """Check if the transport is ready to fetch."""
        return self._playwright is not None and self._request is not None
