"""Extraction strategy base implementing the Strategy Pattern.

Each concrete strategy encapsulates one way of acquiring data from the
source (structured endpoints, hydration state, markup heuristics) behind a
single capability, ``attempt(request) -> outcome``. The orchestrator folds
over an ordered list of strategies and stops at the first outcome that
succeeded; no exception-driven control flow crosses the strategy boundary.

Inside a strategy, candidates (URLs or templates) are probed sequentially
with the same first-success-wins rule. TransportError and ParseError fail a
single candidate only.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from typing import Any, NamedTuple, TypeVar
from urllib.parse import quote_plus

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict

from cascade.exceptions import ParseError, TransportError
from cascade.logger import get_logger
from cascade.models import (
    CatalogEntry,
    ChapterRecord,
    DetailRecord,
    ListFilter,
    SortOrder,
)
from cascade.monitor import StrategyMonitor
from cascade.normalizers import to_absolute_url
from cascade.parsing import parse_html, parse_structured
from cascade.profile import SourceProfile
from cascade.transport import Transport

log = get_logger(__name__)

T = TypeVar("T")


class Operation(str, Enum):
    """Operations the engine exposes to the host."""

    LIST_CATALOG = "list_catalog"
    FETCH_DETAIL = "fetch_detail"
    FETCH_PAGES = "fetch_pages"
    LIST_TAGS = "list_tags"

    @property
    def single_result(self) -> bool:
        """Whether the caller needs exactly one definite artifact."""
        return self in (Operation.FETCH_DETAIL, Operation.FETCH_PAGES)


class StrategyRequest(BaseModel):
    """Parameters of one operation invocation.

    Attributes:
        operation: Which operation is being served.
        page: 1-based listing page.
        sort_order: Requested listing order.
        filter: Listing filter.
        entry: Entry being detailed (FETCH_DETAIL only).
        chapter: Chapter whose pages are wanted (FETCH_PAGES only).
    """

    model_config = ConfigDict(frozen=True)

    operation: Operation
    page: int = 1
    sort_order: SortOrder = SortOrder.UPDATED
    filter: ListFilter = ListFilter()
    entry: CatalogEntry | None = None
    chapter: ChapterRecord | None = None

    @property
    def target(self) -> str:
        """Short description of what is being fetched, for logs and errors."""
        if self.entry is not None:
            return self.entry.url
        if self.chapter is not None:
            return self.chapter.url
        if self.operation is Operation.LIST_CATALOG:
            return f"page {self.page}"
        return self.operation.value


class ProbeResult(NamedTuple):
    """What a sequential candidate probe produced."""

    value: Any
    source_url: str | None
    candidates_tried: int


class StrategyOutcome(BaseModel):
    """Result of one strategy attempt.

    Attributes:
        strategy: Name of the strategy that produced it.
        operation: Operation served.
        value: Entities produced, or None when nothing usable was found.
        source_url: Candidate URL that produced the value.
        candidates_tried: Number of candidates probed.
        error: Description of an unexpected failure, if any.
    """

    model_config = ConfigDict(frozen=True)

    strategy: str
    operation: Operation
    value: Any = None
    source_url: str | None = None
    candidates_tried: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """Non-empty and schema-valid."""
        if isinstance(self.value, DetailRecord):
            return self.value.has_content
        if isinstance(self.value, list):
            return len(self.value) > 0
        return False


class BaseStrategy(ABC):
    """Abstract base class for extraction strategies.

    Attributes:
        transport: Transport used for every fetch.
        profile: SourceProfile with templates, selectors and aliases.
        monitor: StrategyMonitor receiving probe and attempt counts.
        supported_operations: Operations this strategy can serve.

    Example:
        class FeedStrategy(BaseStrategy):
            name = "feed"

            async def list_catalog(self, request): ...
    """

    name: str = "base"
    supported_operations: frozenset[Operation] = frozenset(Operation)

    def __init__(
        self,
        transport: Transport,
        profile: SourceProfile,
        monitor: StrategyMonitor | None = None,
    ) -> None:
        self.transport = transport
        self.profile = profile
        self.monitor = monitor or StrategyMonitor()

    def supports(self, operation: Operation) -> bool:
        return operation in self.supported_operations

    @abstractmethod
    async def list_catalog(self, request: StrategyRequest) -> ProbeResult:
        """Produce a list of CatalogEntry for a listing page."""
        ...

    @abstractmethod
    async def fetch_detail(self, request: StrategyRequest) -> ProbeResult:
        """Produce a DetailRecord for ``request.entry``."""
        ...

    @abstractmethod
    async def fetch_pages(self, request: StrategyRequest) -> ProbeResult:
        """Produce a list of PageRecord for ``request.chapter``."""
        ...

    @abstractmethod
    async def list_tags(self, request: StrategyRequest) -> ProbeResult:
        """Produce a list of Tag."""
        ...

    async def attempt(self, request: StrategyRequest) -> StrategyOutcome:
        """Serve one operation.

        Candidate-level failures are absorbed by the probe loop; anything
        else that escapes a handler is reported as a failed outcome rather
        than raised. Cancellation is never absorbed.

        Args:
            request: The operation and its parameters.

        Returns:
            StrategyOutcome, successful or not.
        """
        handlers: dict[Operation, Callable[[StrategyRequest], Awaitable[ProbeResult]]] = {
            Operation.LIST_CATALOG: self.list_catalog,
            Operation.FETCH_DETAIL: self.fetch_detail,
            Operation.FETCH_PAGES: self.fetch_pages,
            Operation.LIST_TAGS: self.list_tags,
        }

        try:
            result = await handlers[request.operation](request)
        except Exception as exc:
            log.warning(
                "Strategy failed unexpectedly",
                strategy=self.name,
                operation=request.operation.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            outcome = StrategyOutcome(
                strategy=self.name,
                operation=request.operation,
                error=f"{type(exc).__name__}: {exc}",
            )
        else:
            outcome = StrategyOutcome(
                strategy=self.name,
                operation=request.operation,
                value=result.value,
                source_url=result.source_url,
                candidates_tried=result.candidates_tried,
            )

        self.monitor.record_attempt(self.name, request.operation.value, outcome.succeeded)
        return outcome

    async def probe_in_order(
        self,
        candidates: Iterable[str],
        probe: Callable[[str], Awaitable[T | None]],
    ) -> ProbeResult:
        """Try candidates strictly in order until one yields a usable value.

        A value is usable when truthy (non-empty list) or, for detail
        records, when it carries content. TransportError and ParseError
        fail that candidate only.

        Args:
            candidates: Ordered candidate URLs.
            probe: Coroutine turning one URL into a value (or None).

        Returns:
            ProbeResult with the first usable value, or an empty one.
        """
        tried = 0
        for url in candidates:
            tried += 1
            try:
                value = await probe(url)
            except (TransportError, ParseError) as exc:
                self.monitor.record_probe(self.name, failed=True)
                log.debug(
                    "Candidate failed",
                    strategy=self.name,
                    url=url,
                    error_type=type(exc).__name__,
                    reason=exc.context.get("reason"),
                )
                continue

            usable = value.has_content if isinstance(value, DetailRecord) else bool(value)
            self.monitor.record_probe(self.name, failed=not usable)
            if usable:
                log.info(
                    "Candidate succeeded",
                    strategy=self.name,
                    url=url,
                    candidates_tried=tried,
                )
                return ProbeResult(value, url, tried)

            log.debug("Candidate yielded nothing usable", strategy=self.name, url=url)

        return ProbeResult(None, None, tried)

    def page_urls(self, paths: Iterable[str]) -> list[str]:
        """Absolute URLs for source-relative page paths."""
        return [to_absolute_url(path, self.profile.domain) for path in paths]

    def listing_urls(
        self,
        request: StrategyRequest,
        paths: tuple[str, ...],
        search_paths: tuple[str, ...],
    ) -> list[str]:
        """Candidate listing pages for a request.

        A query switches to the search paths. Pages past the first are
        requested with a ``page`` query parameter.
        """
        if request.filter.query:
            query = quote_plus(request.filter.query)
            paths = tuple(path.format(query=query) for path in search_paths)

        urls = self.page_urls(paths)
        if request.page > 1:
            urls = [
                f"{url}{'&' if '?' in url else '?'}page={request.page}" for url in urls
            ]
        return urls

    async def fetch_json(self, url: str) -> Any:
        """Fetch a URL and decode it as JSON.

        Raises:
            TransportError: If the fetch fails.
            ParseError: If the body is not JSON.
        """
        response = await self.transport.fetch(url, self.profile.headers)
        return parse_structured(response.body, url)

    async def fetch_html(self, url: str) -> BeautifulSoup:
        """Fetch a URL and parse it as markup.

        Raises:
            TransportError: If the fetch fails.
            ParseError: If the body is empty.
        """
        response = await self.transport.fetch(url, self.profile.page_headers)
        return parse_html(response.body, url)

    def drop_item(self, exc: Exception) -> None:
        """Account for an item discarded by a builder."""
        self.monitor.record_drop(self.name)
        log.debug(
            "Item dropped",
            strategy=self.name,
            error_type=type(exc).__name__,
            error=str(exc),
        )
