"""Strategy orchestration: the public face of the extraction engine.

The orchestrator holds a fixed, ordered list of strategies and, for every
operation, folds over it: strategies run strictly one after another, and the
first successful, non-empty outcome wins. Ordering encodes a cost and
reliability preference, so an early success must prevent every later fetch.

Exhaustion is answered according to operation arity:
    - list_catalog / list_tags: an empty list ("nothing discoverable now")
    - fetch_detail / fetch_pages: ExhaustedStrategiesError
"""

from collections.abc import Sequence
from typing import Any

from cascade.api_probe import ApiProbeStrategy
from cascade.dom_heuristic import DomHeuristicStrategy
from cascade.embedded_state import EmbeddedStateStrategy
from cascade.exceptions import ConfigValidationError, ExhaustedStrategiesError
from cascade.extractor import BaseStrategy, Operation, StrategyOutcome, StrategyRequest
from cascade.logger import get_logger
from cascade.models import (
    CatalogEntry,
    ChapterRecord,
    DetailRecord,
    ListFilter,
    PageRecord,
    SortOrder,
    Tag,
)
from cascade.monitor import StrategyMonitor
from cascade.profile import SourceProfile
from cascade.transport import Transport

log = get_logger(__name__)


class StrategyOrchestrator:
    """Runs the extraction cascade for each host-facing operation.

    Attributes:
        strategies: Strategies in priority order.
        monitor: StrategyMonitor shared with every strategy.

    Example:
        async with BrowserTransport.create() as transport:
            engine = StrategyOrchestrator.from_profile(transport, SourceProfile.from_config())
            entries = await engine.list_catalog(page=1)
    """

    def __init__(
        self,
        strategies: Sequence[BaseStrategy],
        monitor: StrategyMonitor | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            strategies: Strategies in the order they should be tried.
            monitor: Optional monitor. A fresh one is created if not provided.

        Raises:
            ConfigValidationError: If no strategy is supplied.
        """
        if not strategies:
            raise ConfigValidationError(
                field="strategies",
                value=[],
                reason="At least one strategy is required",
            )
        self.strategies = tuple(strategies)
        self.monitor = monitor or StrategyMonitor()

    @classmethod
    def from_profile(
        cls, transport: Transport, profile: SourceProfile
    ) -> "StrategyOrchestrator":
        """Build the default cascade: API probe, embedded state, DOM heuristics."""
        monitor = StrategyMonitor()
        strategies = [
            strategy_cls(transport, profile, monitor)
            for strategy_cls in (ApiProbeStrategy, EmbeddedStateStrategy, DomHeuristicStrategy)
        ]
        return cls(strategies, monitor)

    @property
    def strategy_names(self) -> list[str]:
        return [strategy.name for strategy in self.strategies]

    async def run(self, request: StrategyRequest) -> StrategyOutcome | None:
        """Fold over the strategies and return the first successful outcome.

        Returns:
            The winning outcome, or None if every applicable strategy failed.
        """
        operation = request.operation.value
        log.debug("Operation started", operation=operation, target=request.target)

        for strategy in self.strategies:
            if not strategy.supports(request.operation):
                continue

            outcome = await strategy.attempt(request)
            if outcome.succeeded:
                log.info(
                    "Strategy succeeded",
                    operation=operation,
                    strategy=strategy.name,
                    source_url=outcome.source_url,
                    candidates_tried=outcome.candidates_tried,
                )
                return outcome

            log.debug(
                "Strategy produced nothing, falling through",
                operation=operation,
                strategy=strategy.name,
                candidates_tried=outcome.candidates_tried,
                error=outcome.error,
            )

        log.warning(
            "All strategies exhausted",
            operation=operation,
            target=request.target,
            strategies=self.strategy_names,
        )
        return None

    async def _collect(self, request: StrategyRequest) -> list[Any]:
        outcome = await self.run(request)
        return list(outcome.value) if outcome is not None else []

    async def _require(self, request: StrategyRequest) -> Any:
        outcome = await self.run(request)
        if outcome is None:
            raise ExhaustedStrategiesError(
                operation=request.operation.value,
                target=request.target,
                strategies=self.strategy_names,
            )
        return outcome.value

    async def list_catalog(
        self,
        page: int = 1,
        sort_order: SortOrder = SortOrder.UPDATED,
        filter: ListFilter | None = None,
    ) -> list[CatalogEntry]:
        """List one page of the catalog.

        Args:
            page: 1-based page number.
            sort_order: Requested order, where the source supports one.
            filter: Optional query/tag/state filter.

        Returns:
            Entries in source order; empty when nothing is discoverable.
        """
        request = StrategyRequest(
            operation=Operation.LIST_CATALOG,
            page=page,
            sort_order=sort_order,
            filter=filter or ListFilter(),
        )
        return await self._collect(request)

    async def fetch_detail(self, entry: CatalogEntry) -> DetailRecord:
        """Enrich a catalog entry with description, authors and chapters.

        Raises:
            ExhaustedStrategiesError: If no strategy produced a detail record.
        """
        return await self._require(
            StrategyRequest(operation=Operation.FETCH_DETAIL, entry=entry)
        )

    async def fetch_pages(self, chapter: ChapterRecord) -> list[PageRecord]:
        """List the page images of a chapter in reading order.

        Raises:
            ExhaustedStrategiesError: If no strategy produced any page.
        """
        return await self._require(
            StrategyRequest(operation=Operation.FETCH_PAGES, chapter=chapter)
        )

    async def list_tags(self) -> list[Tag]:
        return await self._collect(StrategyRequest(operation=Operation.LIST_TAGS))
