"""Observability counters for the extraction cascade.

The engine swallows intermediate failures inside the cascade, so the
only way a host can tell that, say, every API probe has started returning
404 is through these counters. StrategyMonitor tracks, per strategy:
attempts, successes, candidate probes and dropped items.

Counters are the only state shared between concurrent operations; all
updates happen on the event loop thread.
"""

from dataclasses import dataclass
from typing import Any

from cascade.logger import get_logger

log = get_logger(__name__)


@dataclass
class StrategyStats:
    """Cumulative counters for one strategy."""

    attempts: int = 0
    successes: int = 0
    probes: int = 0
    probe_failures: int = 0
    dropped_items: int = 0

    @property
    def failures(self) -> int:
        return self.attempts - self.successes

    @property
    def success_rate(self) -> float:
        """Ratio of successful attempts, 0.0 when never attempted."""
        if self.attempts == 0:
            return 0.0
        return self.successes / self.attempts


class StrategyMonitor:
    """Counts what each strategy did across operations.

    Example:
        monitor = StrategyMonitor()
        monitor.record_probe("api_probe", failed=True)
        monitor.record_attempt("api_probe", "list_catalog", succeeded=False)
        monitor.get_summary()["api_probe"]["failures"]  # 1
    """

    def __init__(self) -> None:
        self._stats: dict[str, StrategyStats] = {}

    def _for(self, strategy: str) -> StrategyStats:
        return self._stats.setdefault(strategy, StrategyStats())

    def record_probe(self, strategy: str, failed: bool = False) -> None:
        """Record one candidate URL/template being tried."""
        stats = self._for(strategy)
        stats.probes += 1
        if failed:
            stats.probe_failures += 1

    def record_drop(self, strategy: str, count: int = 1) -> None:
        """Record items discarded for unresolved required fields."""
        self._for(strategy).dropped_items += count

    def record_attempt(self, strategy: str, operation: str, succeeded: bool) -> None:
        """Record the final outcome of one strategy attempt."""
        stats = self._for(strategy)
        stats.attempts += 1
        if succeeded:
            stats.successes += 1
        log.debug(
            "Strategy attempt recorded",
            strategy=strategy,
            operation=operation,
            succeeded=succeeded,
        )

    def stats(self, strategy: str) -> StrategyStats:
        """Counters for one strategy (zeroed if it never ran)."""
        return self._stats.get(strategy, StrategyStats())

    def get_summary(self) -> dict[str, dict[str, Any]]:
        """Generate per-strategy summary statistics for reporting."""
        return {
            name: {
                "attempts": stats.attempts,
                "successes": stats.successes,
                "failures": stats.failures,
                "probes": stats.probes,
                "probe_failures": stats.probe_failures,
                "dropped_items": stats.dropped_items,
                "success_rate": f"{stats.success_rate:.1%}",
            }
            for name, stats in self._stats.items()
        }

    def reset(self) -> None:
        """Reset all counters."""
        self._stats.clear()
        log.debug("Strategy monitor reset")
