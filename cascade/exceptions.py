"""Custom exception hierarchy for Cascade-Extract.

This module defines the failure taxonomy of the extraction cascade. Each
exception carries contextual information (URL, strategy, field) so a log
line alone is enough to tell which candidate failed and why.

Scope of each error:
    - TransportError / ParseError: caught at the single-candidate level
      inside a strategy, never propagated past it
    - SchemaError: drops the offending item only
    - ExhaustedStrategiesError: raised by the orchestrator for
      single-result operations once every strategy has failed
"""

from datetime import UTC, datetime
from typing import Any


class CascadeError(Exception):
    """Base exception for all Cascade-Extract errors.

    Attributes:
        message: Human-readable error description.
        context: Optional dictionary with additional debugging information.
        timestamp: UTC timestamp when the exception was raised.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(UTC)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format exception message with context for logging."""
        base = f"[{self.timestamp.isoformat()}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} | Context: {context_str}"
        return base


class ConfigValidationError(CascadeError):
    """Raised when a source profile or setting is unusable.

    Startup-blocking: the engine cannot be built without valid configuration.
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(
            message=f"Configuration validation failed for '{field}': {reason}",
            context={"field": field, "value": value, "reason": reason},
        )


class TransportError(CascadeError):
    """Raised when a fetch fails.

    Covers connection errors, timeouts and non-2xx responses. The status
    code is kept when the server answered at all.
    """

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(
            message=f"Fetch of '{url}' failed: {reason}",
            context={"url": url, "reason": reason, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class ParseError(CascadeError):
    """Raised when a fetched body is not valid markup or structured data."""

    def __init__(self, url: str, reason: str, content_kind: str = "json") -> None:
        super().__init__(
            message=f"Could not parse {content_kind} body from '{url}': {reason}",
            context={"url": url, "reason": reason, "content_kind": content_kind},
        )
        self.url = url


class SchemaError(CascadeError):
    """Raised when a required canonical field cannot be resolved for an item.

    Only the item being built is discarded; the rest of the batch survives.
    """

    def __init__(self, field: str, entity: str, aliases: tuple[str, ...] = ()) -> None:
        super().__init__(
            message=f"Required field '{field}' unresolved for {entity}",
            context={"field": field, "entity": entity, "aliases": list(aliases)},
        )
        self.field = field
        self.entity = entity


class ExhaustedStrategiesError(CascadeError):
    """Raised when every strategy failed for a single-result operation.

    Attributes:
        operation: Name of the operation that could not be satisfied.
        strategies: Names of the strategies that were tried, in order.
    """

    def __init__(self, operation: str, target: str, strategies: list[str]) -> None:
        super().__init__(
            message=f"All extraction strategies exhausted for {operation} of '{target}'",
            context={"operation": operation, "target": target, "strategies": strategies},
        )
        self.operation = operation
        self.strategies = strategies


class LoggingInitializationError(CascadeError):
    """Raised when the logging system fails to initialize.

    This is a startup-blocking error - the application cannot proceed
    without a functioning logging infrastructure.
    """

    def __init__(self, log_dir: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to initialize logging at '{log_dir}': {reason}",
            context={"log_dir": log_dir, "reason": reason},
        )
