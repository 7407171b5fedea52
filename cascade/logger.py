"""Structured logging for the extraction cascade, built on loguru.

Every strategy step logs with keyword context (``strategy=``, ``operation=``,
``url=``). The JSON-lines file sink lifts those three keys to the top level
of each record so a log aggregator can group a whole cascade run by
operation and see which strategy and candidate URL each line belongs to.
Anything else passed as a keyword lands under ``context``.

The console sink is for humans: it prefixes the message with the strategy
name when one is bound.
"""

import json
import sys
import tempfile
from datetime import timezone
from pathlib import Path
from typing import Any

from loguru import logger

from cascade.exceptions import LoggingInitializationError
from config.settings import GlobalConfig, get_config

# Promoted to top-level JSON keys, in this order.
CASCADE_FIELDS = ("strategy", "operation", "url")

_INTERNAL_EXTRA = frozenset({"module", "serialized"})


def _to_record(record: dict[str, Any]) -> dict[str, Any]:
    """Flatten a loguru record into the JSON shape written to disk."""
    extra = record["extra"]
    entry: dict[str, Any] = {
        "timestamp": record["time"].astimezone(timezone.utc).isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": extra.get("module", record["name"]),
        "function": record["function"],
        "line": record["line"],
    }
    for field in CASCADE_FIELDS:
        if field in extra:
            entry[field] = extra[field]

    context = {
        key: value
        for key, value in extra.items()
        if key not in CASCADE_FIELDS and key not in _INTERNAL_EXTRA
    }
    if context:
        entry["context"] = context

    exception = record["exception"]
    if exception is not None and exception.type is not None:
        entry["exception"] = {"type": exception.type.__name__, "value": str(exception.value)}
    return entry


def _json_format(record: dict[str, Any]) -> str:
    record["extra"]["serialized"] = json.dumps(_to_record(record), default=str)
    return "{extra[serialized]}\n"


def _console_format(record: dict[str, Any]) -> str:
    strategy = "<magenta>[{extra[strategy]}]</magenta> " if "strategy" in record["extra"] else ""
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
        f"{strategy}<level>{{message}}</level>\n{{exception}}"
    )


def _ensure_writable(log_dir: Path) -> None:
    """Create the log directory and prove a file can be written into it.

    Raises:
        LoggingInitializationError: If either step fails.
    """
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile(dir=log_dir):
            pass
    except OSError as exc:
        kind = "Permission denied" if isinstance(exc, PermissionError) else "Not writable"
        raise LoggingInitializationError(log_dir=str(log_dir), reason=f"{kind}: {exc}") from exc


def configure_logging(config: GlobalConfig | None = None) -> None:
    """Install the console and JSON-lines sinks.

    Call once during host bootstrap, before the engine performs any work.
    Calling it again replaces the sinks.

    Args:
        config: Optional GlobalConfig instance. If None, uses singleton.

    Raises:
        LoggingInitializationError: If the log directory is unusable.
    """
    if config is None:
        config = get_config()

    _ensure_writable(config.log_dir)
    logger.remove()

    logger.add(
        sys.stderr,
        format=_console_format,
        level=config.log_level,
        colorize=True,
        backtrace=config.debug,
        diagnose=config.debug,
    )
    logger.add(
        str(config.log_dir / "cascade_{time:YYYY-MM-DD}.json"),
        format=_json_format,
        level=config.log_level,
        rotation=config.log_rotation,
        retention=config.log_retention,
        compression="gz",
    )

    logger.info(
        "Logging initialized",
        app_name=config.app_name,
        environment=config.environment,
        source_domain=config.source_domain,
        log_dir=str(config.log_dir),
    )


def get_logger(name: str) -> "logger":
    """Logger bound to a module name.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("Candidate succeeded", strategy="api_probe", url="https://example.com/api/manga")
    """
    return logger.bind(module=name)
