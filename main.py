"""Cascade-Extract Entry Point.

This module is the host bootstrap. It contains no extraction logic; all
functional code resides in the ``cascade`` package.

Responsibilities:
    1. Load and validate configuration
    2. Initialize logging infrastructure (fail-fast on error)
    3. Open the transport and build the default strategy cascade
    4. Handle top-level exceptions with graceful shutdown

Usage:
    python main.py
    # or
    SOURCE_DOMAIN=reader.example.org python main.py
"""

import asyncio
import sys
from typing import NoReturn

from loguru import logger

from cascade.exceptions import CascadeError, LoggingInitializationError
from cascade.logger import configure_logging
from config.settings import GlobalConfig, get_config


async def _run_pipeline(config: GlobalConfig) -> int:
    """List the first catalog page of the configured source.

    Args:
        config: The validated GlobalConfig instance.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    from cascade.orchestrator import StrategyOrchestrator
    from cascade.profile import SourceProfile
    from cascade.transport import BrowserTransport

    logger.info(
        "Pipeline execution started",
        app_name=config.app_name,
        environment=config.environment,
        source_domain=config.source_domain,
        page_size=config.page_size,
    )

    profile = SourceProfile.from_config(config)

    async with BrowserTransport.create(config) as transport:
        engine = StrategyOrchestrator.from_profile(transport, profile)
        entries = await engine.list_catalog(page=1)

    if entries:
        for entry in entries:
            logger.info(
                "Catalog entry",
                id=entry.id,
                title=entry.title,
                url=entry.url,
                state=entry.state.value if entry.state else None,
            )
    else:
        logger.warning("No catalog entries discoverable", source_domain=config.source_domain)

    logger.info("Strategy monitoring summary", **engine.monitor.get_summary())
    logger.info("Pipeline execution completed successfully", total_entries=len(entries))
    return 0


def _handle_fatal_error(exc: Exception) -> NoReturn:
    """Handle fatal errors with structured logging and graceful exit.

    Args:
        exc: The exception that caused the fatal error.
    """
    if isinstance(exc, CascadeError):
        logger.critical(
            "Fatal application error",
            error_type=type(exc).__name__,
            message=exc.message,
            context=exc.context,
        )
        sys.exit(1)

    # Unexpected error - log full traceback
    logger.exception("Unexpected fatal error", error=str(exc))
    sys.exit(1)


def main() -> int:
    """Application entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = get_config()
    except Exception as exc:
        # Cannot log yet - print to stderr
        print(f"FATAL: Configuration loading failed: {exc}", file=sys.stderr)
        return 1

    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(_run_pipeline(config))
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user (Ctrl+C)")
        return 130  # Standard Unix SIGINT exit code
    except Exception as exc:
        _handle_fatal_error(exc)


if __name__ == "__main__":
    sys.exit(main())
