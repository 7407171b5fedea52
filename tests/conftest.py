"""Pytest configuration and shared fixtures for the Cascade-Extract test suite.

This module provides hermetic test infrastructure with the following guarantees:
- No external network requests (a recording fake transport serves every fetch)
- Deterministic execution (routes are fixed per test)
- Isolated state (no cross-test contamination)

Design Rationale:
    Factory fixtures over static fixtures enable dynamic test case generation
    without code duplication. The mock_config fixture overrides the singleton
    GlobalConfig to prevent state leakage between tests.
"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable

import pytest

from cascade.exceptions import TransportError
from cascade.profile import SourceProfile
from cascade.transport import FetchResponse
from config.settings import GlobalConfig

DOMAIN = "test.example.com"


class FakeTransport:
    """Transport double serving canned bodies and recording every fetch.

    Routes map an absolute URL to ``(status, body)`` or to a plain body
    (status 200). Unrouted URLs answer 404. Non-2xx statuses raise
    TransportError exactly like the real transport.

    Attributes:
        routes: URL to response mapping.
        calls: Every URL fetched, in order.
    """

    def __init__(self, routes: Mapping[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[str] = []
        self.headers_seen: list[dict[str, str]] = []

    def add(self, url: str, body: Any, status: int = 200) -> None:
        if not isinstance(body, str):
            body = json.dumps(body)
        self.routes[url] = (status, body)

    def count(self, url: str) -> int:
        return self.calls.count(url)

    async def fetch(
        self, url: str, headers: Mapping[str, str] | None = None
    ) -> FetchResponse:
        self.calls.append(url)
        self.headers_seen.append(dict(headers or {}))

        route = self.routes.get(url, (404, ""))
        status, body = route if isinstance(route, tuple) else (200, route)
        if not 200 <= status < 300:
            raise TransportError(url=url, reason=f"HTTP {status}", status_code=status)
        return FetchResponse(url=url, status=status, body=body)


@pytest.fixture
def mock_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GlobalConfig:
    """Provide isolated GlobalConfig with safe test defaults.

    Overrides the lru_cache singleton to prevent state leakage between tests.
    Uses tmp_path for all file operations to avoid polluting the filesystem.

    Args:
        tmp_path: Pytest temporary directory fixture.
        monkeypatch: Pytest monkeypatch fixture for patching.

    Returns:
        GlobalConfig instance with test-safe defaults.
    """
    # Clear the lru_cache to force fresh instantiation
    from config.settings import get_config

    get_config.cache_clear()

    log_dir = tmp_path / "logs"
    log_dir.mkdir()

    # Override environment variables for test isolation
    test_env = {
        "APP_NAME": "Cascade-Test",
        "ENVIRONMENT": "test",
        "DEBUG": "false",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": str(log_dir),
        "LOG_ROTATION": "1 day",
        "LOG_RETENTION": "1 day",
        "SOURCE_DOMAIN": f"https://{DOMAIN}/",
        "PAGE_SIZE": "10",
        "REQUEST_TIMEOUT_MS": "5000",
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    config = get_config()

    yield config

    # Cleanup: clear cache again after test
    get_config.cache_clear()


@pytest.fixture
def profile(mock_config: GlobalConfig) -> SourceProfile:
    """Default SourceProfile for the test domain."""
    return SourceProfile.from_config(mock_config)


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Empty recording transport; every URL answers 404 until routed."""
    return FakeTransport()


@pytest.fixture
def url() -> Callable[[str], str]:
    """Build an absolute test-domain URL from a path."""

    def _url(path: str) -> str:
        return f"https://{DOMAIN}{path}"

    return _url


@pytest.fixture
def script_page_factory() -> Callable[..., str]:
    """Factory fixture for pages carrying inline hydration scripts.

    Example:
        html = script_page_factory('window.__INITIAL_STATE__ = {"manga": []};')
    """

    def _generate(*scripts: str, body: str = "") -> str:
        tags = "".join(f"<script>{script}</script>" for script in scripts)
        return (
            "<!DOCTYPE html><html><head><title>Reader</title>"
            '<script src="/static/app.js"></script>'
            f"{tags}</head><body>{body}</body></html>"
        )

    return _generate


@pytest.fixture
def card_html_factory() -> Callable[..., str]:
    """Factory fixture for generic card-grid listing markup.

    Supports injection of malformed cards for boundary testing: pass
    ``None`` as href to omit the link, or a ``javascript:`` href.

    Example:
        html = card_html_factory([{"href": "/manga/a", "title": "A"}, {"href": None}])
    """

    def _generate(cards: list[dict[str, Any]], container: str = "card") -> str:
        items = []
        for card in cards:
            title = card.get("title", "Untitled")
            href = card.get("href")
            image = card.get("image")
            status = card.get("status")

            inner = ""
            if image is not None:
                attribute = card.get("image_attr", "src")
                inner += f'<img {attribute}="{image}" alt="">'
            if title is not None:
                inner += f"<h3>{title}</h3>"
            if status is not None:
                inner += f'<span class="status">{status}</span>'
            if href is not None:
                inner = f'<a href="{href}">{inner}</a>'
            items.append(f'<div class="{container}">{inner}</div>')

        return (
            "<!DOCTYPE html><html><head><title>Catalog</title></head>"
            f'<body><main class="grid">{"".join(items)}</main></body></html>'
        )

    return _generate


# Pytest configuration
def pytest_configure(config: Any) -> None:
    """Configure pytest with custom markers and settings.

    Args:
        config: Pytest config object.
    """
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring full stack",
    )
