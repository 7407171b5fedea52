"""Cascade-Extract core package.

A heuristic, multi-strategy content-extraction engine for sources with no
stable contract:
- orchestrator: runs strategies in priority order, first success wins
- api_probe: structured-endpoint templates
- embedded_state: hydration state scraped from inline scripts
- dom_heuristic: generic container/field selectors over markup
- normalizers: alias-driven field resolution and state-label mapping
- models: canonical entity schemas
- profile: frozen per-source strategy configuration
- transport / parsing: Playwright fetches, BeautifulSoup and JSON parsing
- monitor, logger, exceptions: observability and failure taxonomy
"""

__version__ = "1.0.0"
