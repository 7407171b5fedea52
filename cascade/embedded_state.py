"""Embedded-state extraction: hydration data scraped from inline scripts.

Client-rendered sites ship the data for the first paint inside the page,
typically as ``window.__INITIAL_STATE__ = {...};`` or a ``__NEXT_DATA__``
blob. This module reads that state without executing anything.

The scanning half is pure: ``scan_scripts`` takes raw script text and an
ordered pattern table and yields parsed values, so it can be tested against
literal script fixtures. The strategy half fetches pages and feeds the
scripts through it.
"""

import json
import re
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from bs4 import BeautifulSoup

from cascade.extractor import BaseStrategy, ProbeResult, StrategyRequest
from cascade.models import CatalogEntry, DetailRecord, PageRecord, Tag
from cascade.parsing import script_bodies
from cascade.records import (
    catalog_entries_from_items,
    detail_from_object,
    find_collection_owner,
    first_list,
    locate_items,
    pages_from_items,
    tags_from_items,
)

_DECODER = json.JSONDecoder()


def compile_patterns(patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.DOTALL) for pattern in patterns)


def decode_capture(script: str, match: re.Match[str]) -> Any | None:
    """Parse a pattern's capture as JSON.

    The capture is tried verbatim first. Lazy patterns can stop short of
    the real end of a nested literal, so on failure the first complete
    JSON value starting at the capture is decoded instead.
    """
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError:
        pass
    try:
        value, _ = _DECODER.raw_decode(script, match.start(1))
    except json.JSONDecodeError:
        return None
    return value


def iter_embedded_states(
    script: str, patterns: Sequence[re.Pattern[str]]
) -> Iterator[Any]:
    """Yield every pattern capture in one script that parses, in pattern order."""
    for pattern in patterns:
        match = pattern.search(script)
        if match is None:
            continue
        value = decode_capture(script, match)
        if value is not None:
            yield value


def scan_scripts(
    scripts: Iterable[str], patterns: Sequence[re.Pattern[str]]
) -> Iterator[Any]:
    """Yield parsed state from scripts in document order, patterns in priority order."""
    for script in scripts:
        yield from iter_embedded_states(script, patterns)


class EmbeddedStateStrategy(BaseStrategy):
    """Scans inline scripts of candidate pages for hydration state."""

    name = "embedded_state"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.patterns = compile_patterns(self.profile.embedded.patterns)

    def states(self, document: BeautifulSoup) -> Iterator[Any]:
        return scan_scripts(script_bodies(document), self.patterns)

    async def list_catalog(self, request: StrategyRequest) -> ProbeResult:
        config = self.profile.embedded

        async def probe(url: str) -> list[CatalogEntry]:
            document = await self.fetch_html(url)
            for state in self.states(document):
                items = locate_items(state, config.item_keys)
                entries = catalog_entries_from_items(items, self.profile, self.drop_item)
                if entries:
                    return entries
            return []

        urls = self.listing_urls(request, config.page_paths, config.search_paths)
        return await self.probe_in_order(urls, probe)

    async def fetch_detail(self, request: StrategyRequest) -> ProbeResult:
        entry = request.entry
        if entry is None:
            return ProbeResult(None, None, 0)
        chapter_keys = self.profile.aliases.detail["chapters"]

        async def probe(url: str) -> DetailRecord | None:
            document = await self.fetch_html(url)
            for state in self.states(document):
                owner = find_collection_owner(
                    state, chapter_keys, self.profile.embedded.max_depth
                )
                if owner is None:
                    continue
                record = detail_from_object(owner, entry, self.profile, self.drop_item)
                if record.has_content:
                    return record
            return None

        return await self.probe_in_order([entry.url], probe)

    async def fetch_pages(self, request: StrategyRequest) -> ProbeResult:
        chapter = request.chapter
        if chapter is None:
            return ProbeResult(None, None, 0)
        pages_keys = self.profile.embedded.pages_keys

        async def probe(url: str) -> list[PageRecord]:
            document = await self.fetch_html(url)
            for state in self.states(document):
                owner = find_collection_owner(
                    state, pages_keys, self.profile.embedded.max_depth
                )
                if owner is None:
                    continue
                pages = pages_from_items(
                    first_list(owner, pages_keys), self.profile, self.drop_item
                )
                if pages:
                    return pages
            return []

        return await self.probe_in_order([chapter.url], probe)

    async def list_tags(self, request: StrategyRequest) -> ProbeResult:
        config = self.profile.embedded

        async def probe(url: str) -> list[Tag]:
            document = await self.fetch_html(url)
            for state in self.states(document):
                owner = find_collection_owner(state, config.tags_keys, config.max_depth)
                if owner is None:
                    continue
                tags = tags_from_items(
                    first_list(owner, config.tags_keys), self.profile, self.drop_item
                )
                if tags:
                    return tags
            return []

        return await self.probe_in_order(self.page_urls(config.tag_page_paths), probe)
