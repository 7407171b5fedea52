"""API probe strategy: structured endpoints tried template by template.

Cheapest and most reliable when it works, so it runs first. Each template
costs exactly one fetch; the first template whose normalized output is
non-empty wins and the remaining templates are never requested.
"""

from urllib.parse import quote, quote_plus, urlparse

from cascade.extractor import BaseStrategy, ProbeResult, StrategyRequest
from cascade.models import CatalogEntry, DetailRecord, PageRecord, Tag
from cascade.normalizers import last_path_segment
from cascade.records import (
    catalog_entries_from_items,
    detail_from_object,
    locate_items,
    locate_object,
    pages_from_items,
    tags_from_items,
)

_SAFE = "-_.~"


def chapter_path_ids(url: str) -> tuple[str, str]:
    """Split a chapter URL into (manga id, chapter id).

    "/manga/foo/chapter/12" -> ("foo", "12"). Without a "chapter" segment
    the manga id is the parent segment.
    """
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    if not segments:
        return "", ""

    chapter_id = segments[-1]
    for marker in ("chapter", "chapters"):
        if marker in segments:
            index = segments.index(marker)
            manga_id = segments[index - 1] if index > 0 else ""
            return manga_id, chapter_id
    manga_id = segments[-2] if len(segments) > 1 else ""
    return manga_id, chapter_id


class ApiProbeStrategy(BaseStrategy):
    """Probes REST-like endpoints rendered from the profile's templates."""

    name = "api_probe"

    def template_context(self, request: StrategyRequest) -> dict[str, str]:
        """Values for every template placeholder, URL-encoded."""
        context = {
            "domain": self.profile.domain,
            "page": str(request.page),
            "limit": str(self.profile.page_size),
            "sort": request.sort_order.value,
            "query": quote_plus(request.filter.query or ""),
            "tag": quote(request.filter.tags[0], safe=_SAFE) if request.filter.tags else "",
            "state": request.filter.states[0].value if request.filter.states else "",
            "id": "",
            "manga_id": "",
            "chapter_id": "",
        }
        if request.entry is not None:
            slug = last_path_segment(request.entry.url) or request.entry.id
            context["id"] = quote(slug, safe=_SAFE)
        if request.chapter is not None:
            manga_id, chapter_id = chapter_path_ids(request.chapter.url)
            context["manga_id"] = quote(manga_id, safe=_SAFE)
            context["chapter_id"] = quote(chapter_id or request.chapter.id, safe=_SAFE)
        return context

    def render(self, templates: tuple[str, ...], request: StrategyRequest) -> list[str]:
        context = self.template_context(request)
        return [template.format(**context) for template in templates]

    async def list_catalog(self, request: StrategyRequest) -> ProbeResult:
        api = self.profile.api
        templates = api.search_templates if request.filter.query else api.catalog_templates

        async def probe(url: str) -> list[CatalogEntry]:
            data = await self.fetch_json(url)
            items = locate_items(data, api.catalog_keys)
            return catalog_entries_from_items(items, self.profile, self.drop_item)

        return await self.probe_in_order(self.render(templates, request), probe)

    async def fetch_detail(self, request: StrategyRequest) -> ProbeResult:
        entry = request.entry
        if entry is None:
            return ProbeResult(None, None, 0)

        async def probe(url: str) -> DetailRecord | None:
            data = locate_object(await self.fetch_json(url), self.profile.api.detail_keys)
            if data is None:
                return None
            return detail_from_object(data, entry, self.profile, self.drop_item)

        return await self.probe_in_order(
            self.render(self.profile.api.detail_templates, request), probe
        )

    async def fetch_pages(self, request: StrategyRequest) -> ProbeResult:
        if request.chapter is None:
            return ProbeResult(None, None, 0)

        async def probe(url: str) -> list[PageRecord]:
            data = await self.fetch_json(url)
            items = locate_items(data, self.profile.api.pages_keys, single_item_fallback=False)
            return pages_from_items(items, self.profile, self.drop_item)

        return await self.probe_in_order(
            self.render(self.profile.api.pages_templates, request), probe
        )

    async def list_tags(self, request: StrategyRequest) -> ProbeResult:
        async def probe(url: str) -> list[Tag]:
            data = await self.fetch_json(url)
            items = locate_items(data, self.profile.api.tags_keys, single_item_fallback=False)
            return tags_from_items(items, self.profile, self.drop_item)

        return await self.probe_in_order(
            self.render(self.profile.api.tags_templates, request), probe
        )
