"""DOM heuristic strategy: generic markup patterns as the last resort.

The container selector union over-matches (``.card``,
``.item``, ``.post``...) to maximize recall across unknown markup, so every
candidate is built leniently and pruned when it lacks a navigable link or a
title. Pruning one candidate never affects its siblings.
"""

from bs4 import BeautifulSoup
from bs4 import Tag as Element
from pydantic import ValidationError

from cascade.exceptions import ParseError, SchemaError, TransportError
from cascade.extractor import BaseStrategy, ProbeResult, StrategyRequest
from cascade.logger import get_logger
from cascade.models import (
    CatalogEntry,
    ChapterRecord,
    DetailRecord,
    PageRecord,
    Tag,
)
from cascade.normalizers import (
    ElementSource,
    FieldResolver,
    extract_number,
    is_image_reference,
    is_navigable,
    last_path_segment,
    normalize_state,
    parse_upload_date,
    to_absolute_url,
    to_relative_url,
)

log = get_logger(__name__)


class DomHeuristicStrategy(BaseStrategy):
    """Extracts entities from rendered markup using generic selectors."""

    name = "dom_heuristic"

    def resolve_link(
        self, source: ElementSource, aliases: tuple[str, ...]
    ) -> tuple[str, Element] | None:
        """First navigable link among the aliases, with the element carrying it."""
        for alias in aliases:
            href = source.lookup(alias)
            if is_navigable(href):
                return href, source.locate(alias)
        return None

    def entry_from_element(self, element: Element) -> CatalogEntry:
        """Build one CatalogEntry from a candidate container.

        Raises:
            SchemaError: If the candidate has no navigable link or no title.
            ValidationError: If a resolved value is unusable.
        """
        aliases = self.profile.aliases.dom_catalog
        resolver = FieldResolver(aliases, entity="DOM catalog item")
        source = ElementSource(element)

        link = self.resolve_link(source, aliases["link"])
        if link is None:
            raise SchemaError(field="link", entity="DOM catalog item", aliases=aliases["link"])
        href, anchor = link

        title = resolver.optional(source, "title") or ElementSource(anchor).lookup("@title")
        if title is None:
            raise SchemaError(field="title", entity="DOM catalog item", aliases=aliases["title"])

        domain = self.profile.domain
        return CatalogEntry(
            id=to_relative_url(href, domain),
            title=title,
            url=to_absolute_url(href, domain),
            cover_url=resolver.image(source, "cover_url", domain),
            state=normalize_state(resolver.optional(source, "state")),
        )

    def entries_from_document(self, document: BeautifulSoup) -> list[CatalogEntry] | None:
        """Candidates of one page, or None when no container matched at all."""
        candidates = document.select(self.profile.dom.container_union)
        if not candidates:
            return None

        entries: dict[str, CatalogEntry] = {}
        for element in candidates:
            try:
                entry = self.entry_from_element(element)
            except (SchemaError, ValidationError) as exc:
                self.drop_item(exc)
                continue
            entries.setdefault(entry.id, entry)
        return list(entries.values())

    async def list_catalog(self, request: StrategyRequest) -> ProbeResult:
        """Stop at the first page with any container match, even if all are pruned."""
        config = self.profile.dom
        tried = 0

        for url in self.listing_urls(request, config.page_paths, config.search_paths):
            tried += 1
            try:
                document = await self.fetch_html(url)
            except (TransportError, ParseError) as exc:
                self.monitor.record_probe(self.name, failed=True)
                log.debug(
                    "Candidate failed",
                    strategy=self.name,
                    url=url,
                    error_type=type(exc).__name__,
                )
                continue

            entries = self.entries_from_document(document)
            self.monitor.record_probe(self.name, failed=not entries)
            if entries is not None:
                log.info(
                    "Container page found",
                    strategy=self.name,
                    url=url,
                    entries=len(entries),
                )
                return ProbeResult(entries, url, tried)

        return ProbeResult(None, None, tried)

    def chapters_from_document(
        self, document: BeautifulSoup
    ) -> tuple[ChapterRecord, ...]:
        """Chapters in discovery order, returned newest-first."""
        aliases = self.profile.aliases.dom_chapter
        resolver = FieldResolver(aliases, entity="DOM chapter")
        domain = self.profile.domain
        chapters: list[ChapterRecord] = []

        elements = document.select(", ".join(self.profile.dom.chapter_selectors))
        for index, element in enumerate(elements):
            source = ElementSource(element)
            try:
                link = self.resolve_link(source, aliases["link"])
                if link is None:
                    raise SchemaError(field="link", entity="DOM chapter", aliases=aliases["link"])
                href = link[0]
                title = resolver.optional(source, "title")
                number = extract_number(title)
                if number is None:
                    number = float(index + 1)

                chapters.append(
                    ChapterRecord(
                        id=to_relative_url(href, domain),
                        title=title or f"Chapter {number:g}",
                        number=number,
                        url=to_absolute_url(href, domain),
                        upload_date=parse_upload_date(resolver.optional(source, "upload_date")),
                    )
                )
            except (SchemaError, ValidationError) as exc:
                self.drop_item(exc)

        chapters.reverse()
        return tuple(chapters)

    async def fetch_detail(self, request: StrategyRequest) -> ProbeResult:
        entry = request.entry
        if entry is None:
            return ProbeResult(None, None, 0)

        async def probe(url: str) -> DetailRecord:
            document = await self.fetch_html(url)
            resolver = FieldResolver(self.profile.aliases.dom_detail, entity="DOM detail")
            source = ElementSource(document)

            return DetailRecord.merge(
                entry,
                description=resolver.optional(source, "description"),
                authors=resolver.many(source, "authors"),
                cover_url=resolver.image(source, "cover_url", self.profile.domain),
                state=normalize_state(resolver.optional(source, "state")),
                chapters=self.chapters_from_document(document),
            )

        return await self.probe_in_order([entry.url], probe)

    async def fetch_pages(self, request: StrategyRequest) -> ProbeResult:
        chapter = request.chapter
        if chapter is None:
            return ProbeResult(None, None, 0)
        resolver = FieldResolver(self.profile.aliases.dom_page, entity="DOM page")
        domain = self.profile.domain

        async def probe(url: str) -> list[PageRecord]:
            document = await self.fetch_html(url)
            pages: dict[str, PageRecord] = {}
            for element in document.select(", ".join(self.profile.dom.page_image_selectors)):
                try:
                    absolute = to_absolute_url(
                        resolver.required(
                            ElementSource(element), "url", accept=is_image_reference
                        ),
                        domain,
                    )
                    page = PageRecord(id=to_relative_url(absolute, domain), url=absolute)
                except (SchemaError, ValidationError) as exc:
                    self.drop_item(exc)
                    continue
                pages.setdefault(page.id, page)
            return list(pages.values())

        return await self.probe_in_order([chapter.url], probe)

    async def list_tags(self, request: StrategyRequest) -> ProbeResult:
        config = self.profile.dom
        resolver = FieldResolver(self.profile.aliases.dom_tag, entity="DOM tag")

        async def probe(url: str) -> list[Tag]:
            document = await self.fetch_html(url)
            tags: dict[str, Tag] = {}
            for element in document.select(", ".join(config.tag_link_selectors)):
                source = ElementSource(element)
                try:
                    href = resolver.required(source, "link")
                    tag = Tag(
                        key=last_path_segment(href),
                        title=resolver.required(source, "title"),
                    )
                except (SchemaError, ValidationError) as exc:
                    self.drop_item(exc)
                    continue
                tags.setdefault(tag.key, tag)
            return list(tags.values())

        return await self.probe_in_order(self.page_urls(config.tag_page_paths), probe)
