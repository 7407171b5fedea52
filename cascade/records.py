"""Builders turning heterogeneous JSON items into canonical entities.

Shared by the API probe and embedded-state strategies: both end up holding
a JSON value whose naming they do not control. Builders resolve fields via
the profile's alias tables, drop items whose required fields are missing
(reporting each drop through ``on_drop``), and never fail a whole batch.
"""

from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from cascade.exceptions import SchemaError
from cascade.models import CatalogEntry, ChapterRecord, DetailRecord, PageRecord, Tag
from cascade.normalizers import (
    FieldResolver,
    MappingSource,
    extract_number,
    is_image_reference,
    last_path_segment,
    normalize_state,
    parse_upload_date,
    to_absolute_url,
    to_relative_url,
)
from cascade.profile import SourceProfile

DropHandler = Callable[[Exception], None]


def _ignore(exc: Exception) -> None:
    return None


def locate_items(
    value: Any,
    keys: tuple[str, ...],
    single_item_fallback: bool = True,
    depth: int = 2,
) -> list[Any]:
    """Find the item collection in a parsed JSON value.

    A list is its own collection. For an object, the candidate keys are
    probed in order; a non-empty list wins, a nested object is searched the
    same way one level down. When nothing matches, the whole object is
    treated as a single item (or as no items, without the fallback).
    """
    if isinstance(value, list):
        return value
    if not isinstance(value, Mapping):
        return []

    for key in keys:
        candidate = value.get(key)
        if isinstance(candidate, list) and candidate:
            return candidate
        if isinstance(candidate, Mapping) and depth > 0:
            nested = locate_items(candidate, keys, False, depth - 1)
            if nested:
                return nested

    return [value] if single_item_fallback else []


def locate_object(value: Any, keys: tuple[str, ...]) -> Mapping[str, Any] | None:
    """First object found under one of ``keys``, else the value itself."""
    if not isinstance(value, Mapping):
        return None
    for key in keys:
        candidate = value.get(key)
        if isinstance(candidate, Mapping):
            return candidate
    return value


def find_collection_owner(
    value: Any, keys: tuple[str, ...], max_depth: int
) -> Mapping[str, Any] | None:
    """Depth-first search for the first object holding a non-empty list.

    Used on hydration state, where the useful record tends to be buried
    (``props.pageProps.manga.chapters``).
    """
    if max_depth < 0:
        return None

    if isinstance(value, Mapping):
        for key in keys:
            candidate = value.get(key)
            if isinstance(candidate, list) and candidate:
                return value
        children = list(value.values())
    elif isinstance(value, list):
        children = value
    else:
        return None

    for child in children:
        found = find_collection_owner(child, keys, max_depth - 1)
        if found is not None:
            return found
    return None


def first_list(data: Mapping[str, Any], keys: tuple[str, ...]) -> list[Any]:
    for key in keys:
        candidate = data.get(key)
        if isinstance(candidate, list) and candidate:
            return candidate
    return []


def catalog_entry_from_item(item: Mapping[str, Any], profile: SourceProfile) -> CatalogEntry:
    """Build one CatalogEntry.

    Raises:
        SchemaError: If id or title cannot be resolved.
        ValidationError: If a resolved value is unusable (e.g. bad URL).
    """
    resolver = FieldResolver(profile.aliases.catalog, entity="catalog item")
    source = MappingSource(item)

    identifier = resolver.required(source, "id")
    title = resolver.required(source, "title")
    link = resolver.optional(source, "url") or profile.entry_path.format(
        id=quote(identifier, safe="-_.~")
    )
    return CatalogEntry(
        id=identifier,
        title=title,
        url=to_absolute_url(link, profile.domain),
        cover_url=resolver.image(source, "cover_url", profile.domain),
        state=normalize_state(resolver.optional(source, "state")),
    )


def catalog_entries_from_items(
    items: list[Any], profile: SourceProfile, on_drop: DropHandler = _ignore
) -> list[CatalogEntry]:
    """Build entries in source order, de-duplicated by id."""
    entries: dict[str, CatalogEntry] = {}
    for item in items:
        if not isinstance(item, Mapping):
            continue
        try:
            entry = catalog_entry_from_item(item, profile)
        except (SchemaError, ValidationError) as exc:
            on_drop(exc)
            continue
        entries.setdefault(entry.id, entry)
    return list(entries.values())


def chapters_from_items(
    items: list[Any],
    manga_id: str,
    profile: SourceProfile,
    on_drop: DropHandler = _ignore,
) -> tuple[ChapterRecord, ...]:
    """Build chapters from source-ordered items, returned newest-first.

    The chapter number comes from an explicit number field, else from a
    number in the title, else from discovery order (1-based).
    """
    resolver = FieldResolver(profile.aliases.chapter, entity="chapter")
    chapters: list[ChapterRecord] = []

    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            continue
        source = MappingSource(item)
        try:
            chapter_id = resolver.optional(source, "id")
            link = resolver.optional(source, "url")
            if chapter_id is None and link is None:
                raise SchemaError(field="id", entity="chapter", aliases=profile.aliases.chapter["id"])

            title = resolver.optional(source, "title")
            number = extract_number(resolver.optional(source, "number"))
            if number is None:
                number = extract_number(title)
            if number is None:
                number = float(index + 1)

            if link is None:
                link = profile.chapter_path.format(
                    manga_id=quote(manga_id, safe="-_.~"),
                    chapter_id=quote(chapter_id, safe="-_.~"),
                )
            volume = extract_number(resolver.optional(source, "volume"))

            chapters.append(
                ChapterRecord(
                    id=chapter_id or to_relative_url(link, profile.domain),
                    title=title or f"Chapter {number:g}",
                    number=number,
                    volume=int(volume) if volume is not None else 0,
                    url=to_absolute_url(link, profile.domain),
                    upload_date=parse_upload_date(resolver.optional(source, "upload_date")),
                )
            )
        except (SchemaError, ValidationError) as exc:
            on_drop(exc)

    chapters.reverse()
    return tuple(chapters)


def detail_from_object(
    data: Mapping[str, Any],
    entry: CatalogEntry,
    profile: SourceProfile,
    on_drop: DropHandler = _ignore,
) -> DetailRecord:
    """Copy-merge a JSON detail object onto an entry."""
    resolver = FieldResolver(profile.aliases.detail, entity="detail")
    source = MappingSource(data)
    manga_id = last_path_segment(entry.url) or entry.id

    chapters = chapters_from_items(
        first_list(data, profile.aliases.detail["chapters"]), manga_id, profile, on_drop
    )
    return DetailRecord.merge(
        entry,
        title=resolver.optional(source, "title"),
        description=resolver.optional(source, "description"),
        authors=resolver.many(source, "authors"),
        cover_url=resolver.image(source, "cover_url", profile.domain),
        state=normalize_state(resolver.optional(source, "state")),
        chapters=chapters,
    )


def pages_from_items(
    items: list[Any], profile: SourceProfile, on_drop: DropHandler = _ignore
) -> list[PageRecord]:
    """Build pages in source order. Items may be URL strings or objects."""
    resolver = FieldResolver(profile.aliases.page, entity="page")
    pages: list[PageRecord] = []

    for item in items:
        try:
            if isinstance(item, str) and item.strip():
                url, preview = item.strip(), None
            elif isinstance(item, Mapping):
                source = MappingSource(item)
                url = resolver.required(source, "url", accept=is_image_reference)
                preview = resolver.optional(source, "preview", accept=is_image_reference)
            else:
                continue

            absolute = to_absolute_url(url, profile.domain)
            pages.append(
                PageRecord(
                    id=to_relative_url(absolute, profile.domain),
                    url=absolute,
                    preview=to_absolute_url(preview, profile.domain) if preview else None,
                )
            )
        except (SchemaError, ValidationError) as exc:
            on_drop(exc)

    return pages


def tags_from_items(
    items: list[Any], profile: SourceProfile, on_drop: DropHandler = _ignore
) -> list[Tag]:
    """Build tags in source order, de-duplicated by key."""
    resolver = FieldResolver(profile.aliases.tag, entity="tag")
    tags: dict[str, Tag] = {}

    for item in items:
        if not isinstance(item, Mapping):
            continue
        source = MappingSource(item)
        try:
            tag = Tag(
                key=resolver.required(source, "key"),
                title=resolver.required(source, "title"),
            )
        except (SchemaError, ValidationError) as exc:
            on_drop(exc)
            continue
        tags.setdefault(tag.key, tag)

    return list(tags.values())
