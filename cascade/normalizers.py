"""Field and state-label normalization.

Sources name the same thing many ways: ``id``/``_id``/``slug`` in JSON,
``.title``/``h3``/``a[title]`` in markup. This module resolves a canonical
field from such a bag using ordered alias lists, and maps free-text status
labels to MangaState.

Two kinds of field source are supported:
    - MappingSource wraps a JSON object; aliases are keys.
    - ElementSource wraps a BeautifulSoup element; aliases are
      ``selector@attribute`` strings. An empty selector means the element
      itself, an empty attribute means the element's text. ``img@data-src``
      reads the first descendant image's ``data-src``; ``@href`` reads the
      element's own ``href``; ``.title`` reads the first ``.title`` text.
"""

import re
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, Protocol
from urllib.parse import urljoin, urlparse

from bs4 import Tag as Element
from pydantic import TypeAdapter, ValidationError

from cascade.exceptions import SchemaError
from cascade.models import MangaState

_NUMBER_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")
_DATETIME_ADAPTER = TypeAdapter(datetime)


def _scalar_text(value: Any) -> str | None:
    """Render a scalar as non-empty text, or None.

    Containers and booleans never count as a present value.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


class FieldSource(Protocol):
    """Anything a field can be looked up in by alias."""

    def lookup(self, alias: str) -> str | None: ...

    def lookup_all(self, alias: str) -> list[str]: ...


class MappingSource:
    """Field source over a JSON object."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self.data = data

    def lookup(self, alias: str) -> str | None:
        return _scalar_text(self.data.get(alias))

    def lookup_all(self, alias: str) -> list[str]:
        value = self.data.get(alias)
        if isinstance(value, list):
            values = []
            for item in value:
                if isinstance(item, Mapping):
                    item = item.get("name") or item.get("title")
                text = _scalar_text(item)
                if text is not None:
                    values.append(text)
            return values

        text = _scalar_text(value)
        return [text] if text is not None else []


class ElementSource:
    """Field source over a DOM element."""

    def __init__(self, element: Element) -> None:
        self.element = element

    @staticmethod
    def _split(alias: str) -> tuple[str, str]:
        selector, separator, attribute = alias.rpartition("@")
        if not separator:
            return alias, ""
        return selector, attribute

    def _read(self, target: Element, attribute: str) -> str | None:
        if attribute:
            value = target.get(attribute)
            if isinstance(value, list):
                value = " ".join(value)
            return _scalar_text(value)
        return _scalar_text(" ".join(target.get_text(" ", strip=True).split()))

    def locate(self, alias: str) -> Element | None:
        """Return the element an alias reads from, if present."""
        selector, _ = self._split(alias)
        if not selector:
            return self.element
        return self.element.select_one(selector)

    def lookup(self, alias: str) -> str | None:
        _, attribute = self._split(alias)
        target = self.locate(alias)
        if target is None:
            return None
        return self._read(target, attribute)

    def lookup_all(self, alias: str) -> list[str]:
        selector, attribute = self._split(alias)
        targets = [self.element] if not selector else self.element.select(selector)
        values = []
        for target in targets:
            text = self._read(target, attribute)
            if text is not None:
                values.append(text)
        return values


def resolve_field(
    source: FieldSource,
    aliases: tuple[str, ...],
    accept: Callable[[str], bool] | None = None,
) -> str | None:
    """Return the value of the first alias that is present and non-empty.

    With ``accept``, values it rejects count as absent and the next alias
    is tried.
    """
    for alias in aliases:
        value = source.lookup(alias)
        if value is not None and (accept is None or accept(value)):
            return value
    return None


class FieldResolver:
    """Resolves canonical fields through a declarative alias-priority table.

    Args:
        aliases: Mapping of canonical field name to ordered source aliases.
        entity: Entity name used in SchemaError context.

    Example:
        resolver = FieldResolver({"id": ("id", "_id", "slug")}, entity="catalog item")
        resolver.required(MappingSource({"_id": "7", "id": "42"}), "id")  # "42"
    """

    def __init__(self, aliases: Mapping[str, tuple[str, ...]], entity: str) -> None:
        self.aliases = aliases
        self.entity = entity

    def optional(
        self,
        source: FieldSource,
        field: str,
        accept: Callable[[str], bool] | None = None,
    ) -> str | None:
        return resolve_field(source, self.aliases.get(field, ()), accept)

    def required(
        self,
        source: FieldSource,
        field: str,
        accept: Callable[[str], bool] | None = None,
    ) -> str:
        """Resolve a field that the entity cannot exist without.

        Raises:
            SchemaError: If no alias yields an accepted value.
        """
        aliases = self.aliases.get(field, ())
        value = resolve_field(source, aliases, accept)
        if value is None:
            raise SchemaError(field=field, entity=self.entity, aliases=aliases)
        return value

    def image(self, source: FieldSource, field: str, domain: str) -> str | None:
        """Absolute URL of the first alias holding a fetchable image.

        Lazy-load placeholders such as ``data:`` URIs count as absent, so
        ``data-src`` style aliases later in the list still apply.
        """
        value = self.optional(source, field, accept=is_image_reference)
        return to_absolute_url(value, domain) if value else None

    def many(self, source: FieldSource, field: str) -> tuple[str, ...]:
        """Resolve a multi-valued field from the first alias with any values."""
        for alias in self.aliases.get(field, ()):
            values = source.lookup_all(alias)
            if values:
                return tuple(dict.fromkeys(values))
        return ()


# Checked in this order; the first group containing a match wins.
STATE_VARIANTS: tuple[tuple[MangaState, tuple[str, ...]], ...] = (
    (
        MangaState.ONGOING,
        (
            "ongoing", "continuing", "publishing", "releasing",
            "مستمرة", "مستمر",
            "en cours", "en curso", "en emisión", "em andamento",
            "продолжается", "выпускается",
            "devam ediyor", "berjalan",
        ),
    ),
    (
        MangaState.FINISHED,
        (
            "completed", "complete", "finished", "ended",
            "مكتملة", "مكتمل", "انتهى",
            "terminé", "finalizado", "completo", "concluído",
            "завершен", "завершён", "завершена", "завершено",
            "tamamlandı", "tamat",
        ),
    ),
    (
        MangaState.ABANDONED,
        (
            "dropped", "cancelled", "canceled", "abandoned", "discontinued",
            "متوقفة", "متوقف", "ملغي",
            "abandonné", "cancelado",
            "заброшен", "заброшена", "заброшено",
            "bırakıldı",
        ),
    ),
)

_STATE_LOOKUP = {
    variant: state for state, variants in STATE_VARIANTS for variant in variants
}

# Whole words only: "suspended" must not match "ended".
_STATE_PATTERNS = tuple(
    (state, re.compile("|".join(rf"\b{re.escape(variant)}\b" for variant in variants)))
    for state, variants in STATE_VARIANTS
)


def normalize_state(label: Any) -> MangaState | None:
    """Map a free-text, possibly localized status label to a MangaState.

    Never raises: unknown, empty or non-text labels yield None.
    """
    if not isinstance(label, str):
        return None
    text = label.strip().lower()
    if not text:
        return None

    exact = _STATE_LOOKUP.get(text)
    if exact is not None:
        return exact

    for state, pattern in _STATE_PATTERNS:
        if pattern.search(text):
            return state
    return None


def to_absolute_url(href: str, domain: str) -> str:
    """Resolve a possibly relative link against the source's root."""
    href = href.strip()
    if href.startswith("//"):
        return f"https:{href}"
    return urljoin(f"https://{domain}/", href)


def to_relative_url(href: str, domain: str) -> str:
    """Canonical relative form of a link on the source's own host.

    Links to foreign hosts are returned absolute.
    """
    parsed = urlparse(to_absolute_url(href, domain))
    host = parsed.netloc.lower()
    if host not in (domain.lower(), f"www.{domain.lower()}"):
        return parsed.geturl()

    relative = parsed.path or "/"
    if parsed.query:
        relative = f"{relative}?{parsed.query}"
    return relative


def is_image_reference(value: str | None) -> bool:
    """Whether an image attribute points at something fetchable.

    Relative paths and http(s) URLs qualify; ``data:``, ``blob:`` and
    other scheme-bearing placeholders do not.
    """
    if not value or not value.strip():
        return False
    scheme = urlparse(value.strip()).scheme.lower()
    return scheme in ("", "http", "https")


def is_navigable(href: str | None) -> bool:
    """Whether a link attribute points somewhere a reader could go."""
    if not href:
        return False
    lowered = href.strip().lower()
    return not (lowered.startswith("#") or lowered.startswith("javascript:"))


def last_path_segment(url: str) -> str:
    """Slug-like trailing path component of a URL ("" when there is none)."""
    path = urlparse(url).path.rstrip("/")
    return path.rsplit("/", 1)[-1]


def extract_number(text: str | None) -> float | None:
    """First decimal number embedded in a text, e.g. "Chapter 12.5" -> 12.5."""
    if not text:
        return None
    match = _NUMBER_PATTERN.search(text)
    return float(match.group(1)) if match else None


def parse_upload_date(value: str | None) -> datetime | None:
    """Parse a publication timestamp leniently.

    Accepts ISO-8601 strings and epoch seconds/milliseconds. Anything else
    is treated as unknown.
    """
    if not value:
        return None

    if re.fullmatch(r"\d{9,13}", value):
        seconds = int(value)
        if seconds > 10**11:
            seconds //= 1000
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    try:
        return _DATETIME_ADAPTER.validate_python(value)
    except ValidationError:
        return None
