"""Strategy configuration value objects.

A new content source is supported by supplying a different SourceProfile,
never by adding control flow. Every URL template, page path, selector,
state-injection pattern and alias table the strategies consume lives here,
and is frozen once the profile is built.

The defaults are source-agnostic: they encode the naming conventions common
across hydration-heavy reader sites, not the markup of any one of them.
"""

import re
from string import Formatter

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.settings import GlobalConfig, get_config

TEMPLATE_FIELDS = frozenset(
    {
        "domain", "page", "limit", "sort", "query", "tag", "state",
        "id", "manga_id", "chapter_id",
    }
)

LISTING_PATHS = ("/", "/home", "/manga", "/comics", "/stories")
SEARCH_PATHS = ("/search?q={query}", "/?s={query}")
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def _check_placeholders(templates: tuple[str, ...]) -> tuple[str, ...]:
    for template in templates:
        for _, name, _, _ in Formatter().parse(template):
            if name is not None and name not in TEMPLATE_FIELDS:
                raise ValueError(f"Unknown placeholder '{name}' in template '{template}'")
    return templates


class _Config(BaseModel):
    model_config = ConfigDict(frozen=True)


class ApiProbeConfig(_Config):
    """Structured-endpoint templates and response navigation keys.

    Templates are ``str.format`` strings over TEMPLATE_FIELDS.
    """

    catalog_templates: tuple[str, ...] = (
        "https://{domain}/api/manga?page={page}&limit={limit}",
        "https://{domain}/api/v1/manga?page={page}&limit={limit}",
        "https://{domain}/api/comics?page={page}&limit={limit}",
        "https://{domain}/rest/manga?page={page}&limit={limit}",
        "https://{domain}/backend/manga?page={page}&limit={limit}",
    )
    search_templates: tuple[str, ...] = (
        "https://{domain}/api/manga?search={query}&page={page}&limit={limit}",
        "https://{domain}/api/v1/search?q={query}&page={page}&limit={limit}",
    )
    detail_templates: tuple[str, ...] = (
        "https://{domain}/api/manga/{id}",
        "https://{domain}/api/v1/manga/{id}",
        "https://{domain}/api/comic/{id}",
        "https://{domain}/rest/manga/{id}",
    )
    pages_templates: tuple[str, ...] = (
        "https://{domain}/api/chapter/{chapter_id}/pages",
        "https://{domain}/api/manga/{manga_id}/chapter/{chapter_id}/pages",
        "https://{domain}/api/v1/chapter/{chapter_id}/images",
        "https://{domain}/rest/chapter/{chapter_id}/pages",
    )
    tags_templates: tuple[str, ...] = (
        "https://{domain}/api/genres",
        "https://{domain}/api/v1/genres",
        "https://{domain}/api/tags",
    )
    catalog_keys: tuple[str, ...] = ("data", "items", "results", "manga", "comics")
    detail_keys: tuple[str, ...] = ("data", "manga", "comic")
    pages_keys: tuple[str, ...] = ("data", "pages", "images")
    tags_keys: tuple[str, ...] = ("data", "genres", "tags")

    @field_validator(
        "catalog_templates",
        "search_templates",
        "detail_templates",
        "pages_templates",
        "tags_templates",
    )
    @classmethod
    def validate_templates(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Reject templates that reference placeholders the engine never fills."""
        return _check_placeholders(value)


class EmbeddedStateConfig(_Config):
    """Pages to scan and the patterns that capture hydration state.

    Each pattern must have exactly one capturing group around the JSON
    literal. Patterns are compiled with DOTALL.
    """

    page_paths: tuple[str, ...] = LISTING_PATHS
    search_paths: tuple[str, ...] = SEARCH_PATHS
    tag_page_paths: tuple[str, ...] = ("/", "/genres")
    patterns: tuple[str, ...] = (
        r"window\.__INITIAL_STATE__\s*=\s*(\{.*?\});",
        r"window\.__DATA__\s*=\s*(\{.*?\});",
        r"window\.__PRELOADED_STATE__\s*=\s*(\{.*?\});",
        r"__NEXT_DATA__\s*=\s*(\{.*?\})",
        r'"manga":\s*(\[.*?\])',
        r'"comics":\s*(\[.*?\])',
        r"^\s*(\{.*\})\s*$",
    )
    item_keys: tuple[str, ...] = ("manga", "comics", "stories", "data", "items", "results")
    pages_keys: tuple[str, ...] = ("pages", "images")
    tags_keys: tuple[str, ...] = ("genres", "tags", "categories")
    max_depth: int = Field(default=6, ge=1, le=20)

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for pattern in value:
            compiled = re.compile(pattern, re.DOTALL)
            if compiled.groups != 1:
                raise ValueError(f"Pattern '{pattern}' must have exactly one group")
        return value


class DomHeuristicConfig(_Config):
    """Generic container selectors and page paths for markup scraping."""

    page_paths: tuple[str, ...] = LISTING_PATHS
    search_paths: tuple[str, ...] = SEARCH_PATHS
    container_selectors: tuple[str, ...] = (
        ".manga-item",
        ".comic-item",
        ".story-item",
        ".card",
        ".item",
        ".post",
        "[data-manga]",
        "[data-comic]",
        ".grid-item",
        ".list-item",
    )
    chapter_selectors: tuple[str, ...] = (".chapter-item", ".chapter", ".episode")
    page_image_selectors: tuple[str, ...] = (
        ".page-image img",
        ".manga-page img",
        ".chapter-image img",
        ".reading-content img",
    )
    tag_page_paths: tuple[str, ...] = ("/", "/genres")
    tag_link_selectors: tuple[str, ...] = (
        "a[href*='/genre/']",
        "a[href*='/genres/']",
        "a[href*='/tag/']",
        "a[href*='/category/']",
    )

    @property
    def container_union(self) -> str:
        return ", ".join(self.container_selectors)


_IMAGE_SOURCES = ("src", "data-src", "data-lazy-src", "data-original")


class AliasTables(_Config):
    """Per-entity alias-priority tables.

    JSON tables list object keys; DOM tables list ``selector@attribute``
    aliases (see cascade.normalizers). Order defines precedence.
    """

    catalog: dict[str, tuple[str, ...]] = {
        "id": ("id", "_id", "slug", "key", "mangaId"),
        "title": ("title", "name", "manga_name", "comic_name", "story_name"),
        "url": ("url", "href", "link", "path"),
        "cover_url": ("image", "cover", "thumbnail", "poster", "coverUrl", "imageUrl"),
        "state": ("status", "state", "manga_status", "comic_status"),
    }
    detail: dict[str, tuple[str, ...]] = {
        "title": ("title", "name", "manga_name", "comic_name"),
        "description": ("description", "summary", "synopsis", "desc"),
        "authors": ("authors", "author", "artist"),
        "cover_url": ("image", "cover", "thumbnail", "poster", "coverUrl", "imageUrl"),
        "state": ("status", "state", "manga_status", "comic_status"),
        "chapters": ("chapters", "episodes", "chapterList"),
    }
    chapter: dict[str, tuple[str, ...]] = {
        "id": ("id", "_id", "slug", "chapterId"),
        "title": ("title", "name", "chapter_title"),
        "number": ("number", "chapter", "chapter_number", "num", "index"),
        "volume": ("volume", "vol"),
        "url": ("url", "href", "link"),
        "upload_date": ("published_at", "created_at", "date", "uploaded_at", "updatedAt"),
    }
    page: dict[str, tuple[str, ...]] = {
        "url": ("image", "url", "src", "imageUrl"),
        "preview": ("thumbnail", "preview", "thumb"),
    }
    tag: dict[str, tuple[str, ...]] = {
        "key": ("id", "slug", "key"),
        "title": ("name", "title", "label"),
    }
    dom_catalog: dict[str, tuple[str, ...]] = {
        "link": ("a@href", "[href]@href", "@href"),
        "title": (
            ".title", ".name", "h1", "h2", "h3", "h4",
            ".manga-title", ".comic-title", ".story-title",
            "[data-title]", ".card-title",
        ),
        "cover_url": tuple(f"img@{attribute}" for attribute in _IMAGE_SOURCES),
        "state": (".status", ".state", ".manga-status"),
    }
    dom_detail: dict[str, tuple[str, ...]] = {
        "description": (".description", ".summary", ".manga-info", ".synopsis"),
        "state": (".status", ".state", ".manga-status"),
        "authors": (".author a", ".author", ".authors"),
        "cover_url": tuple(f".cover img@{attribute}" for attribute in _IMAGE_SOURCES),
    }
    dom_chapter: dict[str, tuple[str, ...]] = {
        "link": ("a@href", "@href"),
        "title": (".chapter-title", ".title", "a", "@"),
        "upload_date": ("time@datetime", ".date", ".chapter-date"),
    }
    dom_page: dict[str, tuple[str, ...]] = {
        "url": tuple(f"@{attribute}" for attribute in _IMAGE_SOURCES),
    }
    dom_tag: dict[str, tuple[str, ...]] = {
        "link": ("@href",),
        "title": ("@", "@title"),
    }


class SourceProfile(_Config):
    """Everything the strategies need to know about one content source.

    Attributes:
        domain: Bare host name of the source.
        headers: Headers sent with structured (JSON) fetches.
        page_size: Value substituted for ``{limit}``.
        entry_path: Relative URL template for an entry known only by id.
        chapter_path: Relative URL template for a chapter known only by id.
    """

    domain: str
    headers: dict[str, str] = {}
    page_size: int = Field(default=20, ge=1)
    entry_path: str = "/manga/{id}"
    chapter_path: str = "/manga/{manga_id}/chapter/{chapter_id}"
    api: ApiProbeConfig = ApiProbeConfig()
    embedded: EmbeddedStateConfig = EmbeddedStateConfig()
    dom: DomHeuristicConfig = DomHeuristicConfig()
    aliases: AliasTables = AliasTables()

    @property
    def page_headers(self) -> dict[str, str]:
        """Headers for markup fetches: same as ``headers`` but asking for HTML."""
        return {**self.headers, "Accept": HTML_ACCEPT}

    @classmethod
    def from_config(cls, config: GlobalConfig | None = None, **overrides) -> "SourceProfile":
        """Build a profile from host configuration.

        Args:
            config: Optional GlobalConfig. Uses singleton if not provided.
            **overrides: Field overrides (e.g. a custom ``api`` section).

        Returns:
            A frozen SourceProfile.
        """
        config = config or get_config()
        domain = config.source_domain
        values = {
            "domain": domain,
            "headers": {
                "Accept": "application/json, text/plain, */*",
                "Accept-Language": config.accept_language,
                "Referer": f"https://{domain}/",
                "Origin": f"https://{domain}",
            },
            "page_size": config.page_size,
        }
        values.update(overrides)
        return cls(**values)
