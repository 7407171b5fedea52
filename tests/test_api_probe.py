"""Tests for the API probe strategy.

Validates template probing including:
- First-success-wins ordering and short-circuit
- Per-template failure isolation (non-2xx, unparsable bodies)
- Placeholder rendering for detail and page templates
"""

from typing import Callable

import pytest

from cascade.api_probe import ApiProbeStrategy, chapter_path_ids
from cascade.extractor import Operation, StrategyRequest
from cascade.models import CatalogEntry, ChapterRecord, ListFilter, MangaState, SortOrder
from cascade.profile import ApiProbeConfig, SourceProfile
from config.settings import GlobalConfig
from tests.conftest import FakeTransport


@pytest.fixture
def endpoints(profile: SourceProfile) -> list[str]:
    """Catalog template URLs for page 1, in probe order."""
    strategy = ApiProbeStrategy(FakeTransport(), profile)
    return strategy.render(
        profile.api.catalog_templates, StrategyRequest(operation=Operation.LIST_CATALOG)
    )


class TestCatalogProbing:
    """Test suite for catalog template probing."""

    @pytest.mark.asyncio
    async def test_404_then_success_skips_remaining_templates(
        self,
        profile: SourceProfile,
        fake_transport: FakeTransport,
        endpoints: list[str],
    ) -> None:
        """Scenario A: endpoint 1 is 404, endpoint 2 answers, endpoint 3 is never probed."""
        fake_transport.add(endpoints[0], "", status=404)
        fake_transport.add(endpoints[1], {"data": [{"id": "42", "title": "Foo"}]})
        fake_transport.add(endpoints[2], {"data": [{"id": "99", "title": "Bar"}]})
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(StrategyRequest(operation=Operation.LIST_CATALOG))

        assert outcome.succeeded
        assert len(outcome.value) == 1
        assert (outcome.value[0].id, outcome.value[0].title) == ("42", "Foo")
        assert outcome.source_url == endpoints[1]
        assert outcome.candidates_tried == 2
        assert fake_transport.count(endpoints[2]) == 0

    def test_rendered_templates(self, endpoints: list[str]) -> None:
        assert endpoints[0] == "https://test.example.com/api/manga?page=1&limit=10"
        assert len(endpoints) == 5

    @pytest.mark.asyncio
    async def test_unparsable_body_fails_that_template_only(
        self,
        profile: SourceProfile,
        fake_transport: FakeTransport,
        endpoints: list[str],
    ) -> None:
        fake_transport.add(endpoints[0], "<html>not json</html>")
        fake_transport.add(endpoints[1], [{"id": 1, "title": "One"}])
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(StrategyRequest(operation=Operation.LIST_CATALOG))

        assert [entry.id for entry in outcome.value] == ["1"]
        assert strategy.monitor.stats("api_probe").probe_failures == 1

    @pytest.mark.asyncio
    async def test_empty_collection_falls_through(
        self,
        profile: SourceProfile,
        fake_transport: FakeTransport,
        endpoints: list[str],
    ) -> None:
        fake_transport.add(endpoints[0], {"data": []})
        fake_transport.add(endpoints[1], {"results": {"items": [{"_id": "a1", "name": "Alpha"}]}})
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(StrategyRequest(operation=Operation.LIST_CATALOG))

        assert [entry.id for entry in outcome.value] == ["a1"]

    @pytest.mark.asyncio
    async def test_items_missing_required_fields_dropped(
        self,
        profile: SourceProfile,
        fake_transport: FakeTransport,
        endpoints: list[str],
    ) -> None:
        """Verify one bad item never sinks the batch."""
        fake_transport.add(
            endpoints[0],
            {
                "data": [
                    {"id": "1", "title": "Good", "status": "Completed", "cover": "/c/1.jpg"},
                    {"id": "2"},
                    {"title": "No id"},
                    {"id": "1", "title": "Duplicate"},
                ]
            },
        )
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(StrategyRequest(operation=Operation.LIST_CATALOG))

        assert len(outcome.value) == 1
        entry = outcome.value[0]
        assert entry.title == "Good"
        assert entry.state.value == "finished"
        assert entry.cover_url == "https://test.example.com/c/1.jpg"
        assert strategy.monitor.stats("api_probe").dropped_items == 2

    @pytest.mark.asyncio
    async def test_placeholder_cover_skipped_for_next_alias(
        self,
        profile: SourceProfile,
        fake_transport: FakeTransport,
        endpoints: list[str],
    ) -> None:
        fake_transport.add(
            endpoints[0],
            {
                "data": [
                    {"id": "1", "title": "One", "image": "data:image/gif;base64,R0lG", "thumbnail": "/t/1.jpg"},
                    {"id": "2", "title": "Two", "image": "javascript:void(0)"},
                ]
            },
        )
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(StrategyRequest(operation=Operation.LIST_CATALOG))

        assert [(entry.id, entry.cover_url) for entry in outcome.value] == [
            ("1", "https://test.example.com/t/1.jpg"),
            ("2", None),
        ]
        assert strategy.monitor.stats("api_probe").dropped_items == 0

    @pytest.mark.asyncio
    async def test_all_templates_fail(
        self, profile: SourceProfile, fake_transport: FakeTransport
    ) -> None:
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(StrategyRequest(operation=Operation.LIST_CATALOG))

        assert not outcome.succeeded
        assert outcome.value is None
        assert outcome.candidates_tried == 5
        assert len(fake_transport.calls) == 5

    @pytest.mark.asyncio
    async def test_query_switches_to_search_templates(
        self, profile: SourceProfile, fake_transport: FakeTransport
    ) -> None:
        strategy = ApiProbeStrategy(fake_transport, profile)
        request = StrategyRequest(
            operation=Operation.LIST_CATALOG,
            page=2,
            sort_order=SortOrder.POPULARITY,
            filter=ListFilter(query="one piece"),
        )

        await strategy.attempt(request)

        assert fake_transport.calls[0] == (
            "https://test.example.com/api/manga?search=one+piece&page=2&limit=10"
        )
        assert len(fake_transport.calls) == 2

    @pytest.mark.asyncio
    async def test_tag_and_state_filters_fill_placeholders(
        self, mock_config: GlobalConfig, fake_transport: FakeTransport
    ) -> None:
        api = ApiProbeConfig(
            catalog_templates=("https://{domain}/api/list?genre={tag}&status={state}&page={page}",)
        )
        strategy = ApiProbeStrategy(fake_transport, SourceProfile.from_config(mock_config, api=api))
        request = StrategyRequest(
            operation=Operation.LIST_CATALOG,
            filter=ListFilter(tags=("slice of life", "drama"), states=(MangaState.FINISHED,)),
        )

        await strategy.attempt(request)

        assert fake_transport.calls == [
            "https://test.example.com/api/list?genre=slice%20of%20life&status=finished&page=1"
        ]

    def test_unfiltered_state_placeholder_is_empty(self, profile: SourceProfile) -> None:
        strategy = ApiProbeStrategy(FakeTransport(), profile)
        context = strategy.template_context(StrategyRequest(operation=Operation.LIST_CATALOG))
        assert (context["tag"], context["state"]) == ("", "")

    @pytest.mark.asyncio
    async def test_profile_headers_sent(
        self, profile: SourceProfile, fake_transport: FakeTransport
    ) -> None:
        strategy = ApiProbeStrategy(fake_transport, profile)
        await strategy.attempt(StrategyRequest(operation=Operation.LIST_TAGS))
        assert fake_transport.headers_seen[0]["Referer"] == "https://test.example.com/"
        assert fake_transport.headers_seen[0]["Accept"].startswith("application/json")


class TestDetailAndPages:
    """Test suite for detail and page endpoints."""

    @pytest.mark.asyncio
    async def test_detail_merged_onto_entry(
        self,
        profile: SourceProfile,
        fake_transport: FakeTransport,
        url: Callable[[str], str],
    ) -> None:
        entry = CatalogEntry(id="42", title="Foo", url=url("/manga/foo"))
        fake_transport.add(
            url("/api/manga/foo"),
            {
                "data": {
                    "summary": "About foo",
                    "authors": [{"name": "Ana"}],
                    "chapters": [
                        {"id": 10, "number": 1, "published_at": "1700000000"},
                        {"id": 11, "number": "2", "volume": 1},
                    ],
                }
            },
        )
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(
            StrategyRequest(operation=Operation.FETCH_DETAIL, entry=entry)
        )

        detail = outcome.value
        assert detail.id == "42"
        assert detail.description == "About foo"
        assert detail.authors == ("Ana",)
        assert [chapter.number for chapter in detail.chapters] == [2.0, 1.0]
        assert detail.chapters[0].volume == 1
        assert detail.chapters[1].title == "Chapter 1"
        assert detail.chapters[1].upload_date is not None
        assert entry.model_dump()["title"] == "Foo"

    @pytest.mark.asyncio
    async def test_detail_without_content_falls_through(
        self,
        profile: SourceProfile,
        fake_transport: FakeTransport,
        url: Callable[[str], str],
    ) -> None:
        entry = CatalogEntry(id="foo", title="Foo", url=url("/manga/foo"))
        fake_transport.add(url("/api/manga/foo"), {"data": {"title": "Foo"}})
        fake_transport.add(url("/api/v1/manga/foo"), {"description": "Found"})
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(
            StrategyRequest(operation=Operation.FETCH_DETAIL, entry=entry)
        )

        assert outcome.value.description == "Found"
        assert outcome.source_url == url("/api/v1/manga/foo")

    @pytest.mark.asyncio
    async def test_pages_in_source_order(
        self,
        profile: SourceProfile,
        fake_transport: FakeTransport,
        url: Callable[[str], str],
    ) -> None:
        chapter = ChapterRecord(id="c9", title="Chapter 9", number=9, url=url("/manga/foo/chapter/c9"))
        fake_transport.add(
            url("/api/chapter/c9/pages"),
            {"pages": [{"image": "/p/1.jpg", "thumbnail": "/t/1.jpg"}, "/p/2.jpg", {"nope": 1}]},
        )
        strategy = ApiProbeStrategy(fake_transport, profile)

        outcome = await strategy.attempt(
            StrategyRequest(operation=Operation.FETCH_PAGES, chapter=chapter)
        )

        assert [page.id for page in outcome.value] == ["/p/1.jpg", "/p/2.jpg"]
        assert outcome.value[0].preview == url("/t/1.jpg")

    @pytest.mark.parametrize(
        "chapter_url,expected",
        [
            ("https://test.example.com/manga/foo/chapter/12", ("foo", "12")),
            ("https://test.example.com/read/foo/12", ("foo", "12")),
            ("https://test.example.com/", ("", "")),
        ],
    )
    def test_chapter_path_ids(self, chapter_url: str, expected: tuple[str, str]) -> None:
        assert chapter_path_ids(chapter_url) == expected


class TestTemplateValidation:
    """Test suite for ApiProbeConfig validation."""

    def test_unknown_placeholder_rejected(self) -> None:
        with pytest.raises(ValueError):
            ApiProbeConfig(catalog_templates=("https://{domain}/api?cursor={cursor}",))
