import json
from datetime import datetime, timezone

import httpx
import pytest

from wordcore.dialogue import DialogueController
from wordcore.exceptions import FetchError, PersistError
from wordcore.models import Grade, InboundEvent
from wordcore.page_cache import PageCache
from wordcore.session import SessionRegistry
from wordcore.sources.notion import (
    NotionClient,
    NotionContentSource,
    NotionProgressSink,
    transform_notion_page,
)

RAW_PAGE = {
    "id": "page-1",
    "url": "https://www.notion.so/page-1",
    "properties": {
        "Phrase": {"title": [{"plain_text": "sulk"}]},
        "Meaning": {"rich_text": [{"plain_text": "To be silent in anger."}]},
        "Example": {"rich_text": []},
        "Category": {"multi_select": [{"name": "Verb"}]},
        "Movie": {"multi_select": [{"name": "Up"}, {"name": "Cars"}]},
        "URL": {"url": "https://dictionary.example/sulk"},
        "PronunciationCheck": {"checkbox": True},
        "Memorized": {"select": {"name": "So So"}},
        "Last Studied": {"date": {"start": "2024-04-30"}},
        "Created": {"created_time": "2024-01-01T09:00:00.000Z"},
    },
}


def make_client(handler) -> NotionClient:
    return NotionClient(
        "secret-key",
        base_url="https://notion.test/v1",
        transport=httpx.MockTransport(handler),
    )


def test_transform_notion_page_maps_properties():
    card = transform_notion_page(RAW_PAGE)

    assert card.id == "page-1"
    assert card.phrase == "sulk"
    assert card.meaning == "To be silent in anger."
    assert card.example == ""
    assert card.categories == ["Verb"]
    assert card.movies == ["Up", "Cars"]
    assert card.pronunciation_check is True
    assert card.memorized == "So So"
    assert card.last_studied == datetime(2024, 4, 30)
    assert card.created == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    assert card.page_url == "https://www.notion.so/page-1"


def test_transform_notion_page_tolerates_missing_properties():
    card = transform_notion_page({"id": "page-2", "properties": {}})

    assert card.phrase == ""
    assert card.categories == []
    assert card.last_studied is None


class TestNotionContentSource:
    @pytest.mark.asyncio
    async def test_query_sorted_by_last_studied_with_cursor(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"results": [RAW_PAGE], "next_cursor": "cur-2"},
            )

        source = NotionContentSource(make_client(handler), "db-1", page_size=10)

        page = await source.fetch_page("cur-1")

        request = seen[0]
        assert request.url.path == "/v1/databases/db-1/query"
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert request.headers["Notion-Version"] == "2022-06-28"
        assert json.loads(request.content) == {
            "sorts": [{"property": "Last Studied", "direction": "ascending"}],
            "page_size": 10,
            "start_cursor": "cur-1",
        }
        assert [c.id for c in page.cards] == ["page-1"]
        assert page.next_cursor == "cur-2"

    @pytest.mark.asyncio
    async def test_first_page_has_no_start_cursor(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"results": [], "next_cursor": None})

        page = await NotionContentSource(make_client(handler), "db-1").fetch_page(
            None
        )

        assert "start_cursor" not in bodies[0]
        assert page.cards == []
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_http_error_becomes_fetch_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"message": "rate limited"})

        source = NotionContentSource(make_client(handler), "db-1")

        with pytest.raises(FetchError, match="Failed to fetch"):
            await source.fetch_page(None)

    @pytest.mark.asyncio
    async def test_malformed_result_becomes_fetch_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"results": [{"properties": {}}]})

        source = NotionContentSource(make_client(handler), "db-1")

        with pytest.raises(FetchError):
            await source.fetch_page(None)

    def test_database_id_is_required(self):
        with pytest.raises(ValueError):
            NotionContentSource(make_client(lambda r: httpx.Response(200)), "")


class TestNotionProgressSink:
    @pytest.mark.asyncio
    async def test_record_patches_memorized_and_last_studied(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "page-1"})

        sink = NotionProgressSink(make_client(handler))
        ts = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

        await sink.record("page-1", Grade.Best, ts)

        request = seen[0]
        assert request.method == "PATCH"
        assert request.url.path == "/v1/pages/page-1"
        assert json.loads(request.content) == {
            "properties": {
                "Memorized": {"select": {"name": "Never Better"}},
                "Last Studied": {"date": {"start": ts.isoformat()}},
            }
        }

    @pytest.mark.asyncio
    async def test_http_error_becomes_persist_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        sink = NotionProgressSink(make_client(handler))

        with pytest.raises(PersistError, match="memorization status"):
            await sink.record(
                "page-1", Grade.Good, datetime.now(timezone.utc)
            )

    @pytest.mark.asyncio
    async def test_non_json_success_body_becomes_persist_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        sink = NotionProgressSink(make_client(handler))

        with pytest.raises(PersistError, match="memorization status"):
            await sink.record(
                "page-1", Grade.Good, datetime.now(timezone.utc)
            )

    @pytest.mark.asyncio
    async def test_grade_with_garbled_response_still_gets_a_reply(
        self, single_page_source, fixed_now
    ):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        controller = DialogueController(
            registry=SessionRegistry(lambda _key: PageCache(single_page_source)),
            progress_sink=NotionProgressSink(make_client(handler)),
            clock=lambda: fixed_now,
        )
        for text in ("Next", "Meaning"):
            await controller.handle(InboundEvent(conversation_id="u1", text=text))

        batch = await controller.handle(
            InboundEvent(conversation_id="u1", text="Good")
        )

        assert "could not be completed" in batch.texts[0]
