from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from wordcore.dialogue import DialogueController
from wordcore.exceptions import FetchError
from wordcore.models import Card, Page
from wordcore.page_cache import PageCache
from wordcore.session import SessionRegistry
from wordcore.sources.base import ContentSource

FIXED_NOW = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def _build_card(card_id: str, phrase: Optional[str] = None, **kwargs) -> Card:
    return Card(id=card_id, phrase=phrase or f"phrase-{card_id}", **kwargs)


class FakeContentSource(ContentSource):
    """
    In-memory ContentSource serving pre-built pages keyed by cursor.

    `pages` maps a cursor (None for the first page) to the Page it returns.
    Cursors listed in `failures` raise the given exception once.
    """

    def __init__(self, pages: Dict[Optional[str], Page]):
        self.pages = pages
        self.calls: List[Optional[str]] = []
        self.failures: Dict[Optional[str], Exception] = {}

    async def fetch_page(self, cursor: Optional[str]) -> Page:
        self.calls.append(cursor)
        if cursor in self.failures:
            raise self.failures.pop(cursor)
        if cursor not in self.pages:
            raise FetchError(f"Unknown cursor {cursor!r}")
        return self.pages[cursor]


def _build_paged_source(
    cards: Sequence[Card], page_size: int
) -> FakeContentSource:
    pages: Dict[Optional[str], Page] = {}
    chunks = [
        list(cards[i : i + page_size]) for i in range(0, len(cards), page_size)
    ] or [[]]
    for index, chunk in enumerate(chunks):
        cursor = None if index == 0 else f"c{index}"
        next_cursor = f"c{index + 1}" if index + 1 < len(chunks) else None
        pages[cursor] = Page(cards=chunk, next_cursor=next_cursor)
    return FakeContentSource(pages)


@pytest.fixture
def sample_cards() -> List[Card]:
    return [
        _build_card("a", "sulk"),
        _build_card("b", "gloat"),
        _build_card("c", "dwell"),
    ]


@pytest.fixture
def single_page_source(sample_cards) -> FakeContentSource:
    return FakeContentSource(
        {None: Page(cards=sample_cards[:2], next_cursor=None)}
    )


@pytest.fixture
def progress_sink() -> AsyncMock:
    sink = AsyncMock()
    sink.record.return_value = None
    return sink


@pytest.fixture
def make_controller(progress_sink):
    """
    Factory fixture: build a DialogueController whose conversations all read
    from `source` through their own PageCache.
    """

    def _make(source: ContentSource, audio_generator=None, on_reset=None):
        registry = SessionRegistry(
            lambda _key: PageCache(source, on_reset=on_reset)
        )
        return DialogueController(
            registry=registry,
            progress_sink=progress_sink,
            audio_generator=audio_generator,
            clock=lambda: FIXED_NOW,
        )

    return _make


@pytest.fixture
def fixed_now() -> datetime:
    """The instant every controller built by `make_controller` reads as now."""
    return FIXED_NOW


@pytest.fixture
def make_card():
    """Factory fixture: build a Card with a readable default phrase."""
    return _build_card


@pytest.fixture
def fake_source():
    """
    Factory fixture: build a FakeContentSource from a cursor-to-Page map
    (None keys the first page).
    """
    return FakeContentSource


@pytest.fixture
def paged_source():
    """Factory fixture: split cards into pages linked by cursors 'c1', 'c2', ..."""
    return _build_paged_source
