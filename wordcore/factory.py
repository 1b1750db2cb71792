"""
Wires configured collaborators into a ready DialogueController.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, List, Optional

from .audio import AudioGenerator, AudioStore, GttsAudioGenerator
from .config import Settings
from .db import ProgressDatabase
from .dialogue import DialogueController
from .line import LineMessagingClient
from .page_cache import PageCache
from .progress import FanoutProgressSink, ProgressSink
from .session import SessionRegistry
from .sources import (
    ContentSource,
    NotionClient,
    NotionContentSource,
    NotionProgressSink,
    YamlDeckSource,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Long-lived objects owned by one running application."""

    controller: DialogueController
    messaging: Optional[LineMessagingClient] = None
    audio_store: Optional[AudioStore] = None
    audio_generator: Optional[AudioGenerator] = None
    closables: List[Any] = field(default_factory=list)

    async def aclose(self) -> None:
        for resource in self.closables:
            await resource.aclose()


def _open_progress_db(settings: Settings) -> ProgressDatabase:
    db_path = settings.progress_db_path or ":memory:"
    db = ProgressDatabase(db_path)
    db.initialize_schema()
    return db


def build_content_source(
    settings: Settings, notion_client: Optional[NotionClient] = None
) -> ContentSource:
    if settings.content_backend == "yaml":
        if settings.deck_file is None:
            raise ValueError("DECK_FILE must be set when CONTENT_BACKEND=yaml.")
        return YamlDeckSource(settings.deck_file, page_size=settings.page_size)
    if notion_client is None:
        raise ValueError("A Notion client is required for the notion backend.")
    return NotionContentSource(
        notion_client, settings.notion_database_id, page_size=settings.page_size
    )


def build_progress_sink(
    settings: Settings, notion_client: Optional[NotionClient] = None
) -> ProgressSink:
    """
    Notion is the primary sink for the notion backend, mirrored to DuckDB when
    PROGRESS_DB_PATH is set. The yaml backend records to DuckDB only.
    """
    if settings.content_backend == "yaml" or notion_client is None:
        return _open_progress_db(settings)
    primary = NotionProgressSink(notion_client)
    mirrors: List[ProgressSink] = []
    if settings.progress_db_path is not None:
        mirrors.append(_open_progress_db(settings))
    return FanoutProgressSink(primary, mirrors)


def build_services(
    settings: Settings, messaging: Optional[LineMessagingClient] = None
) -> Services:
    """
    Build the controller and its collaborators from settings.

    Parameters:
        settings (Settings): Application settings.
        messaging (Optional[LineMessagingClient]): Overrides the LINE client
            built from the channel access token.
    """
    closables: List[Any] = []

    if messaging is None and settings.line_channel_access_token:
        messaging = LineMessagingClient(
            settings.line_channel_access_token, timeout=settings.http_timeout
        )
    if messaging is not None:
        closables.append(messaging)

    notion_client = None
    if settings.content_backend == "notion":
        notion_client = NotionClient(
            settings.notion_api_key,
            base_url=settings.notion_api_url,
            timeout=settings.http_timeout,
        )
        closables.append(notion_client)

    source = build_content_source(settings, notion_client)
    sink = build_progress_sink(settings, notion_client)
    closables.append(sink)

    audio_store = None
    audio_generator = None
    if settings.audio_enabled:
        audio_store = AudioStore(settings.audio_dir, settings.public_base_url)
        audio_generator = GttsAudioGenerator(
            audio_store, lang=settings.audio_language
        )

    def cache_factory(conversation_id: str) -> PageCache:
        return PageCache(
            source,
            on_reset=(
                partial(audio_store.release, conversation_id=conversation_id)
                if audio_store is not None
                else None
            ),
            on_fetch_start=(
                partial(messaging.show_loading, conversation_id)
                if messaging is not None
                else None
            ),
        )

    controller = DialogueController(
        registry=SessionRegistry(cache_factory),
        progress_sink=sink,
        audio_generator=audio_generator,
    )
    logger.info(
        f"Services built (content={settings.content_backend}, "
        f"audio={'on' if audio_generator else 'off'})"
    )
    return Services(
        controller=controller,
        messaging=messaging,
        audio_store=audio_store,
        audio_generator=audio_generator,
        closables=closables,
    )
