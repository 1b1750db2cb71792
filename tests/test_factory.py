from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from wordcore.config import Settings
from wordcore.db import ProgressDatabase
from wordcore.factory import build_content_source, build_progress_sink, build_services
from wordcore.models import InboundEvent
from wordcore.progress import FanoutProgressSink
from wordcore.sources import NotionClient, NotionContentSource, YamlDeckSource


@pytest.fixture
def deck_file(tmp_path):
    path = tmp_path / "deck.yaml"
    path.write_text(
        "deck: D\ncards:\n  - phrase: sulk\n  - phrase: gloat\n", encoding="utf-8"
    )
    return path


def make_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        line_channel_access_token="",
        audio_enabled=False,
        progress_db_path=None,
    )
    values.update(overrides)
    return Settings(**values)


def test_yaml_backend_requires_deck_file():
    with pytest.raises(ValueError, match="DECK_FILE"):
        build_content_source(make_settings(content_backend="yaml"))


def test_notion_backend_builds_notion_source():
    settings = make_settings(notion_api_key="k", notion_database_id="db-1")
    source = build_content_source(settings, NotionClient("k"))

    assert isinstance(source, NotionContentSource)
    assert source.database_id == "db-1"


def test_notion_sink_mirrors_to_duckdb_when_configured(tmp_path):
    settings = make_settings(progress_db_path=tmp_path / "mirror.db")

    sink = build_progress_sink(settings, NotionClient("k"))

    assert isinstance(sink, FanoutProgressSink)
    assert isinstance(sink.mirrors[0], ProgressDatabase)


def test_notion_sink_without_mirror():
    sink = build_progress_sink(make_settings(), NotionClient("k"))

    assert isinstance(sink, FanoutProgressSink)
    assert sink.mirrors == []


@pytest.mark.asyncio
async def test_yaml_services_drive_a_conversation(deck_file):
    settings = make_settings(content_backend="yaml", deck_file=deck_file)
    messaging = AsyncMock()

    services = build_services(settings, messaging=messaging)
    conversation = services.controller.registry.get("U1")
    card = await conversation.cache.next()

    assert isinstance(conversation.cache.source, YamlDeckSource)
    assert isinstance(services.controller.progress_sink, ProgressDatabase)
    assert card.phrase == "sulk"
    messaging.show_loading.assert_awaited_once_with("U1")
    assert services.audio_store is None

    await services.aclose()
    messaging.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_refill_in_one_conversation_keeps_another_conversations_audio(
    deck_file, tmp_path
):
    settings = make_settings(
        content_backend="yaml",
        deck_file=deck_file,
        page_size=1,
        audio_enabled=True,
        audio_dir=tmp_path / "audio",
    )
    services = build_services(settings)

    async def say(conversation_id: str, text: str):
        await services.controller.handle(
            InboundEvent(conversation_id=conversation_id, text=text)
        )

    with patch("wordcore.audio.gTTS") as mock_gtts:
        mock_gtts.return_value.save.side_effect = (
            lambda path: Path(path).write_bytes(b"mp3")
        )
        await say("bob", "Next")
        await say("bob", "Meaning")
        await say("alice", "Next")
        await say("alice", "Meaning")
        await say("alice", "Next")

    audio_dir = tmp_path / "audio"
    assert len(list(audio_dir.glob("audio-bob-*.mp3"))) == 1
    assert list(audio_dir.glob("audio-alice-*.mp3")) == []

    await services.aclose()
