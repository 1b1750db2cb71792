"""
Pronunciation audio: generation through gTTS and cleanup of generated files.

Files generated for a conversation carry its key in their name, so releasing
one conversation's batch never touches audio another conversation was sent.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence, Union

from gtts import gTTS

from .exceptions import AudioError
from .models import AudioClip, Card

logger = logging.getLogger(__name__)

# Rough speaking rate used to report clip duration without decoding the mp3.
MS_PER_CHARACTER = 80
MIN_DURATION_MS = 1000

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def audio_filename(card_id: str, conversation_id: Optional[str] = None) -> str:
    """
    Return the file name used for a card's pronunciation audio:
    `audio-<conversation>-<card>.mp3`, or `audio-<card>.mp3` when no
    conversation owns the file.
    """
    safe_card = _UNSAFE_FILENAME_CHARS.sub("", card_id)
    if conversation_id is None:
        return f"audio-{safe_card}.mp3"
    safe_conversation = _UNSAFE_FILENAME_CHARS.sub("", conversation_id)
    return f"audio-{safe_conversation}-{safe_card}.mp3"


def estimate_duration_ms(text: str) -> int:
    return max(MIN_DURATION_MS, len(text) * MS_PER_CHARACTER)


class AudioGenerator(ABC):
    """
    Abstract base class for pronunciation audio generators.
    """

    @abstractmethod
    async def synthesize(
        self, text: str, card_id: str, conversation_id: Optional[str] = None
    ) -> AudioClip:
        """
        Generate audio for `text` and return a reference to it.

        Parameters:
            text (str): Text to speak.
            card_id (str): Card the audio belongs to.
            conversation_id (Optional[str]): Conversation the audio is sent
                to; None for audio requested outside a conversation.

        Raises:
            AudioError: If generation fails. Callers treat this as
                best-effort and fall back to text-only replies.
        """
        pass


class AudioStore:
    """Directory of generated audio files served under a public base URL."""

    def __init__(self, directory: Union[str, Path], public_base_url: str):
        self.directory = Path(directory)
        self.public_base_url = public_base_url.rstrip("/")

    def path_for(
        self, card_id: str, conversation_id: Optional[str] = None
    ) -> Path:
        return self.directory / audio_filename(card_id, conversation_id)

    def url_for(self, card_id: str, conversation_id: Optional[str] = None) -> str:
        name = audio_filename(card_id, conversation_id)
        return f"{self.public_base_url}/audio/{name}"

    def release(
        self, cards: Sequence[Card], conversation_id: Optional[str] = None
    ) -> None:
        """
        Delete the audio generated for `cards` in one conversation.

        Used as the page cache's reset hook. Missing files are ignored;
        filesystem errors are logged and do not propagate.
        """
        removed = 0
        for card in cards:
            path = self.path_for(card.id, conversation_id)
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"Failed to delete audio file {path}: {e}")
        if removed:
            logger.info(f"Deleted {removed} audio file(s) from {self.directory}")


class GttsAudioGenerator(AudioGenerator):
    """
    Generates mp3 files with gTTS into an AudioStore.
    """

    def __init__(self, store: AudioStore, lang: str = "en"):
        self.store = store
        self.lang = lang

    def _write_file(self, text: str, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tts = gTTS(text=text, lang=self.lang, slow=False)
        tts.save(str(path))

    async def synthesize(
        self, text: str, card_id: str, conversation_id: Optional[str] = None
    ) -> AudioClip:
        if not text or not text.strip():
            raise AudioError("Text content is empty")

        path = self.store.path_for(card_id, conversation_id)
        try:
            await asyncio.to_thread(self._write_file, text, path)
        except Exception as e:
            logger.error(f"Error generating audio for card {card_id}: {e}")
            raise AudioError(
                f"Failed to generate audio file: {e}", original_exception=e
            ) from e

        logger.info(f"Audio file created successfully: {path}")
        return AudioClip(
            url=self.store.url_for(card_id, conversation_id),
            duration_ms=estimate_duration_ms(text),
        )
