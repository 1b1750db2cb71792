"""
Per-conversation review state.

SessionState tracks which card is current and where the conversation stands in
the show/reveal/grade cycle. SessionRegistry owns one SessionState and one
PageCache per conversation key, created lazily and never shared across keys,
together with the lock that serializes event handling for that key. Entries
are discarded once their deck is complete or they hold no progress.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .models import Card, SessionPhase
from .page_cache import PageCache

logger = logging.getLogger(__name__)


class SessionState:
    """
    State machine for a single conversation.

    Invariant: `current is None` if and only if `phase is SessionPhase.Idle`.
    Every mutator sets both fields together.
    """

    def __init__(self) -> None:
        self._phase = SessionPhase.Idle
        self._current: Optional[Card] = None

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def current(self) -> Optional[Card]:
        return self._current

    def show(self, card: Card) -> None:
        """Make `card` current, displayed with its meaning hidden."""
        self._current = card
        self._phase = SessionPhase.Shown

    def reveal(self) -> bool:
        """
        Move from Shown to Revealed.

        Returns:
            bool: False (and no change) unless the phase was Shown.
        """
        if self._phase is not SessionPhase.Shown:
            return False
        self._phase = SessionPhase.Revealed
        return True

    def complete_grade(self) -> bool:
        """
        Move from Revealed back to Shown, keeping the current card so that
        repeat queries can still echo it.

        Returns:
            bool: False (and no change) unless the phase was Revealed.
        """
        if self._phase is not SessionPhase.Revealed:
            return False
        self._phase = SessionPhase.Shown
        return True

    def clear(self) -> None:
        """Return to Idle with no current card."""
        self._current = None
        self._phase = SessionPhase.Idle

    def __repr__(self) -> str:
        phrase = self._current.phrase if self._current else None
        return f"SessionState(phase={self._phase.value}, current={phrase!r})"


@dataclass
class Conversation:
    """The state owned by one conversation key."""

    key: str
    state: SessionState
    cache: PageCache
    lock: asyncio.Lock


CacheFactory = Callable[[str], PageCache]


class SessionRegistry:
    """
    Maps conversation keys to their own Conversation.

    Registry lookups are synchronous and happen on the event loop thread, so
    creating an entry never races with another lookup of the same key.
    """

    def __init__(self, cache_factory: CacheFactory):
        """
        Parameters:
            cache_factory (CacheFactory): Builds a fresh PageCache for a
                conversation key.
        """
        self._cache_factory = cache_factory
        self._conversations: Dict[str, Conversation] = {}

    def get(self, key: str) -> Conversation:
        """Return the Conversation for `key`, creating it on first use."""
        conversation = self._conversations.get(key)
        if conversation is None:
            logger.info(f"Creating session for conversation {key}")
            conversation = Conversation(
                key=key,
                state=SessionState(),
                cache=self._cache_factory(key),
                lock=asyncio.Lock(),
            )
            self._conversations[key] = conversation
        return conversation

    def is_current(self, conversation: Conversation) -> bool:
        """Whether `conversation` is still the registered entry for its key."""
        return self._conversations.get(conversation.key) is conversation

    def discard(self, key: str) -> None:
        """Forget a conversation, releasing its cached batch."""
        conversation = self._conversations.pop(key, None)
        if conversation is not None:
            conversation.cache.reset()

    def __contains__(self, key: object) -> bool:
        return key in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)
