"""
This module defines the DialogueController class, which drives a conversation
through the vocabulary deck: it classifies inbound text, validates it against
the conversation's SessionState, pulls cards from the conversation's PageCache,
records grades through a ProgressSink and composes the reply.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from . import presentation
from .audio import AudioGenerator
from .classifier import (
    Advance,
    GradeInput,
    Reveal,
    Unrecognized,
    UserInput,
    classify_input,
)
from .exceptions import AudioError, FetchError, PersistError
from .models import InboundEvent, OutboundMessage, ReplyBatch, SessionPhase
from .progress import ProgressSink
from .session import Conversation, SessionRegistry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DialogueController:
    """
    Handles inbound chat events for every conversation.

    Out-of-order input (Reveal outside Shown, Grade outside Revealed) is
    dropped silently: `handle()` returns None and nothing changes. Every other
    event produces exactly one ReplyBatch.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        progress_sink: ProgressSink,
        audio_generator: Optional[AudioGenerator] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Parameters:
            registry (SessionRegistry): Source of per-conversation state and
                card caches.
            progress_sink (ProgressSink): Destination of grade records.
            audio_generator (Optional[AudioGenerator]): Best-effort
                pronunciation audio for reveals; None disables audio.
            clock (Callable[[], datetime]): Timestamp source for review
                records.
        """
        self.registry = registry
        self.progress_sink = progress_sink
        self.audio_generator = audio_generator
        self.clock = clock

    async def handle(self, event: InboundEvent) -> Optional[ReplyBatch]:
        """
        Process one inbound event to completion.

        Events for the same conversation are serialized on the conversation's
        lock; distinct conversations proceed independently.

        Returns:
            The reply batch, or None when the input was silently ignored.
        """
        user_input = classify_input(event.text)
        while True:
            conversation = self.registry.get(event.conversation_id)
            async with conversation.lock:
                # The entry may have been discarded while waiting for the lock.
                if not self.registry.is_current(conversation):
                    continue
                messages = await self._dispatch(conversation, user_input)
                logger.debug(
                    f"Conversation {conversation.key}: {conversation.state!r}"
                )
                if self._is_idle(conversation):
                    self.registry.discard(conversation.key)
                break

        if not messages:
            return None
        return ReplyBatch(
            conversation_id=event.conversation_id, messages=messages
        )

    @staticmethod
    def _is_idle(conversation: Conversation) -> bool:
        """True when dropping the conversation would lose no progress."""
        return (
            conversation.state.phase is SessionPhase.Idle
            and not conversation.cache.has_started
        )

    async def _dispatch(
        self, conversation: Conversation, user_input: UserInput
    ) -> List[OutboundMessage]:
        if isinstance(user_input, Advance):
            return await self._advance(conversation)
        elif isinstance(user_input, Reveal):
            return await self._reveal(conversation)
        elif isinstance(user_input, GradeInput):
            return await self._grade(conversation, user_input)
        elif isinstance(user_input, Unrecognized):
            return self._unrecognized(conversation, user_input)
        raise TypeError(f"Unsupported input: {user_input!r}")

    async def _advance(
        self, conversation: Conversation
    ) -> List[OutboundMessage]:
        try:
            card = await conversation.cache.next()
        except FetchError as e:
            logger.error(
                f"Failed to fetch the next card for {conversation.key}: {e}"
            )
            return [presentation.fetch_failed()]

        if card is None:
            conversation.state.clear()
            if conversation.cache.is_terminal:
                logger.info(f"Deck complete for conversation {conversation.key}")
                self.registry.discard(conversation.key)
            else:
                logger.info(
                    f"Empty page for {conversation.key}; "
                    f"keeping cursor {conversation.cache.cursor!r}"
                )
            return [presentation.deck_complete()]

        conversation.state.show(card)
        logger.info(f"Showing card {card.id} ({card.phrase!r}) to {conversation.key}")
        return [presentation.card_front(card)]

    async def _reveal(
        self, conversation: Conversation
    ) -> List[OutboundMessage]:
        state = conversation.state
        card = state.current
        if card is None or not state.reveal():
            logger.debug(
                f"Ignoring reveal in phase {state.phase.value} for {conversation.key}"
            )
            return []

        audio = None
        if self.audio_generator is not None:
            try:
                audio = await self.audio_generator.synthesize(
                    card.phrase, card.id, conversation_id=conversation.key
                )
            except AudioError as e:
                logger.warning(
                    f"Audio unavailable for card {card.id}, replying with text only: {e}"
                )
        return presentation.card_reveal(card, audio=audio)

    async def _grade(
        self, conversation: Conversation, user_input: GradeInput
    ) -> List[OutboundMessage]:
        state = conversation.state
        card = state.current
        if card is None or not state.complete_grade():
            logger.debug(
                f"Ignoring grade in phase {state.phase.value} for {conversation.key}"
            )
            return []

        grade = user_input.grade
        try:
            await self.progress_sink.record(
                card.id, grade, self.clock(), phrase=card.phrase
            )
        except PersistError as e:
            logger.error(f"Failed to record grade for card {card.id}: {e}")
            return [presentation.grade_not_recorded(grade)]

        logger.info(
            f'Card "{card.phrase}" recorded with memorization status: {grade.label}'
        )
        return [presentation.grade_recorded(grade)]

    def _unrecognized(
        self, conversation: Conversation, user_input: Unrecognized
    ) -> List[OutboundMessage]:
        logger.warning(f"Unsupported input received: {user_input.text!r}")
        card = conversation.state.current
        if card is None:
            conversation.state.clear()
            return [presentation.unsupported_input()]
        return [presentation.card_front(card)]
