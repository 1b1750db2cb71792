"""Wordcore - A chat-driven vocabulary trainer."""

__version__ = "0.1.0"

from .models import Card, Grade, InboundEvent, OutboundMessage, ReplyBatch
from .page_cache import PageCache
from .session import SessionRegistry, SessionState
from .dialogue import DialogueController

__all__ = [
    "Card",
    "Grade",
    "InboundEvent",
    "OutboundMessage",
    "ReplyBatch",
    "PageCache",
    "SessionRegistry",
    "SessionState",
    "DialogueController",
]
