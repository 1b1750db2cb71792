"""
Pydantic models shared by the session core, the content sources and the
messaging layer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import (
    GOOD_LABEL,
    NEVER_BETTER_LABEL,
    NOT_AT_ALL_LABEL,
    SO_SO_LABEL,
)


class Grade(str, Enum):
    """
    The user's self-assessed recall quality for the current card.
    """

    Best = "best"
    Good = "good"
    Fair = "fair"
    Poor = "poor"

    @property
    def label(self) -> str:
        """The button label the grade is displayed and stored as."""
        return _GRADE_LABELS[self]

    @classmethod
    def from_label(cls, label: str) -> Optional["Grade"]:
        """Return the grade for an exact button label, or None."""
        for grade, grade_label in _GRADE_LABELS.items():
            if grade_label == label:
                return grade
        return None


_GRADE_LABELS = {
    Grade.Best: NEVER_BETTER_LABEL,
    Grade.Good: GOOD_LABEL,
    Grade.Fair: SO_SO_LABEL,
    Grade.Poor: NOT_AT_ALL_LABEL,
}


class SessionPhase(str, Enum):
    """
    Position of a conversation in the show/reveal/grade cycle.
    """

    Idle = "idle"
    Shown = "shown"
    Revealed = "revealed"


class Card(BaseModel):
    """
    One vocabulary entry fetched from the content source.

    Cards are frozen: they are owned by the page cache until handed to a
    session as its current card and are never edited afterwards.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque identifier assigned by the content source.",
    )
    phrase: str = Field(
        ...,
        description="Front text: the word or phrase being studied.",
    )
    meaning: str = Field(default="", description="Definition of the phrase.")
    example: str = Field(default="", description="Example sentence.")
    categories: List[str] = Field(
        default_factory=list,
        description="Word types or classifications (e.g. 'Verb').",
    )
    movies: List[str] = Field(
        default_factory=list,
        description="Movies the phrase was encountered in.",
    )
    url: str = Field(
        default="", description="Reference URL used to research the phrase."
    )
    page_url: str = Field(
        default="", description="Location of the card in the content store."
    )
    pronunciation_check: bool = Field(
        default=False,
        description="Whether pronunciation needs special attention.",
    )
    memorized: str = Field(
        default="",
        description="Last recorded grade label (review-quality history).",
    )
    last_studied: Optional[datetime] = Field(
        default=None, description="When the card was last reviewed."
    )
    created: Optional[datetime] = Field(
        default=None, description="When the card was created upstream."
    )


class Page(BaseModel):
    """
    One batch of cards returned by a content source.

    `next_cursor` is None when no further pages exist.
    """

    model_config = ConfigDict(frozen=True)

    cards: List[Card] = Field(default_factory=list)
    next_cursor: Optional[str] = None


class ReviewRecord(BaseModel):
    """A completed review, handed to the progress sink."""

    model_config = ConfigDict(frozen=True)

    card_id: str = Field(..., min_length=1)
    grade: Grade
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    phrase: Optional[str] = Field(
        default=None,
        description="Front text at review time, kept for progress reports.",
    )


class InboundEvent(BaseModel):
    """A text message received from the messaging platform."""

    conversation_id: str = Field(..., min_length=1)
    text: str
    reply_token: Optional[str] = None


class AudioClip(BaseModel):
    """Reference to a generated pronunciation file."""

    model_config = ConfigDict(frozen=True)

    url: str
    duration_ms: int = Field(..., gt=0)


class OutboundMessage(BaseModel):
    """
    A single reply bubble: either text or an audio reference, optionally
    followed by suggested quick-reply actions.
    """

    text: Optional[str] = None
    audio: Optional[AudioClip] = None
    suggested_actions: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_exactly_one_body(self) -> "OutboundMessage":
        """Ensures a message carries either text or audio, never both."""
        if (self.text is None) == (self.audio is None):
            raise ValueError("A message must have exactly one of text or audio.")
        return self


class ReplyBatch(BaseModel):
    """The ordered messages answering one inbound event."""

    conversation_id: str
    messages: List[OutboundMessage] = Field(..., min_length=1)

    @property
    def texts(self) -> List[str]:
        """Text bodies of the batch, in order."""
        return [m.text for m in self.messages if m.text is not None]
