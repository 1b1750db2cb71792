"""
Maps raw inbound chat text to the inputs understood by the session state
machine. Matching is exact and case-sensitive.
"""

from dataclasses import dataclass
from typing import Union

from .constants import MEANING_LABEL, NEXT_LABEL
from .models import Grade


@dataclass(frozen=True)
class Advance:
    """Request for the next card."""


@dataclass(frozen=True)
class Reveal:
    """Request to reveal the current card's meaning."""


@dataclass(frozen=True)
class GradeInput:
    """Self-assessment of the current card."""

    grade: Grade


@dataclass(frozen=True)
class Unrecognized:
    """Any text outside the fixed label set."""

    text: str


UserInput = Union[Advance, Reveal, GradeInput, Unrecognized]


def classify_input(text: str) -> UserInput:
    """
    Classify an inbound message by exact match against the button labels.

    Parameters:
        text (str): Raw message text as delivered by the platform.

    Returns:
        UserInput: `Advance`, `Reveal`, `GradeInput(grade)` or
        `Unrecognized(text)` for anything else (including labels that differ
        only in case or surrounding whitespace).
    """
    if text == NEXT_LABEL:
        return Advance()
    if text == MEANING_LABEL:
        return Reveal()
    grade = Grade.from_label(text)
    if grade is not None:
        return GradeInput(grade=grade)
    return Unrecognized(text=text)
