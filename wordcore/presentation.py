"""
Reply composition: turns cards and outcomes into outbound messages.
"""

from typing import List, Optional

from .constants import (
    BUTTON_ICONS,
    DECK_COMPLETE_TEXT,
    FETCH_FAILED_TEXT,
    GRADE_LABELS,
    MEANING_LABEL,
    NEXT_LABEL,
    SELECT_ACTION_TEXT,
    UNSUPPORTED_INPUT_TEXT,
)
from .models import AudioClip, Card, Grade, OutboundMessage

CARD_ACTIONS: List[str] = [NEXT_LABEL, MEANING_LABEL]
GRADE_ACTIONS: List[str] = [NEXT_LABEL, *GRADE_LABELS]
NEXT_ONLY: List[str] = [NEXT_LABEL]


def button_caption(label: str) -> str:
    """Return the button caption shown to the user, e.g. '👍 Good'."""
    icon = BUTTON_ICONS.get(label)
    return f"{icon} {label}" if icon else label


def format_card_details(card: Card) -> str:
    """
    Render a card's metadata as the multi-section meaning message.

    Missing fields are replaced with a short placeholder so every section is
    always present.
    """
    pronunciation = (
        "⚠️ Pay special attention to pronunciation!"
        if card.pronunciation_check
        else "No special pronunciation issues."
    )
    last_studied = (
        card.last_studied.strftime("%Y-%m-%d")
        if card.last_studied
        else "Not studied yet."
    )
    sections = [
        f"- Meaning:\n{card.meaning or 'Meaning not available'}",
        f"- Example:\n{card.example or 'Example not available'}",
        f"- Pronunciation Check:\n{pronunciation}",
        f"- Category:\n{', '.join(card.categories) or 'No category specified.'}",
        f"- Last Studied:\n{last_studied}",
        f"- Memorized:\n{card.memorized or 'No progress recorded.'}",
        f"- URL:\n{card.url or 'No reference URL available.'}",
    ]
    return "\n\n".join(sections)


def card_front(card: Card) -> OutboundMessage:
    return OutboundMessage(text=card.phrase, suggested_actions=CARD_ACTIONS)


def card_reveal(
    card: Card, audio: Optional[AudioClip] = None
) -> List[OutboundMessage]:
    """Messages answering a reveal: optional audio, details, link, grade prompt."""
    messages: List[OutboundMessage] = []
    if audio is not None:
        messages.append(OutboundMessage(audio=audio))
    messages.append(OutboundMessage(text=format_card_details(card)))
    messages.append(
        OutboundMessage(
            text=f"Notion URL:\n{card.page_url or 'No URL available'}"
        )
    )
    messages.append(
        OutboundMessage(text=SELECT_ACTION_TEXT, suggested_actions=GRADE_ACTIONS)
    )
    return messages


def grade_recorded(grade: Grade) -> OutboundMessage:
    return OutboundMessage(
        text=(
            f'The button "{grade.label}" was pressed! '
            "It has been recorded successfully."
        ),
        suggested_actions=NEXT_ONLY,
    )


def grade_not_recorded(grade: Grade) -> OutboundMessage:
    return OutboundMessage(
        text=(
            f'The button "{grade.label}" was pressed, but the update could '
            "not be completed. Please check it in Notion."
        ),
        suggested_actions=NEXT_ONLY,
    )


def deck_complete() -> OutboundMessage:
    return OutboundMessage(text=DECK_COMPLETE_TEXT)


def fetch_failed() -> OutboundMessage:
    return OutboundMessage(text=FETCH_FAILED_TEXT, suggested_actions=NEXT_ONLY)


def unsupported_input() -> OutboundMessage:
    return OutboundMessage(
        text=UNSUPPORTED_INPUT_TEXT, suggested_actions=NEXT_ONLY
    )
