"""
Fixed labels and reply texts used on the chat wire.

Input classification matches these labels exactly; presentation code maps them
to icon-decorated button captions.
"""
from typing import Dict, Tuple

# Button labels sent back by the messaging platform when a quick reply is tapped.
NEXT_LABEL = "Next"
MEANING_LABEL = "Meaning"
NEVER_BETTER_LABEL = "Never Better"
GOOD_LABEL = "Good"
SO_SO_LABEL = "So So"
NOT_AT_ALL_LABEL = "Not At All"

GRADE_LABELS: Tuple[str, ...] = (
    NEVER_BETTER_LABEL,
    GOOD_LABEL,
    SO_SO_LABEL,
    NOT_AT_ALL_LABEL,
)

BUTTON_ICONS: Dict[str, str] = {
    NEXT_LABEL: "➡️",
    MEANING_LABEL: "📖",
    NEVER_BETTER_LABEL: "🌟",
    GOOD_LABEL: "👍",
    SO_SO_LABEL: "😐",
    NOT_AT_ALL_LABEL: "❌",
}

# Reply texts
UNSUPPORTED_INPUT_TEXT = (
    'The message you sent is not supported. '
    'Please press the "Next" button to fetch the next word.'
)
DECK_COMPLETE_TEXT = "No more words available. You have completed all the words!"
FETCH_FAILED_TEXT = (
    "Sorry, the next word could not be loaded. Please press \"Next\" to try again."
)
SELECT_ACTION_TEXT = "Please select an action:"
MISSING_CHAT_ID_TEXT = "Unable to process your request. Chat ID not found."

# LINE accepts at most five message objects per reply.
MAX_MESSAGES_PER_REPLY = 5

DEFAULT_PAGE_SIZE = 100
