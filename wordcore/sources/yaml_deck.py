"""
Local YAML deck files as a paginated content source.

A deck file looks like:

    deck: Movie English
    cards:
      - id: sulk
        phrase: sulk
        meaning: To be silent because you are angry.
        example: He's sulking in his room.
        categories: [Verb]

Cursors are string offsets into the deck's card list.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import bleach
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..constants import DEFAULT_PAGE_SIZE
from ..exceptions import FetchError
from ..models import Card, Page
from .base import ContentSource

logger = logging.getLogger(__name__)


class _RawYAMLCard(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    phrase: str = Field(..., min_length=1)
    meaning: str = ""
    example: str = ""
    categories: List[str] = Field(default_factory=list)
    movies: List[str] = Field(default_factory=list)
    url: str = ""
    pronunciation_check: bool = False


class _RawYAMLDeck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    deck: str = Field(..., min_length=1)
    cards: List[_RawYAMLCard] = Field(default_factory=list)


def sanitize_text(text: str) -> str:
    """Strip all HTML markup and surrounding whitespace from card text."""
    return bleach.clean(text.strip(), tags=[], attributes={}, strip=True)


def load_deck(file_path: Path) -> List[Card]:
    """
    Parse and validate a YAML deck file.

    Cards without an `id` get `<deck>:<index>` as their identifier.

    Raises:
        FetchError: If the file is missing, unreadable, not valid YAML or
            does not match the deck schema.
    """
    try:
        raw_content = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise FetchError(f"Deck file not found: {file_path}") from None
    except (OSError, yaml.YAMLError) as e:
        raise FetchError(
            f"Could not read deck file {file_path}: {e}", original_exception=e
        ) from e

    if not isinstance(raw_content, dict):
        raise FetchError(
            f"Top level of {file_path} must be a dictionary (deck object)."
        )

    try:
        deck = _RawYAMLDeck.model_validate(raw_content)
    except ValidationError as e:
        error_details = e.errors()[0]
        field = ".".join(map(str, error_details["loc"]))
        raise FetchError(
            f"Validation error in field '{field}': {error_details['msg']}",
            original_exception=e,
        ) from e

    return [
        Card(
            id=raw.id or f"{deck.deck}:{index}",
            phrase=sanitize_text(raw.phrase),
            meaning=sanitize_text(raw.meaning),
            example=sanitize_text(raw.example),
            categories=raw.categories,
            movies=raw.movies,
            url=raw.url,
            pronunciation_check=raw.pronunciation_check,
        )
        for index, raw in enumerate(deck.cards)
    ]


class YamlDeckSource(ContentSource):
    """Serves a YAML deck in fixed-size pages."""

    def __init__(
        self, file_path: Union[str, Path], page_size: int = DEFAULT_PAGE_SIZE
    ):
        if page_size < 1:
            raise ValueError("page_size must be at least 1.")
        self.file_path = Path(file_path)
        self.page_size = page_size
        self._cards: Optional[List[Card]] = None

    def _load(self) -> List[Card]:
        if self._cards is None:
            self._cards = load_deck(self.file_path)
            logger.info(
                f"Loaded {len(self._cards)} cards from {self.file_path}"
            )
        return self._cards

    async def fetch_page(self, cursor: Optional[str]) -> Page:
        cards = self._load()
        try:
            start = int(cursor) if cursor is not None else 0
        except ValueError:
            raise FetchError(f"Invalid cursor: {cursor!r}") from None
        if start < 0 or start > len(cards):
            raise FetchError(f"Cursor out of range: {cursor!r}")

        end = start + self.page_size
        next_cursor = str(end) if end < len(cards) else None
        return Page(cards=cards[start:end], next_cursor=next_cursor)
