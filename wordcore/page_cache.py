"""
This module defines the PageCache class, which serves cards one at a time from
a batch fetched from a ContentSource and refills itself page by page using the
source's pagination cursor.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from .exceptions import FetchError
from .models import Card
from .sources.base import ContentSource

logger = logging.getLogger(__name__)

ReleaseHook = Callable[[Sequence[Card]], None]
FetchStartHook = Callable[[], Awaitable[None]]


class PageCache:
    """
    Holds one fetched batch of cards plus the cursor for the following batch.

    The cache is not internally synchronized: callers must not invoke `next()`
    concurrently on the same instance.
    """

    def __init__(
        self,
        source: ContentSource,
        on_reset: Optional[ReleaseHook] = None,
        on_fetch_start: Optional[FetchStartHook] = None,
    ):
        """
        Create an empty cache that has not fetched anything yet.

        Parameters:
            source (ContentSource): Supplier of pages.
            on_reset (Optional[ReleaseHook]): Called with the outgoing batch
                whenever it is discarded, so derived artifacts (generated
                audio) can be cleared.
            on_fetch_start (Optional[FetchStartHook]): Best-effort coroutine
                awaited before each fetch, e.g. to show a loading indicator.
        """
        self.source = source
        self.on_reset = on_reset
        self.on_fetch_start = on_fetch_start
        self._buffer: List[Card] = []
        self._cursor: Optional[str] = None
        self._started = False
        self._position = 0

    @property
    def buffer(self) -> List[Card]:
        return list(self._buffer)

    @property
    def cursor(self) -> Optional[str]:
        return self._cursor

    @property
    def position(self) -> int:
        return self._position

    @property
    def has_started(self) -> bool:
        """True once a page has been fetched since creation or the last reset."""
        return self._started

    @property
    def is_terminal(self) -> bool:
        """True once a fetched page reported that no further pages exist."""
        return self._started and self._cursor is None

    def has_more(self) -> bool:
        """
        Whether another card may still be served.

        Returns:
            bool: True if the buffer still holds unserved cards or a further
            page can be fetched.
        """
        return self._position < len(self._buffer) or not self.is_terminal

    async def next(self) -> Optional[Card]:
        """
        Serve the next card, fetching the following page when the buffer is
        exhausted.

        Returns:
            The next Card in fetch order, or None when the deck is complete
            or a freshly fetched page is empty. An empty page keeps its
            cursor, so the following call continues from it.

        Raises:
            FetchError: If the source fails. Buffer, cursor and position are
                left exactly as they were.
        """
        if self._position < len(self._buffer):
            return self._serve()

        if self.is_terminal:
            logger.info("Card cache exhausted and no further pages remain.")
            return None

        logger.info(
            f"Card cache exhausted. Fetching page (cursor={self._cursor!r})..."
        )
        await self._notify_fetch_start()
        try:
            page = await self.source.fetch_page(self._cursor)
        except FetchError:
            logger.error(f"Fetching page at cursor {self._cursor!r} failed.")
            raise
        except Exception as e:
            logger.exception(
                f"Unexpected error fetching page at cursor {self._cursor!r}"
            )
            raise FetchError(
                f"Failed to fetch page: {e}", original_exception=e
            ) from e

        logger.info(
            f"Page received: {len(page.cards)} cards, "
            f"next_cursor={page.next_cursor!r}"
        )
        self._release(self._buffer)
        self._buffer = list(page.cards)
        self._cursor = page.next_cursor
        self._started = True
        self._position = 0

        if not self._buffer:
            return None
        return self._serve()

    def reset(self) -> None:
        """
        Return the cache to its initial empty state and release the artifacts
        derived from the discarded batch.
        """
        logger.info("Card cache is being reset.")
        previous = self._buffer
        self._buffer = []
        self._cursor = None
        self._started = False
        self._position = 0
        self._release(previous)

    def _serve(self) -> Card:
        card = self._buffer[self._position]
        logger.debug(
            f"Serving card at position {self._position}: {card.phrase!r}"
        )
        self._position += 1
        return card

    def _release(self, cards: Sequence[Card]) -> None:
        if self.on_reset is None or not cards:
            return
        self.on_reset(list(cards))

    async def _notify_fetch_start(self) -> None:
        if self.on_fetch_start is None:
            return
        try:
            await self.on_fetch_start()
        except Exception as e:
            logger.warning(f"Failed to signal fetch start: {e}")
