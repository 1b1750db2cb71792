"""
Defines the ContentSource abstract class implemented by every card supplier.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import Page


class ContentSource(ABC):
    """
    Abstract base class for paginated card suppliers.
    """

    @abstractmethod
    async def fetch_page(self, cursor: Optional[str]) -> Page:
        """
        Fetch one page of cards.

        Args:
            cursor: Opaque token from the previous page's `next_cursor`, or
                None to start from the first page.

        Returns:
            The page of cards. Its `next_cursor` is None when the deck has no
            further pages.

        Raises:
            FetchError: On transport, authentication, quota or decoding
                failures.
        """
        pass

    async def aclose(self) -> None:
        """Release any network resources held by the source."""
        return None
