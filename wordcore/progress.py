"""
Progress sinks: durable destinations for completed reviews.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from .exceptions import PersistError
from .models import Grade, ReviewRecord

logger = logging.getLogger(__name__)


class ProgressSink(ABC):
    """
    Abstract base class for review record stores.

    Implementations are called once per grade event; the core performs no
    deduplication or retries.
    """

    @abstractmethod
    async def record(
        self,
        card_id: str,
        grade: Grade,
        timestamp: datetime,
        phrase: Optional[str] = None,
    ) -> None:
        """
        Store one review.

        Raises:
            PersistError: If the review could not be stored.
        """
        pass

    async def aclose(self) -> None:
        return None


class FanoutProgressSink(ProgressSink):
    """
    Records to a primary sink and mirrors to secondary sinks.

    Only the primary sink's failure is surfaced; mirror failures are logged.
    """

    def __init__(
        self, primary: ProgressSink, mirrors: Sequence[ProgressSink] = ()
    ):
        self.primary = primary
        self.mirrors = list(mirrors)

    async def record(
        self,
        card_id: str,
        grade: Grade,
        timestamp: datetime,
        phrase: Optional[str] = None,
    ) -> None:
        await self.primary.record(card_id, grade, timestamp, phrase=phrase)
        for mirror in self.mirrors:
            try:
                await mirror.record(card_id, grade, timestamp, phrase=phrase)
            except PersistError as e:
                logger.warning(
                    f"Mirror {type(mirror).__name__} failed to record "
                    f"review for card {card_id}: {e}"
                )

    async def aclose(self) -> None:
        await self.primary.aclose()
        for mirror in self.mirrors:
            await mirror.aclose()


def record_from(
    card_id: str,
    grade: Grade,
    timestamp: datetime,
    phrase: Optional[str] = None,
) -> ReviewRecord:
    """Build the ReviewRecord stored by record-oriented sinks."""
    return ReviewRecord(
        card_id=card_id, grade=grade, timestamp=timestamp, phrase=phrase
    )
