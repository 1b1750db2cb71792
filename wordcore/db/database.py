"""
DuckDB-backed review log for wordcore.
Implements the ProgressDatabase class, a ProgressSink that keeps every grade
and answers per-day progress questions.
"""

import asyncio
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import duckdb
from pydantic import BaseModel, Field

from ..exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    PersistError,
    ReviewOperationError,
)
from ..models import Grade, ReviewRecord
from ..progress import ProgressSink, record_from
from .schema_manager import SchemaManager

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows or cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


def _to_naive_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def study_date_for(ts: datetime) -> date:
    """The UTC calendar date a review counts towards."""
    return _to_naive_utc(ts).date()


class StudiedWord(BaseModel):
    card_id: str
    phrase: Optional[str] = None
    grade: Grade
    ts: datetime


class DailyProgress(BaseModel):
    """Totals for one study day, mirroring the per-day learning summary."""

    study_date: date
    total_studied: int = 0
    by_grade: Dict[str, int] = Field(
        default_factory=lambda: {grade.label: 0 for grade in Grade}
    )
    studied_words: List[StudiedWord] = Field(default_factory=list)


class ProgressDatabase(ProgressSink):
    """
    Acts as a Facade for the review log: owns the DuckDB connection and
    delegates schema setup to SchemaManager. Intended for use as a context
    manager or as a long-lived sink owned by the web application.

    Reviews are recorded from worker threads (`record()` runs `add_review`
    through `asyncio.to_thread`), so every operation runs on its own cursor
    of the shared connection rather than on the connection itself.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path (str | Path): Path to the review log file. Use ':memory:' for an in-memory log.
            read_only (bool): If True, open the log in read-only mode (reports only).
        """
        if isinstance(db_path, str) and db_path.lower() == MEMORY_PATH:
            self.db_path_resolved = Path(MEMORY_PATH)
        else:
            self.db_path_resolved = Path(db_path).resolve()
        self.read_only = read_only
        self.is_new_db = False
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._connection_lock = threading.Lock()
        self._schema_manager = SchemaManager(self)
        logger.info(
            f"ProgressDatabase initialized for review log at: {self.db_path_resolved}"
        )

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_PATH

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the review log connection, opening it on first use.

        Opening a file that does not exist yet marks the log as new, so the
        context manager knows to create the `reviews` table.

        Raises:
            DatabaseConnectionError: If DuckDB cannot open the log.
        """
        with self._connection_lock:
            if self._connection is None:
                self._connection = self._open()
            return self._connection

    def _open(self) -> duckdb.DuckDBPyConnection:
        if self.is_memory:
            self.is_new_db = True
        else:
            self.is_new_db = not self.db_path_resolved.exists()
            if not self.read_only:
                self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)
        try:
            connection = duckdb.connect(
                database=str(self.db_path_resolved), read_only=self.read_only
            )
        except duckdb.Error as e:
            raise DatabaseConnectionError(
                f"Failed to open review log {self.db_path_resolved}: {e}",
                original_exception=e,
            ) from e
        logger.info(
            f"Opened review log {self.db_path_resolved} "
            f"({'new' if self.is_new_db else 'existing'}, "
            f"{'read-only' if self.read_only else 'writable'})"
        )
        return connection

    def close_connection(self) -> None:
        """Close the review log; the next operation reopens it."""
        with self._connection_lock:
            if self._connection is None:
                return
            try:
                self._connection.close()
                logger.info(f"Review log {self.db_path_resolved} closed.")
            except duckdb.Error as e:
                logger.error(f"Error closing the review log: {e}")
            finally:
                self._connection = None

    @contextmanager
    def _cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        connection = self.get_connection()
        with self._connection_lock:
            cursor = connection.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    def __enter__(self) -> "ProgressDatabase":
        """Open the log, creating the schema of a new writable log."""
        self.get_connection()
        if self.is_new_db and not self.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    # --- Review Operations ---

    def add_review(self, review: ReviewRecord) -> int:
        """
        Insert one review.

        Returns:
            int: The new review's ID.

        Raises:
            ReviewOperationError: If the insert fails.
        """
        sql = """
        INSERT INTO reviews (card_id, phrase, grade, ts, study_date)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING review_id;
        """
        params = (
            review.card_id,
            review.phrase,
            review.grade.value,
            _to_naive_utc(review.timestamp),
            study_date_for(review.timestamp),
        )
        with self._cursor() as cursor:
            try:
                result = cursor.execute(sql, params).fetchone()
            except duckdb.Error as e:
                logger.error(
                    f"Error adding review for card {review.card_id}: {e}"
                )
                raise ReviewOperationError(
                    f"Failed to add review: {e}", original_exception=e
                ) from e
        if not result:
            raise ReviewOperationError(
                "Failed to retrieve review_id after insertion."
            )
        logger.debug(f"Review {result[0]} stored for card {review.card_id}")
        return result[0]

    async def record(
        self,
        card_id: str,
        grade: Grade,
        timestamp: datetime,
        phrase: Optional[str] = None,
    ) -> None:
        review = record_from(card_id, grade, timestamp, phrase=phrase)
        try:
            await asyncio.to_thread(self.add_review, review)
        except DatabaseError as e:
            raise PersistError(
                f"Failed to record review for card {card_id}: {e}",
                original_exception=e,
            ) from e

    async def aclose(self) -> None:
        self.close_connection()

    def get_reviews_for_card(self, card_id: str) -> List[StudiedWord]:
        """Return a card's reviews, oldest first."""
        sql = """
        SELECT card_id, phrase, grade, ts FROM reviews
        WHERE card_id = $1 ORDER BY ts ASC, review_id ASC;
        """
        rows = self._query(sql, (card_id,))
        return [self._studied_word(row) for row in rows]

    def get_daily_progress(self, study_date: date) -> DailyProgress:
        """
        Summarize one study day: total reviews, count per grade label and
        the reviewed words in order.
        """
        sql = """
        SELECT card_id, phrase, grade, ts FROM reviews
        WHERE study_date = $1 ORDER BY ts ASC, review_id ASC;
        """
        rows = self._query(sql, (study_date,))
        progress = DailyProgress(study_date=study_date)
        for row in rows:
            word = self._studied_word(row)
            progress.studied_words.append(word)
            progress.by_grade[word.grade.label] += 1
        progress.total_studied = len(progress.studied_words)
        return progress

    def get_daily_totals(self, limit: int = 7) -> List[DailyProgress]:
        """Return per-day totals (without word lists) for the most recent study days."""
        sql = """
        SELECT study_date, grade, COUNT(*) AS n FROM reviews
        WHERE study_date IN (
            SELECT DISTINCT study_date FROM reviews
            ORDER BY study_date DESC LIMIT $1
        )
        GROUP BY study_date, grade
        ORDER BY study_date DESC;
        """
        rows = self._query(sql, (limit,))
        days: Dict[date, DailyProgress] = {}
        for row in rows:
            day = days.setdefault(
                row["study_date"], DailyProgress(study_date=row["study_date"])
            )
            day.by_grade[Grade(row["grade"]).label] += row["n"]
            day.total_studied += row["n"]
        return list(days.values())

    def _query(self, sql: str, params: tuple) -> List[Dict[str, Any]]:
        with self._cursor() as cursor:
            try:
                cursor.execute(sql, params)
                return _rows_to_dicts(cursor)
            except duckdb.Error as e:
                logger.error(f"Error querying reviews: {e}")
                raise ReviewOperationError(
                    f"Failed to query reviews: {e}", original_exception=e
                ) from e

    @staticmethod
    def _studied_word(row: Dict[str, Any]) -> StudiedWord:
        return StudiedWord(
            card_id=row["card_id"],
            phrase=row["phrase"],
            grade=Grade(row["grade"]),
            ts=row["ts"].replace(tzinfo=timezone.utc),
        )
