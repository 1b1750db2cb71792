import duckdb
import logging
from typing import TYPE_CHECKING

from . import schema
from ..exceptions import DatabaseConnectionError, SchemaInitializationError

if TYPE_CHECKING:
    from .database import ProgressDatabase

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates (or recreates) the `reviews` table of a review log."""

    def __init__(self, database: "ProgressDatabase"):
        self._database = database

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Create the review log schema inside a transaction.

        A read-only file log is left untouched; a read-only in-memory log is
        still initialized since it starts empty. Forcing recreation drops
        every recorded review first.
        """
        db = self._database
        if db.read_only:
            if force_recreate_tables:
                raise DatabaseConnectionError(
                    "Cannot recreate the reviews table of a read-only log."
                )
            if not db.is_memory:
                logger.warning(
                    f"Review log {db.db_path_resolved} is read-only; "
                    "skipping schema setup."
                )
                return

        conn = db.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                if force_recreate_tables:
                    logger.warning(
                        f"Dropping reviews table of {db.db_path_resolved}. "
                        "ALL RECORDED REVIEWS WILL BE LOST."
                    )
                    cursor.execute("DROP TABLE IF EXISTS reviews CASCADE;")
                    cursor.execute("DROP SEQUENCE IF EXISTS review_id_seq;")
                cursor.execute(schema.DB_SCHEMA_SQL)
                cursor.commit()
            logger.info(f"Reviews table ready in {db.db_path_resolved}")
        except duckdb.Error as e:
            logger.error(
                f"Error creating reviews table in {db.db_path_resolved}: {e}"
            )
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e
