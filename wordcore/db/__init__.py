"""Database package for wordcore.

This package provides the DuckDB progress log. Only ProgressDatabase and its
report models are exported as the public API.
"""

from .database import DailyProgress, ProgressDatabase, StudiedWord

__all__ = ["DailyProgress", "ProgressDatabase", "StudiedWord"]
