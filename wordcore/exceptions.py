from typing import Optional


class WordcoreError(Exception):
    """Base exception for wordcore errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class FetchError(WordcoreError):
    """Raised when the content source cannot supply a page of cards."""

    pass


class PersistError(WordcoreError):
    """Raised when a review record could not be stored."""

    pass


class AudioError(WordcoreError):
    """Raised when pronunciation audio could not be generated."""

    pass


class MessagingError(WordcoreError):
    """Raised for failed calls to the messaging platform."""

    pass


class SignatureError(WordcoreError):
    """Raised when a webhook body does not match its signature header."""

    pass


class DatabaseError(WordcoreError):
    """Base exception for progress database errors."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised for errors connecting to the database."""

    pass


class SchemaInitializationError(DatabaseError):
    """Raised for errors during schema setup."""

    pass


class ReviewOperationError(DatabaseError):
    """Indicates an error during a review-related database operation."""

    pass
