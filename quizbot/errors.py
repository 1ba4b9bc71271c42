"""
Exception taxonomy for the quiz bot.
"""
from typing import List, Optional


class QuizBotError(Exception):
    """Base exception for quiz bot errors."""
    pass


class BankParseError(QuizBotError):
    """Raised when a CSV header row lacks the required columns."""

    def __init__(self, message: str, headers: Optional[List[str]] = None):
        super().__init__(message)
        self.headers = list(headers or [])


class EmptyBankError(QuizBotError):
    """Raised when a CSV parses but no row survives validation."""

    def __init__(self, headers: List[str], row_count: int):
        super().__init__(f"No valid rows found ({row_count} rows read)")
        self.headers = list(headers)
        self.row_count = row_count


class AuthorizationError(QuizBotError):
    """Raised when the caller lacks the administrator capability."""
    pass


class SessionConflictError(QuizBotError):
    """Raised when a channel already has a live quiz session."""
    pass


class SessionNotFoundError(QuizBotError):
    """Raised when operating on a channel without a live session."""
    pass


class BankNotFoundError(QuizBotError):
    """Raised when a requested question bank does not exist."""
    pass


class TransportError(QuizBotError):
    """Raised when an attachment fetch or persistence write fails."""
    pass


class ExpiredInteractionError(QuizBotError):
    """Raised when the platform already invalidated an interaction handle."""
    pass
