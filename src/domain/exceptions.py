"""
domain.exceptions - Custom exception hierarchy for the pain companion.

All domain-level errors inherit from DomainError so callers can catch
broad or specific exceptions as needed.
"""


class DomainError(Exception):
    """Base exception for all domain-level errors."""


class InvalidPainLevelError(DomainError):
    """Raised when a pain level is not an integer between 0 and 10."""


class InvalidEntryError(DomainError):
    """Raised when a log entry or patch carries an unknown field or value."""


class EntryNotFoundError(DomainError):
    """Raised when a pain log entry id does not exist."""


class ProfileNotFoundError(DomainError):
    """Raised when a user has no profile yet."""


class RepositoryError(DomainError):
    """Raised when a database operation fails."""


class ConversationStateError(DomainError):
    """Raised when a chat event arrives in a state that cannot accept it."""


class ResponseGenerationError(DomainError):
    """Raised when the language model cannot produce a reply."""
