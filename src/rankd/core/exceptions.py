"""Core exceptions for rankd."""

from __future__ import annotations


class RankdError(Exception):
    """Base exception for all rankd errors."""


class InvariantViolationError(RankdError):
    """Raised when a mutation would break rank contiguity or uniqueness."""

    def __init__(self, message: str, *, media_kind: str | None = None) -> None:
        self.media_kind = media_kind
        if media_kind is not None:
            message = f"[{media_kind}] {message}"
        super().__init__(message)


class PersistenceFailureError(RankdError):
    """Raised when the store fails to durably apply a write.

    The whole transaction has been rolled back when this is raised.
    """

    def __init__(self, operation: str, original_exception: Exception) -> None:
        self.operation = operation
        self.original_exception = original_exception
        super().__init__(f"Failed to {operation}, changes rolled back: {original_exception}")


class StaleComparisonStateError(RankdError):
    """Raised when a decision or commit targets a search that can no longer accept it."""


class DuplicateEntryError(RankdError):
    """Raised when a title is already ranked in its partition."""

    def __init__(self, external_id: str, media_kind: str) -> None:
        self.external_id = external_id
        self.media_kind = media_kind
        super().__init__(f"'{external_id}' is already ranked in {media_kind}")


class EntryNotFoundError(RankdError):
    """Raised when a ranked entry does not exist."""

    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(f"Ranked entry '{entry_id}' not found")


class ConfigError(RankdError):
    """Raised when the configuration file cannot be parsed."""

    def __init__(self, path: str, original_exception: Exception) -> None:
        self.path = path
        self.original_exception = original_exception
        super().__init__(f"Invalid configuration in {path}: {original_exception}")
