"""Exceptions raised by the perspective engine."""
from __future__ import annotations

from datetime import date


class PerspectiveError(Exception):
    """Base class for engine errors."""
    pass


class ConfigurationError(PerspectiveError):
    """Raised when engine configuration is inconsistent."""
    pass


class DuplicateSelectionError(PerspectiveError):
    """Raised when a daily selection already exists for (user, day)."""

    def __init__(self, user_id: int, selection_date: date):
        super().__init__(f"Daily selection already stored for user {user_id} on {selection_date}")
        self.user_id = user_id
        self.selection_date = selection_date


class UserNotFoundError(PerspectiveError):
    """Raised when a write targets a user that does not exist."""

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id
