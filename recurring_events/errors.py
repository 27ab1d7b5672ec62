from typing import List, Optional


class RecurrenceError(ValueError):
    """Базовая ошибка библиотеки повторяющихся событий."""


class InvalidRule(RecurrenceError):
    """Malformed recurrence configuration."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors if errors is not None else [message]


class InvalidEvent(RecurrenceError):
    """Event descriptor without a resolvable anchor."""


class InvalidOffset(RecurrenceError):
    """Negative reminder lead time or non-positive snooze delay."""
