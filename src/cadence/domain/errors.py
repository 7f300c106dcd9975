"""
Error taxonomy for cadence.

Every error raised by the package derives from CadenceError so callers can
catch the whole family at an interface boundary.
"""

from typing import Any


class CadenceError(Exception):
    """Base class for all cadence errors."""


class ConfigurationError(CadenceError):
    """A parameter or setting is invalid; raised before any computation."""


class NotFound(CadenceError):
    """A card id is absent from the content store."""

    def __init__(self, card_id: str):
        super().__init__(f"Flashcard not found: {card_id}")
        self.card_id = card_id


class InvalidTransition(CadenceError):
    """A study session received a command it cannot accept in its current state."""


class VersionConflict(CadenceError):
    """A progress record was written concurrently by someone else."""

    def __init__(self, card_id: str, expected: int | None, actual: int | None):
        super().__init__(
            f"Version conflict on {card_id}: expected {expected}, stored {actual}"
        )
        self.card_id = card_id
        self.expected = expected
        self.actual = actual


class ContentError(CadenceError):
    """A deck file or stored progress document could not be read."""


class InvariantViolationRecovered(CadenceError):
    """
    Describes one field of a persisted progress record that was out of bounds
    and has been clamped.

    Instances are collected and logged by the scheduler, never raised: stale or
    corrupted persisted state must not block study.
    """

    def __init__(self, card_id: str, field: str, original: Any, clamped: Any):
        super().__init__(f"{card_id}.{field}: {original!r} clamped to {clamped!r}")
        self.card_id = card_id
        self.field = field
        self.original = original
        self.clamped = clamped
