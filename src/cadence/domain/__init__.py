# Domain Package
from .errors import (
    CadenceError,
    ConfigurationError,
    ContentError,
    InvalidTransition,
    InvariantViolationRecovered,
    NotFound,
    VersionConflict,
)
from .models import (
    CardStatus,
    DifficultyLevel,
    Flashcard,
    Outcome,
    ProgressRecord,
    ReviewEntry,
    SessionStats,
    StudyTimeTracker,
)
from .ports import ContentStore, ProgressRepository

__all__ = [
    "CadenceError",
    "ConfigurationError",
    "ContentError",
    "InvalidTransition",
    "InvariantViolationRecovered",
    "NotFound",
    "VersionConflict",
    "CardStatus",
    "DifficultyLevel",
    "Flashcard",
    "Outcome",
    "ProgressRecord",
    "ReviewEntry",
    "SessionStats",
    "StudyTimeTracker",
    "ContentStore",
    "ProgressRepository",
]
