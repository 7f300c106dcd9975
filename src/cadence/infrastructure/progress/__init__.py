# Progress Repository Adapters
from .json_store import JsonProgressRepository, export_progress, import_progress, merge_progress
from .memory import InMemoryProgressRepository

__all__ = [
    "InMemoryProgressRepository",
    "JsonProgressRepository",
    "export_progress",
    "import_progress",
    "merge_progress",
]
