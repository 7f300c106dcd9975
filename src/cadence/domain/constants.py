"""Centralized constants for the cadence scheduler.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Ease factor ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
EASE_BONUS = 0.1
EASE_PENALTY = 0.2
EASE_PRECISION = 4  # decimal places kept on the stored ease

# ---------- Intervals (days) ----------
LEARNING_INTERVAL = 1
GRADUATING_INTERVAL = 6
MASTERY_INTERVAL = 21
MAX_INTERVAL = 365

# ---------- Sessions ----------
DEFAULT_SESSION_SIZE = 20

# ---------- Adaptive difficulty ----------
DEFAULT_ADAPTIVE_WINDOW = 10
DEFAULT_PROMOTION_THRESHOLD = 0.85
MISMATCHED_TIER_PENALTY = 2

# ---------- Persistence ----------
PROGRESS_FORMAT_VERSION = 1
MAX_SAVE_RETRIES = 3

# ---------- Content ----------
DEFAULT_CATEGORY = "general"
