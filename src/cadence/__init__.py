"""cadence: spaced-repetition review scheduling for study applications."""

from cadence.consts import VERSION

__version__ = VERSION
