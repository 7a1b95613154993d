"""Cache strategies for Maven metadata."""

from enum import Enum


class CacheMode(str, Enum):
    """
    How the Maven installer treats its metadata cache.

    DEFAULT: Use cached metadata, refresh after 9 hours
    FORCE: Use cached metadata only, never contact the repository
    OFF: Always refresh metadata from the repository
    RELAXED: Refresh after 4 hours, fall back to cached metadata for up to
        6 days while the repository cannot be reached
    """

    DEFAULT = "Default"
    FORCE = "Force"
    OFF = "Off"
    RELAXED = "Relaxed"

    @classmethod
    def from_value(cls, value) -> "CacheMode":
        """Parse a cache mode case-insensitively."""
        if isinstance(value, cls):
            return value
        for mode in cls:
            if str(value).lower() == mode.value.lower():
                return mode
        allowed = ", ".join(mode.value for mode in cls)
        raise ValueError(f"Invalid cache mode '{value}'. Allowed values: {allowed}")
