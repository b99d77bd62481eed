"""
Canonical catalog content types.

Every table that references catalog content stores one of these values in
its content_type column. Validators, plan benefits and claims are all keyed
by the same enumeration.
"""

from enum import Enum
from typing import Optional


class ContentType(str, Enum):
    """Closed set of claimable catalog content types."""
    FILE = "file"
    GAME = "game"
    LESSON_PLAN = "lesson_plan"
    WORKSHOP = "workshop"
    COURSE = "course"
    TOOL = "tool"

    @classmethod
    def parse(cls, value: str) -> Optional["ContentType"]:
        """Return the matching member, or None for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return None


ALL_CONTENT_TYPES = tuple(t.value for t in ContentType)
