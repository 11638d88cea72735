"""
TaskStatus Value Object
"""

from enum import Enum


class TaskStatus(str, Enum):
    """Progress state of a workspace task."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"

    def is_terminal(self) -> bool:
        return self == TaskStatus.COMPLETED

    def is_pending(self) -> bool:
        """Anything not yet completed counts as pending work."""
        return self != TaskStatus.COMPLETED

    def implied_progress(self, current: int) -> int:
        """
        Progress value implied by moving into this status.

        COMPLETED pins progress to 100 and NOT_STARTED to 0; other states
        keep whatever progress was reported.
        """
        if self == TaskStatus.COMPLETED:
            return 100
        if self == TaskStatus.NOT_STARTED:
            return 0
        return current

    @classmethod
    def from_string(cls, value: str) -> "TaskStatus":
        """
        Create TaskStatus from string value.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Invalid task status: {value}")
