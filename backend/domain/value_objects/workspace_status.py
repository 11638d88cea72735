"""
WorkspaceStatus Value Object

Lifecycle state of a workspace, from provisioning to dissolution.
"""

from enum import Enum
from typing import List


class WorkspaceStatus(str, Enum):
    """
    Workspace lifecycle state.

    PROVISIONING -> ACTIVE -> WINDING_DOWN -> DISSOLVED, with WINDING_DOWN
    able to return to ACTIVE. DISSOLVED is terminal.
    """

    PROVISIONING = "PROVISIONING"
    ACTIVE = "ACTIVE"
    WINDING_DOWN = "WINDING_DOWN"
    DISSOLVED = "DISSOLVED"

    def is_terminal(self) -> bool:
        """Check if this state is terminal (no further transitions)."""
        return self == WorkspaceStatus.DISSOLVED

    def is_accessible(self) -> bool:
        """Members can still read and write in this state."""
        return self in {WorkspaceStatus.ACTIVE, WorkspaceStatus.WINDING_DOWN}

    def allowed_transitions(self) -> List["WorkspaceStatus"]:
        """Target states reachable from this one, in a stable order."""
        valid_transitions = {
            WorkspaceStatus.PROVISIONING: [WorkspaceStatus.ACTIVE],
            WorkspaceStatus.ACTIVE: [WorkspaceStatus.WINDING_DOWN, WorkspaceStatus.DISSOLVED],
            WorkspaceStatus.WINDING_DOWN: [WorkspaceStatus.DISSOLVED, WorkspaceStatus.ACTIVE],
            WorkspaceStatus.DISSOLVED: [],
        }
        return list(valid_transitions.get(self, []))

    def can_transition_to(self, new_state: "WorkspaceStatus") -> bool:
        """
        Check if transition to new state is valid.

        Args:
            new_state: Target state

        Returns:
            True if transition is allowed
        """
        return WorkspaceStatus(new_state) in self.allowed_transitions()

    @classmethod
    def from_string(cls, value: str) -> "WorkspaceStatus":
        """
        Create WorkspaceStatus from string value.

        Raises:
            ValueError: If value is not a valid state
        """
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Invalid workspace status: {value}")
