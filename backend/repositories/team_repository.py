"""
Team member and recognition repositories.
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from constants import MemberStatus
from models import Recognition, SpecialistIntegration, TeamMember
from .base_repository import BaseRepository


class TeamMemberRepository(BaseRepository[TeamMember]):
    """Repository for TeamMember model operations."""

    def __init__(self, db: Session):
        super().__init__(db, TeamMember)

    def get_member(self, workspace_id: str, user_id: str) -> Optional[TeamMember]:
        """Membership row for a user in a workspace, whatever its status."""
        return self.query().filter(
            self.model.workspace_id == workspace_id,
            self.model.user_id == user_id,
        ).first()

    def get_active_member(self, workspace_id: str, user_id: str) -> Optional[TeamMember]:
        return self.query().filter(
            self.model.workspace_id == workspace_id,
            self.model.user_id == user_id,
            self.model.status == MemberStatus.ACTIVE.value,
        ).first()

    def list_members(self, workspace_id: str, status: Optional[str] = None) -> List[TeamMember]:
        """
        Members of a workspace.

        Args:
            workspace_id: Workspace UUID
            status: Optional MemberStatus filter

        Returns:
            Members ordered by join time
        """
        query = self.query().filter(self.model.workspace_id == workspace_id)
        if status:
            query = query.filter(self.model.status == status)
        return query.order_by(self.model.joined_at).all()

    def list_by_role(self, workspace_id: str, role: str) -> List[TeamMember]:
        return self.query().filter(
            self.model.workspace_id == workspace_id,
            self.model.role == role,
            self.model.status == MemberStatus.ACTIVE.value,
        ).all()

    def deactivate_all(self, workspace_id: str, when: Optional[datetime] = None) -> int:
        """
        Revoke every active or pending membership in a workspace.

        Returns:
            Number of memberships revoked
        """
        when = when or datetime.utcnow()
        members = self.query().filter(
            self.model.workspace_id == workspace_id,
            self.model.status != MemberStatus.INACTIVE.value,
        ).all()
        for member in members:
            member.status = MemberStatus.INACTIVE.value
            member.left_at = when
        self.db.flush()
        return len(members)

    def count_active(self) -> int:
        return self.query().filter(self.model.status == MemberStatus.ACTIVE.value).count()


class RecognitionRepository(BaseRepository[Recognition]):
    def __init__(self, db: Session):
        super().__init__(db, Recognition)

    def list_for_workspace(self, workspace_id: str, recipient_id: Optional[str] = None) -> List[Recognition]:
        query = self.query().filter(self.model.workspace_id == workspace_id)
        if recipient_id:
            query = query.filter(self.model.recipient_id == recipient_id)
        return query.order_by(self.model.created_at.desc()).all()


class SpecialistRepository(BaseRepository[SpecialistIntegration]):
    """External specialists of a workspace, joined with their membership."""

    def __init__(self, db: Session):
        super().__init__(db, SpecialistIntegration)

    def list_for_workspace(self, workspace_id: str, active_only: bool = True) -> List[SpecialistIntegration]:
        query = self.query().join(TeamMember, TeamMember.id == self.model.member_id).filter(
            self.model.workspace_id == workspace_id,
        )
        if active_only:
            query = query.filter(TeamMember.status == MemberStatus.ACTIVE.value)
        return query.order_by(self.model.integrated_at).all()
