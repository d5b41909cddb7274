"""Approval group registry.

Read access to groups and seats for the engine, plus the administrative
operations that create groups and retire seats.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session

from permitflow.db.models import ApprovalGroup, ApprovalGroupMember, User
from .errors import NotFoundError, UnauthorizedError, ValidationError, InvalidStateError
from .queries import GroupFilter
from .states import MemberRole, AvailabilityStatus

logger = logging.getLogger(__name__)


@dataclass
class MemberSpec:
    """Seat definition used when creating a group."""
    user_id: UUID
    can_approve: bool = True
    can_reject: bool = True
    can_raise_issues: bool = True
    review_order: int = 0


class GroupRegistry:
    """Lookups over approval groups and their seats."""

    def __init__(self, db: Session):
        self.db = db

    def get_group(self, group_id: UUID) -> ApprovalGroup:
        group = self.db.query(ApprovalGroup).filter(ApprovalGroup.id == group_id).first()
        if not group:
            raise NotFoundError("Approval group", group_id)
        return group

    def get_member(self, member_id: UUID) -> ApprovalGroupMember:
        member = self.db.query(ApprovalGroupMember).filter(ApprovalGroupMember.id == member_id).first()
        if not member:
            raise NotFoundError("Group member", member_id)
        return member

    def get_active_member(self, group_id: UUID, user_id: UUID) -> ApprovalGroupMember:
        """
        Resolve the caller's seat in a group.

        Raises:
            NotFoundError: If the group or the user does not exist
            UnauthorizedError: If the user has no seat, or the seat is inactive
        """
        self.get_group(group_id)
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)

        seats = self.db.query(ApprovalGroupMember).filter(
            and_(
                ApprovalGroupMember.group_id == group_id,
                ApprovalGroupMember.user_id == user_id,
            )
        ).all()
        active = [seat for seat in seats if seat.is_active]
        if not active:
            if seats:
                raise UnauthorizedError(
                    "Group membership is inactive",
                    group_id=group_id,
                    user_id=user_id,
                )
            raise UnauthorizedError(
                "User is not a member of the approval group",
                group_id=group_id,
                user_id=user_id,
            )
        if not user.is_active:
            raise UnauthorizedError("User account is inactive", user_id=user_id)
        return active[0]

    def get_regular_members(self, group_id: UUID) -> List[ApprovalGroupMember]:
        """Active seats that vote before the final approver."""
        return self.db.query(ApprovalGroupMember).filter(
            and_(
                ApprovalGroupMember.group_id == group_id,
                ApprovalGroupMember.is_active.is_(True),
                ApprovalGroupMember.role == MemberRole.REGULAR.value,
            )
        ).order_by(ApprovalGroupMember.review_order.asc()).all()

    def get_active_members(self, group_id: UUID) -> List[ApprovalGroupMember]:
        return self.db.query(ApprovalGroupMember).filter(
            and_(
                ApprovalGroupMember.group_id == group_id,
                ApprovalGroupMember.is_active.is_(True),
            )
        ).order_by(ApprovalGroupMember.review_order.asc()).all()

    def get_final_approver(self, group_id: UUID) -> Optional[ApprovalGroupMember]:
        return self.db.query(ApprovalGroupMember).filter(
            and_(
                ApprovalGroupMember.group_id == group_id,
                ApprovalGroupMember.is_active.is_(True),
                ApprovalGroupMember.role == MemberRole.FINAL_APPROVER.value,
            )
        ).first()

    def list_groups(self, filters: Optional[GroupFilter] = None) -> List[ApprovalGroup]:
        filters = filters or GroupFilter()
        query = filters.apply(self.db.query(ApprovalGroup))
        return query.order_by(ApprovalGroup.name.asc()).offset(filters.offset).limit(filters.limit).all()

    def create_group(
        self,
        name: str,
        members: List[MemberSpec],
        final_approver_user_id: UUID,
        *,
        created_by: Optional[UUID] = None,
        description: Optional[str] = None,
        requires_all_approvals: bool = True,
        minimum_approvals: int = 1,
    ) -> ApprovalGroup:
        """
        Create a group with its regular seats and its final approver.

        Raises:
            ValidationError: Duplicate seats, no regular members, the final
                approver also listed as a regular member, a bad minimum,
                or a name already in use
            NotFoundError: If a referenced user does not exist
        """
        if not members:
            raise ValidationError("An approval group needs at least one regular member")
        if minimum_approvals < 1:
            raise ValidationError("minimum_approvals must be at least 1", minimum_approvals=minimum_approvals)
        if not requires_all_approvals and minimum_approvals > len(members):
            raise ValidationError(
                "minimum_approvals cannot exceed the number of regular members",
                minimum_approvals=minimum_approvals,
                members=len(members),
            )

        user_ids = [spec.user_id for spec in members]
        if len(set(user_ids)) != len(user_ids):
            raise ValidationError("A user can hold only one seat in a group")
        if final_approver_user_id in user_ids:
            raise ValidationError(
                "The final approver cannot also hold a regular seat",
                user_id=final_approver_user_id,
            )

        for user_id in user_ids + [final_approver_user_id]:
            if not self.db.query(User).filter(User.id == user_id).first():
                raise NotFoundError("User", user_id)

        if self.db.query(ApprovalGroup).filter(ApprovalGroup.name == name).first():
            raise ValidationError(f"Approval group {name!r} already exists", name=name)

        group = ApprovalGroup(
            name=name,
            description=description,
            requires_all_approvals=requires_all_approvals,
            minimum_approvals=minimum_approvals,
            created_by=created_by,
        )
        self.db.add(group)
        self.db.flush()

        for spec in members:
            self.db.add(ApprovalGroupMember(
                group_id=group.id,
                user_id=spec.user_id,
                role=MemberRole.REGULAR.value,
                can_approve=spec.can_approve,
                can_reject=spec.can_reject,
                can_raise_issues=spec.can_raise_issues,
                review_order=spec.review_order,
                availability_status=AvailabilityStatus.AVAILABLE.value,
                added_by=created_by,
            ))

        self.db.add(ApprovalGroupMember(
            group_id=group.id,
            user_id=final_approver_user_id,
            role=MemberRole.FINAL_APPROVER.value,
            review_order=len(members) + 1,
            availability_status=AvailabilityStatus.AVAILABLE.value,
            added_by=created_by,
        ))
        self.db.flush()

        logger.info(f"Created approval group {group.name} with {len(members)} regular members")
        return group

    def deactivate_member(self, member_id: UUID, removed_by: Optional[UUID] = None) -> ApprovalGroupMember:
        """Soft-remove a seat; its past decisions stay on record."""
        member = self.get_member(member_id)
        if not member.is_active:
            raise InvalidStateError("Group member is already inactive", member_id=member_id)
        if member.is_final_approver and member.group.is_active:
            raise InvalidStateError(
                "The final approver of an active group cannot be removed",
                member_id=member_id,
            )

        member.is_active = False
        member.removed_at = datetime.utcnow()
        member.removed_by = removed_by
        self.db.flush()

        logger.info(f"Deactivated member {member.id} of group {member.group_id}")
        return member
