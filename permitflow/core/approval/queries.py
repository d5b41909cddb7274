"""Typed query filters for approval listings.

Each filter is a plain dataclass whose unset fields are ignored; ``apply``
narrows a SQLAlchemy query accordingly.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Query

from permitflow.db.models import (
    ApprovalGroup,
    ApprovalGroupMember,
    ApplicationIssue,
    DecisionRevocation,
)
from .states import IssueAssignmentType, IssuePriority


@dataclass
class IssueFilter:
    application_id: Optional[UUID] = None
    assignment_id: Optional[UUID] = None
    is_resolved: Optional[bool] = None
    assignment_type: Optional[IssueAssignmentType] = None
    priority: Optional[IssuePriority] = None
    raised_by_user_id: Optional[UUID] = None
    assigned_to_user_id: Optional[UUID] = None
    limit: int = 100
    offset: int = 0

    def apply(self, query: Query) -> Query:
        if self.application_id is not None:
            query = query.filter(ApplicationIssue.application_id == self.application_id)
        if self.assignment_id is not None:
            query = query.filter(ApplicationIssue.assignment_id == self.assignment_id)
        if self.is_resolved is not None:
            query = query.filter(ApplicationIssue.is_resolved.is_(self.is_resolved))
        if self.assignment_type is not None:
            query = query.filter(ApplicationIssue.assignment_type == IssueAssignmentType(self.assignment_type).value)
        if self.priority is not None:
            query = query.filter(ApplicationIssue.priority == IssuePriority(self.priority).value)
        if self.raised_by_user_id is not None:
            query = query.filter(ApplicationIssue.raised_by_user_id == self.raised_by_user_id)
        if self.assigned_to_user_id is not None:
            query = query.filter(ApplicationIssue.assigned_to_user_id == self.assigned_to_user_id)
        return query


@dataclass
class GroupFilter:
    name_contains: Optional[str] = None
    is_active: Optional[bool] = None
    member_user_id: Optional[UUID] = None
    limit: int = 100
    offset: int = 0

    def apply(self, query: Query) -> Query:
        if self.name_contains:
            query = query.filter(ApprovalGroup.name.ilike(f"%{self.name_contains}%"))
        if self.is_active is not None:
            query = query.filter(ApprovalGroup.is_active.is_(self.is_active))
        if self.member_user_id is not None:
            seats = select(ApprovalGroupMember.group_id).where(
                ApprovalGroupMember.user_id == self.member_user_id,
                ApprovalGroupMember.is_active.is_(True),
            )
            query = query.filter(ApprovalGroup.id.in_(seats))
        return query


@dataclass
class RevocationFilter:
    application_id: Optional[UUID] = None
    decision_id: Optional[UUID] = None
    revoked_by: Optional[UUID] = None
    limit: int = 100
    offset: int = 0

    def apply(self, query: Query) -> Query:
        if self.application_id is not None:
            query = query.filter(DecisionRevocation.application_id == self.application_id)
        if self.decision_id is not None:
            query = query.filter(DecisionRevocation.decision_id == self.decision_id)
        if self.revoked_by is not None:
            query = query.filter(DecisionRevocation.revoked_by == self.revoked_by)
        return query
