"""Issue gate: issues raised during review block final approval.

Who may resolve an issue depends on how it was assigned:

- COLLABORATIVE: any active seat in the reviewing group
- GROUP_MEMBER: only the user holding the referenced seat
- SPECIFIC_USER: only the referenced user, member or not
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from sqlalchemy.orm import Session

from permitflow.db.models import (
    ApplicationGroupAssignment,
    ApplicationIssue,
    ApprovalGroupMember,
    User,
)
from permitflow.services.discussions import DiscussionClient, DiscussionServiceError
from .errors import InvalidStateError, UnauthorizedError, ValidationError
from .ledger import DecisionLedger
from .registry import GroupRegistry
from .statistics import StatisticsAggregator
from .states import IssueAssignmentType, IssuePriority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueAssignment:
    """
    Responsibility for an issue.

    Validated on construction: a collaborative issue references nobody, a
    group-member issue references exactly one seat, a specific-user issue
    references exactly one user.
    """
    assignment_type: IssueAssignmentType = IssueAssignmentType.COLLABORATIVE
    assigned_to_user_id: Optional[UUID] = None
    assigned_to_member_id: Optional[UUID] = None

    def __post_init__(self):
        try:
            kind = IssueAssignmentType(self.assignment_type)
        except ValueError:
            raise ValidationError(
                f"Unknown issue assignment type: {self.assignment_type}",
                assignment_type=self.assignment_type,
            )
        object.__setattr__(self, "assignment_type", kind)

        has_user = self.assigned_to_user_id is not None
        has_member = self.assigned_to_member_id is not None

        if kind == IssueAssignmentType.COLLABORATIVE and (has_user or has_member):
            raise ValidationError("Collaborative issues cannot be assigned to a specific user or member")
        if kind == IssueAssignmentType.GROUP_MEMBER and (not has_member or has_user):
            raise ValidationError("Group member issues must reference exactly one group member")
        if kind == IssueAssignmentType.SPECIFIC_USER and (not has_user or has_member):
            raise ValidationError("Specific user issues must reference exactly one user")


class IssueGate:
    """Raises, resolves and reopens issues, keeping statistics in step."""

    def __init__(
        self,
        db: Session,
        discussions: DiscussionClient,
        *,
        registry: Optional[GroupRegistry] = None,
        ledger: Optional[DecisionLedger] = None,
        statistics: Optional[StatisticsAggregator] = None,
    ):
        self.db = db
        self.discussions = discussions
        self.registry = registry or GroupRegistry(db)
        self.ledger = ledger or DecisionLedger(db)
        self.statistics = statistics or StatisticsAggregator(db)

    def raise_issue(
        self,
        assignment: ApplicationGroupAssignment,
        member: ApprovalGroupMember,
        *,
        title: str,
        description: str,
        responsibility: IssueAssignment,
        priority: IssuePriority = IssuePriority.MEDIUM,
        category: Optional[str] = None,
    ) -> ApplicationIssue:
        """
        Open an issue against an assignment on behalf of a seat.

        Raises:
            UnauthorizedError: If the seat may not raise issues
            ValidationError: If the priority is unknown or the assignee is not a valid target
            InvalidStateError: If the assignment is already completed
            DiscussionServiceError: If the discussion thread cannot be opened
        """
        if not member.can_raise_issues:
            raise UnauthorizedError(
                "Member is not allowed to raise issues",
                member_id=member.id,
            )
        self._require_open(assignment)
        if not title or not title.strip():
            raise ValidationError("Issue title is required")
        if not description or not description.strip():
            raise ValidationError("Issue description is required")

        try:
            priority = IssuePriority(priority)
        except ValueError:
            raise ValidationError(f"Unknown issue priority: {priority}", priority=priority)
        self._validate_assignee(assignment, responsibility)

        issue = ApplicationIssue(
            application_id=assignment.application_id,
            assignment_id=assignment.id,
            raised_by_user_id=member.user_id,
            raised_by_member_id=member.id,
            assignment_type=responsibility.assignment_type.value,
            assigned_to_user_id=responsibility.assigned_to_user_id,
            assigned_to_member_id=responsibility.assigned_to_member_id,
            title=title.strip(),
            description=description,
            priority=priority.value,
            category=category,
        )
        self.db.add(issue)
        self.db.flush()

        # Raisers without a decision row yet get one, so their seat is tracked
        if not member.is_final_approver:
            self.ledger.get_or_create(assignment, member)

        issue.chat_thread_id = self.discussions.create_thread(
            application_id=assignment.application_id,
            issue_id=issue.id,
            title=issue.title,
            description=issue.description,
            created_by=member.user_id,
            participant_ids=self._thread_participants(assignment, member, responsibility),
        )

        self.statistics.recompute(assignment)
        logger.info(
            f"Issue {issue.id} raised on application {assignment.application_id} "
            f"({issue.assignment_type}, {issue.priority})"
        )
        return issue

    def resolve_issue(
        self,
        issue: ApplicationIssue,
        user_id: UUID,
        resolution: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ApplicationIssue:
        """
        Mark an issue resolved.

        Raises:
            InvalidStateError: If the issue is already resolved
            UnauthorizedError: If the user may not resolve this issue
        """
        if issue.is_resolved:
            raise InvalidStateError("Issue is already resolved", issue_id=issue.id)
        assignment = issue.assignment
        self._require_open(assignment)
        self._require_resolver(issue, assignment, user_id)

        issue.is_resolved = True
        issue.resolved_at = now or datetime.utcnow()
        issue.resolved_by = user_id
        issue.resolution = resolution
        self.db.flush()

        self.statistics.recompute(assignment)
        self._sync_thread(issue)
        logger.info(f"Issue {issue.id} resolved by {user_id}")
        return issue

    def reopen_issue(self, issue: ApplicationIssue, user_id: UUID) -> ApplicationIssue:
        """
        Reopen a resolved issue, clearing its resolution.

        Raises:
            InvalidStateError: If the issue is not resolved
            UnauthorizedError: If the user may not act on this issue
        """
        if not issue.is_resolved:
            raise InvalidStateError("Issue is not resolved", issue_id=issue.id)
        assignment = issue.assignment
        self._require_open(assignment)
        self._require_resolver(issue, assignment, user_id)

        issue.is_resolved = False
        issue.resolved_at = None
        issue.resolved_by = None
        issue.resolution = None
        self.db.flush()

        self.statistics.recompute(assignment)
        self._sync_thread(issue)
        logger.info(f"Issue {issue.id} reopened by {user_id}")
        return issue

    def _require_resolver(
        self,
        issue: ApplicationIssue,
        assignment: ApplicationGroupAssignment,
        user_id: UUID,
    ) -> None:
        kind = IssueAssignmentType(issue.assignment_type)

        if kind == IssueAssignmentType.SPECIFIC_USER:
            if issue.assigned_to_user_id != user_id:
                raise UnauthorizedError(
                    "Only the assigned user can act on this issue",
                    issue_id=issue.id,
                    user_id=user_id,
                )
            return

        if kind == IssueAssignmentType.GROUP_MEMBER:
            seat = self.db.query(ApprovalGroupMember).filter(
                ApprovalGroupMember.id == issue.assigned_to_member_id
            ).first()
            if not seat or seat.user_id != user_id or not seat.is_active:
                raise UnauthorizedError(
                    "Only the assigned group member can act on this issue",
                    issue_id=issue.id,
                    user_id=user_id,
                )
            return

        # Collaborative: any active seat in the reviewing group
        self.registry.get_active_member(assignment.group_id, user_id)

    def _validate_assignee(
        self,
        assignment: ApplicationGroupAssignment,
        responsibility: IssueAssignment,
    ) -> None:
        if responsibility.assignment_type == IssueAssignmentType.GROUP_MEMBER:
            seat = self.db.query(ApprovalGroupMember).filter(
                ApprovalGroupMember.id == responsibility.assigned_to_member_id
            ).first()
            if not seat or seat.group_id != assignment.group_id or not seat.is_active:
                raise ValidationError(
                    "Assigned member is not an active member of the reviewing group",
                    member_id=responsibility.assigned_to_member_id,
                )
            if not (seat.can_approve or seat.can_reject):
                raise ValidationError(
                    "Assigned member cannot approve or reject applications",
                    member_id=seat.id,
                )

        elif responsibility.assignment_type == IssueAssignmentType.SPECIFIC_USER:
            user = self.db.query(User).filter(User.id == responsibility.assigned_to_user_id).first()
            if not user or not user.is_active:
                raise ValidationError(
                    "Assigned user does not exist or is inactive",
                    user_id=responsibility.assigned_to_user_id,
                )

    def _thread_participants(
        self,
        assignment: ApplicationGroupAssignment,
        raiser: ApprovalGroupMember,
        responsibility: IssueAssignment,
    ) -> List[UUID]:
        if responsibility.assignment_type == IssueAssignmentType.COLLABORATIVE:
            return [seat.user_id for seat in self.registry.get_active_members(assignment.group_id)]

        participants = [raiser.user_id]
        if responsibility.assignment_type == IssueAssignmentType.GROUP_MEMBER:
            assignee = self.registry.get_member(responsibility.assigned_to_member_id).user_id
        else:
            assignee = responsibility.assigned_to_user_id
        if assignee not in participants:
            participants.append(assignee)
        return participants

    def _require_open(self, assignment: ApplicationGroupAssignment) -> None:
        if not assignment.is_active or assignment.is_completed:
            raise InvalidStateError(
                "Review for this assignment is closed",
                assignment_id=assignment.id,
            )

    def _sync_thread(self, issue: ApplicationIssue) -> None:
        if issue.chat_thread_id is None:
            return
        try:
            self.discussions.set_thread_resolved(issue.chat_thread_id, issue.is_resolved)
        except DiscussionServiceError as e:
            logger.warning(f"Could not sync thread {issue.chat_thread_id} for issue {issue.id}: {e}")
