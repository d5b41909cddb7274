"""Assignment statistics as a projection of the ledger.

Counters on ``ApplicationGroupAssignment`` are a cache. They are rewritten
from decision and issue rows after every mutating operation and never
incremented in place, so they cannot drift from the data they summarize.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from permitflow.db.models import (
    ApplicationGroupAssignment,
    ApprovalGroupMember,
    ApplicationIssue,
    MemberDecision,
)
from .states import DecisionStatus, MemberRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentStatistics:
    """Counts over the active regular seats of one assignment."""
    approved: int
    rejected: int
    pending: int
    total_members: int
    issues_raised: int
    issues_resolved: int
    requires_all_approvals: bool = True
    minimum_approvals: int = 1

    @property
    def unresolved_issues(self) -> int:
        return self.issues_raised - self.issues_resolved

    @property
    def all_decided(self) -> bool:
        return self.total_members > 0 and self.pending == 0

    @property
    def votes_satisfied(self) -> bool:
        """Regular members have produced enough approvals and no rejection."""
        if self.total_members == 0 or self.rejected > 0:
            return False
        if self.requires_all_approvals:
            return self.approved == self.total_members
        return self.approved >= self.minimum_approvals

    @property
    def ready_for_final_approval(self) -> bool:
        return self.votes_satisfied and self.unresolved_issues == 0

    @property
    def should_auto_reject(self) -> bool:
        """Every regular member voted and at least one rejected."""
        return self.all_decided and self.rejected > 0

    @property
    def progress_percentage(self) -> float:
        if self.total_members == 0:
            return 0.0
        return round(self.approved / self.total_members * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(
            unresolved_issues=self.unresolved_issues,
            all_decided=self.all_decided,
            ready_for_final_approval=self.ready_for_final_approval,
            should_auto_reject=self.should_auto_reject,
            progress_percentage=self.progress_percentage,
        )
        return data


class StatisticsAggregator:
    """Computes and caches assignment statistics."""

    def __init__(self, db: Session):
        self.db = db

    def compute(self, assignment: ApplicationGroupAssignment) -> AssignmentStatistics:
        """Derive statistics from the ledger without writing anything."""
        regular_seats = select(ApprovalGroupMember.id).where(
            ApprovalGroupMember.group_id == assignment.group_id,
            ApprovalGroupMember.is_active.is_(True),
            ApprovalGroupMember.role == MemberRole.REGULAR.value,
        )
        total_members = self.db.query(func.count(ApprovalGroupMember.id)).filter(
            ApprovalGroupMember.id.in_(regular_seats)
        ).scalar() or 0

        rows = self.db.query(MemberDecision.status, func.count(MemberDecision.id)).filter(
            and_(
                MemberDecision.assignment_id == assignment.id,
                MemberDecision.member_id.in_(regular_seats),
            )
        ).group_by(MemberDecision.status).all()
        by_status = {status: count for status, count in rows}

        approved = by_status.get(DecisionStatus.APPROVED.value, 0)
        rejected = by_status.get(DecisionStatus.REJECTED.value, 0)

        issues_raised = self.db.query(func.count(ApplicationIssue.id)).filter(
            ApplicationIssue.assignment_id == assignment.id
        ).scalar() or 0
        issues_resolved = self.db.query(func.count(ApplicationIssue.id)).filter(
            and_(
                ApplicationIssue.assignment_id == assignment.id,
                ApplicationIssue.is_resolved.is_(True),
            )
        ).scalar() or 0

        group = assignment.group
        return AssignmentStatistics(
            approved=approved,
            rejected=rejected,
            pending=total_members - approved - rejected,
            total_members=total_members,
            issues_raised=issues_raised,
            issues_resolved=issues_resolved,
            requires_all_approvals=group.requires_all_approvals,
            minimum_approvals=group.minimum_approvals,
        )

    def recompute(
        self,
        assignment: ApplicationGroupAssignment,
        now: Optional[datetime] = None,
    ) -> AssignmentStatistics:
        """
        Rewrite the cached counters and the readiness flag.

        ``final_approver_assigned_at`` is stamped the first time readiness
        is reached and cleared whenever readiness is withdrawn.
        """
        self.db.flush()
        stats = self.compute(assignment)

        assignment.total_members = stats.total_members
        assignment.approved_count = stats.approved
        assignment.rejected_count = stats.rejected
        assignment.pending_count = stats.pending
        assignment.issues_raised = stats.issues_raised
        assignment.issues_resolved = stats.issues_resolved

        was_ready = assignment.ready_for_final_approval
        ready = stats.ready_for_final_approval
        assignment.ready_for_final_approval = ready
        if ready and assignment.final_approver_assigned_at is None:
            assignment.final_approver_assigned_at = now or datetime.utcnow()
        elif not ready:
            assignment.final_approver_assigned_at = None

        if ready != was_ready:
            logger.info(
                f"Assignment {assignment.id} "
                f"{'is now ready' if ready else 'is no longer ready'} for final approval"
            )

        self.db.flush()
        return stats
