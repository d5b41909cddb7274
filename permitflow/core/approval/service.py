"""Approval service: the public face of the decision engine.

Every mutating method locks the application row and its active assignment,
does its work with ``flush`` only, and leaves commit or rollback to the
caller (see ``permitflow.db.session.unit_of_work``). A raised error means
nothing should be committed.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any, List, Tuple
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session

from permitflow.db.models import (
    Application,
    ApplicationGroupAssignment,
    ApplicationIssue,
    ApprovalGroupMember,
    DecisionRevocation,
)
from permitflow.services.discussions import DiscussionClient, LocalDiscussionClient
from .errors import NotFoundError, InvalidStateError, ValidationError
from .final_approval import FinalApprovalAuthority
from .issues import IssueGate, IssueAssignment
from .ledger import DecisionLedger
from .queries import IssueFilter, RevocationFilter
from .registry import GroupRegistry
from .revocation import RevocationHandler, RevocationResult
from .statistics import StatisticsAggregator, AssignmentStatistics
from .states import (
    ApplicationStatus,
    DecisionStatus,
    DecisionTransition,
    IssueAssignmentType,
    IssuePriority,
    FINAL_OUTCOMES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionResult:
    application_status: ApplicationStatus
    is_final_approver: bool
    ready_for_final_approval: bool
    approved_count: int
    rejected_count: int
    pending_count: int
    total_members: int
    unresolved_issues: int
    should_auto_reject: bool

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["application_status"] = self.application_status.value
        return data


class ApprovalService:
    """
    High-level service for group review of applications.

    Handles:
    - Assigning applications to approval groups
    - Recording member and final approver decisions
    - Raising, resolving and reopening issues
    - Revoking decisions
    - Approval progress summaries
    """

    def __init__(self, db: Session, discussions: Optional[DiscussionClient] = None):
        """
        Initialize the approval service.

        Args:
            db: Database session owned by the caller
            discussions: Discussion thread client for issues
        """
        self.db = db
        self.registry = GroupRegistry(db)
        self.ledger = DecisionLedger(db)
        self.statistics = StatisticsAggregator(db)
        self.final_authority = FinalApprovalAuthority(db)
        self.issues = IssueGate(
            db,
            discussions or LocalDiscussionClient(),
            registry=self.registry,
            ledger=self.ledger,
            statistics=self.statistics,
        )
        self.revocations = RevocationHandler(
            db,
            registry=self.registry,
            ledger=self.ledger,
            statistics=self.statistics,
            final_authority=self.final_authority,
        )

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign_application_to_group(
        self,
        application_id: UUID,
        group_id: UUID,
        *,
        assigned_by: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> ApplicationGroupAssignment:
        """
        Put an application under review by a group.

        An existing active assignment is closed first, so reassignment
        starts a fresh review cycle with fresh pending decisions.

        Raises:
            NotFoundError: If the application or group does not exist
            InvalidStateError: If the application already has a final
                decision or the group is inactive
        """
        application = self._lock_application(application_id)
        if application.is_terminal:
            raise InvalidStateError(
                "Application already has a final decision; revoke it before reassigning",
                application_id=application_id,
            )
        group = self.registry.get_group(group_id)
        if not group.is_active:
            raise InvalidStateError("Approval group is inactive", group_id=group_id)
        if not self.registry.get_final_approver(group_id):
            raise InvalidStateError("Approval group has no final approver", group_id=group_id)

        now = datetime.utcnow()
        previous = self._active_assignment(application_id, lock=True)
        if previous:
            previous.is_active = False
            previous.completed_at = now
            self.db.flush()
            logger.info(f"Closed assignment {previous.id} of application {application.reference_number}")

        assignment = ApplicationGroupAssignment(
            application_id=application.id,
            group_id=group.id,
            assigned_by=assigned_by,
            assigned_at=now,
            reassignment_reason=reason,
        )
        self.db.add(assignment)
        self.db.flush()

        self.ledger.open_seats(assignment, self.registry.get_regular_members(group.id))

        application.status = ApplicationStatus.UNDER_REVIEW.value
        application.approval_group_id = group.id
        application.review_started_at = now
        self.statistics.recompute(assignment, now)

        logger.info(f"Application {application.reference_number} assigned to group {group.name}")
        return assignment

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def record_decision(
        self,
        application_id: UUID,
        user_id: UUID,
        decision: DecisionTransition,
        *,
        comment: Optional[str] = None,
    ) -> DecisionResult:
        """
        Record an approve or reject vote for the caller's seat.

        Regular members vote freely. The final approver may approve only
        once the readiness gate is open, and may reject only once every
        regular member has voted and no issue is open. A final vote makes
        the application terminal.

        Raises:
            NotFoundError: Unknown application or user
            UnauthorizedError: No active seat, or missing capability
            InvalidStateError: Already voted, review closed, or gate closed
            ValidationError: Unknown decision value
        """
        try:
            decision = DecisionTransition(decision)
        except ValueError:
            raise ValidationError(f"Unknown decision: {decision}", decision=decision)
        if decision not in FINAL_OUTCOMES:
            raise InvalidStateError(f"{decision.value} is not a vote", transition=decision.value)

        application, assignment = self._lock_for_review(application_id)
        member = self.registry.get_active_member(assignment.group_id, user_id)
        if application.is_terminal or assignment.is_completed:
            raise InvalidStateError(
                "Application already has a final decision",
                application_id=application_id,
                status=application.status,
            )

        now = datetime.utcnow()
        if member.is_final_approver:
            self._require_final_gate(assignment, decision)

        row = self.ledger.get_or_create(assignment, member)
        self.ledger.record_vote(
            row,
            member,
            decision,
            application_id=application.id,
            comment=comment,
            now=now,
        )
        stats = self.statistics.recompute(assignment, now)

        if member.is_final_approver:
            self.final_authority.record(
                application,
                assignment,
                member,
                FINAL_OUTCOMES[decision],
                comment=comment,
                now=now,
            )

        logger.info(
            f"{'Final approver' if member.is_final_approver else 'Member'} {member.id} "
            f"{decision.value}d application {application.reference_number} "
            f"({stats.approved}/{stats.total_members} approved)"
        )
        return DecisionResult(
            application_status=ApplicationStatus(application.status),
            is_final_approver=member.is_final_approver,
            ready_for_final_approval=stats.ready_for_final_approval,
            approved_count=stats.approved,
            rejected_count=stats.rejected,
            pending_count=stats.pending,
            total_members=stats.total_members,
            unresolved_issues=stats.unresolved_issues,
            should_auto_reject=stats.should_auto_reject,
        )

    def approve(self, application_id: UUID, user_id: UUID, *, comment: Optional[str] = None) -> DecisionResult:
        return self.record_decision(application_id, user_id, DecisionTransition.APPROVE, comment=comment)

    def reject(self, application_id: UUID, user_id: UUID, *, comment: Optional[str] = None) -> DecisionResult:
        return self.record_decision(application_id, user_id, DecisionTransition.REJECT, comment=comment)

    def revoke_decision(self, application_id: UUID, user_id: UUID, reason: str) -> RevocationResult:
        """
        Revoke the caller's own decision and reopen review.

        Raises:
            NotFoundError: Unknown application or user, or no decision
            UnauthorizedError: No active seat
            InvalidStateError: No active assignment, decision pending or already revoked
            ValidationError: Empty reason
        """
        application, assignment = self._lock_for_review(application_id)
        member = self.registry.get_active_member(assignment.group_id, user_id)
        return self.revocations.revoke(application, assignment, member, reason)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def raise_issue(
        self,
        application_id: UUID,
        user_id: UUID,
        *,
        title: str,
        description: str,
        priority: IssuePriority = IssuePriority.MEDIUM,
        assignment_type: IssueAssignmentType = IssueAssignmentType.COLLABORATIVE,
        assigned_to_user_id: Optional[UUID] = None,
        assigned_to_member_id: Optional[UUID] = None,
        category: Optional[str] = None,
    ) -> ApplicationIssue:
        responsibility = IssueAssignment(assignment_type, assigned_to_user_id, assigned_to_member_id)
        application, assignment = self._lock_for_review(application_id)
        member = self.registry.get_active_member(assignment.group_id, user_id)
        return self.issues.raise_issue(
            assignment,
            member,
            title=title,
            description=description,
            responsibility=responsibility,
            priority=priority,
            category=category,
        )

    def resolve_issue(self, issue_id: UUID, user_id: UUID, resolution: Optional[str] = None) -> ApplicationIssue:
        issue = self._lock_issue(issue_id)
        return self.issues.resolve_issue(issue, user_id, resolution)

    def reopen_issue(self, issue_id: UUID, user_id: UUID) -> ApplicationIssue:
        issue = self._lock_issue(issue_id)
        return self.issues.reopen_issue(issue, user_id)

    def get_issue(self, issue_id: UUID) -> ApplicationIssue:
        issue = self.db.query(ApplicationIssue).filter(ApplicationIssue.id == issue_id).first()
        if not issue:
            raise NotFoundError("Issue", issue_id)
        return issue

    def list_issues(self, filters: Optional[IssueFilter] = None) -> List[ApplicationIssue]:
        filters = filters or IssueFilter()
        query = filters.apply(self.db.query(ApplicationIssue))
        query = query.order_by(ApplicationIssue.created_at.asc())
        return query.offset(filters.offset).limit(filters.limit).all()

    # ------------------------------------------------------------------
    # Group administration
    # ------------------------------------------------------------------

    def remove_group_member(self, member_id: UUID, removed_by: Optional[UUID] = None) -> ApprovalGroupMember:
        """
        Deactivate a seat and refresh statistics of the group's active assignments.

        Raises:
            NotFoundError: Unknown seat
            InvalidStateError: Seat already inactive, is the final approver of an
                active group, or still holds open issues on a review in progress
        """
        active_assignments = self.db.query(ApplicationGroupAssignment).filter(
            and_(
                ApplicationGroupAssignment.group_id == self.registry.get_member(member_id).group_id,
                ApplicationGroupAssignment.is_active.is_(True),
            )
        ).with_for_update().all()

        open_review_ids = [a.id for a in active_assignments if not a.is_completed]
        if open_review_ids:
            blocking = self.db.query(ApplicationIssue).filter(
                and_(
                    ApplicationIssue.assignment_id.in_(open_review_ids),
                    ApplicationIssue.assignment_type == IssueAssignmentType.GROUP_MEMBER.value,
                    ApplicationIssue.assigned_to_member_id == member_id,
                    ApplicationIssue.is_resolved.is_(False),
                )
            ).count()
            if blocking:
                raise InvalidStateError(
                    "Group member still has open issues assigned",
                    member_id=member_id,
                    open_issues=blocking,
                )

        member = self.registry.deactivate_member(member_id, removed_by)
        for assignment in active_assignments:
            self.statistics.recompute(assignment)
        return member

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_statistics(self, application_id: UUID) -> AssignmentStatistics:
        assignment = self._require_active_assignment(self._get_application(application_id))
        return self.statistics.compute(assignment)

    def list_revocations(self, filters: Optional[RevocationFilter] = None) -> List[DecisionRevocation]:
        filters = filters or RevocationFilter()
        query = filters.apply(self.db.query(DecisionRevocation))
        query = query.order_by(DecisionRevocation.revoked_at.asc())
        return query.offset(filters.offset).limit(filters.limit).all()

    def get_approval_summary(self, application_id: UUID) -> Dict[str, Any]:
        """Progress of the application's current review, for dashboards."""
        application = self._get_application(application_id)
        assignment = self._active_assignment(application_id)
        final = self.final_authority.get(application_id)

        summary: Dict[str, Any] = {
            "application_id": application.id,
            "reference_number": application.reference_number,
            "application_status": application.status,
            "group": None,
            "assignment_id": None,
            "statistics": None,
            "members": [],
            "final_approver": None,
            "final_approval": None,
            "can_final_approve": False,
        }
        if final:
            summary["final_approval"] = {
                "decision": final.decision,
                "approver_id": final.approver_id,
                "decision_at": final.decision_at,
                "comment": final.comment,
            }
        if not assignment:
            return summary

        group = assignment.group
        stats = self.statistics.compute(assignment)
        decisions = {row.member_id: row for row in self.ledger.for_assignment(assignment.id)}

        members = []
        final_approver = None
        for seat in self.registry.get_active_members(group.id):
            row = decisions.get(seat.id)
            entry = {
                "member_id": seat.id,
                "user_id": seat.user_id,
                "name": seat.user.full_name,
                "is_final_approver": seat.is_final_approver,
                "availability_status": seat.availability_status,
                "decision_status": row.status if row else DecisionStatus.PENDING.value,
                "decided_at": row.decided_at if row else None,
                "was_revoked": row.was_revoked if row else False,
            }
            if seat.is_final_approver:
                final_approver = entry
            else:
                members.append(entry)

        summary.update(
            group={"id": group.id, "name": group.name},
            assignment_id=assignment.id,
            statistics=stats.to_dict(),
            members=members,
            final_approver=final_approver,
            can_final_approve=stats.ready_for_final_approval and not assignment.is_completed,
        )
        return summary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_final_gate(self, assignment: ApplicationGroupAssignment, decision: DecisionTransition) -> None:
        stats = self.statistics.compute(assignment)
        if stats.unresolved_issues > 0:
            logger.warning(
                f"Final {decision.value} refused on assignment {assignment.id}: "
                f"{stats.unresolved_issues} unresolved issue(s)"
            )
            raise InvalidStateError(
                "All issues must be resolved before the final decision",
                unresolved_issues=stats.unresolved_issues,
            )
        if decision == DecisionTransition.APPROVE and not stats.ready_for_final_approval:
            logger.warning(f"Final approval refused on assignment {assignment.id}: regular members not all approved")
            raise InvalidStateError(
                "Application is not ready for final approval",
                approved=stats.approved,
                rejected=stats.rejected,
                total_members=stats.total_members,
            )
        if decision == DecisionTransition.REJECT and not (stats.all_decided or stats.votes_satisfied):
            logger.warning(f"Final rejection refused on assignment {assignment.id}: votes still pending")
            raise InvalidStateError(
                "All regular members must decide before the final decision",
                pending=stats.pending,
            )

    def _get_application(self, application_id: UUID) -> Application:
        application = self.db.query(Application).filter(Application.id == application_id).first()
        if not application:
            raise NotFoundError("Application", application_id)
        return application

    def _lock_application(self, application_id: UUID) -> Application:
        application = self.db.query(Application).filter(
            Application.id == application_id
        ).with_for_update().first()
        if not application:
            raise NotFoundError("Application", application_id)
        return application

    def _active_assignment(self, application_id: UUID, lock: bool = False) -> Optional[ApplicationGroupAssignment]:
        query = self.db.query(ApplicationGroupAssignment).filter(
            and_(
                ApplicationGroupAssignment.application_id == application_id,
                ApplicationGroupAssignment.is_active.is_(True),
            )
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    def _require_active_assignment(self, application: Application, lock: bool = False) -> ApplicationGroupAssignment:
        assignment = self._active_assignment(application.id, lock=lock)
        if not assignment:
            raise InvalidStateError(
                "Application is not assigned to an approval group",
                application_id=application.id,
            )
        return assignment

    def _lock_for_review(self, application_id: UUID) -> Tuple[Application, ApplicationGroupAssignment]:
        application = self._lock_application(application_id)
        return application, self._require_active_assignment(application, lock=True)

    def _lock_issue(self, issue_id: UUID) -> ApplicationIssue:
        issue = self.get_issue(issue_id)
        self._lock_for_review(issue.application_id)
        self.db.refresh(issue, with_for_update=True)
        return issue
