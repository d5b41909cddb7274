"""Decision revocation and its ripple effects.

Revoking a vote reopens review: any final decision that depended on the
vote is withdrawn, statistics are re-derived from the ledger and the
application returns to UNDER_REVIEW.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from permitflow.db.models import (
    Application,
    ApplicationGroupAssignment,
    ApprovalGroupMember,
)
from .errors import NotFoundError
from .final_approval import FinalApprovalAuthority
from .ledger import DecisionLedger
from .registry import GroupRegistry
from .statistics import StatisticsAggregator
from .states import ApplicationStatus, DecisionStatus, DECIDED_STATES

logger = logging.getLogger(__name__)

CASCADE_REASON = "Final decision withdrawn after a member revoked their decision"


@dataclass(frozen=True)
class RevocationResult:
    previous_status: ApplicationStatus
    new_status: ApplicationStatus
    previous_decision_status: DecisionStatus
    was_final_approver: bool
    ready_for_final_approval: bool
    final_approval_removed: bool

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("previous_status", "new_status", "previous_decision_status"):
            data[key] = data[key].value
        return data


class RevocationHandler:
    """Reverses a member's decision inside the caller's transaction."""

    def __init__(
        self,
        db: Session,
        *,
        registry: Optional[GroupRegistry] = None,
        ledger: Optional[DecisionLedger] = None,
        statistics: Optional[StatisticsAggregator] = None,
        final_authority: Optional[FinalApprovalAuthority] = None,
    ):
        self.db = db
        self.registry = registry or GroupRegistry(db)
        self.ledger = ledger or DecisionLedger(db)
        self.statistics = statistics or StatisticsAggregator(db)
        self.final_authority = final_authority or FinalApprovalAuthority(db)

    def revoke(
        self,
        application: Application,
        assignment: ApplicationGroupAssignment,
        member: ApprovalGroupMember,
        reason: str,
        now: Optional[datetime] = None,
    ) -> RevocationResult:
        """
        Revoke the seat's own decision.

        Raises:
            NotFoundError: If the seat has no decision on this assignment
            InvalidStateError: If the decision is pending or already revoked
            ValidationError: If no reason is given
        """
        now = now or datetime.utcnow()
        decision = self.ledger.get(assignment.id, member.id)
        if not decision:
            raise NotFoundError("Decision", f"of member {member.id}")

        previous_status = ApplicationStatus(application.status)
        previous_decision_status = DecisionStatus(decision.status)

        # Validates the transition and the reason before anything else changes
        self.ledger.revoke(
            decision,
            application_id=application.id,
            revoked_by=member.user_id,
            reason=reason,
            now=now,
        )

        removed = self.final_authority.remove(application, assignment)
        if not member.is_final_approver:
            self._withdraw_final_vote(application, assignment, member, now)

        stats = self.statistics.recompute(assignment, now)

        application.status = ApplicationStatus.UNDER_REVIEW.value
        application.final_approval_date = None
        application.rejection_date = None
        application.review_completed_at = None
        self.db.flush()

        logger.info(
            f"Member {member.id} revoked {previous_decision_status.value} decision on application "
            f"{application.reference_number} ({previous_status.value} -> under_review)"
        )
        return RevocationResult(
            previous_status=previous_status,
            new_status=ApplicationStatus.UNDER_REVIEW,
            previous_decision_status=previous_decision_status,
            was_final_approver=member.is_final_approver,
            ready_for_final_approval=stats.ready_for_final_approval,
            final_approval_removed=removed is not None,
        )

    def _withdraw_final_vote(
        self,
        application: Application,
        assignment: ApplicationGroupAssignment,
        revoker: ApprovalGroupMember,
        now: datetime,
    ) -> None:
        """Return the final approver's seat to pending so they can decide again."""
        final_approver = self.registry.get_final_approver(assignment.group_id)
        if not final_approver:
            return
        decision = self.ledger.get(assignment.id, final_approver.id)
        if not decision or DecisionStatus(decision.status) not in DECIDED_STATES:
            return

        self.ledger.revoke(
            decision,
            application_id=application.id,
            revoked_by=revoker.user_id,
            reason=CASCADE_REASON,
            now=now,
        )
        logger.info(f"Final approver decision on application {application.reference_number} returned to pending")
