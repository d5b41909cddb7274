"""Decision ledger: one decision row per seat per assignment.

All status changes go through ``DecisionStateMachine`` so the transition
table is the single authority on what a decision may become.
"""

import logging
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session

from permitflow.db.models import (
    ApplicationGroupAssignment,
    ApprovalGroupMember,
    MemberDecision,
    DecisionRevocation,
    DecisionComment,
)
from .machine import DecisionStateMachine
from .states import DecisionStatus, DecisionTransition, CommentType

logger = logging.getLogger(__name__)

VOTE_COMMENT_TYPES = {
    DecisionTransition.APPROVE: CommentType.APPROVAL,
    DecisionTransition.REJECT: CommentType.REJECTION,
}


class DecisionLedger:
    """Creates, reads and transitions member decisions."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, assignment_id: UUID, member_id: UUID) -> Optional[MemberDecision]:
        return self.db.query(MemberDecision).filter(
            and_(
                MemberDecision.assignment_id == assignment_id,
                MemberDecision.member_id == member_id,
            )
        ).first()

    def for_assignment(self, assignment_id: UUID) -> List[MemberDecision]:
        return self.db.query(MemberDecision).filter(
            MemberDecision.assignment_id == assignment_id
        ).order_by(MemberDecision.created_at.asc()).all()

    def get_or_create(
        self,
        assignment: ApplicationGroupAssignment,
        member: ApprovalGroupMember,
    ) -> MemberDecision:
        """Return the seat's decision, creating it as pending if missing."""
        decision = self.get(assignment.id, member.id)
        if decision:
            return decision

        decision = MemberDecision(
            assignment_id=assignment.id,
            member_id=member.id,
            user_id=member.user_id,
            status=DecisionStatus.PENDING.value,
            is_final_approver_decision=member.is_final_approver,
            was_available=member.is_available,
        )
        self.db.add(decision)
        self.db.flush()
        logger.debug(f"Created pending decision for member {member.id} on assignment {assignment.id}")
        return decision

    def open_seats(
        self,
        assignment: ApplicationGroupAssignment,
        members: List[ApprovalGroupMember],
    ) -> List[MemberDecision]:
        return [self.get_or_create(assignment, member) for member in members]

    def record_vote(
        self,
        decision: MemberDecision,
        member: ApprovalGroupMember,
        transition: DecisionTransition,
        *,
        application_id: UUID,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MemberDecision:
        """
        Apply an approve or reject to a decision.

        A decision still parked in revoked is reset to pending first.

        Raises:
            InvalidStateError: If the decision is already approved or rejected
            UnauthorizedError: If the seat lacks the capability for the vote
        """
        now = now or datetime.utcnow()
        machine = DecisionStateMachine(
            decision.id,
            DecisionStatus(decision.status),
            capabilities=member.capabilities,
        )
        if machine.state == DecisionStatus.REVOKED:
            machine.transition(DecisionTransition.RESET, user_id=member.user_id)

        new_state = machine.transition(transition, comment=comment, user_id=member.user_id)

        decision.status = new_state.value
        decision.decided_at = now
        decision.is_final_approver_decision = member.is_final_approver
        decision.was_available = member.is_available

        if comment:
            self.db.add(DecisionComment(
                application_id=application_id,
                decision_id=decision.id,
                user_id=member.user_id,
                comment_type=VOTE_COMMENT_TYPES[transition].value,
                content=comment,
            ))

        self.db.flush()
        self._log_history(machine)
        return decision

    def revoke(
        self,
        decision: MemberDecision,
        *,
        application_id: UUID,
        revoked_by: UUID,
        reason: str,
        now: Optional[datetime] = None,
    ) -> DecisionRevocation:
        """
        Revoke a decided vote and return the seat to pending.

        The decision passes through revoked (audit fields stamped) and is
        reset on the same row; a revocation record keeps the prior status.

        Raises:
            InvalidStateError: If the decision is pending or already revoked
            ValidationError: If no reason is given
        """
        now = now or datetime.utcnow()
        machine = DecisionStateMachine(decision.id, DecisionStatus(decision.status))
        previous_status = machine.state

        machine.transition(DecisionTransition.REVOKE, comment=reason, user_id=revoked_by)
        decision.status = DecisionStatus.REVOKED.value
        decision.was_revoked = True
        decision.revoked_by = revoked_by
        decision.revoked_at = now
        decision.revoked_reason = reason

        revocation = DecisionRevocation(
            decision_id=decision.id,
            application_id=application_id,
            previous_status=previous_status.value,
            reason=reason,
            revoked_by=revoked_by,
            revoked_at=now,
        )
        self.db.add(revocation)
        self.db.add(DecisionComment(
            application_id=application_id,
            decision_id=decision.id,
            user_id=revoked_by,
            comment_type=CommentType.REVOCATION.value,
            content=reason,
        ))
        self.db.flush()

        new_state = machine.transition(DecisionTransition.RESET, user_id=revoked_by)
        decision.status = new_state.value
        decision.decided_at = None
        self.db.flush()

        self._log_history(machine)
        return revocation

    def _log_history(self, machine: DecisionStateMachine) -> None:
        for record in machine.get_history():
            logger.debug(
                f"Decision {record['decision_id']}: {record['from_state']} -> "
                f"{record['to_state']} ({record['transition']}) by {record['user_id']}"
            )
