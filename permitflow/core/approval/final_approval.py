"""Final approval authority.

The only code path that moves an application into a terminal status, and
the only one that takes it back out.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from permitflow.db.models import (
    Application,
    ApplicationGroupAssignment,
    ApprovalGroupMember,
    FinalApproval,
)
from .errors import InvalidStateError
from .states import ApplicationStatus, TERMINAL_APPLICATION_STATUSES

logger = logging.getLogger(__name__)


class FinalApprovalAuthority:
    """Creates and removes the single final approval of an application."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, application_id) -> Optional[FinalApproval]:
        return self.db.query(FinalApproval).filter(
            FinalApproval.application_id == application_id
        ).first()

    def record(
        self,
        application: Application,
        assignment: ApplicationGroupAssignment,
        approver: ApprovalGroupMember,
        outcome: ApplicationStatus,
        *,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FinalApproval:
        """
        Record the binding outcome and close the assignment.

        Raises:
            InvalidStateError: If the application already has a final decision
        """
        outcome = ApplicationStatus(outcome)
        if outcome not in TERMINAL_APPLICATION_STATUSES:
            raise InvalidStateError(f"{outcome.value} is not a final outcome")
        if self.get(application.id):
            raise InvalidStateError(
                "Application already has a final decision",
                application_id=application.id,
            )

        now = now or datetime.utcnow()
        final = FinalApproval(
            application_id=application.id,
            approver_id=approver.user_id,
            decision=outcome.value,
            decision_at=now,
            comment=comment,
        )
        self.db.add(final)
        self.db.flush()

        application.status = outcome.value
        application.review_completed_at = now
        if outcome == ApplicationStatus.APPROVED:
            application.final_approval_date = now
            application.rejection_date = None
        else:
            application.rejection_date = now
            application.final_approval_date = None

        assignment.completed_at = now
        assignment.final_decision_at = now
        assignment.final_decision_id = final.id
        self.db.flush()

        logger.info(f"Application {application.reference_number} {outcome.value} by final approver {approver.user_id}")
        return final

    def remove(self, application: Application, assignment: ApplicationGroupAssignment) -> Optional[FinalApproval]:
        """Delete the final approval, if any, and reopen the assignment."""
        final = self.get(application.id)

        assignment.completed_at = None
        assignment.final_decision_at = None
        assignment.final_decision_id = None
        self.db.flush()

        if final:
            self.db.delete(final)
            self.db.flush()
            logger.info(f"Final {final.decision} decision removed from application {application.reference_number}")
        return final
