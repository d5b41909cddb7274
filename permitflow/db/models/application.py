"""Permit application model.

Applications are created by the intake subsystem; this package only drives
their review status.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from permitflow.db.base import Base


class Application(Base):
    __tablename__ = "applications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reference_number = Column(String(50), unique=True, nullable=False, index=True)
    applicant_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Review state
    status = Column(String(50), nullable=False, default="submitted", index=True)
    approval_group_id = Column(Uuid(as_uuid=True), ForeignKey("approval_groups.id", ondelete="SET NULL"), nullable=True)

    # Milestones
    submission_date = Column(DateTime, default=datetime.utcnow)
    review_started_at = Column(DateTime, nullable=True)
    final_approval_date = Column(DateTime, nullable=True)
    rejection_date = Column(DateTime, nullable=True)
    review_completed_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    approval_group = relationship("ApprovalGroup")
    assignments = relationship(
        "ApplicationGroupAssignment",
        back_populates="application",
        order_by="ApplicationGroupAssignment.assigned_at",
    )
    final_approval = relationship("FinalApproval", back_populates="application", uselist=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("approved", "rejected")

    def __repr__(self) -> str:
        return f"<Application {self.reference_number} [{self.status}]>"
