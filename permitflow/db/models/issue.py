"""Issues raised against an application during group review."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from permitflow.db.base import Base


class ApplicationIssue(Base):
    """
    A concern that blocks final approval until resolved.

    The assignment type is fixed at creation and decides who may resolve
    the issue. Each issue has a discussion thread in the chat service.
    """
    __tablename__ = "application_issues"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    assignment_id = Column(Uuid(as_uuid=True), ForeignKey("application_group_assignments.id", ondelete="CASCADE"), nullable=False, index=True)

    # Raiser
    raised_by_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    raised_by_member_id = Column(Uuid(as_uuid=True), ForeignKey("approval_group_members.id"), nullable=True)

    # Responsibility
    assignment_type = Column(String(50), nullable=False, default="collaborative")
    assigned_to_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    assigned_to_member_id = Column(Uuid(as_uuid=True), ForeignKey("approval_group_members.id"), nullable=True)

    # Content
    chat_thread_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(String(20), nullable=False, default="medium")
    category = Column(String(100), nullable=True)

    # Resolution
    is_resolved = Column(Boolean, nullable=False, default=False, index=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolution = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assignment = relationship("ApplicationGroupAssignment", back_populates="issues")
    raised_by = relationship("User", foreign_keys=[raised_by_user_id])
    assigned_to_member = relationship("ApprovalGroupMember", foreign_keys=[assigned_to_member_id])

    def __repr__(self) -> str:
        state = "resolved" if self.is_resolved else "open"
        return f"<ApplicationIssue {self.title!r} [{state}]>"
