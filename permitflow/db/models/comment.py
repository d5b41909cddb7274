import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from permitflow.db.base import Base


class DecisionComment(Base):
    """Free-text note attached to a decision, revocation or issue."""
    __tablename__ = "decision_comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    decision_id = Column(Uuid(as_uuid=True), ForeignKey("member_decisions.id", ondelete="CASCADE"), nullable=True, index=True)
    issue_id = Column(Uuid(as_uuid=True), ForeignKey("application_issues.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    comment_type = Column(String(50), nullable=False, default="general")
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    decision = relationship("MemberDecision", back_populates="comments")
    author = relationship("User")

    def __repr__(self) -> str:
        return f"<DecisionComment {self.comment_type} by {self.user_id}>"
