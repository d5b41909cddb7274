"""Approval workflow database models.

Stores approval groups and their seats, the binding of an application to a
group, per-member decisions with their revocation audit trail, and the
single final approval an application can carry.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, DateTime, Boolean, Integer, ForeignKey, Text, Uuid,
    Index, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship

from permitflow.db.base import Base


class ApprovalGroup(Base):
    """
    A review board: regular members plus exactly one final approver.

    Groups are deactivated, never deleted, so past assignments keep their
    history.
    """
    __tablename__ = "approval_groups"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Voting configuration
    requires_all_approvals = Column(Boolean, nullable=False, default=True)
    minimum_approvals = Column(Integer, nullable=False, default=1)

    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    members = relationship(
        "ApprovalGroupMember",
        back_populates="group",
        order_by="ApprovalGroupMember.review_order",
    )
    assignments = relationship("ApplicationGroupAssignment", back_populates="group")

    def __repr__(self) -> str:
        return f"<ApprovalGroup {self.name}>"


class ApprovalGroupMember(Base):
    """
    One seat in an approval group.

    Seats are soft-removed (is_active=False plus removal audit) so decisions
    made from them stay attributable.
    """
    __tablename__ = "approval_group_members"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("approval_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    # Seat configuration
    role = Column(String(50), nullable=False, default="regular")
    is_active = Column(Boolean, nullable=False, default=True)
    can_approve = Column(Boolean, nullable=False, default=True)
    can_reject = Column(Boolean, nullable=False, default=True)
    can_raise_issues = Column(Boolean, nullable=False, default=True)
    review_order = Column(Integer, nullable=False, default=0)

    # Availability (informational, recorded on each decision)
    availability_status = Column(String(50), nullable=False, default="available")
    unavailable_reason = Column(Text, nullable=True)
    unavailable_until = Column(DateTime, nullable=True)

    # Membership audit
    added_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    added_at = Column(DateTime, default=datetime.utcnow)
    removed_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    removed_at = Column(DateTime, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    group = relationship("ApprovalGroup", back_populates="members")
    user = relationship("User", back_populates="group_memberships", foreign_keys=[user_id])

    @property
    def is_final_approver(self) -> bool:
        return self.role == "final_approver"

    @property
    def is_available(self) -> bool:
        return self.availability_status == "available"

    @property
    def capabilities(self) -> set[str]:
        """Capability flags in the form the decision state machine checks."""
        flags = {
            "can_approve": self.can_approve,
            "can_reject": self.can_reject,
            "can_raise_issues": self.can_raise_issues,
        }
        return {name for name, enabled in flags.items() if enabled}

    def __repr__(self) -> str:
        return f"<ApprovalGroupMember {self.user_id} [{self.role}]>"


class ApplicationGroupAssignment(Base):
    """
    Binds one application to one group for one review cycle.

    Counter columns are a cache written only by the statistics aggregator;
    the decision and issue rows are the source of truth.
    """
    __tablename__ = "application_group_assignments"
    __table_args__ = (
        Index(
            "uq_active_assignment_per_application",
            "application_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("approval_groups.id"), nullable=False, index=True)

    is_active = Column(Boolean, nullable=False, default=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)
    assigned_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reassignment_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Cached statistics (regular members only)
    total_members = Column(Integer, nullable=False, default=0)
    approved_count = Column(Integer, nullable=False, default=0)
    rejected_count = Column(Integer, nullable=False, default=0)
    pending_count = Column(Integer, nullable=False, default=0)
    issues_raised = Column(Integer, nullable=False, default=0)
    issues_resolved = Column(Integer, nullable=False, default=0)

    # Final approval readiness
    ready_for_final_approval = Column(Boolean, nullable=False, default=False)
    final_approver_assigned_at = Column(DateTime, nullable=True)
    final_decision_at = Column(DateTime, nullable=True)
    final_decision_id = Column(Uuid(as_uuid=True), ForeignKey("final_approvals.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    application = relationship("Application", back_populates="assignments")
    group = relationship("ApprovalGroup", back_populates="assignments")
    decisions = relationship("MemberDecision", back_populates="assignment")
    issues = relationship("ApplicationIssue", back_populates="assignment")
    final_decision = relationship("FinalApproval", foreign_keys=[final_decision_id])

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def __repr__(self) -> str:
        return (
            f"<ApplicationGroupAssignment {self.application_id} "
            f"{self.approved_count}/{self.total_members} approved>"
        )


class MemberDecision(Base):
    """
    A member's vote on an assignment. One row per seat per assignment.

    Rows are never deleted: a revoked vote is flipped to revoked, audited,
    and reset to pending on the same row.
    """
    __tablename__ = "member_decisions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "member_id", name="uq_member_decisions_assignment_member"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assignment_id = Column(Uuid(as_uuid=True), ForeignKey("application_group_assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("approval_group_members.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)

    status = Column(String(50), nullable=False, default="pending", index=True)
    decided_at = Column(DateTime, nullable=True)
    is_final_approver_decision = Column(Boolean, nullable=False, default=False)
    was_available = Column(Boolean, nullable=False, default=True)

    # Latest revocation (full trail lives in decision_revocations)
    was_revoked = Column(Boolean, nullable=False, default=False)
    revoked_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    revoked_at = Column(DateTime, nullable=True)
    revoked_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assignment = relationship("ApplicationGroupAssignment", back_populates="decisions")
    member = relationship("ApprovalGroupMember")
    revocations = relationship(
        "DecisionRevocation",
        back_populates="decision",
        order_by="DecisionRevocation.revoked_at",
    )
    comments = relationship("DecisionComment", back_populates="decision")

    def __repr__(self) -> str:
        return f"<MemberDecision {self.member_id} [{self.status}]>"


class DecisionRevocation(Base):
    """Append-only record of every revoked decision."""
    __tablename__ = "decision_revocations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    decision_id = Column(Uuid(as_uuid=True), ForeignKey("member_decisions.id", ondelete="CASCADE"), nullable=False, index=True)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    previous_status = Column(String(50), nullable=False)
    reason = Column(Text, nullable=False)
    revoked_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    revoked_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    decision = relationship("MemberDecision", back_populates="revocations")

    def __repr__(self) -> str:
        return f"<DecisionRevocation {self.decision_id} was {self.previous_status}>"


class FinalApproval(Base):
    """
    The binding outcome for an application.

    At most one row per application; deleted when a contributing decision
    is revoked.
    """
    __tablename__ = "final_approvals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, unique=True)
    approver_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    decision = Column(String(50), nullable=False)
    decision_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    application = relationship("Application", back_populates="final_approval")
    approver = relationship("User")

    def __repr__(self) -> str:
        return f"<FinalApproval {self.application_id} [{self.decision}]>"
