"""Initial schema: users, applications, approval groups, decisions, issues

Revision ID: 0001
Revises: None
Create Date: 2026-10-19

Tables added:
- users: Identities mirrored from the auth service
- approval_groups / approval_group_members: Review boards and their seats
- applications: Permit applications under review
- final_approvals: Binding outcome, one per application
- application_group_assignments: Application bound to a group, with cached statistics
- member_decisions: One vote per seat per assignment
- decision_revocations: Append-only revocation audit trail
- application_issues: Issues gating final approval
- decision_comments: Notes attached to decisions and revocations
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    # --- users (no FK deps) ---
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("department", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # --- approval_groups (FK -> users) ---
    op.create_table(
        "approval_groups",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("requires_all_approvals", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("minimum_approvals", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_approval_groups"),
        sa.UniqueConstraint("name", name="uq_approval_groups_name"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], name="fk_approval_groups_created_by", ondelete="SET NULL"),
    )
    op.create_index("ix_approval_groups_created_at", "approval_groups", ["created_at"])

    # --- approval_group_members (FK -> approval_groups, users) ---
    op.create_table(
        "approval_group_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="regular"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("can_approve", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("can_reject", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("can_raise_issues", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("review_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("availability_status", sa.String(50), nullable=False, server_default="available"),
        sa.Column("unavailable_reason", sa.Text(), nullable=True),
        sa.Column("unavailable_until", sa.DateTime(), nullable=True),
        sa.Column("added_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("added_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("removed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("removed_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_approval_group_members"),
        sa.ForeignKeyConstraint(["group_id"], ["approval_groups.id"], name="fk_approval_group_members_group_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_approval_group_members_user_id"),
        sa.ForeignKeyConstraint(["added_by"], ["users.id"], name="fk_approval_group_members_added_by", ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["removed_by"], ["users.id"], name="fk_approval_group_members_removed_by", ondelete="SET NULL"),
    )
    op.create_index("ix_approval_group_members_group_id", "approval_group_members", ["group_id"])
    op.create_index("ix_approval_group_members_user_id", "approval_group_members", ["user_id"])

    # --- applications (FK -> approval_groups) ---
    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reference_number", sa.String(50), nullable=False),
        sa.Column("applicant_name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="submitted"),
        sa.Column("approval_group_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("submission_date", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("review_started_at", sa.DateTime(), nullable=True),
        sa.Column("final_approval_date", sa.DateTime(), nullable=True),
        sa.Column("rejection_date", sa.DateTime(), nullable=True),
        sa.Column("review_completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_applications"),
        sa.UniqueConstraint("reference_number", name="uq_applications_reference_number"),
        sa.ForeignKeyConstraint(["approval_group_id"], ["approval_groups.id"], name="fk_applications_approval_group_id", ondelete="SET NULL"),
    )
    op.create_index("ix_applications_reference_number", "applications", ["reference_number"])
    op.create_index("ix_applications_status", "applications", ["status"])
    op.create_index("ix_applications_created_at", "applications", ["created_at"])

    # --- final_approvals (FK -> applications, users) ---
    op.create_table(
        "final_approvals",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("approver_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("decision", sa.String(50), nullable=False),
        sa.Column("decision_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_final_approvals"),
        sa.UniqueConstraint("application_id", name="uq_final_approvals_application_id"),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], name="fk_final_approvals_application_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["approver_id"], ["users.id"], name="fk_final_approvals_approver_id"),
    )

    # --- application_group_assignments (FK -> applications, approval_groups, users, final_approvals) ---
    op.create_table(
        "application_group_assignments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("assigned_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("assigned_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reassignment_reason", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("total_members", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("approved_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rejected_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pending_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("issues_raised", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("issues_resolved", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ready_for_final_approval", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("final_approver_assigned_at", sa.DateTime(), nullable=True),
        sa.Column("final_decision_at", sa.DateTime(), nullable=True),
        sa.Column("final_decision_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_application_group_assignments"),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], name="fk_assignments_application_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["approval_groups.id"], name="fk_assignments_group_id"),
        sa.ForeignKeyConstraint(["assigned_by"], ["users.id"], name="fk_assignments_assigned_by", ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["final_decision_id"], ["final_approvals.id"], name="fk_assignments_final_decision_id", ondelete="SET NULL"),
    )
    op.create_index("ix_application_group_assignments_application_id", "application_group_assignments", ["application_id"])
    op.create_index("ix_application_group_assignments_group_id", "application_group_assignments", ["group_id"])
    op.create_index(
        "uq_active_assignment_per_application",
        "application_group_assignments",
        ["application_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    # --- member_decisions (FK -> assignments, members, users) ---
    op.create_table(
        "member_decisions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("assignment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("member_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("is_final_approver_decision", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("was_available", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("was_revoked", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("revoked_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_member_decisions"),
        sa.UniqueConstraint("assignment_id", "member_id", name="uq_member_decisions_assignment_member"),
        sa.ForeignKeyConstraint(["assignment_id"], ["application_group_assignments.id"], name="fk_member_decisions_assignment_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["member_id"], ["approval_group_members.id"], name="fk_member_decisions_member_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_member_decisions_user_id"),
        sa.ForeignKeyConstraint(["revoked_by"], ["users.id"], name="fk_member_decisions_revoked_by", ondelete="SET NULL"),
    )
    op.create_index("ix_member_decisions_assignment_id", "member_decisions", ["assignment_id"])
    op.create_index("ix_member_decisions_member_id", "member_decisions", ["member_id"])
    op.create_index("ix_member_decisions_status", "member_decisions", ["status"])

    # --- decision_revocations (FK -> member_decisions, applications, users) ---
    op.create_table(
        "decision_revocations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("decision_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("previous_status", sa.String(50), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("revoked_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_decision_revocations"),
        sa.ForeignKeyConstraint(["decision_id"], ["member_decisions.id"], name="fk_decision_revocations_decision_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], name="fk_decision_revocations_application_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["revoked_by"], ["users.id"], name="fk_decision_revocations_revoked_by", ondelete="SET NULL"),
    )
    op.create_index("ix_decision_revocations_decision_id", "decision_revocations", ["decision_id"])
    op.create_index("ix_decision_revocations_application_id", "decision_revocations", ["application_id"])
    op.create_index("ix_decision_revocations_revoked_at", "decision_revocations", ["revoked_at"])

    # --- application_issues (FK -> applications, assignments, users, members) ---
    op.create_table(
        "application_issues",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("assignment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("raised_by_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("raised_by_member_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assignment_type", sa.String(50), nullable=False, server_default="collaborative"),
        sa.Column("assigned_to_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_to_member_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("chat_thread_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_application_issues"),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], name="fk_application_issues_application_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assignment_id"], ["application_group_assignments.id"], name="fk_application_issues_assignment_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["raised_by_user_id"], ["users.id"], name="fk_application_issues_raised_by_user_id"),
        sa.ForeignKeyConstraint(["raised_by_member_id"], ["approval_group_members.id"], name="fk_application_issues_raised_by_member_id"),
        sa.ForeignKeyConstraint(["assigned_to_user_id"], ["users.id"], name="fk_application_issues_assigned_to_user_id"),
        sa.ForeignKeyConstraint(["assigned_to_member_id"], ["approval_group_members.id"], name="fk_application_issues_assigned_to_member_id"),
        sa.ForeignKeyConstraint(["resolved_by"], ["users.id"], name="fk_application_issues_resolved_by", ondelete="SET NULL"),
    )
    op.create_index("ix_application_issues_application_id", "application_issues", ["application_id"])
    op.create_index("ix_application_issues_assignment_id", "application_issues", ["assignment_id"])
    op.create_index("ix_application_issues_assigned_to_user_id", "application_issues", ["assigned_to_user_id"])
    op.create_index("ix_application_issues_chat_thread_id", "application_issues", ["chat_thread_id"])
    op.create_index("ix_application_issues_is_resolved", "application_issues", ["is_resolved"])
    op.create_index("ix_application_issues_created_at", "application_issues", ["created_at"])

    # --- decision_comments (FK -> applications, member_decisions, application_issues, users) ---
    op.create_table(
        "decision_comments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("decision_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("issue_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("comment_type", sa.String(50), nullable=False, server_default="general"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_decision_comments"),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], name="fk_decision_comments_application_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["decision_id"], ["member_decisions.id"], name="fk_decision_comments_decision_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["issue_id"], ["application_issues.id"], name="fk_decision_comments_issue_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_decision_comments_user_id"),
    )
    op.create_index("ix_decision_comments_application_id", "decision_comments", ["application_id"])
    op.create_index("ix_decision_comments_decision_id", "decision_comments", ["decision_id"])
    op.create_index("ix_decision_comments_issue_id", "decision_comments", ["issue_id"])
    op.create_index("ix_decision_comments_created_at", "decision_comments", ["created_at"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("decision_comments")
    op.drop_table("application_issues")
    op.drop_table("decision_revocations")
    op.drop_table("member_decisions")
    op.drop_index("uq_active_assignment_per_application", table_name="application_group_assignments")
    op.drop_table("application_group_assignments")
    op.drop_table("final_approvals")
    op.drop_table("applications")
    op.drop_table("approval_group_members")
    op.drop_table("approval_groups")
    op.drop_table("users")
