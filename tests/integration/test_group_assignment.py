"""Integration tests for approval groups and application assignment."""

import uuid

import pytest

from permitflow.core.approval import (
    ApplicationStatus,
    GroupRegistry,
    InvalidStateError,
    MemberSpec,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from permitflow.core.approval.queries import GroupFilter
from permitflow.db.models import ApplicationGroupAssignment, ApprovalGroup

from tests.factories import (
    add_member,
    create_application,
    create_group,
    create_user,
    member_for,
    start_review,
)

pytestmark = [pytest.mark.integration, pytest.mark.db]


@pytest.fixture
def registry(db_session):
    return GroupRegistry(db_session)


class TestCreateGroup:
    """Test GroupRegistry.create_group."""

    def test_creates_seats(self, db_session, registry):
        reviewers = [create_user(db_session) for _ in range(2)]
        boss = create_user(db_session)

        group = registry.create_group(
            "Building Review",
            [MemberSpec(user_id=u.id, review_order=i) for i, u in enumerate(reviewers, start=1)],
            boss.id,
            description="Residential building permits",
        )

        assert [m.user_id for m in registry.get_regular_members(group.id)] == [u.id for u in reviewers]
        final = registry.get_final_approver(group.id)
        assert final.user_id == boss.id
        assert final.is_final_approver

    def test_requires_members(self, db_session, registry):
        boss = create_user(db_session)
        with pytest.raises(ValidationError):
            registry.create_group("Empty", [], boss.id)

    def test_final_approver_cannot_hold_regular_seat(self, db_session, registry):
        boss = create_user(db_session)
        with pytest.raises(ValidationError):
            registry.create_group("Overlap", [MemberSpec(user_id=boss.id)], boss.id)

    def test_duplicate_seats(self, db_session, registry):
        reviewer = create_user(db_session)
        boss = create_user(db_session)
        with pytest.raises(ValidationError):
            registry.create_group(
                "Twice", [MemberSpec(user_id=reviewer.id), MemberSpec(user_id=reviewer.id)], boss.id
            )

    def test_minimum_larger_than_group(self, db_session, registry):
        reviewer = create_user(db_session)
        boss = create_user(db_session)
        with pytest.raises(ValidationError):
            registry.create_group(
                "Quorum", [MemberSpec(user_id=reviewer.id)], boss.id,
                requires_all_approvals=False, minimum_approvals=2,
            )

    def test_unknown_user(self, db_session, registry):
        boss = create_user(db_session)
        with pytest.raises(NotFoundError):
            registry.create_group("Ghost", [MemberSpec(user_id=uuid.uuid4())], boss.id)

    def test_duplicate_name(self, db_session, registry):
        reviewer = create_user(db_session)
        boss = create_user(db_session)
        registry.create_group("Planning", [MemberSpec(user_id=reviewer.id)], boss.id)
        with pytest.raises(ValidationError, match="already exists"):
            registry.create_group("Planning", [MemberSpec(user_id=reviewer.id)], boss.id)


class TestMembership:
    """Test seat lookups and deactivation."""

    def test_inactive_user_unauthorized(self, db_session, registry):
        reviewer = create_user(db_session)
        group = create_group(db_session, members=[reviewer], final_approver=create_user(db_session))
        reviewer.is_active = False
        db_session.flush()

        with pytest.raises(UnauthorizedError, match="inactive"):
            registry.get_active_member(group.id, reviewer.id)

    def test_unknown_group(self, db_session, registry):
        user = create_user(db_session)
        with pytest.raises(NotFoundError):
            registry.get_active_member(uuid.uuid4(), user.id)

    def test_deactivate_member(self, db_session, registry):
        reviewer = create_user(db_session)
        admin = create_user(db_session)
        group = create_group(db_session, members=[reviewer], final_approver=create_user(db_session))
        seat = member_for(db_session, group, reviewer)

        registry.deactivate_member(seat.id, removed_by=admin.id)
        assert seat.is_active is False
        assert seat.removed_by == admin.id
        assert seat.removed_at is not None

        with pytest.raises(InvalidStateError):
            registry.deactivate_member(seat.id)

    def test_final_approver_cannot_be_removed(self, db_session, registry):
        boss = create_user(db_session)
        group = create_group(db_session, members=[create_user(db_session)], final_approver=boss)
        with pytest.raises(InvalidStateError):
            registry.deactivate_member(member_for(db_session, group, boss).id)

    def test_list_groups(self, db_session, registry):
        reviewer = create_user(db_session)
        create_group(db_session, members=[reviewer], final_approver=create_user(db_session), name="Fire Safety")
        create_group(db_session, members=[create_user(db_session)], final_approver=create_user(db_session), name="Zoning")

        assert [g.name for g in registry.list_groups(GroupFilter(name_contains="fire"))] == ["Fire Safety"]
        assert [g.name for g in registry.list_groups(GroupFilter(member_user_id=reviewer.id))] == ["Fire Safety"]
        assert len(registry.list_groups()) == 2


class TestAssignment:
    """Test assigning and reassigning applications."""

    def test_unknown_group(self, db_session, approval_service):
        application = create_application(db_session)
        with pytest.raises(NotFoundError):
            approval_service.assign_application_to_group(application.id, uuid.uuid4())

    def test_inactive_group(self, db_session, approval_service):
        group = create_group(
            db_session, members=[create_user(db_session)], final_approver=create_user(db_session), is_active=False
        )
        application = create_application(db_session)
        with pytest.raises(InvalidStateError):
            approval_service.assign_application_to_group(application.id, group.id)

    def test_group_without_final_approver(self, db_session, approval_service):
        group = ApprovalGroup(name="Headless")
        db_session.add(group)
        db_session.flush()
        add_member(db_session, group=group, user=create_user(db_session))
        application = create_application(db_session)

        with pytest.raises(InvalidStateError, match="no final approver"):
            approval_service.assign_application_to_group(application.id, group.id)

    def test_reassignment_starts_fresh(self, db_session, approval_service):
        review = start_review(db_session, approval_service)
        approval_service.approve(review.application.id, review.reviewers[0].id)
        admin = create_user(db_session)

        new_reviewers = [create_user(db_session) for _ in range(3)]
        new_group = create_group(db_session, members=new_reviewers, final_approver=create_user(db_session))
        assignment = approval_service.assign_application_to_group(
            review.application.id, new_group.id, assigned_by=admin.id, reason="Scope changed to commercial",
        )

        assert review.assignment.is_active is False
        assert review.assignment.completed_at is not None
        assert assignment.is_active is True
        assert assignment.assigned_by == admin.id
        assert assignment.reassignment_reason == "Scope changed to commercial"
        assert assignment.total_members == 3
        assert assignment.pending_count == 3
        assert review.application.approval_group_id == new_group.id
        assert review.application.status == ApplicationStatus.UNDER_REVIEW.value

        active = db_session.query(ApplicationGroupAssignment).filter(
            ApplicationGroupAssignment.application_id == review.application.id,
            ApplicationGroupAssignment.is_active.is_(True),
        ).all()
        assert active == [assignment]

        with pytest.raises(UnauthorizedError):
            approval_service.approve(review.application.id, review.reviewers[1].id)

    def test_decided_application_cannot_be_reassigned(self, db_session, approval_service):
        review = start_review(db_session, approval_service)
        for user in review.reviewers:
            approval_service.approve(review.application.id, user.id)
        approval_service.approve(review.application.id, review.final_approver.id)

        other = create_group(db_session, members=[create_user(db_session)], final_approver=create_user(db_session))
        with pytest.raises(InvalidStateError, match="final decision"):
            approval_service.assign_application_to_group(review.application.id, other.id)


class TestApprovalSummary:
    """Test the progress summary."""

    def test_unassigned(self, db_session, approval_service):
        application = create_application(db_session)
        summary = approval_service.get_approval_summary(application.id)
        assert summary["application_status"] == "submitted"
        assert summary["assignment_id"] is None
        assert summary["members"] == []
        assert summary["can_final_approve"] is False

    def test_in_progress(self, db_session, approval_service):
        review = start_review(db_session, approval_service)
        approval_service.approve(review.application.id, review.reviewers[0].id)

        summary = approval_service.get_approval_summary(review.application.id)

        assert summary["assignment_id"] == review.assignment.id
        assert summary["group"]["id"] == review.group.id
        assert summary["statistics"]["approved"] == 1
        assert summary["statistics"]["pending"] == 1
        assert {m["user_id"]: m["decision_status"] for m in summary["members"]} == {
            review.reviewers[0].id: "approved",
            review.reviewers[1].id: "pending",
        }
        assert summary["final_approver"]["user_id"] == review.final_approver.id
        assert summary["final_approver"]["decision_status"] == "pending"
        assert summary["can_final_approve"] is False

    def test_after_final_decision(self, db_session, approval_service):
        review = start_review(db_session, approval_service)
        for user in review.reviewers:
            approval_service.approve(review.application.id, user.id)

        assert approval_service.get_approval_summary(review.application.id)["can_final_approve"] is True

        approval_service.approve(review.application.id, review.final_approver.id, comment="Issued")
        summary = approval_service.get_approval_summary(review.application.id)

        assert summary["application_status"] == "approved"
        assert summary["final_approval"]["decision"] == "approved"
        assert summary["final_approval"]["comment"] == "Issued"
        assert summary["can_final_approve"] is False

    def test_statistics_require_assignment(self, db_session, approval_service):
        application = create_application(db_session)
        with pytest.raises(InvalidStateError):
            approval_service.get_statistics(application.id)
