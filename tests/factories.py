"""Factory functions for creating test database records.

Each factory creates a model instance, adds it to the session, and flushes
so that database-generated fields (id, created_at, etc.) are populated.
All fields have sensible defaults but can be overridden via keyword arguments.

Usage::

    from tests.factories import create_user, create_group, create_application

    def test_something(db_session):
        reviewers = [create_user(db_session) for _ in range(2)]
        boss = create_user(db_session)
        group = create_group(db_session, members=reviewers, final_approver=boss)
        application = create_application(db_session)
"""

from typing import List, NamedTuple, Optional, Sequence

from sqlalchemy.orm import Session

from permitflow.db.models import (
    Application,
    ApplicationGroupAssignment,
    ApprovalGroup,
    ApprovalGroupMember,
    User,
)


_counter = 0


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------


def create_user(
    session: Session,
    *,
    email: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: str = "Reviewer",
    is_active: bool = True,
) -> User:
    n = _next_id()
    user = User(
        email=email or f"user{n}@permits.test",
        first_name=first_name or f"User{n}",
        last_name=last_name,
        is_active=is_active,
    )
    session.add(user)
    session.flush()
    return user


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_application(
    session: Session,
    *,
    reference_number: Optional[str] = None,
    applicant_name: str = "Jordan Applicant",
    status: str = "submitted",
) -> Application:
    n = _next_id()
    application = Application(
        reference_number=reference_number or f"APP-{n:05d}",
        applicant_name=applicant_name,
        status=status,
    )
    session.add(application)
    session.flush()
    return application


# ---------------------------------------------------------------------------
# Approval group
# ---------------------------------------------------------------------------


def create_group(
    session: Session,
    *,
    members: Sequence[User],
    final_approver: User,
    name: Optional[str] = None,
    requires_all_approvals: bool = True,
    minimum_approvals: int = 1,
    is_active: bool = True,
) -> ApprovalGroup:
    """Create a group with one regular seat per user plus the final approver."""
    group = ApprovalGroup(
        name=name or f"Review Board {_next_id()}",
        requires_all_approvals=requires_all_approvals,
        minimum_approvals=minimum_approvals,
        is_active=is_active,
    )
    session.add(group)
    session.flush()

    for order, user in enumerate(members, start=1):
        add_member(session, group=group, user=user, review_order=order)
    add_member(
        session,
        group=group,
        user=final_approver,
        role="final_approver",
        review_order=len(members) + 1,
    )
    return group


def add_member(
    session: Session,
    *,
    group: ApprovalGroup,
    user: User,
    role: str = "regular",
    can_approve: bool = True,
    can_reject: bool = True,
    can_raise_issues: bool = True,
    is_active: bool = True,
    review_order: int = 0,
    availability_status: str = "available",
) -> ApprovalGroupMember:
    member = ApprovalGroupMember(
        group_id=group.id,
        user_id=user.id,
        role=role,
        can_approve=can_approve,
        can_reject=can_reject,
        can_raise_issues=can_raise_issues,
        is_active=is_active,
        review_order=review_order,
        availability_status=availability_status,
    )
    session.add(member)
    session.flush()
    return member


def member_for(session: Session, group: ApprovalGroup, user: User) -> ApprovalGroupMember:
    """Look up the seat a user holds in a group."""
    return session.query(ApprovalGroupMember).filter(
        ApprovalGroupMember.group_id == group.id,
        ApprovalGroupMember.user_id == user.id,
    ).one()


# ---------------------------------------------------------------------------
# Review in progress
# ---------------------------------------------------------------------------


class Review(NamedTuple):
    application: Application
    group: ApprovalGroup
    assignment: ApplicationGroupAssignment
    reviewers: List[User]
    final_approver: User


def start_review(session: Session, service, *, regular: int = 2, **group_kwargs) -> Review:
    """Create a group with ``regular`` reviewers and put a fresh application under its review."""
    reviewers = [create_user(session) for _ in range(regular)]
    final_approver = create_user(session, last_name="Director")
    group = create_group(session, members=reviewers, final_approver=final_approver, **group_kwargs)
    application = create_application(session)
    assignment = service.assign_application_to_group(application.id, group.id)
    return Review(application, group, assignment, reviewers, final_approver)
