"""Tests for issue responsibility validation."""

import pytest
from uuid import uuid4

from permitflow.core.approval import IssueAssignment, IssueAssignmentType, ValidationError

pytestmark = pytest.mark.unit


class TestIssueAssignment:
    """Test IssueAssignment construction rules."""

    def test_collaborative_default(self):
        responsibility = IssueAssignment()
        assert responsibility.assignment_type == IssueAssignmentType.COLLABORATIVE
        assert responsibility.assigned_to_user_id is None
        assert responsibility.assigned_to_member_id is None

    def test_string_type_is_normalized(self):
        """Test the type accepts its stored string form."""
        responsibility = IssueAssignment("specific_user", assigned_to_user_id=uuid4())
        assert responsibility.assignment_type is IssueAssignmentType.SPECIFIC_USER

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            IssueAssignment("whole_department")

    def test_collaborative_with_target_rejected(self):
        with pytest.raises(ValidationError):
            IssueAssignment(IssueAssignmentType.COLLABORATIVE, assigned_to_user_id=uuid4())
        with pytest.raises(ValidationError):
            IssueAssignment(IssueAssignmentType.COLLABORATIVE, assigned_to_member_id=uuid4())

    def test_group_member_needs_member(self):
        """Test group member issues reference exactly one seat."""
        IssueAssignment(IssueAssignmentType.GROUP_MEMBER, assigned_to_member_id=uuid4())
        with pytest.raises(ValidationError):
            IssueAssignment(IssueAssignmentType.GROUP_MEMBER)
        with pytest.raises(ValidationError):
            IssueAssignment(
                IssueAssignmentType.GROUP_MEMBER,
                assigned_to_user_id=uuid4(),
                assigned_to_member_id=uuid4(),
            )

    def test_specific_user_needs_user(self):
        IssueAssignment(IssueAssignmentType.SPECIFIC_USER, assigned_to_user_id=uuid4())
        with pytest.raises(ValidationError):
            IssueAssignment(IssueAssignmentType.SPECIFIC_USER)
        with pytest.raises(ValidationError):
            IssueAssignment(IssueAssignmentType.SPECIFIC_USER, assigned_to_member_id=uuid4())
