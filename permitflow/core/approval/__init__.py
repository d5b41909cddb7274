"""Approval decision engine for PermitFlow.

Group review of permit applications: member votes, issues that gate the
final decision, revocation and the final approver's binding outcome.
"""

from .states import (
    ApplicationStatus,
    DecisionStatus,
    DecisionTransition,
    IssueAssignmentType,
    IssuePriority,
    VALID_TRANSITIONS,
)
from .errors import (
    ApprovalError,
    NotFoundError,
    UnauthorizedError,
    InvalidStateError,
    ValidationError,
)
from .machine import DecisionStateMachine
from .issues import IssueAssignment
from .registry import GroupRegistry, MemberSpec
from .statistics import AssignmentStatistics, StatisticsAggregator
from .revocation import RevocationResult
from .service import ApprovalService, DecisionResult

__all__ = [
    "ApplicationStatus",
    "DecisionStatus",
    "DecisionTransition",
    "IssueAssignmentType",
    "IssuePriority",
    "VALID_TRANSITIONS",
    "ApprovalError",
    "NotFoundError",
    "UnauthorizedError",
    "InvalidStateError",
    "ValidationError",
    "DecisionStateMachine",
    "IssueAssignment",
    "GroupRegistry",
    "MemberSpec",
    "AssignmentStatistics",
    "StatisticsAggregator",
    "RevocationResult",
    "ApprovalService",
    "DecisionResult",
]
