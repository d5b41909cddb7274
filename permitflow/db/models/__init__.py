"""Database models for PermitFlow."""

from permitflow.db.models.user import User
from permitflow.db.models.application import Application
from permitflow.db.models.approval import (
    ApprovalGroup,
    ApprovalGroupMember,
    ApplicationGroupAssignment,
    MemberDecision,
    DecisionRevocation,
    FinalApproval,
)
from permitflow.db.models.issue import ApplicationIssue
from permitflow.db.models.comment import DecisionComment

__all__ = [
    "User",
    "Application",
    "ApprovalGroup",
    "ApprovalGroupMember",
    "ApplicationGroupAssignment",
    "MemberDecision",
    "DecisionRevocation",
    "FinalApproval",
    "ApplicationIssue",
    "DecisionComment",
]
