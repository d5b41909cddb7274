"""Request and response schemas for group review endpoints."""

from datetime import datetime
from typing import List, Optional, Dict, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from permitflow.core.approval.states import IssueAssignmentType, IssuePriority


# Groups

class GroupMemberRequest(BaseModel):
    user_id: UUID
    can_approve: bool = True
    can_reject: bool = True
    can_raise_issues: bool = True
    review_order: int = 0


class CreateGroupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    requires_all_approvals: bool = True
    minimum_approvals: int = Field(1, ge=1)
    members: List[GroupMemberRequest] = Field(..., min_length=1)
    final_approver_user_id: UUID


class GroupMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    role: str
    is_active: bool
    can_approve: bool
    can_reject: bool
    can_raise_issues: bool
    review_order: int
    availability_status: str


class GroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str]
    is_active: bool
    requires_all_approvals: bool
    minimum_approvals: int
    created_at: datetime
    members: List[GroupMemberResponse] = []


# Assignment

class AssignGroupRequest(BaseModel):
    group_id: UUID
    reason: Optional[str] = None


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    group_id: UUID
    is_active: bool
    assigned_at: datetime
    completed_at: Optional[datetime]
    total_members: int
    approved_count: int
    rejected_count: int
    pending_count: int
    issues_raised: int
    issues_resolved: int
    ready_for_final_approval: bool


# Decisions

class DecisionAction(BaseModel):
    comment: Optional[str] = None


class RevokeAction(BaseModel):
    reason: str = Field(..., min_length=1)


class DecisionResponse(BaseModel):
    application_status: str
    is_final_approver: bool
    ready_for_final_approval: bool
    approved_count: int
    rejected_count: int
    pending_count: int
    total_members: int
    unresolved_issues: int
    should_auto_reject: bool


class RevocationResponse(BaseModel):
    previous_status: str
    new_status: str
    previous_decision_status: str
    was_final_approver: bool
    ready_for_final_approval: bool
    final_approval_removed: bool


class RevocationRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    decision_id: UUID
    previous_status: str
    reason: str
    revoked_by: Optional[UUID]
    revoked_at: datetime


# Issues

class RaiseIssueRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    priority: IssuePriority = IssuePriority.MEDIUM
    category: Optional[str] = Field(None, max_length=100)
    assignment_type: IssueAssignmentType = IssueAssignmentType.COLLABORATIVE
    assigned_to_user_id: Optional[UUID] = None
    assigned_to_member_id: Optional[UUID] = None


class ResolveIssueRequest(BaseModel):
    resolution: Optional[str] = None


class IssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    assignment_id: UUID
    raised_by_user_id: UUID
    assignment_type: str
    assigned_to_user_id: Optional[UUID]
    assigned_to_member_id: Optional[UUID]
    chat_thread_id: Optional[UUID]
    title: str
    description: str
    priority: str
    category: Optional[str]
    is_resolved: bool
    resolved_at: Optional[datetime]
    resolved_by: Optional[UUID]
    resolution: Optional[str]
    created_at: datetime


# Summary

class ApprovalSummaryResponse(BaseModel):
    application_id: UUID
    reference_number: str
    application_status: str
    assignment_id: Optional[UUID]
    group: Optional[Dict[str, Any]]
    statistics: Optional[Dict[str, Any]]
    members: List[Dict[str, Any]]
    final_approver: Optional[Dict[str, Any]]
    final_approval: Optional[Dict[str, Any]]
    can_final_approve: bool
