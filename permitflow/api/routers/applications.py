"""Group review endpoints for applications."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from permitflow.api.deps import get_db, get_current_user, get_approval_service
from permitflow.api.errors import ERROR_RESPONSES
from permitflow.api.schemas.approvals import (
    AssignGroupRequest,
    AssignmentResponse,
    DecisionAction,
    DecisionResponse,
    RevokeAction,
    RevocationResponse,
    RevocationRecordResponse,
    RaiseIssueRequest,
    IssueResponse,
    ApprovalSummaryResponse,
)
from permitflow.api.schemas.common import PaginationParams
from permitflow.core.approval import ApprovalService, DecisionTransition
from permitflow.core.approval.queries import IssueFilter, RevocationFilter
from permitflow.db.models import User
from permitflow.db.session import unit_of_work

router = APIRouter(prefix="/applications", tags=["applications"], responses=ERROR_RESPONSES)


@router.post("/{application_id}/assignment", response_model=AssignmentResponse, status_code=201)
async def assign_group(
    application_id: UUID,
    body: AssignGroupRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Assign (or reassign) the application to an approval group."""
    with unit_of_work(db):
        assignment = service.assign_application_to_group(
            application_id,
            body.group_id,
            assigned_by=current_user.id,
            reason=body.reason,
        )
    return AssignmentResponse.model_validate(assignment)


@router.post("/{application_id}/approve", response_model=DecisionResponse)
async def approve_application(
    application_id: UUID,
    action: DecisionAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Record the caller's approval."""
    with unit_of_work(db):
        result = service.record_decision(
            application_id,
            current_user.id,
            DecisionTransition.APPROVE,
            comment=action.comment,
        )
    return DecisionResponse(**result.to_dict())


@router.post("/{application_id}/reject", response_model=DecisionResponse)
async def reject_application(
    application_id: UUID,
    action: DecisionAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Record the caller's rejection."""
    with unit_of_work(db):
        result = service.record_decision(
            application_id,
            current_user.id,
            DecisionTransition.REJECT,
            comment=action.comment,
        )
    return DecisionResponse(**result.to_dict())


@router.post("/{application_id}/revoke", response_model=RevocationResponse)
async def revoke_decision(
    application_id: UUID,
    action: RevokeAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Revoke the caller's own decision and reopen review."""
    with unit_of_work(db):
        result = service.revoke_decision(application_id, current_user.id, action.reason)
    return RevocationResponse(**result.to_dict())


@router.get("/{application_id}/approval", response_model=ApprovalSummaryResponse)
async def get_approval_summary(
    application_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Review progress for the application's current assignment."""
    return ApprovalSummaryResponse(**service.get_approval_summary(application_id))


@router.get("/{application_id}/issues", response_model=List[IssueResponse])
async def list_issues(
    application_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
    resolved: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    """List issues raised on the application."""
    pagination = PaginationParams(page=page, per_page=per_page)
    filters = IssueFilter(
        application_id=application_id,
        is_resolved=resolved,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return [IssueResponse.model_validate(i) for i in service.list_issues(filters)]


@router.post("/{application_id}/issues", response_model=IssueResponse, status_code=201)
async def raise_issue(
    application_id: UUID,
    body: RaiseIssueRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Raise an issue that blocks final approval until resolved."""
    with unit_of_work(db):
        issue = service.raise_issue(
            application_id,
            current_user.id,
            title=body.title,
            description=body.description,
            priority=body.priority,
            assignment_type=body.assignment_type,
            assigned_to_user_id=body.assigned_to_user_id,
            assigned_to_member_id=body.assigned_to_member_id,
            category=body.category,
        )
    return IssueResponse.model_validate(issue)


@router.get("/{application_id}/revocations", response_model=List[RevocationRecordResponse])
async def list_revocations(
    application_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Audit trail of revoked decisions on the application."""
    revocations = service.list_revocations(RevocationFilter(application_id=application_id))
    return [RevocationRecordResponse.model_validate(r) for r in revocations]
