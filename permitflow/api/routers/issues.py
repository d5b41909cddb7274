"""Issue resolution endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from permitflow.api.deps import get_db, get_current_user, get_approval_service
from permitflow.api.errors import ERROR_RESPONSES
from permitflow.api.schemas.approvals import IssueResponse, ResolveIssueRequest
from permitflow.core.approval import ApprovalService
from permitflow.db.models import User
from permitflow.db.session import unit_of_work

router = APIRouter(prefix="/issues", tags=["issues"], responses=ERROR_RESPONSES)


@router.get("/{issue_id}", response_model=IssueResponse)
async def get_issue(
    issue_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    return IssueResponse.model_validate(service.get_issue(issue_id))


@router.post("/{issue_id}/resolve", response_model=IssueResponse)
async def resolve_issue(
    issue_id: UUID,
    body: ResolveIssueRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Resolve an issue; only its assignee (or any member, if collaborative) may."""
    with unit_of_work(db):
        issue = service.resolve_issue(issue_id, current_user.id, body.resolution)
    return IssueResponse.model_validate(issue)


@router.post("/{issue_id}/reopen", response_model=IssueResponse)
async def reopen_issue(
    issue_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    with unit_of_work(db):
        issue = service.reopen_issue(issue_id, current_user.id)
    return IssueResponse.model_validate(issue)
