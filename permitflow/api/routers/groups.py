"""Approval group administration endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from permitflow.api.deps import get_db, get_current_user, get_approval_service
from permitflow.api.errors import ERROR_RESPONSES
from permitflow.api.schemas.approvals import CreateGroupRequest, GroupResponse, GroupMemberResponse
from permitflow.api.schemas.common import PaginationParams
from permitflow.core.approval import ApprovalService, MemberSpec, NotFoundError
from permitflow.core.approval.queries import GroupFilter
from permitflow.db.models import User
from permitflow.db.session import unit_of_work

router = APIRouter(prefix="/approval-groups", tags=["approval-groups"], responses=ERROR_RESPONSES)


@router.post("", response_model=GroupResponse, status_code=201)
async def create_group(
    body: CreateGroupRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Create a group with its regular members and final approver."""
    with unit_of_work(db):
        group = service.registry.create_group(
            body.name,
            [MemberSpec(**m.model_dump()) for m in body.members],
            body.final_approver_user_id,
            created_by=current_user.id,
            description=body.description,
            requires_all_approvals=body.requires_all_approvals,
            minimum_approvals=body.minimum_approvals,
        )
    db.refresh(group)
    return GroupResponse.model_validate(group)


@router.get("", response_model=List[GroupResponse])
async def list_groups(
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    mine: bool = False,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    pagination = PaginationParams(page=page, per_page=per_page)
    filters = GroupFilter(
        name_contains=search,
        is_active=is_active,
        member_user_id=current_user.id if mine else None,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return [GroupResponse.model_validate(g) for g in service.registry.list_groups(filters)]


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    return GroupResponse.model_validate(service.registry.get_group(group_id))


@router.post("/{group_id}/members/{member_id}/deactivate", response_model=GroupMemberResponse)
async def deactivate_member(
    group_id: UUID,
    member_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Soft-remove a seat; open reviews of the group are recounted."""
    with unit_of_work(db):
        member = service.registry.get_member(member_id)
        if member.group_id != group_id:
            raise NotFoundError("Group member", member_id)
        member = service.remove_group_member(member_id, removed_by=current_user.id)
    return GroupMemberResponse.model_validate(member)
