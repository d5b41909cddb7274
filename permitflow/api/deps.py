from functools import lru_cache
from typing import Generator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from permitflow.db.session import SessionLocal
from permitflow.db.models import User
from permitflow.core.approval import ApprovalService
from permitflow.services.discussions import DiscussionClient, get_discussion_client as build_discussion_client


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(default=None),
) -> User:
    """Resolve the caller from the X-User-ID header set by the auth gateway."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    if not x_user_id:
        raise credentials_exception
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise credentials_exception
    return user


@lru_cache
def get_discussion_client() -> DiscussionClient:
    """One discussion client per process."""
    return build_discussion_client()


def get_approval_service(
    db: Session = Depends(get_db),
    discussions: DiscussionClient = Depends(get_discussion_client),
) -> ApprovalService:
    return ApprovalService(db, discussions)
