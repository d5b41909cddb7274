"""Pytest configuration and shared fixtures."""

import uuid
from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from permitflow.db.base import Base
from permitflow.db import models  # noqa: F401  (registers tables)
from permitflow.core.approval import ApprovalService
from permitflow.services.discussions import DiscussionClient, DiscussionServiceError


class RecordingDiscussionClient(DiscussionClient):
    """In-memory discussion service that remembers every call."""

    def __init__(self):
        self.threads: dict = {}
        self.resolution_updates: List[Tuple[uuid.UUID, bool]] = []
        self.fail_on_create = False
        self.fail_on_update = False

    def create_thread(self, *, application_id, issue_id, title, description, created_by, participant_ids):
        if self.fail_on_create:
            raise DiscussionServiceError("discussion service down", status_code=503)
        thread_id = uuid.uuid4()
        self.threads[thread_id] = {
            "application_id": application_id,
            "issue_id": issue_id,
            "title": title,
            "created_by": created_by,
            "participants": list(participant_ids),
            "is_resolved": False,
        }
        return thread_id

    def set_thread_resolved(self, thread_id, resolved):
        if self.fail_on_update:
            raise DiscussionServiceError("discussion service down", status_code=503)
        self.resolution_updates.append((thread_id, resolved))
        self.threads[thread_id]["is_resolved"] = resolved


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def discussions():
    return RecordingDiscussionClient()


@pytest.fixture
def approval_service(db_session, discussions):
    return ApprovalService(db_session, discussions)


@pytest.fixture
def client(db_session, discussions):
    """API client whose requests share the test session."""
    from permitflow.api.main import app
    from permitflow.api.deps import get_db, get_discussion_client

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_discussion_client] = lambda: discussions
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
