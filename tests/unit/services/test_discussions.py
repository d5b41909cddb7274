"""Tests for the discussion service clients."""

import json
import uuid

import httpx
import pytest

from permitflow.core.config import Settings
from permitflow.services.discussions import (
    DiscussionServiceError,
    HttpDiscussionClient,
    LocalDiscussionClient,
    get_discussion_client,
)

pytestmark = pytest.mark.unit


def make_client(handler, token="secret-token"):
    return HttpDiscussionClient(
        "http://chat.test/api/",
        token=token,
        transport=httpx.MockTransport(handler),
    )


def thread_kwargs(**overrides):
    values = dict(
        application_id=uuid.uuid4(),
        issue_id=uuid.uuid4(),
        title="Missing drainage plan",
        description="Sheet C-4 is not in the submission",
        created_by=uuid.uuid4(),
        participant_ids=[uuid.uuid4(), uuid.uuid4()],
    )
    values.update(overrides)
    return values


class TestHttpDiscussionClient:
    """Tests for HttpDiscussionClient against a mock transport."""

    def test_create_thread(self):
        thread_id = uuid.uuid4()
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"id": str(thread_id)})

        kwargs = thread_kwargs()
        result = make_client(handler).create_thread(**kwargs)

        assert result == thread_id
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/threads"
        assert request.headers["Authorization"] == "Bearer secret-token"
        body = json.loads(request.content)
        assert body["thread_type"] == "issue"
        assert body["issue_id"] == str(kwargs["issue_id"])
        assert body["participants"] == [str(p) for p in kwargs["participant_ids"]]

    def test_no_token_no_auth_header(self):
        def handler(request):
            assert "Authorization" not in request.headers
            return httpx.Response(201, json={"id": str(uuid.uuid4())})

        make_client(handler, token=None).create_thread(**thread_kwargs())

    def test_set_thread_resolved(self):
        thread_id = uuid.uuid4()
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        make_client(handler).set_thread_resolved(thread_id, True)

        assert seen[0].method == "PATCH"
        assert seen[0].url.path == f"/api/threads/{thread_id}"
        assert json.loads(seen[0].content) == {"is_resolved": True}

    def test_error_status_raises(self):
        client = make_client(lambda request: httpx.Response(503, json={"detail": "down"}))
        with pytest.raises(DiscussionServiceError) as exc_info:
            client.create_thread(**thread_kwargs())
        assert exc_info.value.status_code == 503

    def test_connection_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DiscussionServiceError, match="unreachable"):
            make_client(handler).set_thread_resolved(uuid.uuid4(), False)

    def test_missing_thread_id_raises(self):
        client = make_client(lambda request: httpx.Response(201, json={"ok": True}))
        with pytest.raises(DiscussionServiceError, match="no thread id"):
            client.create_thread(**thread_kwargs())


class TestClientSelection:
    """Tests for get_discussion_client."""

    def test_local_client_without_url(self):
        client = get_discussion_client(Settings(_env_file=None, discussion_service_url=None))
        assert isinstance(client, LocalDiscussionClient)

    def test_http_client_with_url(self):
        client = get_discussion_client(Settings(_env_file=None, discussion_service_url="http://chat.test"))
        assert isinstance(client, HttpDiscussionClient)
        client.close()

    def test_local_client_mints_thread_ids(self):
        client = LocalDiscussionClient()
        first = client.create_thread(**thread_kwargs())
        second = client.create_thread(**thread_kwargs())
        assert isinstance(first, uuid.UUID)
        assert first != second
        client.set_thread_resolved(first, True)
