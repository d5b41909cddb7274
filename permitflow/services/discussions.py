"""Discussion thread integration for issues.

Every issue gets a chat thread in the external discussion service. The
engine only needs two calls from it: open a thread, and mirror the issue's
resolved flag onto the thread.

``HttpDiscussionClient`` talks to the service over HTTP. When no service
URL is configured, ``LocalDiscussionClient`` mints thread ids in-process so
the approval workflow keeps working without chat.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Dict, Any
from uuid import UUID

import httpx

from permitflow.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class DiscussionServiceError(Exception):
    """The discussion service could not be reached or refused the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DiscussionClient(ABC):
    """Contract the issue gate relies on."""

    @abstractmethod
    def create_thread(
        self,
        *,
        application_id: UUID,
        issue_id: UUID,
        title: str,
        description: str,
        created_by: UUID,
        participant_ids: Sequence[UUID],
    ) -> UUID:
        """Open a thread for an issue and return its id."""

    @abstractmethod
    def set_thread_resolved(self, thread_id: UUID, resolved: bool) -> None:
        """Mirror the issue's resolved flag onto its thread."""


class HttpDiscussionClient(DiscussionClient):
    """Discussion service client over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 10,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def create_thread(
        self,
        *,
        application_id: UUID,
        issue_id: UUID,
        title: str,
        description: str,
        created_by: UUID,
        participant_ids: Sequence[UUID],
    ) -> UUID:
        payload = {
            "thread_type": "issue",
            "application_id": str(application_id),
            "issue_id": str(issue_id),
            "title": title,
            "description": description,
            "created_by": str(created_by),
            "participants": [str(pid) for pid in participant_ids],
        }
        data = self._request("POST", "/threads", payload)
        try:
            return UUID(str(data["id"]))
        except (KeyError, ValueError) as e:
            raise DiscussionServiceError(f"Discussion service returned no thread id: {data!r}") from e

    def set_thread_resolved(self, thread_id: UUID, resolved: bool) -> None:
        self._request("PATCH", f"/threads/{thread_id}", {"is_resolved": resolved})

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DiscussionServiceError(
                f"Discussion service returned {e.response.status_code} for {method} {path}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise DiscussionServiceError(f"Discussion service unreachable: {e}") from e

        if not response.content:
            return {}
        return response.json()


class LocalDiscussionClient(DiscussionClient):
    """Stand-in used when no discussion service is configured."""

    def create_thread(
        self,
        *,
        application_id: UUID,
        issue_id: UUID,
        title: str,
        description: str,
        created_by: UUID,
        participant_ids: Sequence[UUID],
    ) -> UUID:
        thread_id = uuid.uuid4()
        logger.debug(f"Discussion service not configured, minted local thread {thread_id} for issue {issue_id}")
        return thread_id

    def set_thread_resolved(self, thread_id: UUID, resolved: bool) -> None:
        logger.debug(f"Discussion service not configured, skipping resolve sync for thread {thread_id}")


def get_discussion_client(settings: Optional[Settings] = None) -> DiscussionClient:
    """Build the client the settings ask for."""
    settings = settings or get_settings()
    if not settings.discussion_enabled:
        logger.warning("Discussion service not configured, issue threads are local only")
        return LocalDiscussionClient()
    return HttpDiscussionClient(
        settings.discussion_service_url,
        token=settings.discussion_service_token,
        timeout=settings.discussion_timeout,
    )
