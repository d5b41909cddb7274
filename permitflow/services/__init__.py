"""Integrations with services outside PermitFlow."""

from permitflow.services.discussions import (
    DiscussionClient,
    DiscussionServiceError,
    HttpDiscussionClient,
    LocalDiscussionClient,
    get_discussion_client,
)

__all__ = [
    "DiscussionClient",
    "DiscussionServiceError",
    "HttpDiscussionClient",
    "LocalDiscussionClient",
    "get_discussion_client",
]
