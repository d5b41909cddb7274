"""Exception handlers mapping engine errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from permitflow.core.approval.errors import (
    ApprovalError,
    NotFoundError,
    UnauthorizedError,
    InvalidStateError,
    ValidationError,
)
from permitflow.api.schemas.common import ErrorResponse
from permitflow.services.discussions import DiscussionServiceError

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


async def approval_error_handler(request: Request, exc: ApprovalError) -> JSONResponse:
    status_code = STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def discussion_error_handler(request: Request, exc: DiscussionServiceError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} -> discussion service failure: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": "discussion_service_error", "detail": str(exc), "context": {}},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApprovalError, approval_error_handler)
    app.add_exception_handler(DiscussionServiceError, discussion_error_handler)


ERROR_RESPONSES = {
    status.HTTP_403_FORBIDDEN: {"model": ErrorResponse, "description": "No active seat or missing capability"},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "Unknown resource"},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse, "description": "Not allowed in the current state"},
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse, "description": "Invalid input"},
}
