"""Mapping of pipeline errors to HTTP errors."""

from fastapi import HTTPException, status
from loguru import logger

from content_resolver.errors import ContentResolverError, PersistenceError, ValidationError


def to_http_exception(error: Exception, action: str) -> HTTPException:
    """Convert an error raised while handling a request.

    Args:
        error: The caught error
        action: What the handler was doing, for the detail message

    Returns:
        HTTPException with 400 (validation), 503 (store down) or 500
    """
    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"kind": error.kind, "message": error.message},
        )
    if isinstance(error, PersistenceError):
        logger.error(f"Failed to {action}: {error}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"kind": error.kind, "message": f"Failed to {action}: store unavailable"},
        )

    kind = error.kind if isinstance(error, ContentResolverError) else "internal"
    logger.exception(f"Failed to {action}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"kind": kind, "message": f"Failed to {action}: {error}"},
    )
