"""Translation of domain errors into HTTP responses."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status

from ..errors import (
    ConcurrentModification,
    ConstraintViolation,
    InfrastructureError,
    InvalidStateTransition,
    NotFound,
    PickupError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES: tuple[tuple[type[PickupError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidStateTransition, status.HTTP_409_CONFLICT),
    (ConstraintViolation, status.HTTP_409_CONFLICT),
    (ConcurrentModification, status.HTTP_409_CONFLICT),
    (InfrastructureError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: PickupError) -> HTTPException:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(
                status_code=status_code,
                detail={"error": type(exc).__name__, "message": str(exc)},
            )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": type(exc).__name__, "message": str(exc)},
    )


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Map domain errors to their HTTP status; log anything unexpected as a 500."""

    try:
        yield
    except HTTPException:
        raise
    except PickupError as exc:
        if isinstance(exc, InfrastructureError):
            logger.error(f"Storage failure while trying to {action}: {exc}")
        raise http_error(exc) from exc
    except Exception as exc:
        logger.exception(f"Error trying to {action}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}: {str(exc)}",
        ) from exc
