"""
Engine exception -> HTTP status translation.

Routes call services inside `try` and re-raise through to_http_exception:
- ScheduleValidationError: 422 with the itemized error list
- NotFoundError: 404
- ConflictError: 409
- SchedulingError and anything else: 500
"""

import logging

from fastapi import HTTPException

from dronesoccer.services.errors import ConflictError, EngineError, NotFoundError, ScheduleValidationError

logger = logging.getLogger(__name__)


def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, ScheduleValidationError):
        return HTTPException(status_code=422, detail={"message": "Validation failed", "errors": exc.errors})
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, EngineError):
        logger.error("Engine failure: %s", exc)
        return HTTPException(status_code=500, detail=str(exc))

    logger.exception("Unexpected error: %s", exc)
    return HTTPException(status_code=500, detail=f"Internal error: {exc}")
