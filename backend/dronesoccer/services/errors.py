"""
Engine exceptions.

Services raise these; routes translate them into HTTP status codes
(see utils/http_errors.py). Validation and not-found errors are always raised
before any mutation.
"""

from typing import List, Optional


class EngineError(Exception):
    """Base class for tournament engine failures"""

    pass


class ScheduleValidationError(EngineError):
    """Invalid input. Carries every violated rule, not just the first one."""

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message or "; ".join(self.errors))


class NotFoundError(EngineError):
    """Unknown tournament / group / team / match"""

    pass


class ConflictError(EngineError):
    """Operation not allowed in the current state (duplicate generate, terminal status, ...)"""

    pass


class SchedulingError(EngineError):
    """Failure discovered mid-operation; the whole transaction is rolled back"""

    pass
