"""Domain errors raised by the services.

Every error is an ``HTTPException`` so it propagates through FastAPI as-is.
The ``detail`` body names the entity and the violated rule without leaking
table or column names.
"""

from typing import Any

from fastapi import HTTPException, status


class ExamhubError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str, entity: str | None = None, constraint: str | None = None):
        self.message = message
        self.entity = entity
        self.constraint = constraint
        super().__init__(status_code=self.status_code, detail=self.as_detail())

    def as_detail(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "entity": self.entity,
            "constraint": self.constraint,
        }


class NotFound(ExamhubError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class NotAvailable(ExamhubError):
    status_code = status.HTTP_409_CONFLICT
    code = "not_available"


class LimitReached(ExamhubError):
    status_code = status.HTTP_409_CONFLICT
    code = "limit_reached"


class AlreadyCompleted(ExamhubError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_completed"


class ValidationFailed(ExamhubError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_failed"


class PersistenceConflict(ExamhubError):
    status_code = status.HTTP_409_CONFLICT
    code = "persistence_conflict"


class Unauthorized(ExamhubError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"
