from __future__ import annotations

from fastapi import HTTPException, status


class LedgerError(HTTPException):
    """Base for failures raised by the ledger services.

    Subclasses carry their HTTP status so routers can let FastAPI render them
    unchanged, while the command layer turns them into ``{"success": False}``
    envelopes.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    code = "ledger_error"

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=self.status_code, detail=detail)


class LedgerValidationError(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class NotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConstraintConflictError(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "constraint_conflict"


class CascadeDeleteError(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "cascade_failure"
