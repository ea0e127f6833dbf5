from __future__ import annotations
from typing import Any


class GregaError(Exception):
    """Base for domain errors rendered as {"error": {code, message, details}}."""
    status_code: int = 400
    code: str = "ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message, "details": self.details}}


class NotFound(GregaError):
    # Raised while fetching facts, never by the access policy itself
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(GregaError):
    """Pre-upload or registration constraint violation; `constraint` names the failing rule."""
    status_code = 422
    code = "VALIDATION_FAILED"

    def __init__(self, message: str, *, constraint: str, details: dict[str, Any] | None = None):
        super().__init__(message, details={"constraint": constraint, **(details or {})})
        self.constraint = constraint


class Unauthorized(GregaError):
    status_code = 403
    code = "UNAUTHORIZED"


class ExpiredWindow(GregaError):
    """Event closed by status or deadline. Informational; retrying will not help."""
    status_code = 409
    code = "EVENT_CLOSED"


class EntitlementConflict(GregaError):
    status_code = 409
    code = "ENTITLEMENT_CONFLICT"


class UploadCancelled(GregaError):
    """The uploader asked to stop; nothing was stored."""
    status_code = 409
    code = "UPLOAD_CANCELLED"

    def __init__(self, upload_id: str):
        super().__init__("Upload cancelled", details={"upload_id": upload_id})
        self.upload_id = upload_id
