"""Error response models."""

from datetime import datetime

from pydantic import BaseModel


class ErrorDebug(BaseModel):
    """Operator-facing detail about the failure (no secrets)."""

    operation: str | None = None
    cause_class: str | None = None
    cause_message: str | None = None


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: str
    debug: ErrorDebug | None = None
    timestamp: datetime
    request_id: str
