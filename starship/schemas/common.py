"""
Error envelope shared by every router.

All 4xx/5xx bodies look like `{code, message, details}`; validation errors
carry `{field, message, type}` items under `details.errors`.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str = Field(examples=["INSUFFICIENT_BALANCE"])
    message: str
    details: Optional[dict[str, Any]] = None


# Reused in router `responses=` declarations.
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    403: {"model": ErrorResponse, "description": "ROLE_MISMATCH or NOT_CHILD_OF_PARENT."},
    404: {"model": ErrorResponse, "description": "<ENTITY>_NOT_FOUND."},
    409: {"model": ErrorResponse, "description": "Business rule rejected the operation."},
    423: {"model": ErrorResponse, "description": "LEDGER_FROZEN: ledger awaits reconciliation."},
}
