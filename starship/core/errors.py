"""
Custom exception hierarchy for StarshipPlan.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger("starship.errors")


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class StarshipException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(StarshipException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: int):
        self.code = f"{entity.upper()}_NOT_FOUND"
        super().__init__(
            message=f"{entity.capitalize()} {entity_id} not found.",
            details={"entity": entity, "id": entity_id},
        )


class DuplicateUsernameError(StarshipException):
    http_status = status.HTTP_409_CONFLICT
    code = "USERNAME_TAKEN"

    def __init__(self, username: str):
        super().__init__(
            message=f"Username {username!r} is already taken.",
            details={"username": username},
        )


class RoleMismatchError(StarshipException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "ROLE_MISMATCH"

    def __init__(self, user_id: int, expected: str, actual: str):
        super().__init__(
            message=f"User {user_id} must be {expected} for this operation (is {actual}).",
            details={"user_id": user_id, "expected": expected, "actual": actual},
        )


class NotChildOfParentError(StarshipException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "NOT_CHILD_OF_PARENT"

    def __init__(self, child_id: int, parent_id: int):
        super().__init__(
            message=f"User {child_id} is not a child of parent {parent_id}.",
            details={"child_id": child_id, "parent_id": parent_id},
        )


class InvalidCadenceError(StarshipException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_CADENCE"

    def __init__(self, message: str, frequency: str | None = None):
        super().__init__(
            message=message,
            details={"frequency": frequency} if frequency else {},
        )


class TaskNotDueToday(StarshipException):
    http_status = status.HTTP_409_CONFLICT
    code = "TASK_NOT_DUE_TODAY"

    def __init__(self, task_id: int | None, day: str):
        super().__init__(
            message=f"Task {task_id} is not due on {day}.",
            details={"task_id": task_id, "day": day},
        )


class InsufficientBalanceError(StarshipException):
    http_status = status.HTTP_409_CONFLICT
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, user_id: int, balance: int, required: int):
        super().__init__(
            message=f"Not enough star coins: balance {balance}, required {required}.",
            details={"user_id": user_id, "balance": balance, "required": required},
        )


class OutOfStockError(StarshipException):
    http_status = status.HTTP_409_CONFLICT
    code = "OUT_OF_STOCK"

    def __init__(self, reward_id: int):
        super().__init__(
            message=f"Reward {reward_id} is out of stock.",
            details={"reward_id": reward_id},
        )


class NegativeExperienceError(StarshipException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "NEGATIVE_EXPERIENCE"

    def __init__(self, user_id: int, delta: int):
        super().__init__(
            message="Experience can only grow; levels are never taken away.",
            details={"user_id": user_id, "delta": delta},
        )


class InvalidPunishmentTransition(StarshipException):
    http_status = status.HTTP_409_CONFLICT
    code = "INVALID_PUNISHMENT_TRANSITION"

    def __init__(self, punishment_id: int, current: str, target: str):
        super().__init__(
            message=f"Punishment {punishment_id} cannot go from {current} to {target}.",
            details={"punishment_id": punishment_id, "current": current, "target": target},
        )


class LedgerInvariantViolation(StarshipException):
    """Stored balances drifted from the sum of deltas. Needs manual reconciliation."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "LEDGER_INVARIANT_VIOLATION"

    def __init__(self, user_id: int, stored: int, computed: int, seq: int | None = None):
        super().__init__(
            message=(
                f"Ledger for user {user_id} is inconsistent "
                f"(stored {stored}, computed {computed}). Writes are frozen."
            ),
            details={"user_id": user_id, "stored": stored, "computed": computed, "seq": seq},
        )


class LedgerFrozenError(StarshipException):
    http_status = status.HTTP_423_LOCKED
    code = "LEDGER_FROZEN"

    def __init__(self, user_id: int):
        super().__init__(
            message=f"Ledger for user {user_id} is frozen pending reconciliation.",
            details={"user_id": user_id},
        )


class ConcurrentWriteError(StarshipException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "CONCURRENT_WRITE"

    def __init__(self, user_id: int, attempts: int):
        super().__init__(
            message=f"Gave up after {attempts} conflicting writes for user {user_id}; retry later.",
            details={"user_id": user_id, "attempts": attempts},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def starship_exception_handler(request: Request, exc: StarshipException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            "%s: %s", exc.code, exc.message,
            extra={"route": request.url.path},
        )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", extra={"route": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
