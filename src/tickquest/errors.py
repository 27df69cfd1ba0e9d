"""API error type carrying a stable machine-readable code."""

from __future__ import annotations

from fastapi import HTTPException

# Default codes for plain HTTPExceptions raised by FastAPI itself
STATUS_CODES: dict[int, str] = {
    400: "validation_error",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
    500: "internal_error",
}


class APIError(HTTPException):
    """HTTPException rendered as {"error": {"code": ..., "message": ...}}."""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        super().__init__(status_code=status_code, detail=message)
        self.code = code


def code_for_status(status_code: int) -> str:
    """Map an HTTP status to the default error code."""
    return STATUS_CODES.get(status_code, "error")
