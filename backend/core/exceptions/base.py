"""
Base exception types for the scheduling backend.

Subclass ProjectError to add new exception types. All exceptions carry a
machine-readable code, an HTTP status for the API layer and a short public
message that is safe to show to end users.
Diagnostics (details, cause) stay server side.
"""
from __future__ import annotations

import traceback
from typing import Any, Optional

GENERIC_PUBLIC_MESSAGE = "Failed to process request"


class ProjectError(Exception):
    """
    Base exception for all project errors.

    Attributes:
        message: Internal error description (logged, never streamed).
        code: Machine-readable slug (defaults to class __name__).
        http_status: Suggested HTTP status for API responses (default 500).
        details: Optional dict for extra context (e.g. participant ids).
        cause: Optional chained exception.
        public_message: Short text that may be shown to the caller.
    """

    default_code: str = "ERROR"
    default_http_status: int = 500
    default_public_message: str = GENERIC_PUBLIC_MESSAGE

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        public_message: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else getattr(
            self.__class__, "default_code", self.__class__.__name__
        )
        self.http_status = (
            http_status
            if http_status is not None
            else getattr(self.__class__, "default_http_status", 500)
        )
        self.details: dict[str, Any] = details or {}
        self.cause = cause
        self.public_message = public_message or self.default_public_message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, code={self.code!r}, "
            f"http_status={self.http_status})"
        )

    def __str__(self) -> str:
        return self.message

    def to_dict(self, *, include_cause: bool = True) -> dict[str, Any]:
        """Serialize for logging. API responses use to_public_dict()."""
        out: dict[str, Any] = {
            "message": self.message,
            "code": self.code,
            "http_status": self.http_status,
        }
        if self.details:
            out["details"] = self.details
        if include_cause and self.cause is not None:
            out["cause"] = str(self.cause)
            out["cause_traceback"] = traceback.format_exception(
                type(self.cause), self.cause, self.cause.__traceback__
            )
        return out

    def to_public_dict(self) -> dict[str, Any]:
        """Caller-safe payload: code and public message only."""
        return {"code": self.code, "message": self.public_message}
