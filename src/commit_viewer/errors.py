"""Domain-specific error types for commit-viewer operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Supported error codes exposed by commit-viewer facades."""

    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    BRANCH_NOT_FOUND = "BRANCH_NOT_FOUND"
    NO_ACTIVE_PROJECT = "NO_ACTIVE_PROJECT"
    NO_ACTIVE_BRANCH = "NO_ACTIVE_BRANCH"
    REMOTE_FETCH_FAILED = "REMOTE_FETCH_FAILED"
    INVALID_PAGE_REQUEST = "INVALID_PAGE_REQUEST"
    INVALID_INPUT = "INVALID_INPUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class CommitViewerError(Exception):
    """Structured exception carrying a stable error contract."""

    code: ErrorCode
    message: str
    suggestion: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": "error",
            "error_code": self.code.value,
            "message": self.message,
            "suggestion": self.suggestion or "",
            "details": self.details,
        }
