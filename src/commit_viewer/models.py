"""Pydantic models for commit records and facade inputs/outputs."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import DEFAULT_PAGE_SIZE
from .errors import ErrorCode

PAGE_REQUEST_FIELDS = frozenset({"page", "size"})


class CommitRecord(BaseModel):
    """One commit as reported by the remote. Compared and hashed by value."""

    model_config = ConfigDict(frozen=True)

    sha: str
    author: str
    date: str
    message: str


class ProjectInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str
    default_branch: str | None = None


class BranchInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


class OpenProjectRequest(BaseModel):
    reference: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Repository URL or owner/repository pair",
    )

    @field_validator("reference")
    @classmethod
    def _reference_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("reference must not be blank")
        return stripped


class CheckoutRequest(BaseModel):
    branch: str = Field(..., min_length=1, max_length=255)

    @field_validator("branch")
    @classmethod
    def _branch_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("branch must not be blank")
        return stripped


class LogRequest(BaseModel):
    reference: str | None = None
    page: int = Field(default=1, ge=1)
    size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)


def validation_error_code(exc: ValidationError) -> ErrorCode:
    """Report page/size bound violations as page request errors."""
    fields = {error["loc"][0] for error in exc.errors() if error.get("loc")}
    if fields and fields <= PAGE_REQUEST_FIELDS:
        return ErrorCode.INVALID_PAGE_REQUEST
    return ErrorCode.INVALID_INPUT


class BaseToolResponse(BaseModel):
    status: Literal["success", "error"]
    message: str = ""
    error_code: str = ""
    suggestion: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class OpenProjectResponse(BaseToolResponse):
    project: str = ""
    current_branch: str = ""
    already_open: bool = False


class CheckoutResponse(BaseToolResponse):
    previous_branch: str = ""
    current_branch: str = ""
    cached_commits: int = 0


class BranchListResponse(BaseToolResponse):
    project: str = ""
    current_branch: str = ""
    count: int = 0
    branches: list[dict[str, Any]] = Field(default_factory=list)


class LogResponse(BaseToolResponse):
    project: str = ""
    branch: str = ""
    page: int = 1
    size: int = DEFAULT_PAGE_SIZE
    count: int = 0
    cached_commits: int = 0
    commits: list[CommitRecord] = Field(default_factory=list)


class StatusResponse(BaseToolResponse):
    project: str = ""
    current_branch: str = ""
    branch_count: int = 0
    cached_commits: int = 0
