"""Facade service mapping request models onto registry operations."""

from __future__ import annotations

from .errors import ErrorCode, CommitViewerError
from .models import (
    BranchListResponse,
    CheckoutRequest,
    CheckoutResponse,
    LogRequest,
    LogResponse,
    OpenProjectRequest,
    OpenProjectResponse,
    StatusResponse,
)
from .registry import ProjectRegistry


class CommitViewerEngine:
    """Main service behind the CLI and MCP facades."""

    def __init__(self, registry: ProjectRegistry) -> None:
        self.registry = registry

    def open_project(self, request: OpenProjectRequest) -> OpenProjectResponse:
        """Open a remote project, replacing the active one when it differs."""
        previous = self.registry.project_identifier
        if not self.registry.open_project(request.reference):
            raise CommitViewerError(
                ErrorCode.PROJECT_NOT_FOUND,
                f"Project '{request.reference}' could not be resolved",
                "Check the repository URL or owner/repository name.",
                {"reference": request.reference},
            )
        project = self.registry.project_identifier or ""
        return OpenProjectResponse(
            status="success",
            message=f"Project started with {project}",
            project=project,
            current_branch=self.registry.current_branch or "",
            already_open=previous == project,
        )

    def checkout_branch(self, request: CheckoutRequest) -> CheckoutResponse:
        """Switch the current branch of the open project."""
        self._require_project()
        previous = self.registry.current_branch or ""
        if not self.registry.checkout_branch(request.branch):
            raise CommitViewerError(
                ErrorCode.BRANCH_NOT_FOUND,
                f"Branch '{request.branch}' does not exist in {self.registry.project_identifier}",
                "Pick an existing remote branch.",
                {"branch": request.branch},
            )
        current = self.registry.current_branch or request.branch
        return CheckoutResponse(
            status="success",
            message=f"Switched to branch '{current}'",
            previous_branch=previous,
            current_branch=current,
            cached_commits=self.registry.cached_count(current),
        )

    def list_branches(self) -> BranchListResponse:
        """List branches with a local cache entry."""
        project = self._require_project()
        current = self.registry.current_branch or ""
        branches = [
            {
                "name": name,
                "current": name == current,
                "cached_commits": self.registry.cached_count(name),
            }
            for name in sorted(self.registry.list_branches())
        ]
        return BranchListResponse(
            status="success",
            message="Branches cached locally",
            project=project,
            current_branch=current,
            count=len(branches),
            branches=branches,
        )

    def get_log(self, request: LogRequest) -> LogResponse:
        """Return one page of the current branch, opening ``request.reference`` first if given."""
        if request.reference:
            self.open_project(OpenProjectRequest(reference=request.reference))
        project = self._require_project()
        commits = self.registry.get_page(request.page, request.size)
        return LogResponse(
            status="success",
            message="Commits retrieved",
            project=project,
            branch=self.registry.current_branch or "",
            page=request.page,
            size=request.size,
            count=len(commits),
            cached_commits=self.registry.cached_count(),
            commits=commits,
        )

    def get_status(self) -> StatusResponse:
        if not self.registry.is_project_open:
            return StatusResponse(status="success", message="No project is open")
        return StatusResponse(
            status="success",
            message="Project is open",
            project=self.registry.project_identifier or "",
            current_branch=self.registry.current_branch or "",
            branch_count=len(self.registry.list_branches()),
            cached_commits=self.registry.cached_count(),
        )

    def _require_project(self) -> str:
        identifier = self.registry.project_identifier
        if identifier is None:
            raise CommitViewerError(
                ErrorCode.NO_ACTIVE_PROJECT,
                "No project is open",
                "Clone a project first.",
            )
        return identifier
