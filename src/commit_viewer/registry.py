"""Active project and per-branch cache ownership."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock

from .cache import BranchCache, CommitCacheEngine
from .errors import ErrorCode, CommitViewerError
from .models import CommitRecord
from .remote import RemoteCommitSource, parse_project_reference

logger = logging.getLogger(__name__)


@dataclass
class ProjectHandle:
    """The open project with one cache per branch ever referenced."""

    identifier: str
    current_branch: str | None = None
    branches: dict[str, BranchCache] = field(default_factory=dict)

    def ensure_branch(self, name: str) -> BranchCache:
        cache = self.branches.get(name)
        if cache is None:
            cache = BranchCache(branch_name=name)
            self.branches[name] = cache
        return cache


class ProjectRegistry:
    """Tracks the open project, the checked-out branch and their caches."""

    def __init__(
        self,
        source: RemoteCommitSource,
        cache_engine: CommitCacheEngine | None = None,
    ) -> None:
        self.source = source
        self.cache_engine = cache_engine or CommitCacheEngine(source)
        self._lock = Lock()
        self._project: ProjectHandle | None = None

    @property
    def is_project_open(self) -> bool:
        return self._project is not None

    @property
    def project_identifier(self) -> str | None:
        project = self._project
        return project.identifier if project else None

    @property
    def current_branch(self) -> str | None:
        project = self._project
        return project.current_branch if project else None

    def open_project(self, reference: str) -> bool:
        """Open the project named by ``reference``; re-opening the active one is a no-op."""
        try:
            identifier = parse_project_reference(reference)
        except CommitViewerError:
            logger.info("Rejected unrecognized project reference %r", reference)
            return False

        with self._lock:
            if self._project and self._project.identifier.casefold() == identifier.casefold():
                return True

        info = self.source.resolve_project(reference)
        if info is None:
            logger.info("Project %s not found on remote", identifier)
            return False

        project = ProjectHandle(identifier=info.identifier)
        if info.default_branch:
            project.ensure_branch(info.default_branch)
            project.current_branch = info.default_branch

        with self._lock:
            self._project = project
        logger.info(
            "Opened project %s (default branch: %s)",
            info.identifier,
            info.default_branch or "none",
        )
        return True

    def checkout_branch(self, name: str) -> bool:
        """Make ``name`` current, keeping any cache already built for it."""
        project = self._project
        if project is None:
            return False

        branch = self.source.resolve_branch(project.identifier, name)
        if branch is None:
            logger.info("Branch %s not found in %s", name, project.identifier)
            return False

        with self._lock:
            if self._project is not project:
                # Another project was opened while the branch was being resolved.
                return False
            project.ensure_branch(branch.name)
            project.current_branch = branch.name
        return True

    def list_branches(self) -> set[str]:
        project = self._project
        if project is None:
            return set()
        with self._lock:
            return set(project.branches)

    def cached_count(self, branch_name: str | None = None) -> int:
        project = self._project
        if project is None:
            return 0
        name = branch_name or project.current_branch
        cache = project.branches.get(name) if name else None
        return len(cache) if cache else 0

    def get_page(self, page: int, size: int) -> list[CommitRecord]:
        """Return one page of the current branch's history, newest first."""
        project, cache = self._current_cache()
        return self.cache_engine.get_page(project.identifier, cache, page, size)

    def _current_cache(self) -> tuple[ProjectHandle, BranchCache]:
        with self._lock:
            project = self._project
            if project is None:
                raise CommitViewerError(
                    ErrorCode.NO_ACTIVE_PROJECT,
                    "No project is open",
                    "Open a project first (clone a repository URL or owner/repository).",
                )
            if not project.current_branch:
                raise CommitViewerError(
                    ErrorCode.NO_ACTIVE_BRANCH,
                    f"No branch is checked out in {project.identifier}",
                    "Checkout a branch before reading commits.",
                    {"project": project.identifier},
                )
            return project, project.ensure_branch(project.current_branch)
