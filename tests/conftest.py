from __future__ import annotations

import pytest

from commit_viewer.errors import ErrorCode, CommitViewerError
from commit_viewer.models import BranchInfo, CommitRecord, ProjectInfo
from commit_viewer.remote import parse_project_reference


def make_commits(prefix: str, count: int, start: int = 0) -> list[CommitRecord]:
    """Build ``count`` commits, newest first, with shas ``<prefix>-<n>``."""
    return [
        CommitRecord(
            sha=f"{prefix}-{index}",
            author="Ada",
            date=f"2024-01-01T00:00:{index % 60:02d}Z",
            message=f"{prefix} change {index}",
        )
        for index in range(start + count - 1, start - 1, -1)
    ]


class FakeRemote:
    """In-memory remote with paged newest-first histories per branch."""

    def __init__(self, page_size: int = 30) -> None:
        self.page_size = page_size
        self.projects: dict[str, str | None] = {}
        self.histories: dict[tuple[str, str], list[CommitRecord]] = {}
        self.page_calls: list[tuple[str, str, int]] = []
        self.resolve_calls: list[str] = []
        self.fail_on: set[tuple[str, int]] = set()

    def add_project(
        self,
        identifier: str,
        default_branch: str | None = "main",
        branches: dict[str, int] | None = None,
    ) -> None:
        self.projects[identifier] = default_branch
        for name, count in (branches or {}).items():
            self.histories[(identifier, name)] = make_commits(name, count)

    def advance(self, identifier: str, branch: str, count: int) -> list[CommitRecord]:
        history = self.histories[(identifier, branch)]
        newer = make_commits(f"{branch}-new{len(history)}", count)
        self.histories[(identifier, branch)] = newer + history
        return newer

    def resolve_project(self, reference: str) -> ProjectInfo | None:
        self.resolve_calls.append(reference)
        identifier = parse_project_reference(reference)
        if identifier not in self.projects:
            return None
        return ProjectInfo(identifier=identifier, default_branch=self.projects[identifier])

    def resolve_branch(self, project_identifier: str, name: str) -> BranchInfo | None:
        if (project_identifier, name) not in self.histories:
            return None
        return BranchInfo(name=name)

    def fetch_commit_page(
        self,
        project_identifier: str,
        branch_name: str,
        page_number: int,
    ) -> list[CommitRecord]:
        self.page_calls.append((project_identifier, branch_name, page_number))
        if (branch_name, page_number) in self.fail_on:
            raise CommitViewerError(
                ErrorCode.REMOTE_FETCH_FAILED,
                f"Injected failure for page {page_number}",
            )
        history = self.histories.get((project_identifier, branch_name), [])
        start = (page_number - 1) * self.page_size
        return list(history[start : start + self.page_size])


@pytest.fixture()
def remote() -> FakeRemote:
    fake = FakeRemote()
    fake.add_project("apache/spark", default_branch="main", branches={"main": 100, "dev": 45})
    return fake


@pytest.fixture()
def commits_factory():
    return make_commits


@pytest.fixture()
def remote_factory():
    return FakeRemote
