from __future__ import annotations

import pytest

from commit_viewer.errors import ErrorCode, CommitViewerError
from commit_viewer.registry import ProjectRegistry

PROJECT = "apache/spark"


@pytest.fixture()
def registry(remote) -> ProjectRegistry:
    return ProjectRegistry(remote)


def test_open_project_selects_default_branch(registry: ProjectRegistry) -> None:
    assert registry.open_project("https://github.com/apache/spark.git") is True

    assert registry.project_identifier == PROJECT
    assert registry.current_branch == "main"
    assert registry.list_branches() == {"main"}
    assert registry.cached_count() == 0


def test_reopening_same_project_has_no_side_effects(registry: ProjectRegistry, remote) -> None:
    registry.open_project("apache/spark")
    registry.get_page(1, 5)
    registry.checkout_branch("dev")
    remote.resolve_calls.clear()

    assert registry.open_project("https://api.github.com/repos/apache/spark/commits") is True

    assert remote.resolve_calls == []
    assert registry.current_branch == "dev"
    assert registry.list_branches() == {"main", "dev"}
    assert registry.cached_count("main") == 30


def test_opening_another_project_discards_previous_caches(registry: ProjectRegistry, remote) -> None:
    remote.add_project("octo/cat", default_branch="trunk", branches={"trunk": 3})
    registry.open_project("apache/spark")
    registry.get_page(1, 5)

    assert registry.open_project("git@github.com:octo/cat.git") is True

    assert registry.project_identifier == "octo/cat"
    assert registry.current_branch == "trunk"
    assert registry.list_branches() == {"trunk"}
    assert registry.cached_count() == 0


def test_open_project_failures_return_false(registry: ProjectRegistry) -> None:
    assert registry.open_project("apache/missing") is False
    assert registry.open_project("not a reference") is False
    assert registry.is_project_open is False


def test_failed_open_keeps_active_project(registry: ProjectRegistry) -> None:
    registry.open_project("apache/spark")

    assert registry.open_project("apache/missing") is False

    assert registry.project_identifier == PROJECT
    assert registry.current_branch == "main"


def test_project_without_default_branch_has_no_current_branch(registry: ProjectRegistry, remote) -> None:
    remote.add_project("octo/empty", default_branch=None)

    assert registry.open_project("octo/empty") is True
    assert registry.current_branch is None
    assert registry.list_branches() == set()

    with pytest.raises(CommitViewerError) as exc_info:
        registry.get_page(1, 5)
    assert exc_info.value.code == ErrorCode.NO_ACTIVE_BRANCH


def test_checkout_requires_open_project_and_existing_branch(registry: ProjectRegistry) -> None:
    assert registry.checkout_branch("main") is False

    registry.open_project("apache/spark")
    assert registry.checkout_branch("does-not-exist") is False
    assert registry.current_branch == "main"
    assert registry.list_branches() == {"main"}


def test_checkout_keeps_existing_cache(registry: ProjectRegistry) -> None:
    registry.open_project("apache/spark")
    registry.get_page(1, 40)

    assert registry.checkout_branch("dev") is True
    assert registry.checkout_branch("main") is True

    assert registry.current_branch == "main"
    assert registry.cached_count("main") == 60


def test_branch_isolation(registry: ProjectRegistry, remote) -> None:
    registry.open_project("apache/spark")
    main_page = registry.get_page(1, 5)
    main_cache = list(registry._project.branches["main"].commits)

    registry.checkout_branch("dev")
    remote.advance(PROJECT, "main", 40)
    dev_page = registry.get_page(2, 20)

    assert [commit.sha for commit in dev_page] == [
        commit.sha for commit in remote.histories[(PROJECT, "dev")][20:40]
    ]
    assert list(registry._project.branches["main"].commits) == main_cache
    assert all(call[1] == "dev" for call in remote.page_calls[-2:])
    assert main_page == main_cache[:5]


def test_get_page_without_project_fails(registry: ProjectRegistry) -> None:
    with pytest.raises(CommitViewerError) as exc_info:
        registry.get_page(1, 5)
    assert exc_info.value.code == ErrorCode.NO_ACTIVE_PROJECT


def test_end_to_end_default_branch_scenario(registry: ProjectRegistry, remote) -> None:
    assert registry.open_project("https://github.com/apache/spark") is True

    first = registry.get_page(1, 5)
    assert first == remote.histories[(PROJECT, "main")][:5]
    assert registry.cached_count() == 30

    second = registry.get_page(1, 5)
    assert second == first
    assert registry.cached_count() == 30
