from __future__ import annotations

import pytest
from pydantic import ValidationError

from commit_viewer.engine import CommitViewerEngine
from commit_viewer.errors import ErrorCode, CommitViewerError
from commit_viewer.models import (
    CheckoutRequest,
    LogRequest,
    OpenProjectRequest,
    validation_error_code,
)
from commit_viewer.registry import ProjectRegistry


@pytest.fixture()
def engine(remote) -> CommitViewerEngine:
    return CommitViewerEngine(ProjectRegistry(remote))


def test_open_project_reports_default_branch(engine: CommitViewerEngine) -> None:
    response = engine.open_project(OpenProjectRequest(reference="https://github.com/apache/spark.git"))

    assert response.status == "success"
    assert response.project == "apache/spark"
    assert response.current_branch == "main"
    assert response.already_open is False

    again = engine.open_project(OpenProjectRequest(reference="apache/spark"))
    assert again.already_open is True


def test_open_unknown_project_raises_project_not_found(engine: CommitViewerEngine) -> None:
    with pytest.raises(CommitViewerError) as exc_info:
        engine.open_project(OpenProjectRequest(reference="apache/missing"))
    assert exc_info.value.code == ErrorCode.PROJECT_NOT_FOUND
    assert exc_info.value.to_payload()["status"] == "error"


def test_checkout_and_list_branches(engine: CommitViewerEngine) -> None:
    engine.open_project(OpenProjectRequest(reference="apache/spark"))
    engine.get_log(LogRequest(page=1, size=5))

    checkout = engine.checkout_branch(CheckoutRequest(branch="dev"))
    assert checkout.previous_branch == "main"
    assert checkout.current_branch == "dev"
    assert checkout.cached_commits == 0

    listing = engine.list_branches()
    assert listing.count == 2
    assert listing.branches == [
        {"name": "dev", "current": True, "cached_commits": 0},
        {"name": "main", "current": False, "cached_commits": 30},
    ]


def test_checkout_unknown_branch_raises(engine: CommitViewerEngine) -> None:
    engine.open_project(OpenProjectRequest(reference="apache/spark"))

    with pytest.raises(CommitViewerError) as exc_info:
        engine.checkout_branch(CheckoutRequest(branch="ghost"))
    assert exc_info.value.code == ErrorCode.BRANCH_NOT_FOUND


def test_operations_without_project_raise_no_active_project(engine: CommitViewerEngine) -> None:
    for operation in (
        lambda: engine.checkout_branch(CheckoutRequest(branch="main")),
        engine.list_branches,
        lambda: engine.get_log(LogRequest()),
    ):
        with pytest.raises(CommitViewerError) as exc_info:
            operation()
        assert exc_info.value.code == ErrorCode.NO_ACTIVE_PROJECT


def test_get_log_with_reference_opens_project_first(engine: CommitViewerEngine, remote) -> None:
    response = engine.get_log(LogRequest(reference="apache/spark", page=2, size=10))

    assert response.project == "apache/spark"
    assert response.branch == "main"
    assert response.count == 10
    assert response.commits == remote.histories[("apache/spark", "main")][10:20]
    assert response.cached_commits == 30


def test_get_status_before_and_after_open(engine: CommitViewerEngine) -> None:
    assert engine.get_status().project == ""

    engine.open_project(OpenProjectRequest(reference="apache/spark"))
    status = engine.get_status()
    assert status.project == "apache/spark"
    assert status.current_branch == "main"
    assert status.branch_count == 1


def test_request_models_validate_input() -> None:
    with pytest.raises(ValidationError):
        LogRequest(page=0)
    with pytest.raises(ValidationError):
        LogRequest(size=0)
    with pytest.raises(ValidationError):
        OpenProjectRequest(reference="   ")
    with pytest.raises(ValidationError):
        CheckoutRequest(branch="")


def test_page_bound_violations_map_to_invalid_page_request() -> None:
    with pytest.raises(ValidationError) as page_error:
        LogRequest(page=0, size=0)
    assert validation_error_code(page_error.value) == ErrorCode.INVALID_PAGE_REQUEST

    with pytest.raises(ValidationError) as reference_error:
        OpenProjectRequest(reference="")
    assert validation_error_code(reference_error.value) == ErrorCode.INVALID_INPUT
