"""Remote commit sources: the protocol the cache consumes and a GitHub client."""

from __future__ import annotations

import http.client
import json
import logging
import re
from typing import Any, Callable, Protocol
from urllib.parse import quote, urlencode, urlparse

from .constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    MISSING_FIELD,
    REMOTE_PAGE_SIZE,
    USER_AGENT,
)
from .errors import ErrorCode, CommitViewerError
from .models import BranchInfo, CommitRecord, ProjectInfo

logger = logging.getLogger(__name__)

NAME_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
SCP_REFERENCE_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+:(?P<path>[^\s]+)$")


class RemoteCommitSource(Protocol):
    """Read-only view of a remote project's branches and paged commit history."""

    page_size: int

    def resolve_project(self, reference: str) -> ProjectInfo | None:
        ...

    def resolve_branch(self, project_identifier: str, name: str) -> BranchInfo | None:
        ...

    def fetch_commit_page(
        self,
        project_identifier: str,
        branch_name: str,
        page_number: int,
    ) -> list[CommitRecord]:
        ...


def parse_project_reference(reference: str) -> str:
    """Return the canonical ``owner/repository`` identifier for a reference.

    Accepted forms: ``owner/repo``, web URLs (``https://github.com/owner/repo.git``),
    API URLs (``https://api.github.com/repos/owner/repo/commits``) and scp-like
    SSH references (``git@github.com:owner/repo.git``).
    """
    value = (reference or "").strip()
    if not value:
        raise _invalid_reference(reference)

    scp_match = SCP_REFERENCE_PATTERN.match(value)
    if "://" in value:
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https", "ssh", "git"} or not parsed.netloc:
            raise _invalid_reference(reference)
        segments = [segment for segment in parsed.path.split("/") if segment]
    elif scp_match:
        segments = [segment for segment in scp_match.group("path").split("/") if segment]
    else:
        segments = [segment for segment in value.split("/") if segment]
        if len(segments) != 2:
            raise _invalid_reference(reference)

    if "repos" in segments:
        repos_index = segments.index("repos")
        segments = segments[repos_index + 1 :]
    if len(segments) < 2:
        raise _invalid_reference(reference)

    owner = segments[0]
    repository = segments[1]
    if repository.endswith(".git"):
        repository = repository[: -len(".git")]
    if not NAME_SEGMENT_PATTERN.fullmatch(owner) or not NAME_SEGMENT_PATTERN.fullmatch(repository):
        raise _invalid_reference(reference)
    return f"{owner}/{repository}"


def parse_commit_payload(item: Any) -> CommitRecord:
    """Extract a commit record from one GitHub ``/commits`` list entry."""
    if not isinstance(item, dict):
        raise CommitViewerError(
            ErrorCode.REMOTE_FETCH_FAILED,
            "Remote returned a malformed commit entry.",
            "Retry the request; the remote payload did not match the commits schema.",
        )
    commit = item.get("commit")
    if not isinstance(commit, dict):
        commit = {}
    committer = commit.get("committer")
    if not isinstance(committer, dict):
        committer = {}
    return CommitRecord(
        sha=str(item.get("sha") or MISSING_FIELD),
        author=str(committer.get("name") or MISSING_FIELD),
        date=str(committer.get("date") or MISSING_FIELD),
        message=str(commit.get("message") or MISSING_FIELD),
    )


ConnectionFactory = Callable[..., Any]


class GitHubCommitSource:
    """GitHub REST implementation of :class:`RemoteCommitSource`."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        page_size: int = REMOTE_PAGE_SIZE,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        parsed = urlparse(base_url.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise ValueError("base_url must be a valid http(s) URL.")
        self._scheme = parsed.scheme
        self._host = parsed.hostname
        self._port = parsed.port
        self._path_prefix = parsed.path.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._connection_factory = connection_factory or _default_connection
        self.page_size = page_size

    def resolve_project(self, reference: str) -> ProjectInfo | None:
        identifier = parse_project_reference(reference)
        status, payload = self._get_json(f"/repos/{identifier}")
        if status == 404:
            return None
        if not isinstance(payload, dict):
            raise _malformed_payload(f"/repos/{identifier}")
        default_branch = payload.get("default_branch")
        return ProjectInfo(
            identifier=str(payload.get("full_name") or identifier),
            default_branch=str(default_branch) if default_branch else None,
        )

    def resolve_branch(self, project_identifier: str, name: str) -> BranchInfo | None:
        path = f"/repos/{project_identifier}/branches/{quote(name, safe='')}"
        status, payload = self._get_json(path)
        if status == 404:
            return None
        if not isinstance(payload, dict):
            raise _malformed_payload(path)
        return BranchInfo(name=str(payload.get("name") or name))

    def fetch_commit_page(
        self,
        project_identifier: str,
        branch_name: str,
        page_number: int,
    ) -> list[CommitRecord]:
        path = f"/repos/{project_identifier}/commits"
        status, payload = self._get_json(
            path,
            params={"sha": branch_name, "page": page_number, "per_page": self.page_size},
        )
        if status == 409:
            # Empty repository: no history on any branch.
            return []
        if status == 404:
            raise CommitViewerError(
                ErrorCode.REMOTE_FETCH_FAILED,
                f"Commits for '{project_identifier}@{branch_name}' are no longer available.",
                "Re-open the project or checkout an existing branch.",
                {"project": project_identifier, "branch": branch_name, "page": page_number},
            )
        if not isinstance(payload, list):
            raise _malformed_payload(path)
        return [parse_commit_payload(item) for item in payload]

    def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> tuple[int, Any]:
        target = f"{self._path_prefix}{path}"
        if params:
            target = f"{target}?{urlencode(params)}"
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        logger.debug(
            "remote_request %s",
            json.dumps({"method": "GET", "target": target}, sort_keys=True),
        )

        connection = self._connection_factory(
            self._scheme, self._host, self._port, self._timeout_seconds
        )
        try:
            connection.request(method="GET", url=target, headers=headers)
            response = connection.getresponse()
            body = response.read()
            status = int(response.status)
        except (OSError, http.client.HTTPException) as exc:
            raise CommitViewerError(
                ErrorCode.REMOTE_FETCH_FAILED,
                f"Request to remote failed: {exc.__class__.__name__}",
                "Check network connectivity and retry; cached commits are kept.",
                {"target": target},
            ) from exc
        finally:
            connection.close()

        if status == 404:
            return status, None
        if status == 409 and path.endswith("/commits"):
            return status, None
        if not 200 <= status < 300:
            raise CommitViewerError(
                ErrorCode.REMOTE_FETCH_FAILED,
                f"Remote returned HTTP {status}.",
                "Retry later; the remote may be throttling or unavailable.",
                {"target": target, "http_status": status},
            )

        try:
            return status, json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise _malformed_payload(target) from exc


def _default_connection(scheme: str, host: str, port: int | None, timeout: float) -> Any:
    connection_class = (
        http.client.HTTPSConnection if scheme == "https" else http.client.HTTPConnection
    )
    return connection_class(host=host, port=port, timeout=timeout)


def _invalid_reference(reference: str) -> CommitViewerError:
    return CommitViewerError(
        ErrorCode.INVALID_INPUT,
        f"Unrecognized project reference '{reference}'",
        "Use owner/repository or a repository URL such as https://github.com/owner/repo.git.",
        {"reference": reference},
    )


def _malformed_payload(target: str) -> CommitViewerError:
    return CommitViewerError(
        ErrorCode.REMOTE_FETCH_FAILED,
        "Remote returned a malformed JSON payload.",
        "Retry the request; the remote response could not be parsed.",
        {"target": target},
    )
