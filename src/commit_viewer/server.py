"""MCP server entrypoint and tool definitions for commit-viewer."""

from __future__ import annotations

import argparse
import json
import logging
import time
import uuid
from typing import Annotated, Any, Callable

from mcp.server.fastmcp import FastMCP
from pydantic import Field, ValidationError

from .constants import DEFAULT_PAGE_SIZE
from .engine import CommitViewerEngine
from .errors import ErrorCode, CommitViewerError
from .models import CheckoutRequest, LogRequest, OpenProjectRequest, validation_error_code
from .runtime import (
    TRANSPORTS,
    build_registry,
    get_allow_public_http_default,
    get_runtime_defaults,
    get_runtime_remote_defaults,
    validate_streamable_http_binding,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    name="commit-viewer",
    instructions=(
        "Browse the commit history of a remote repository page by page. "
        "Use commits_open with a repository URL or owner/repository, "
        "commits_checkout to switch branch, commits_branches to list cached branches, "
        "and commits_log to read a page of commits (newest first)."
    ),
)

engine: CommitViewerEngine | None = None

READ_ONLY_TOOL_ANNOTATIONS = {
    "readOnlyHint": True,
    "idempotentHint": True,
    "destructiveHint": False,
    "openWorldHint": True,
}

SESSION_TOOL_ANNOTATIONS = {
    "readOnlyHint": False,
    "idempotentHint": True,
    "destructiveHint": False,
    "openWorldHint": True,
}


def _register_tool(annotations: dict[str, bool]):
    """Register tool with annotations, falling back for SDKs without annotation support."""

    def decorator(func):
        try:
            return mcp.tool(annotations=annotations)(func)
        except TypeError:
            logger.debug("FastMCP tool annotations not supported; registering %s without them.", func.__name__)
            return mcp.tool()(func)

    return decorator


def _get_engine() -> CommitViewerEngine:
    global engine
    if engine is None:
        try:
            engine = CommitViewerEngine(build_registry(get_runtime_remote_defaults()))
        except ValueError as exc:
            raise CommitViewerError(
                ErrorCode.INVALID_INPUT,
                str(exc),
                "Fix the COMMIT_VIEWER_* environment variables or settings file.",
            ) from exc
    return engine


def _error_payload_from_exception(exc: Exception) -> dict[str, Any]:
    """Convert internal exceptions into stable MCP error payloads."""
    if isinstance(exc, CommitViewerError):
        return exc.to_payload()
    if isinstance(exc, ValidationError):
        return {
            "status": "error",
            "error_code": validation_error_code(exc).value,
            "message": "Input validation failed",
            "suggestion": "Check field constraints and request schema.",
            "details": {"errors": exc.errors(include_context=False, include_input=False)},
        }
    logger.exception("Unhandled server exception", exc_info=exc)
    return {
        "status": "error",
        "error_code": ErrorCode.INTERNAL_ERROR.value,
        "message": str(exc),
        "suggestion": "Check server logs and retry the operation.",
        "details": {},
    }


def _build_correlation_id() -> str:
    """Generate short operation correlation IDs for diagnostics."""
    return uuid.uuid4().hex[:12]


def _log_tool_phase(
    *,
    correlation_id: str,
    tool_name: str,
    phase: str,
    status: str,
    elapsed_seconds: float,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit structured phase-level diagnostics for tool execution."""
    payload: dict[str, Any] = {
        "event_type": "mcp_tool_phase",
        "correlation_id": correlation_id,
        "tool_name": tool_name,
        "phase": phase,
        "status": status,
        "elapsed_ms": round(elapsed_seconds * 1000, 3),
    }
    if details:
        payload["details"] = details
    logger.info("mcp_tool_phase %s", json.dumps(payload, ensure_ascii=True, sort_keys=True))


def _run_tool(
    tool_name: str,
    request_payload: dict[str, Any],
    operation: Callable[[], dict[str, Any]],
) -> dict[str, Any]:
    """Execute a tool operation, tagging the result with a correlation id."""
    start = time.perf_counter()
    correlation_id = _build_correlation_id()
    logger.debug(
        "mcp_tool_request %s",
        json.dumps(
            {"correlation_id": correlation_id, "tool_name": tool_name, "request": request_payload},
            ensure_ascii=True,
            sort_keys=True,
        ),
    )
    try:
        response_payload = dict(operation())
        status = "ok"
        details: dict[str, Any] | None = None
    except Exception as exc:  # noqa: BLE001
        response_payload = _error_payload_from_exception(exc)
        status = "error"
        details = {
            "exception": exc.__class__.__name__,
            "error_code": response_payload.get("error_code"),
        }

    response_payload["correlation_id"] = correlation_id
    _log_tool_phase(
        correlation_id=correlation_id,
        tool_name=tool_name,
        phase="total",
        status=status,
        elapsed_seconds=time.perf_counter() - start,
        details=details,
    )
    return response_payload


@_register_tool(SESSION_TOOL_ANNOTATIONS)
def commits_open(
    reference: Annotated[
        str,
        Field(
            min_length=1,
            max_length=500,
            description="Repository URL (https://github.com/owner/repo.git) or owner/repository",
        ),
    ],
) -> dict[str, Any]:
    """Open a remote project; its default branch becomes current."""

    def _operation() -> dict[str, Any]:
        request = OpenProjectRequest(reference=reference)
        return _get_engine().open_project(request).model_dump(mode="json")

    return _run_tool("commits_open", {"reference": reference}, _operation)


@_register_tool(SESSION_TOOL_ANNOTATIONS)
def commits_checkout(
    branch: Annotated[str, Field(min_length=1, max_length=255, description="Remote branch name")],
) -> dict[str, Any]:
    """Switch the current branch of the open project."""

    def _operation() -> dict[str, Any]:
        request = CheckoutRequest(branch=branch)
        return _get_engine().checkout_branch(request).model_dump(mode="json")

    return _run_tool("commits_checkout", {"branch": branch}, _operation)


@_register_tool(READ_ONLY_TOOL_ANNOTATIONS)
def commits_branches() -> dict[str, Any]:
    """List branches cached locally for the open project."""

    def _operation() -> dict[str, Any]:
        return _get_engine().list_branches().model_dump(mode="json")

    return _run_tool("commits_branches", {}, _operation)


@_register_tool(READ_ONLY_TOOL_ANNOTATIONS)
def commits_log(
    page: Annotated[int, Field(description="1-based page number")] = 1,
    size: Annotated[int, Field(description="Commits per page")] = DEFAULT_PAGE_SIZE,
    url: Annotated[
        str | None,
        Field(description="Optional repository reference to open before reading"),
    ] = None,
) -> dict[str, Any]:
    """Return one page of the current branch's commits, newest first."""
    request_payload = {"page": page, "size": size, "url": url}

    def _operation() -> dict[str, Any]:
        request = LogRequest(reference=url or None, page=page, size=size)
        return _get_engine().get_log(request).model_dump(mode="json")

    return _run_tool("commits_log", request_payload, _operation)


@_register_tool(READ_ONLY_TOOL_ANNOTATIONS)
def commits_status() -> dict[str, Any]:
    """Show the open project, current branch and cache size."""

    def _operation() -> dict[str, Any]:
        return _get_engine().get_status().model_dump(mode="json")

    return _run_tool("commits_status", {}, _operation)


@_register_tool(READ_ONLY_TOOL_ANNOTATIONS)
def health() -> dict[str, Any]:
    """Liveness check."""
    logger.debug("received health check")
    return {"status": "success", "message": "ok"}


def main(argv: list[str] | None = None) -> None:
    """Run the commit-viewer MCP server in stdio or streamable HTTP mode."""
    parser = argparse.ArgumentParser(description="commit-viewer MCP server")
    try:
        transport_default, host_default, port_default = get_runtime_defaults()
        allow_public_http_default = get_allow_public_http_default()
        remote_defaults = get_runtime_remote_defaults()
    except ValueError as exc:
        parser.error(str(exc))
    parser.add_argument(
        "--transport",
        choices=sorted(TRANSPORTS),
        default=transport_default,
        help="Server transport mode (default: stdio).",
    )
    parser.add_argument("--host", default=host_default, help="Host for streamable HTTP transport.")
    parser.add_argument(
        "--port",
        type=int,
        default=port_default,
        help="Port for streamable HTTP transport.",
    )
    parser.add_argument(
        "--allow-public-http",
        action=argparse.BooleanOptionalAction,
        default=allow_public_http_default,
        help="Allow non-loopback streamable-http host binding.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level for server diagnostics.",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate runtime settings and exit without starting server transport.",
    )
    args = parser.parse_args(argv)

    try:
        validate_streamable_http_binding(
            transport=args.transport,
            host=args.host,
            allow_public_http=args.allow_public_http,
        )
    except ValueError as exc:
        parser.error(str(exc))

    logging.basicConfig(level=getattr(logging, args.log_level))

    global engine
    engine = CommitViewerEngine(build_registry(remote_defaults))
    mcp.settings.host = args.host
    mcp.settings.port = int(args.port)

    if args.check_config:
        print("Configuration is valid.")
        return

    if args.transport == "stdio":
        mcp.run()
        return
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
