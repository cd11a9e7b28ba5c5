"""Command line interface for commit-viewer."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, TextIO

from pydantic import ValidationError

from .constants import DEFAULT_PAGE_SIZE
from .engine import CommitViewerEngine
from .errors import ErrorCode, CommitViewerError
from .models import CheckoutRequest, LogRequest, OpenProjectRequest, validation_error_code
from .runtime import build_registry, get_runtime_remote_defaults

SHELL_USAGE = {
    "clone": "$ git clone https://github.com/apache/spark.git",
    "checkout": "$ git checkout master",
    "branch": "$ git branch",
    "log": "$ git log [page] [size]",
}


def _print_payload(payload: dict[str, Any], as_json: bool, out: TextIO | None = None) -> None:
    out = out or sys.stdout
    if as_json:
        print(json.dumps(payload, indent=2), file=out)
        return

    status = payload.get("status", "unknown").upper()
    print(f"[{status}] {payload.get('message', '')}", file=out)

    if payload.get("status") == "error":
        if payload.get("error_code"):
            print(f"error_code: {payload['error_code']}", file=out)
        if payload.get("suggestion"):
            print(f"suggestion: {payload['suggestion']}", file=out)
        return

    for key in ("project", "current_branch", "branch", "page", "size", "count", "cached_commits"):
        if key in payload and payload[key] not in ("", None):
            print(f"{key}: {payload[key]}", file=out)

    for branch in payload.get("branches", []):
        marker = "*" if branch.get("current") else "-"
        print(f"{marker} {branch.get('name')} cached={branch.get('cached_commits')}", file=out)

    for commit in payload.get("commits", []):
        _print_commit(commit, out)


def _print_commit(commit: dict[str, Any], out: TextIO) -> None:
    print(f"sha: {commit.get('sha', '')}", file=out)
    print(f"author: {commit.get('author', '')}", file=out)
    print(f"date: {commit.get('date', '')}", file=out)
    print(f"message: {commit.get('message', '')}", file=out)
    print("\n-------------------------------\n", file=out)


def _error_payload(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, CommitViewerError):
        return exc.to_payload()
    if isinstance(exc, ValidationError):
        return {
            "status": "error",
            "error_code": validation_error_code(exc).value,
            "message": "Input validation failed",
            "suggestion": "Check command arguments and constraints.",
            "details": {"errors": exc.errors(include_context=False, include_input=False)},
        }
    return {
        "status": "error",
        "error_code": ErrorCode.INTERNAL_ERROR.value,
        "message": str(exc),
        "suggestion": "Retry with --verbose for diagnostics.",
        "details": {},
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="commit-viewer",
        description="Browse remote commit history page by page",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    log = subparsers.add_parser("log", help="Show one page of a branch's commits")
    log.add_argument("reference", help="Repository URL or owner/repository")
    log.add_argument("-b", "--branch", default="", help="Branch name (defaults to remote default)")
    log.add_argument("-p", "--page", type=int, default=1, help="1-based page number")
    log.add_argument("-s", "--size", type=int, default=DEFAULT_PAGE_SIZE, help="Commits per page")
    log.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    branches = subparsers.add_parser("branches", help="Open a project and list its cached branches")
    branches.add_argument("reference", help="Repository URL or owner/repository")
    branches.add_argument("-b", "--branch", default="", help="Checkout this branch before listing")
    branches.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    status = subparsers.add_parser("status", help="Open a project and show its default branch")
    status.add_argument("reference", help="Repository URL or owner/repository")
    status.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    subparsers.add_parser(
        "shell",
        help="Interactive session: git clone/checkout/branch/log, 'exit' to quit",
    )
    return parser


def run_shell(engine: CommitViewerEngine, stdin: TextIO, out: TextIO) -> int:
    """Read ``git <command>`` lines until EOF or ``exit``; the cache lives for the session."""
    print("Program started!", file=out)
    print("Insert your input:", file=out)
    for raw_line in stdin:
        line = raw_line.strip()
        if line == "exit":
            break
        if line:
            _run_shell_command(engine, line.split(), out)
        print("Insert your input:", file=out)
    return 0


def _run_shell_command(engine: CommitViewerEngine, words: list[str], out: TextIO) -> None:
    if len(words) < 2 or words[0] != "git":
        print("Invalid command", file=out)
        return

    command, args = words[1], words[2:]
    if command not in SHELL_USAGE:
        print(f"Invalid command, valid commands: {', '.join(sorted(SHELL_USAGE))}", file=out)
        return
    expected_args = {"clone": (1, 1), "checkout": (1, 1), "branch": (0, 0), "log": (0, 2)}
    low, high = expected_args[command]
    if not low <= len(args) <= high:
        print("Command invalid, see valid example below:", file=out)
        print(SHELL_USAGE[command], file=out)
        return
    if command != "clone" and not engine.registry.is_project_open:
        print("Please clone a project first.", file=out)
        return

    try:
        if command == "clone":
            response = engine.open_project(OpenProjectRequest(reference=args[0]))
            print(f"Project started with URL: {args[0]}", file=out)
            if response.current_branch:
                print(f"Current branch: {response.current_branch}", file=out)
        elif command == "checkout":
            response = engine.checkout_branch(CheckoutRequest(branch=args[0]))
            print(f"Switched to branch: {response.current_branch}", file=out)
        elif command == "branch":
            print("The list below shows the branch cached locally:", file=out)
            for branch in engine.list_branches().branches:
                prefix = "[current] " if branch["current"] else ""
                print(f"{prefix}{branch['name']}", file=out)
        else:
            page = int(args[0]) if args else 1
            size = int(args[1]) if len(args) > 1 else DEFAULT_PAGE_SIZE
            log_response = engine.get_log(LogRequest(page=page, size=size))
            for commit in log_response.commits:
                _print_commit(commit.model_dump(mode="json"), out)
    except (CommitViewerError, ValidationError) as exc:
        _print_payload(_error_payload(exc), as_json=False, out=out)
    except ValueError:
        print("Command invalid, see valid example below:", file=out)
        print(SHELL_USAGE[command], file=out)


def main(
    argv: list[str] | None = None,
    engine: CommitViewerEngine | None = None,
    stdin: TextIO | None = None,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    as_json = bool(getattr(args, "json", False))
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    try:
        if engine is None:
            try:
                engine = CommitViewerEngine(build_registry(get_runtime_remote_defaults()))
            except ValueError as exc:
                raise CommitViewerError(
                    ErrorCode.INVALID_INPUT,
                    str(exc),
                    "Fix the COMMIT_VIEWER_* environment variables or settings file.",
                ) from exc

        if args.command == "shell":
            return run_shell(engine, stdin or sys.stdin, sys.stdout)

        open_response = engine.open_project(OpenProjectRequest(reference=args.reference))
        if args.command == "branches":
            if args.branch:
                engine.checkout_branch(CheckoutRequest(branch=args.branch))
            response = engine.list_branches().model_dump(mode="json")
            response["message"] = open_response.message
        elif args.command == "status":
            response = engine.get_status().model_dump(mode="json")
            response["message"] = open_response.message
        else:
            if args.branch:
                engine.checkout_branch(CheckoutRequest(branch=args.branch))
            response = engine.get_log(LogRequest(page=args.page, size=args.size)).model_dump(
                mode="json"
            )

        _print_payload(response, as_json=as_json)
        return 0
    except Exception as exc:  # noqa: BLE001
        _print_payload(_error_payload(exc), as_json=as_json)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
