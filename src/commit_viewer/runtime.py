"""Runtime configuration helpers."""

from __future__ import annotations

import ipaddress
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from .cache import CommitCacheEngine
from .constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_RECONCILE_SCAN_PAGES,
    DEFAULT_TIMEOUT_SECONDS,
    MAX_REMOTE_PAGE_SIZE,
    REMOTE_PAGE_SIZE,
)
from .registry import ProjectRegistry
from .remote import GitHubCommitSource

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}
TRANSPORTS = {"stdio", "streamable-http"}

REMOTE_ENV_KEYS = {
    "api_url": "COMMIT_VIEWER_API_URL",
    "timeout_seconds": "COMMIT_VIEWER_TIMEOUT_SECONDS",
    "page_size": "COMMIT_VIEWER_REMOTE_PAGE_SIZE",
    "reconcile_scan_pages": "COMMIT_VIEWER_RECONCILE_SCAN_PAGES",
}


@dataclass(frozen=True)
class RuntimeRemoteDefaults:
    """Remote source and cache settings sourced from environment or settings file."""

    api_url: str
    timeout_seconds: float
    page_size: int
    reconcile_scan_pages: int


def get_runtime_defaults(env: Mapping[str, str] | None = None) -> tuple[str, str, int]:
    """Validate and return MCP transport defaults from environment variables."""
    source = os.environ if env is None else env

    transport_default = source.get("COMMIT_VIEWER_TRANSPORT", "stdio")
    if transport_default not in TRANSPORTS:
        raise ValueError("COMMIT_VIEWER_TRANSPORT must be 'stdio' or 'streamable-http'.")

    host_default = source.get("COMMIT_VIEWER_HOST", "127.0.0.1")

    port_env = source.get("COMMIT_VIEWER_PORT", "8080")
    try:
        port_default = int(port_env)
    except ValueError as exc:
        raise ValueError("COMMIT_VIEWER_PORT must be an integer.") from exc
    if not (1 <= port_default <= 65535):
        raise ValueError("COMMIT_VIEWER_PORT must be between 1 and 65535.")

    validate_streamable_http_binding(
        transport=transport_default,
        host=host_default,
        allow_public_http=get_allow_public_http_default(source),
    )

    return transport_default, host_default, port_default


def get_allow_public_http_default(env: Mapping[str, str] | None = None) -> bool:
    source = os.environ if env is None else env
    return _parse_bool_env(source=source, key="COMMIT_VIEWER_ALLOW_PUBLIC_HTTP", default=False)


def get_runtime_remote_defaults(env: Mapping[str, str] | None = None) -> RuntimeRemoteDefaults:
    """Return remote settings: environment variables override the optional settings file."""
    source = os.environ if env is None else env
    merged: dict[str, str] = {}

    config_file = source.get("COMMIT_VIEWER_CONFIG_FILE", "").strip()
    if config_file:
        file_values = load_settings_file(Path(config_file))
        for name, env_key in REMOTE_ENV_KEYS.items():
            if name in file_values and file_values[name] is not None:
                merged[env_key] = str(file_values[name])

    for env_key in REMOTE_ENV_KEYS.values():
        raw = source.get(env_key)
        if raw is not None and str(raw).strip():
            merged[env_key] = str(raw)

    api_url = merged.get("COMMIT_VIEWER_API_URL", DEFAULT_API_BASE_URL).strip()
    _validate_http_url(api_url, field_name="COMMIT_VIEWER_API_URL")

    defaults = RuntimeRemoteDefaults(
        api_url=api_url,
        timeout_seconds=_parse_float_env(
            source=merged,
            key="COMMIT_VIEWER_TIMEOUT_SECONDS",
            default=DEFAULT_TIMEOUT_SECONDS,
            min_value=0.1,
        ),
        page_size=_parse_int_env(
            source=merged,
            key="COMMIT_VIEWER_REMOTE_PAGE_SIZE",
            default=REMOTE_PAGE_SIZE,
            min_value=1,
        ),
        reconcile_scan_pages=_parse_int_env(
            source=merged,
            key="COMMIT_VIEWER_RECONCILE_SCAN_PAGES",
            default=DEFAULT_RECONCILE_SCAN_PAGES,
            min_value=1,
        ),
    )
    if defaults.page_size > MAX_REMOTE_PAGE_SIZE:
        raise ValueError(f"COMMIT_VIEWER_REMOTE_PAGE_SIZE must be <= {MAX_REMOTE_PAGE_SIZE}.")
    return defaults


def load_settings_file(path: Path) -> dict[str, Any]:
    """Read the ``remote:`` section of a YAML settings file."""
    try:
        with path.expanduser().open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except OSError as exc:
        raise ValueError(f"Unable to read settings file: {path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Settings file is not valid YAML: {path}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError("Settings file must contain a mapping.")
    remote = loaded.get("remote", {})
    if remote is None:
        return {}
    if not isinstance(remote, dict):
        raise ValueError("Settings file 'remote' section must be a mapping.")
    unknown = sorted(set(remote) - set(REMOTE_ENV_KEYS))
    if unknown:
        raise ValueError(f"Unknown remote settings: {', '.join(unknown)}.")
    return dict(remote)


def build_registry(defaults: RuntimeRemoteDefaults) -> ProjectRegistry:
    """Wire a GitHub-backed registry from validated settings."""
    source = GitHubCommitSource(
        base_url=defaults.api_url,
        timeout_seconds=defaults.timeout_seconds,
        page_size=defaults.page_size,
    )
    cache_engine = CommitCacheEngine(
        source,
        page_size=defaults.page_size,
        scan_pages=defaults.reconcile_scan_pages,
    )
    return ProjectRegistry(source, cache_engine=cache_engine)


def validate_streamable_http_binding(transport: str, host: str, allow_public_http: bool) -> None:
    """Validate host exposure policy for streamable HTTP transport."""
    if transport != "streamable-http":
        return
    if not host.strip():
        raise ValueError("Host must not be empty when using streamable-http transport.")
    if not is_loopback_host(host) and not allow_public_http:
        raise ValueError(
            "Refusing non-loopback streamable-http binding without explicit opt-in. "
            "Set --allow-public-http or COMMIT_VIEWER_ALLOW_PUBLIC_HTTP=true."
        )


def is_loopback_host(host: str) -> bool:
    """Return whether a host value maps to a loopback interface."""
    normalized = host.strip().lower().strip("[]")
    if normalized in {"localhost", "127.0.0.1", "::1"}:
        return True
    try:
        return ipaddress.ip_address(normalized).is_loopback
    except ValueError:
        return False


def _parse_bool_env(source: Mapping[str, str], key: str, default: bool) -> bool:
    raw = source.get(key)
    if raw is None or not str(raw).strip():
        return default
    normalized = str(raw).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"{key} must be a boolean value (true/false).")


def _parse_int_env(
    source: Mapping[str, str],
    key: str,
    default: int,
    min_value: int | None = None,
) -> int:
    raw = source.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        parsed = int(str(raw).strip())
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer.") from exc
    if min_value is not None and parsed < min_value:
        raise ValueError(f"{key} must be >= {min_value}.")
    return parsed


def _parse_float_env(
    source: Mapping[str, str],
    key: str,
    default: float,
    min_value: float | None = None,
) -> float:
    raw = source.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        parsed = float(str(raw).strip())
    except ValueError as exc:
        raise ValueError(f"{key} must be a number.") from exc
    if not math.isfinite(parsed):
        raise ValueError(f"{key} must be a finite number.")
    if min_value is not None and parsed < min_value:
        raise ValueError(f"{key} must be >= {min_value}.")
    return parsed


def _validate_http_url(value: str, field_name: str) -> None:
    parsed = urlparse(value.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{field_name} must be a valid http(s) URL.")
