"""Project-wide constants for commit-viewer."""

REMOTE_PAGE_SIZE = 30
MAX_REMOTE_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = REMOTE_PAGE_SIZE
DEFAULT_RECONCILE_SCAN_PAGES = 1

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 10.0
USER_AGENT = "commit-viewer/0.1.0"

MISSING_FIELD = "n/a"
