"""Branch-scoped commit cache with head reconciliation and tail extension.

A :class:`BranchCache` always holds a contiguous, newest-first prefix of one
branch's remote history. :class:`CommitCacheEngine` keeps that prefix usable:

* ``reconcile_head`` prepends commits that landed on the remote since the
  cache was last touched, or empties the cache when its head can no longer
  be found near the remote head.
* ``ensure_length`` extends the cache backward in time, one remote page at a
  time, until it holds enough commits or the remote history runs out.
"""

from __future__ import annotations

import json
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from itertools import islice
from threading import Lock

from .constants import DEFAULT_RECONCILE_SCAN_PAGES, REMOTE_PAGE_SIZE
from .errors import ErrorCode, CommitViewerError
from .models import CommitRecord
from .remote import RemoteCommitSource

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BranchCache:
    """Cached newest-first commit prefix for one branch."""

    branch_name: str
    commits: deque[CommitRecord] = field(default_factory=deque)
    reset_count: int = 0
    _shas: set[str] = field(default_factory=set, init=False, repr=False, compare=False)
    lock: Lock = field(default_factory=Lock, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._shas = {commit.sha for commit in self.commits}

    def __len__(self) -> int:
        return len(self.commits)

    def head(self) -> CommitRecord | None:
        return self.commits[0] if self.commits else None

    def prepend(self, newer: list[CommitRecord]) -> None:
        """Insert ``newer`` (newest-first) in front of the cached head."""
        fresh = [commit for commit in newer if commit.sha not in self._shas]
        self.commits.extendleft(reversed(fresh))
        self._shas.update(commit.sha for commit in fresh)

    def append(self, older: list[CommitRecord]) -> int:
        """Append ``older`` (newest-first) after the cached tail; return count added."""
        added = 0
        for commit in older:
            if commit.sha in self._shas:
                continue
            self.commits.append(commit)
            self._shas.add(commit.sha)
            added += 1
        return added

    def clear(self) -> None:
        self.commits.clear()
        self._shas.clear()

    def slice(self, start: int, stop: int) -> list[CommitRecord]:
        return list(islice(self.commits, start, stop))


class CommitCacheEngine:
    """Reconcile and extend branch caches against a remote commit source."""

    def __init__(
        self,
        source: RemoteCommitSource,
        page_size: int | None = None,
        scan_pages: int = DEFAULT_RECONCILE_SCAN_PAGES,
    ) -> None:
        source_page_size = getattr(source, "page_size", REMOTE_PAGE_SIZE)
        resolved_page_size = page_size if page_size is not None else source_page_size
        if resolved_page_size < 1:
            raise ValueError("page_size must be >= 1.")
        if resolved_page_size != source_page_size:
            raise ValueError(
                f"page_size {resolved_page_size} does not match the source page size {source_page_size}."
            )
        if scan_pages < 1:
            raise ValueError("scan_pages must be >= 1.")
        self.source = source
        self.page_size = int(resolved_page_size)
        self.scan_pages = int(scan_pages)

    def get_page(
        self,
        project_identifier: str,
        cache: BranchCache,
        page: int,
        size: int,
    ) -> list[CommitRecord]:
        """Return commits ``[page*size - size, page*size)`` after refreshing the cache.

        The result is shorter than ``size`` (possibly empty) when the remote
        history ends before the requested window.
        """
        if page < 1 or size < 1:
            raise CommitViewerError(
                ErrorCode.INVALID_PAGE_REQUEST,
                f"Invalid page request (page={page}, size={size})",
                "Use page >= 1 and size >= 1.",
                {"page": page, "size": size},
            )
        end = page * size
        with cache.lock:
            self.reconcile_head(project_identifier, cache)
            self.ensure_length(project_identifier, cache, end)
            return cache.slice(end - size, end)

    def reconcile_head(self, project_identifier: str, cache: BranchCache) -> None:
        """Bring the cached head up to date with the remote head.

        Callers must hold ``cache.lock``.
        """
        head = cache.head()
        if head is None:
            return

        scanned: list[CommitRecord] = []
        match_index: int | None = None
        for page_number in range(1, self.scan_pages + 1):
            remote_page = self.source.fetch_commit_page(
                project_identifier, cache.branch_name, page_number
            )
            for offset, commit in enumerate(remote_page):
                if commit == head:
                    match_index = len(scanned) + offset
                    break
            if match_index is not None:
                scanned.extend(remote_page[: match_index - len(scanned)])
                break
            scanned.extend(remote_page)
            if not remote_page:
                break

        if match_index == 0:
            return
        if match_index is None:
            dropped = len(cache)
            cache.clear()
            cache.reset_count += 1
            logger.warning(
                "branch_cache_reset %s",
                json.dumps(
                    {
                        "event_type": "branch_cache_reset",
                        "project": project_identifier,
                        "branch": cache.branch_name,
                        "dropped_commits": dropped,
                        "scanned_commits": len(scanned),
                        "reset_count": cache.reset_count,
                    },
                    sort_keys=True,
                ),
            )
            return

        cache.prepend(scanned[:match_index])
        logger.debug(
            "branch_cache_advanced %s",
            json.dumps(
                {
                    "event_type": "branch_cache_advanced",
                    "project": project_identifier,
                    "branch": cache.branch_name,
                    "new_commits": match_index,
                    "cached_commits": len(cache),
                },
                sort_keys=True,
            ),
        )

    def ensure_length(self, project_identifier: str, cache: BranchCache, target_count: int) -> None:
        """Extend the cache backward until it holds ``target_count`` commits.

        Pages are fetched strictly in order. Commits appended before a failing
        fetch stay cached so a retry resumes from the longer cache. Callers
        must hold ``cache.lock``.
        """
        have = len(cache)
        if have >= target_count:
            return

        # A partially consumed page is fetched again; its cached entries are skipped.
        first_page = have // self.page_size + 1
        skip = have % self.page_size
        last_page = math.ceil(target_count / self.page_size)
        fetched_pages = 0

        for page_number in range(first_page, last_page + 1):
            remote_page = self.source.fetch_commit_page(
                project_identifier, cache.branch_name, page_number
            )
            fetched_pages += 1
            if not remote_page:
                break
            cache.append(remote_page[skip:])
            skip = 0

        logger.debug(
            "branch_cache_extended %s",
            json.dumps(
                {
                    "event_type": "branch_cache_extended",
                    "project": project_identifier,
                    "branch": cache.branch_name,
                    "target_count": target_count,
                    "fetched_pages": fetched_pages,
                    "cached_commits": len(cache),
                },
                sort_keys=True,
            ),
        )
