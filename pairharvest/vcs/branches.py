# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Default-branch resolution through the hosting provider's REST API.

The API is rate limited, so every answer is memoized in a BranchCache keyed
by (owner, name). The cache is an explicit object: the downloader creates one
per run and hands it to the resolver, and tests start from an empty one.

Concurrency: callers asking for the same uncached key are serialized on a
per-key lock, so only the first one talks to the API and the rest read its
answer. Callers for different keys never wait on each other. A failed lookup
stores nothing, so a later call retries.
"""

import threading
from typing import Iterable, Optional

import httpx

from pairharvest.errors import BranchResolutionError, RepositoryUrlError
from pairharvest.logging.logger import get_logger
from pairharvest.vcs.urls import DEFAULT_HOSTS, is_hosted, owner_and_name

_logger = get_logger(__name__)

BranchKey = tuple[str, str]


class BranchCache:
    """Thread-safe (owner, name) -> default branch mapping. Never evicts."""

    def __init__(self) -> None:
        self._branches: dict[BranchKey, str] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[BranchKey, threading.Lock] = {}

    def get(self, key: BranchKey) -> Optional[str]:
        with self._lock:
            return self._branches.get(key)

    def put(self, key: BranchKey, branch: str) -> None:
        with self._lock:
            self._branches[key] = branch

    def key_lock(self, key: BranchKey) -> threading.Lock:
        """The lock that serializes lookups for one key."""
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._branches

    def __len__(self) -> int:
        with self._lock:
            return len(self._branches)


class BranchResolver:
    """Looks up default branches, one API request per repository per run."""

    def __init__(
        self,
        cache: BranchCache,
        client: httpx.Client,
        api_base: str = "https://api.github.com",
        user_agent: str = "c-rust-program-pairs",
        token: Optional[str] = None,
        hosts: Iterable[str] = DEFAULT_HOSTS,
    ) -> None:
        self.cache = cache
        self._client = client
        self._api_base = api_base.rstrip("/")
        self._hosts = tuple(hosts)
        self._headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    @property
    def hosts(self) -> tuple[str, ...]:
        return self._hosts

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    @property
    def api_base(self) -> str:
        return self._api_base

    def supports(self, url: str) -> bool:
        return is_hosted(url, self._hosts)

    def default_branch(self, url: str) -> str:
        """
        Return the default branch of a hosted repository.

        Raises:
            RepositoryUrlError: the URL is not on a recognized host.
            BranchResolutionError: the API call failed or returned garbage.
        """
        if not self.supports(url):
            raise RepositoryUrlError(f"URL '{url}' is not on a recognized hosting domain")

        key = owner_and_name(url, self._hosts)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        with self.cache.key_lock(key):
            # Another caller may have filled the key while we waited.
            cached = self.cache.get(key)
            if cached is not None:
                return cached

            branch = self._fetch_default_branch(*key)
            self.cache.put(key, branch)
            return branch

    def _fetch_default_branch(self, owner: str, name: str) -> str:
        api_url = f"{self._api_base}/repos/{owner}/{name}"
        _logger.debug("Resolving default branch", extra={"api_url": api_url})

        try:
            response = self._client.get(api_url, headers=self._headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as err:
            raise BranchResolutionError(
                api_url, f"HTTP {err.response.status_code}"
            ) from err
        except httpx.HTTPError as err:
            raise BranchResolutionError(api_url, str(err)) from err
        except ValueError as err:
            raise BranchResolutionError(api_url, f"malformed response body: {err}") from err

        branch = body.get("default_branch") if isinstance(body, dict) else None
        if not isinstance(branch, str) or not branch:
            raise BranchResolutionError(api_url, "response has no default_branch field")

        _logger.info(
            "Resolved default branch",
            extra={"owner": owner, "repository": name, "branch": branch},
        )
        return branch
