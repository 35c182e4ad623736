# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Repository cache.

This is the acquisition stage of the pipeline. Every repository lives at

  <cache_root>/<language>/<repository name>

and the rule is simple: if that directory exists it is reused exactly as it
is, otherwise the repository is fetched once. There is no freshness check and
no update. The cache grows without bound and is only cleared by a reset.

A fetch never writes into the final path directly. It goes into a hidden
staging directory beside it and is renamed into place only after it
succeeded, so an interrupted or failed clone can never be mistaken for a
cached one on the next run.

Nothing from a cloned repository is ever executed. Clones are shallow
(--depth 1, single branch) because only the latest tree is needed.
"""

import shutil
import tempfile
import threading
from pathlib import Path
from typing import Callable, Literal, Optional

from git import GitError, InvalidGitRepositoryError, NoSuchPathError, RemoteProgress, Repo

from pairharvest.corpus.models import Language
from pairharvest.errors import (
    BranchResolutionError,
    CacheEntryError,
    CloneError,
    DirectoryCreateError,
)
from pairharvest.logging.logger import get_logger
from pairharvest.vcs.branches import BranchResolver
from pairharvest.vcs.progress import CloneProgress, ProgressFactory, no_progress
from pairharvest.vcs.tarball import TarballFetcher
from pairharvest.vcs.urls import repository_name

_logger = get_logger(__name__)

Cloner = Callable[[str, Path, Optional[str], int, Optional[RemoteProgress]], None]


def git_clone(
    repository_url: str,
    destination: Path,
    branch: Optional[str] = None,
    depth: int = 1,
    progress: Optional[RemoteProgress] = None,
) -> None:
    """
    Shallow-clone a repository into `destination` with GitPython.

    `branch=None` clones whatever the remote's HEAD points at.

    Raises:
        CloneError: git failed, with git's stderr as the reason.
    """
    options: dict[str, object] = {"depth": depth, "single_branch": True}
    if branch:
        options["branch"] = branch

    try:
        Repo.clone_from(repository_url, str(destination), progress=progress, **options)
    except GitError as err:
        stderr = getattr(err, "stderr", "") or ""
        reason = stderr.strip() or str(err)
        raise CloneError(repository_url, reason) from err


class RepositoryCache:
    """
    Maps (language, repository) to a local working tree, fetching at most once.

    Acquisitions of the same (language, name) key are serialized on a per-key
    lock: when two pairs share a repository, the second caller waits for the
    first and then reuses its entry. Different repositories never block each
    other.
    """

    def __init__(
        self,
        cache_root: Path,
        strategy: Literal["clone", "tarball"] = "clone",
        cloner: Cloner = git_clone,
        depth: int = 1,
        branch_resolver: Optional[BranchResolver] = None,
        tarball_fetcher: Optional[TarballFetcher] = None,
        progress_factory: ProgressFactory = no_progress,
    ) -> None:
        if strategy == "tarball" and tarball_fetcher is None:
            raise ValueError("The tarball strategy needs a TarballFetcher")

        self.cache_root = cache_root
        self._strategy = strategy
        self._cloner = cloner
        self._depth = depth
        self._branch_resolver = branch_resolver
        # Only consulted by the tarball strategy.
        self._tarball_fetcher = tarball_fetcher if strategy == "tarball" else None
        self._progress_factory = progress_factory

        self._guard = threading.Lock()
        self._key_locks: dict[tuple[str, str], threading.Lock] = {}
        self.fetched = 0
        self.reused = 0

    def entry_path(self, language: Language, repository_url: str) -> Path:
        """Where the repository lives (or would live) in the cache."""
        return self.cache_root / language.value / repository_name(repository_url)

    def acquire(self, language: Language, repository_url: str) -> Path:
        """
        Return the working tree for a repository, fetching it if not cached.

        Raises:
            RepositoryUrlError: no repository name can be derived from the URL.
            CloneError / TarballError / BranchResolutionError: the fetch failed.
            CacheEntryError: a cached entry exists but cannot be opened.
            DirectoryCreateError: the cache directory cannot be written.
        """
        entry = self.entry_path(language, repository_url)

        with self._key_lock(language.value, entry.name):
            if entry.exists():
                _logger.debug(
                    "Repository already cached, reusing",
                    extra={"repository": entry.name, "path": str(entry)},
                )
                with self._guard:
                    self.reused += 1
                return self._open(entry)

            self._populate(repository_url, entry)
            with self._guard:
                self.fetched += 1
            return self._open(entry)

    def _key_lock(self, language: str, name: str) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get((language, name))
            if lock is None:
                lock = threading.Lock()
                self._key_locks[(language, name)] = lock
            return lock

    def _open(self, entry: Path) -> Path:
        """Resolve a cache entry to its working tree."""
        if not entry.is_dir():
            raise CacheEntryError(entry, "not a directory")

        # Tarball entries (and anything else without .git) are plain trees.
        if not (entry / ".git").exists():
            return entry

        try:
            repository = Repo(str(entry))
        except (InvalidGitRepositoryError, NoSuchPathError) as err:
            raise CacheEntryError(entry, str(err)) from err

        working_tree = repository.working_tree_dir
        if working_tree is None:
            raise CacheEntryError(entry, "repository has no working tree")
        return Path(working_tree)

    def _resolve_branch(self, repository_url: str) -> Optional[str]:
        if self._branch_resolver is None or not self._branch_resolver.supports(repository_url):
            return None
        try:
            return self._branch_resolver.default_branch(repository_url)
        except BranchResolutionError as err:
            _logger.warning(
                "Could not resolve default branch, cloning remote HEAD",
                extra={"url": repository_url, "error": str(err)},
            )
            return None

    def _populate(self, repository_url: str, entry: Path) -> None:
        """Fetch into a staging directory, then rename it into place."""
        try:
            entry.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(
                tempfile.mkdtemp(prefix=f".{entry.name}.", suffix=".partial", dir=str(entry.parent))
            )
        except OSError as err:
            raise DirectoryCreateError(entry.parent, str(err)) from err

        _logger.info(
            "Fetching repository",
            extra={"url": repository_url, "strategy": self._strategy, "path": str(entry)},
        )

        try:
            if self._tarball_fetcher is not None:
                self._tarball_fetcher.fetch(repository_url, staging)
            else:
                branch = self._resolve_branch(repository_url)
                with self._progress_factory(f"Cloning {entry.name}") as report:
                    self._cloner(
                        repository_url, staging, branch, self._depth, CloneProgress(report)
                    )
            try:
                staging.rename(entry)
            except OSError as err:
                raise CacheEntryError(entry, f"cannot move fetched tree into place: {err}") from err
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        _logger.info("Repository cached", extra={"url": repository_url, "path": str(entry)})
