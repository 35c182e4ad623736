# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Acquisition orchestrator.

Walks the metadata directories, turns every file into a Corpus and, for every
program pair, fetches both repositories and copies the declared sources into

  <programs>/<pair name>/c-program/
  <programs>/<pair name>/rust-program/

Failure isolation works at three levels:
  - a metadata file that fails to parse is recorded and skipped
  - a pair side that fails to acquire or extract is recorded against the pair
  - the other side and every other pair still run

Only setup problems abort a run: an unreadable metadata directory or a
broken schema. Those propagate as MetadataDirectoryError / SchemaLoadError.
"""

import functools
import json
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import httpx
from tqdm import tqdm

from pairharvest.config.schema import PairHarvestConfig
from pairharvest.corpus.models import ProgramPair, ProgramSource
from pairharvest.corpus.parser import parse
from pairharvest.corpus.validator import MetadataValidator
from pairharvest.errors import DirectoryCreateError, MetadataDirectoryError, PairHarvestError
from pairharvest.extract.extractor import extract
from pairharvest.logging.logger import get_logger
from pairharvest.utils.filesystem import atomic_write
from pairharvest.utils.paths import ensure_directory, resolve_relative
from pairharvest.vcs.branches import BranchCache, BranchResolver
from pairharvest.vcs.progress import clone_progress_bar, no_progress
from pairharvest.vcs.repository import RepositoryCache
from pairharvest.vcs.tarball import TarballFetcher

_logger = get_logger(__name__)


@dataclass(frozen=True)
class FileFailure:
    path: str
    error: str


@dataclass(frozen=True)
class PairFailure:
    name: str
    side: str
    error: str


@dataclass
class AcquisitionReport:
    """Summary of one run. Mutated only by the Downloader, under its lock."""

    files_processed: int = 0
    files_succeeded: int = 0
    files_failed: int = 0
    pairs_downloaded: int = 0
    file_failures: list[FileFailure] = field(default_factory=list)
    pair_failures: list[PairFailure] = field(default_factory=list)
    repositories_fetched: int = 0
    repositories_reused: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(self.file_failures or self.pair_failures)

    @property
    def failed_pairs(self) -> list[str]:
        """Names of pairs with at least one failed side, in first-failure order."""
        return list(dict.fromkeys(failure.name for failure in self.pair_failures))

    def to_dict(self) -> dict[str, object]:
        return {
            "files": {
                "processed": self.files_processed,
                "succeeded": self.files_succeeded,
                "failed": self.files_failed,
            },
            "pairs": {
                "downloaded": self.pairs_downloaded,
                "failed": len(self.failed_pairs),
            },
            "repositories": {
                "fetched": self.repositories_fetched,
                "reused": self.repositories_reused,
            },
            "file_failures": [
                {"path": failure.path, "error": failure.error} for failure in self.file_failures
            ],
            "pair_failures": [
                {"name": failure.name, "side": failure.side, "error": failure.error}
                for failure in self.pair_failures
            ],
        }


@dataclass(frozen=True)
class DownloadSettings:
    """The parts of the config the orchestrator itself needs."""

    programs_root: Path
    allowed_extensions: tuple[str, ...] = (".c", ".h", ".rs")
    flatten_joiner: str = "__"
    max_workers: int = 1
    show_progress: bool = False
    report_file: Optional[Path] = None


def list_metadata_files(directory: Path) -> list[Path]:
    """Regular *.json files of a metadata directory, sorted."""
    try:
        entries = list(directory.iterdir())
    except OSError as err:
        raise MetadataDirectoryError(directory, str(err)) from err
    return sorted(path for path in entries if path.suffix == ".json" and path.is_file())


class Downloader:
    """Drives metadata parsing, repository acquisition and extraction for a run."""

    def __init__(
        self,
        settings: DownloadSettings,
        repository_cache: RepositoryCache,
        validator: MetadataValidator,
    ) -> None:
        self.settings = settings
        self.repository_cache = repository_cache
        self.validator = validator
        self._lock = threading.Lock()
        self._seen_names: set[str] = set()
        self._report = AcquisitionReport()

    def run(self, directories: Iterable[Path]) -> AcquisitionReport:
        """
        Download every program pair declared in the given directories.

        Raises:
            MetadataDirectoryError: a directory cannot be listed.
        """
        self._report = AcquisitionReport()
        self._seen_names = set()

        metadata_files: list[Path] = []
        for directory in directories:
            metadata_files.extend(list_metadata_files(directory))

        _logger.info(
            "Starting acquisition",
            extra={"metadata_files": len(metadata_files), "workers": self.settings.max_workers},
        )

        with tqdm(
            total=len(metadata_files),
            desc="Metadata files",
            unit="file",
            disable=not self.settings.show_progress,
        ) as bar:
            for metadata_file in metadata_files:
                self._process_file(metadata_file)
                bar.update(1)

        report = self._report
        report.repositories_fetched = self.repository_cache.fetched
        report.repositories_reused = self.repository_cache.reused

        if self.settings.report_file is not None:
            atomic_write(
                self.settings.report_file,
                json.dumps(report.to_dict(), indent=2) + "\n",
            )

        _logger.info(
            "Acquisition finished",
            extra={
                "files_processed": report.files_processed,
                "files_failed": report.files_failed,
                "pairs_downloaded": report.pairs_downloaded,
                "pairs_failed": len(report.failed_pairs),
            },
        )
        return report

    def _process_file(self, metadata_file: Path) -> None:
        self._report.files_processed += 1

        try:
            corpus = parse(metadata_file, self.validator)
        except PairHarvestError as err:
            _logger.error(
                "Failed to parse metadata file",
                extra={"path": str(metadata_file), "error": str(err)},
            )
            self._report.files_failed += 1
            self._report.file_failures.append(FileFailure(str(metadata_file), str(err)))
            return

        self._report.files_succeeded += 1
        _logger.info(
            "Parsed metadata file",
            extra={"path": str(metadata_file), "pairs": len(corpus)},
        )

        pairs = [pair for pair in corpus if self._claim_name(pair, metadata_file)]

        if self.settings.max_workers > 1 and len(pairs) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
                # list() re-raises anything unexpected from a worker.
                list(pool.map(self._download_pair, pairs))
        else:
            for pair in pairs:
                self._download_pair(pair)

    def _claim_name(self, pair: ProgramPair, metadata_file: Path) -> bool:
        """Reserve a pair name for this run; later duplicates are rejected."""
        report_file = self.settings.report_file
        pair_root = self.settings.programs_root / pair.name
        if report_file is not None and (report_file == pair_root or pair_root in report_file.parents):
            message = f"Program name '{pair.name}' clashes with the run report '{report_file}'"
            _logger.error("Skipping program pair named like the run report", extra={"pair": pair.name})
            self._record_pair_failure(pair.name, "pair", message)
            return False

        if pair.name not in self._seen_names:
            self._seen_names.add(pair.name)
            return True

        message = f"Duplicate program name '{pair.name}' in '{metadata_file}'"
        _logger.error("Skipping duplicate program pair", extra={"pair": pair.name})
        self._record_pair_failure(pair.name, "pair", message)
        return False

    def _download_pair(self, pair: ProgramPair) -> None:
        pair_root = self.settings.programs_root / pair.name
        _logger.info("Downloading program pair", extra={"pair": pair.name})

        succeeded = True
        for source in pair.sources:
            if not self._download_side(pair.name, pair_root, source):
                succeeded = False

        if succeeded:
            with self._lock:
                self._report.pairs_downloaded += 1
            _logger.info("Downloaded program pair", extra={"pair": pair.name})

    def _download_side(self, pair_name: str, pair_root: Path, source: ProgramSource) -> bool:
        destination = pair_root / source.language.program_directory

        try:
            try:
                ensure_directory(destination)
            except OSError as err:
                raise DirectoryCreateError(destination, str(err)) from err

            working_tree = self.repository_cache.acquire(source.language, source.repository_url)
            result = extract(
                working_tree,
                source.source_paths,
                destination,
                allowed_extensions=self.settings.allowed_extensions,
                joiner=self.settings.flatten_joiner,
            )
        except PairHarvestError as err:
            _logger.error(
                "Failed to download program",
                extra={
                    "pair": pair_name,
                    "side": source.language.value,
                    "url": source.repository_url,
                    "error": str(err),
                },
            )
            self._record_pair_failure(pair_name, source.language.value, str(err))
            return False

        _logger.debug(
            "Copied program sources",
            extra={"pair": pair_name, "side": source.language.value, "files": len(result.copied)},
        )
        return True

    def _record_pair_failure(self, name: str, side: str, error: str) -> None:
        with self._lock:
            self._report.pair_failures.append(PairFailure(name, side, error))


def metadata_directories(
    config: PairHarvestConfig,
    demo: bool = False,
    base: Optional[Path] = None,
) -> list[Path]:
    """The directories a download (or demo) run reads metadata from."""
    root = base if base is not None else Path.cwd()
    if demo:
        return [resolve_relative(config.paths.demo_metadata_directory, root)]
    return [
        resolve_relative(config.paths.project_metadata_directory, root),
        resolve_relative(config.paths.individual_metadata_directory, root),
    ]


def build_downloader(
    config: PairHarvestConfig,
    client: httpx.Client,
    base: Optional[Path] = None,
) -> Downloader:
    """
    Wire a Downloader from config.

    The caller owns `client` and closes it after the run.

    Raises:
        SchemaLoadError: the metadata schema is missing or invalid.
    """
    root = base if base is not None else Path.cwd()
    paths = config.paths
    acquisition = config.acquisition
    github = config.github

    validator = MetadataValidator.from_file(resolve_relative(paths.metadata_schema_file, root))

    resolver: Optional[BranchResolver] = None
    if acquisition.resolve_default_branch or acquisition.strategy == "tarball":
        resolver = BranchResolver(
            cache=BranchCache(),
            client=client,
            api_base=github.api_base,
            user_agent=github.user_agent,
            token=os.environ.get(github.token_env),
            hosts=github.hosts,
        )

    tarball_fetcher = None
    if acquisition.strategy == "tarball" and resolver is not None:
        tarball_fetcher = TarballFetcher(client, resolver)

    if acquisition.show_progress:
        progress_factory = functools.partial(clone_progress_bar, enabled=True)
    else:
        progress_factory = no_progress

    repository_cache = RepositoryCache(
        cache_root=resolve_relative(paths.repository_cache_directory, root),
        strategy=acquisition.strategy,
        depth=acquisition.clone_depth,
        branch_resolver=resolver,
        tarball_fetcher=tarball_fetcher,
        progress_factory=progress_factory,
    )

    settings = DownloadSettings(
        programs_root=resolve_relative(paths.programs_directory, root),
        allowed_extensions=tuple(config.extraction.allowed_extensions),
        flatten_joiner=config.extraction.flatten_joiner,
        max_workers=acquisition.max_workers,
        show_progress=acquisition.show_progress,
        report_file=resolve_relative(paths.report_file, root) if paths.report_file else None,
    )
    return Downloader(settings, repository_cache, validator)
