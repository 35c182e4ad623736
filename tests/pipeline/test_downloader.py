# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the acquisition orchestrator.

Repositories are served by a fake cloner keyed on URL, so a whole run from
metadata files to program directories happens on the local filesystem.
"""

import json
import shutil
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest
from git import RemoteProgress

from conftest import SCHEMA_PATH, make_individual_pair, make_project_document, requires_git
from pairharvest.config.schema import PairHarvestConfig
from pairharvest.corpus.validator import MetadataValidator
from pairharvest.errors import CloneError, MetadataDirectoryError, SchemaLoadError
from pairharvest.pipeline.downloader import (
    DownloadSettings,
    Downloader,
    build_downloader,
    metadata_directories,
)
from pairharvest.vcs.branches import BranchCache, BranchResolver
from pairharvest.vcs.repository import RepositoryCache
from pairharvest.vcs.tarball import TarballFetcher

C_URL = "https://github.com/coreutils/coreutils"
RUST_URL = "https://github.com/uutils/coreutils"

REPOSITORIES: dict[str, dict[str, str]] = {
    C_URL: {
        "src/cat.c": "int cat;",
        "src/head.c": "int head;",
        "src/yes.c": "int yes;",
        "src/true.c": "int true_;",
        "src/false.c": "int false_;",
        "src/tail.c": "int tail;",
        "src/wc.c": "int wc;",
    },
    RUST_URL: {
        "src/cat.rs": "fn cat() {}",
        "src/head.rs": "fn head() {}",
        "src/uu/yes/src/yes.rs": "fn yes() {}",
        "src/uu/true/src/true.rs": "fn t() {}",
        "src/uu/false/src/false.rs": "fn f() {}",
        "src/tail.rs": "fn tail() {}",
        "src/wc.rs": "fn wc() {}",
    },
}


class UrlCloner:
    """Populates clones from REPOSITORIES; unknown URLs fail like a bad remote."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def __call__(
        self,
        url: str,
        destination: Path,
        branch: Optional[str],
        depth: int,
        progress: Optional[RemoteProgress],
    ) -> None:
        self.calls.append(url)
        if url not in REPOSITORIES:
            raise CloneError(url, "repository not found")
        for relative, content in REPOSITORIES[url].items():
            target = destination / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")


@pytest.fixture()
def cloner() -> UrlCloner:
    return UrlCloner()


@pytest.fixture()
def make_downloader(
    tmp_path: Path, cloner: UrlCloner, validator: MetadataValidator
) -> Callable[..., Downloader]:
    def _make(max_workers: int = 1, report: bool = True) -> Downloader:
        settings = DownloadSettings(
            programs_root=tmp_path / "programs",
            max_workers=max_workers,
            report_file=tmp_path / "programs" / "acquisition_report.json" if report else None,
        )
        cache = RepositoryCache(tmp_path / "repository_cache", cloner=cloner)
        return Downloader(settings, cache, validator)

    return _make


class TestRun:
    def test_downloads_both_sides_of_every_pair(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
        individual_document: dict[str, Any],
    ) -> None:
        write_metadata("individual.json", individual_document)

        report = make_downloader().run([tmp_path / "metadata"])

        programs = tmp_path / "programs"
        assert (programs / "cat" / "c-program" / "cat.c").read_text(encoding="utf-8") == "int cat;"
        assert (programs / "cat" / "rust-program" / "cat.rs").is_file()
        assert (programs / "head" / "c-program" / "head.c").is_file()
        assert report.pairs_downloaded == 2
        assert not report.has_failures

    def test_project_pairs_share_one_clone_per_repository(
        self,
        tmp_path: Path,
        cloner: UrlCloner,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
        project_document: dict[str, Any],
    ) -> None:
        write_metadata("coreutils.json", project_document)

        report = make_downloader().run([tmp_path / "metadata"])

        assert report.pairs_downloaded == 3
        assert sorted(cloner.calls) == [C_URL, RUST_URL]
        assert report.repositories_fetched == 2
        assert report.repositories_reused == 4

    def test_one_bad_file_out_of_five(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        for name in ["cat", "head", "tail", "wc"]:
            write_metadata(f"{name}.json", {"pairs": [make_individual_pair(name)]})
        write_metadata("broken.json", '{"pairs": [ {')

        report = make_downloader().run([tmp_path / "metadata"])

        assert report.files_processed == 5
        assert report.files_failed == 1
        assert report.files_succeeded == 4
        assert report.pairs_downloaded == 4
        assert [Path(failure.path).name for failure in report.file_failures] == ["broken.json"]

    def test_schema_violation_skips_only_that_file(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        write_metadata("a.json", {"pairs": [make_individual_pair("cat", feature_relationship="nope")]})
        write_metadata("b.json", {"pairs": [make_individual_pair("head")]})

        report = make_downloader().run([tmp_path / "metadata"])

        assert report.files_failed == 1
        assert report.pairs_downloaded == 1
        assert not (tmp_path / "programs" / "cat").exists()

    def test_non_json_files_are_ignored(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        write_metadata("README.md", "not metadata")
        (tmp_path / "metadata" / "nested.json").mkdir()

        report = make_downloader().run([tmp_path / "metadata"])

        assert report.files_processed == 0

    def test_missing_directory_is_fatal(
        self, tmp_path: Path, make_downloader: Callable[..., Downloader]
    ) -> None:
        with pytest.raises(MetadataDirectoryError):
            make_downloader().run([tmp_path / "does-not-exist"])

    def test_rerun_performs_zero_clones(
        self,
        tmp_path: Path,
        cloner: UrlCloner,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
        project_document: dict[str, Any],
    ) -> None:
        write_metadata("coreutils.json", project_document)
        make_downloader().run([tmp_path / "metadata"])
        cloner.calls.clear()

        report = make_downloader().run([tmp_path / "metadata"])

        assert cloner.calls == []
        assert report.repositories_fetched == 0
        assert report.pairs_downloaded == 3

    def test_thread_pool_gives_same_result(
        self,
        tmp_path: Path,
        cloner: UrlCloner,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
        project_document: dict[str, Any],
    ) -> None:
        write_metadata("coreutils.json", project_document)

        report = make_downloader(max_workers=4).run([tmp_path / "metadata"])

        assert report.pairs_downloaded == 3
        assert len(cloner.calls) == 2
        for name in ["yes", "true", "false"]:
            assert (tmp_path / "programs" / name / "c-program" / f"{name}.c").is_file()


class TestFailureIsolation:
    def test_failed_side_does_not_stop_the_other_side(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        write_metadata(
            "pairs.json",
            {
                "pairs": [
                    make_individual_pair("cat", c_url="https://github.com/gone/missing"),
                    make_individual_pair("head"),
                ]
            },
        )

        report = make_downloader().run([tmp_path / "metadata"])

        programs = tmp_path / "programs"
        assert (programs / "cat" / "c-program").is_dir()
        assert list((programs / "cat" / "c-program").iterdir()) == []
        assert (programs / "cat" / "rust-program" / "cat.rs").is_file()
        assert (programs / "head" / "c-program" / "head.c").is_file()

        assert report.pairs_downloaded == 1
        assert report.failed_pairs == ["cat"]
        failure = report.pair_failures[0]
        assert failure.side == "c"
        assert "gone/missing" in failure.error

    def test_missing_source_path_is_recorded_against_pair(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        write_metadata(
            "pairs.json",
            {"pairs": [make_individual_pair("cat", rust_paths=["src/does_not_exist.rs"])]},
        )

        report = make_downloader().run([tmp_path / "metadata"])

        assert report.pairs_downloaded == 0
        assert [(failure.name, failure.side) for failure in report.pair_failures] == [("cat", "rust")]
        assert (tmp_path / "programs" / "cat" / "c-program" / "cat.c").is_file()

    def test_duplicate_names_keep_the_first_pair(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        write_metadata("a.json", {"pairs": [make_individual_pair("cat")]})
        write_metadata("b.json", {"pairs": [make_individual_pair("cat", c_paths=["src/head.c"])]})

        report = make_downloader().run([tmp_path / "metadata"])

        c_dir = tmp_path / "programs" / "cat" / "c-program"
        assert sorted(path.name for path in c_dir.iterdir()) == ["cat.c"]
        assert report.pairs_downloaded == 1
        assert [(failure.name, failure.side) for failure in report.pair_failures] == [("cat", "pair")]
        assert "Duplicate" in report.pair_failures[0].error

    def test_pair_named_like_the_report_is_rejected(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        write_metadata(
            "pairs.json",
            {"pairs": [make_individual_pair("acquisition_report.json"), make_individual_pair("cat")]},
        )

        report = make_downloader().run([tmp_path / "metadata"])

        assert report.pairs_downloaded == 1
        assert [(failure.name, failure.side) for failure in report.pair_failures] == [
            ("acquisition_report.json", "pair")
        ]
        written = json.loads(
            (tmp_path / "programs" / "acquisition_report.json").read_text(encoding="utf-8")
        )
        assert written["pairs"] == {"downloaded": 1, "failed": 1}

    def test_malformed_url_with_branch_resolution_is_recorded_against_pair(
        self,
        tmp_path: Path,
        cloner: UrlCloner,
        validator: MetadataValidator,
        write_metadata: Callable[[str, Any], Path],
    ) -> None:
        def _api(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"default_branch": "main"})

        write_metadata(
            "pairs.json",
            {
                "pairs": [
                    make_individual_pair("bad", c_url="https://[github.com/coreutils/coreutils"),
                    make_individual_pair("cat"),
                ]
            },
        )
        resolver = BranchResolver(BranchCache(), httpx.Client(transport=httpx.MockTransport(_api)))
        cache = RepositoryCache(tmp_path / "repository_cache", cloner=cloner, branch_resolver=resolver)
        settings = DownloadSettings(
            programs_root=tmp_path / "programs",
            report_file=tmp_path / "programs" / "acquisition_report.json",
        )

        report = Downloader(settings, cache, validator).run([tmp_path / "metadata"])

        assert report.pairs_downloaded == 1
        assert [(failure.name, failure.side) for failure in report.pair_failures] == [("bad", "c")]
        assert (tmp_path / "programs" / "cat" / "c-program" / "cat.c").is_file()
        assert (tmp_path / "programs" / "acquisition_report.json").is_file()

    def test_malformed_url_with_tarball_strategy_is_recorded_against_pair(
        self,
        tmp_path: Path,
        validator: MetadataValidator,
        write_metadata: Callable[[str, Any], Path],
    ) -> None:
        def _unexpected(request: httpx.Request) -> httpx.Response:
            raise AssertionError("the API must not be called")

        write_metadata(
            "pairs.json",
            {
                "pairs": [
                    make_individual_pair(
                        "bad",
                        c_url="https://[github.com/coreutils/coreutils",
                        rust_url="https://[github.com/uutils/coreutils",
                    )
                ]
            },
        )
        client = httpx.Client(transport=httpx.MockTransport(_unexpected))
        resolver = BranchResolver(BranchCache(), client)
        cache = RepositoryCache(
            tmp_path / "repository_cache",
            strategy="tarball",
            branch_resolver=resolver,
            tarball_fetcher=TarballFetcher(client, resolver),
        )
        settings = DownloadSettings(programs_root=tmp_path / "programs")

        report = Downloader(settings, cache, validator).run([tmp_path / "metadata"])

        assert [(failure.name, failure.side) for failure in report.pair_failures] == [
            ("bad", "c"),
            ("bad", "rust"),
        ]
        assert not list((tmp_path / "repository_cache" / "c").iterdir())

    def test_unwritable_cache_is_recorded_against_each_pair(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        (tmp_path / "repository_cache").mkdir()
        (tmp_path / "repository_cache" / "rust").write_text("not a directory", encoding="utf-8")
        write_metadata(
            "pairs.json", {"pairs": [make_individual_pair("cat"), make_individual_pair("head")]}
        )

        report = make_downloader().run([tmp_path / "metadata"])

        assert report.pairs_downloaded == 0
        assert [(failure.name, failure.side) for failure in report.pair_failures] == [
            ("cat", "rust"),
            ("head", "rust"),
        ]
        assert (tmp_path / "programs" / "cat" / "c-program" / "cat.c").is_file()
        assert (tmp_path / "programs" / "head" / "c-program" / "head.c").is_file()
        assert (tmp_path / "programs" / "acquisition_report.json").is_file()


class TestReport:
    def test_report_is_written_as_json(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        write_metadata(
            "pairs.json",
            {
                "pairs": [
                    make_individual_pair("cat"),
                    make_individual_pair("head", c_url="https://github.com/gone/missing"),
                ]
            },
        )
        write_metadata("zz_broken.json", "{")

        make_downloader().run([tmp_path / "metadata"])

        report = json.loads(
            (tmp_path / "programs" / "acquisition_report.json").read_text(encoding="utf-8")
        )
        assert report["files"] == {"processed": 2, "succeeded": 1, "failed": 1}
        assert report["pairs"] == {"downloaded": 1, "failed": 1}
        assert report["pair_failures"][0]["name"] == "head"
        assert report["pair_failures"][0]["side"] == "c"
        assert report["file_failures"][0]["path"].endswith("zz_broken.json")

    def test_report_can_be_disabled(
        self,
        tmp_path: Path,
        write_metadata: Callable[[str, Any], Path],
        make_downloader: Callable[..., Downloader],
    ) -> None:
        write_metadata("pairs.json", {"pairs": []})

        make_downloader(report=False).run([tmp_path / "metadata"])

        assert not (tmp_path / "programs" / "acquisition_report.json").exists()


class TestWiring:
    def test_metadata_directories(self, tmp_path: Path) -> None:
        config = PairHarvestConfig()

        assert metadata_directories(config, base=tmp_path) == [
            tmp_path / "metadata" / "project",
            tmp_path / "metadata" / "individual",
        ]
        assert metadata_directories(config, demo=True, base=tmp_path) == [
            tmp_path / "metadata" / "demo"
        ]

    def test_build_downloader_resolves_paths_against_base(self, tmp_path: Path) -> None:
        (tmp_path / "metadata").mkdir()
        shutil.copy(SCHEMA_PATH, tmp_path / "metadata" / "metadata.schema.json")
        config = PairHarvestConfig.model_validate(
            {"acquisition": {"max_workers": 3, "show_progress": False}}
        )

        with httpx.Client() as client:
            downloader = build_downloader(config, client, base=tmp_path)

        assert downloader.settings.programs_root == tmp_path / "programs"
        assert downloader.settings.report_file == tmp_path / "programs" / "acquisition_report.json"
        assert downloader.settings.max_workers == 3
        assert downloader.repository_cache.cache_root == tmp_path / "repository_cache"

    def test_build_downloader_needs_schema(self, tmp_path: Path) -> None:
        with httpx.Client() as client:
            with pytest.raises(SchemaLoadError):
                build_downloader(PairHarvestConfig(), client, base=tmp_path)

    def test_tarball_strategy_is_wired(self, tmp_path: Path) -> None:
        (tmp_path / "metadata").mkdir()
        shutil.copy(SCHEMA_PATH, tmp_path / "metadata" / "metadata.schema.json")
        config = PairHarvestConfig.model_validate({"acquisition": {"strategy": "tarball"}})

        with httpx.Client() as client:
            downloader = build_downloader(config, client, base=tmp_path)

        assert downloader.repository_cache._tarball_fetcher is not None


@requires_git
class TestEndToEndWithGit:
    def test_local_repositories_end_to_end(
        self,
        tmp_path: Path,
        validator: MetadataValidator,
        write_metadata: Callable[[str, Any], Path],
        make_git_repository: Callable[[str, dict[str, str]], Path],
    ) -> None:
        c_repo = make_git_repository("c_repo", {"src/a.c": "int a;", "src/sub/d.c": "int d;"})
        rust_repo = make_git_repository("rust_repo", {"src/lib.rs": "pub fn f() {}", "src/c.txt": "x"})
        write_metadata(
            "local.json",
            {
                "pairs": [
                    make_individual_pair(
                        "local",
                        c_url=c_repo.as_uri(),
                        rust_url=rust_repo.as_uri(),
                        c_paths=["src"],
                        rust_paths=["src"],
                    )
                ]
            },
        )
        settings = DownloadSettings(programs_root=tmp_path / "programs")
        downloader = Downloader(settings, RepositoryCache(tmp_path / "cache"), validator)

        report = downloader.run([tmp_path / "metadata"])

        assert report.pairs_downloaded == 1
        pair_root = tmp_path / "programs" / "local"
        assert sorted(p.name for p in (pair_root / "c-program").iterdir()) == ["a.c", "sub__d.c"]
        assert sorted(p.name for p in (pair_root / "rust-program").iterdir()) == ["lib.rs"]
