# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for pairharvest tests.

Fixtures here are available to every test file automatically. Nothing in the
suite touches the network: repositories are either built locally with
GitPython or faked by a cloner that writes files directly.
"""

import json
import logging
import shutil
import textwrap
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import pytest

from pairharvest.corpus.validator import MetadataValidator
from pairharvest.logging.logger import PACKAGE_LOGGER_NAME

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "metadata" / "metadata.schema.json"

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not found")


def own_log_handlers(package_logger: logging.Logger) -> list[logging.Handler]:
    """The stdout and file handlers configure_logging installs; pytest's own are left alone."""
    return [
        handler
        for handler in package_logger.handlers
        if type(handler) in (logging.StreamHandler, logging.FileHandler)
    ]


def _clear_package_logger() -> None:
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in own_log_handlers(package_logger):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """
    Drop the package logger's handlers around every test.

    The stdout handler binds sys.stdout when it is created, so a handler left
    over from import time or from another test would bypass capsys.
    """
    _clear_package_logger()
    yield
    _clear_package_logger()


@pytest.fixture(scope="session")
def schema_path() -> Path:
    return SCHEMA_PATH


@pytest.fixture(scope="session")
def validator() -> MetadataValidator:
    return MetadataValidator.from_file(SCHEMA_PATH)


def make_individual_pair(
    name: str,
    c_url: str = "https://github.com/coreutils/coreutils",
    rust_url: str = "https://github.com/uutils/coreutils",
    c_paths: Optional[list[str]] = None,
    rust_paths: Optional[list[str]] = None,
    feature_relationship: str = "rust_equivalent_to_c",
) -> dict[str, Any]:
    return {
        "program_name": name,
        "program_description": f"The {name} program.",
        "translation_tools": ["manual"],
        "feature_relationship": feature_relationship,
        "c_program": {
            "documentation_url": f"https://docs.example.org/c/{name}",
            "repository_url": c_url,
            "source_paths": c_paths if c_paths is not None else [f"src/{name}.c"],
        },
        "rust_program": {
            "documentation_url": f"https://docs.example.org/rust/{name}",
            "repository_url": rust_url,
            "source_paths": rust_paths if rust_paths is not None else [f"src/{name}.rs"],
        },
    }


def make_project_document(
    pairs: list[tuple[str, list[str], list[str]]],
    c_url: str = "https://github.com/coreutils/coreutils",
    rust_url: str = "https://github.com/uutils/coreutils",
    feature_relationship: str = "overlapping",
) -> dict[str, Any]:
    """A project document; each pair is (name, c source paths, rust source paths)."""
    return {
        "project_information": {
            "program_name": "coreutils",
            "translation_tools": ["manual", "c2rust"],
            "feature_relationship": feature_relationship,
            "c_program": {
                "documentation_url": "https://www.gnu.org/software/coreutils/",
                "repository_url": c_url,
            },
            "rust_program": {
                "documentation_url": "https://uutils.github.io/coreutils/docs/",
                "repository_url": rust_url,
            },
        },
        "pairs": [
            {
                "program_name": name,
                "program_description": f"The {name} utility.",
                "c_program": {"source_paths": c_paths},
                "rust_program": {"source_paths": rust_paths},
            }
            for name, c_paths, rust_paths in pairs
        ],
    }


@pytest.fixture()
def individual_document() -> dict[str, Any]:
    return {"pairs": [make_individual_pair("cat"), make_individual_pair("head")]}


@pytest.fixture()
def project_document() -> dict[str, Any]:
    return make_project_document(
        [
            ("yes", ["src/yes.c"], ["src/uu/yes/src/yes.rs"]),
            ("true", ["src/true.c"], ["src/uu/true/src/true.rs"]),
            ("false", ["src/false.c"], ["src/uu/false/src/false.rs"]),
        ]
    )


@pytest.fixture()
def write_metadata(tmp_path: Path) -> Callable[[str, Any], Path]:
    """Write a metadata document (or raw text) into tmp_path/metadata."""

    def _write(file_name: str, document: Any) -> Path:
        directory = tmp_path / "metadata"
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / file_name
        if isinstance(document, str):
            target.write_text(document, encoding="utf-8")
        else:
            target.write_text(json.dumps(document, indent=2), encoding="utf-8")
        return target

    return _write


@pytest.fixture()
def make_git_repository(tmp_path: Path) -> Callable[[str, dict[str, str]], Path]:
    """
    Build a local git repository with one commit containing `files`.

    Returns the repository directory; use `path.as_uri()` to clone it.
    """
    from git import Actor, Repo

    def _make(name: str, files: dict[str, str]) -> Path:
        repo_dir = tmp_path / "remotes" / name
        repo = Repo.init(repo_dir)
        for relative, content in files.items():
            target = repo_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        repo.index.add(list(files))
        author = Actor("pairharvest tests", "tests@example.org")
        repo.index.commit("initial commit", author=author, committer=author)
        repo.close()
        return repo_dir

    return _make


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """A small valid config file; tests needing other values write their own."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          log_level: "DEBUG"
        acquisition:
          show_progress: false
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
