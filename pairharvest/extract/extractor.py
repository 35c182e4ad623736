# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Copies a program's declared source paths out of a working tree.

Each source path is relative to the repository root and names either:
  - a file: copied as destination/<file name>, whatever its extension
  - a directory: walked recursively in sorted order; every file with an
    allowed extension is copied, its path relative to the walked directory
    flattened with a joiner, so src/a/main.c and src/b/main.c land as
    a__main.c and b__main.c instead of overwriting each other
    Files whose real location is outside the repository (symlinks) are
    skipped.

Everything ends up directly under the destination; there are no nested
directories in a program folder. The first failure stops extraction for
this program and is raised as an ExtractionError.
"""

import shutil
from pathlib import Path, PurePosixPath
from typing import Iterable, NamedTuple

from pairharvest.errors import DirectoryCreateError, FileCopyError, SourcePathError
from pairharvest.logging.logger import get_logger
from pairharvest.utils.paths import ensure_directory, validate_path_within

_logger = get_logger(__name__)

DEFAULT_EXTENSIONS: frozenset[str] = frozenset({".c", ".h", ".rs"})


class ExtractResult(NamedTuple):
    """What a single extraction produced."""

    destination: Path
    copied: tuple[Path, ...]


def flattened_name(relative: PurePosixPath, joiner: str = "__") -> str:
    """Collapse a relative path into a single file name."""
    return joiner.join(relative.parts)


def _copy(source: Path, destination: Path) -> None:
    try:
        shutil.copyfile(source, destination)
    except OSError as err:
        raise FileCopyError(source, destination, str(err)) from err


def _iter_allowed_files(
    directory: Path, extensions: frozenset[str], working_tree: Path
) -> Iterable[Path]:
    for path in sorted(directory.rglob("*")):
        if ".git" in path.relative_to(directory).parts:
            continue
        if not (path.is_file() and path.suffix.lower() in extensions):
            continue
        try:
            validate_path_within(path, working_tree)
        except ValueError:
            # A symlink in the repository pointing outside of it.
            _logger.warning(
                "Skipping file outside the repository",
                extra={"path": str(path), "target": str(path.resolve())},
            )
            continue
        yield path


def extract(
    working_tree: Path,
    source_paths: Iterable[str],
    destination: Path,
    allowed_extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    joiner: str = "__",
) -> ExtractResult:
    """
    Copy the declared files of one program into `destination`.

    Args:
        working_tree: Root of the cached repository.
        source_paths: Paths relative to the repository root.
        destination: The program directory, created if missing.
        allowed_extensions: Extensions kept when walking directories.
        joiner: Replaces path separators in flattened names.

    Returns:
        ExtractResult listing every file written.

    Raises:
        SourcePathError: a path is missing, has no file name, or escapes the tree.
        FileCopyError: a copy failed.
        DirectoryCreateError: the destination cannot be created.
    """
    extensions = frozenset(ext.lower() for ext in allowed_extensions)

    try:
        ensure_directory(destination)
    except OSError as err:
        raise DirectoryCreateError(destination, str(err)) from err

    copied: list[Path] = []

    for source_path in source_paths:
        relative = PurePosixPath(source_path.replace("\\", "/"))
        if not relative.name or relative.name in (".", ".."):
            raise SourcePathError(f"Source path '{source_path}' has no file name")

        try:
            source = validate_path_within(working_tree / relative, working_tree)
        except ValueError as err:
            raise SourcePathError(str(err)) from err

        if source.is_dir():
            for file_path in _iter_allowed_files(source, extensions, working_tree):
                target = destination / flattened_name(
                    PurePosixPath(file_path.relative_to(source).as_posix()), joiner
                )
                _copy(file_path, target)
                copied.append(target)
        elif source.is_file():
            target = destination / relative.name
            _copy(source, target)
            copied.append(target)
        else:
            raise SourcePathError(
                f"Source path '{source_path}' does not exist in '{working_tree}'"
            )

    _logger.debug(
        "Extracted source files",
        extra={"destination": str(destination), "files": len(copied)},
    )
    return ExtractResult(destination=destination, copied=tuple(copied))
