# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Exceptions raised by the acquisition pipeline.

Everything derives from PairHarvestError so the CLI can catch pipeline
failures in one place. The hierarchy mirrors the four failure families:

  - I/O: reading metadata, creating directories, copying files
  - deserialization/validation: bad JSON, schema violations, broken schema
  - network: clone failures, API failures, tarball downloads
  - data: unparseable repository URLs, bad source paths, corrupt cache entries

Wrapping code always raises with `from err`, so the original cause stays on
__cause__ for diagnostics.
"""

from pathlib import Path


class PairHarvestError(Exception):
    """Base for all pipeline errors."""


# --- metadata ----------------------------------------------------------------


class MetadataError(PairHarvestError):
    """A single metadata file could not be turned into a corpus."""


class MetadataReadError(MetadataError):
    """The metadata file could not be read from disk."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to read '{path}': {reason}")


class MetadataDecodeError(MetadataError):
    """The metadata file is not valid JSON."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to decode JSON in '{path}': {reason}")


class MetadataValidationError(MetadataError):
    """
    The document does not match the published metadata schema.

    `violations` holds one "<json path>: <message>" string per violated
    constraint, in a stable order.
    """

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        summary = "; ".join(violations) if violations else "unknown violation"
        super().__init__(f"Failed to validate metadata: {summary}")


class SchemaLoadError(PairHarvestError):
    """The metadata schema itself is missing or malformed. Fatal for a run."""


class MetadataDirectoryError(PairHarvestError):
    """A metadata directory cannot be listed. Fatal for a run."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to read metadata directory '{path}': {reason}")


# --- repositories ------------------------------------------------------------


class RepositoryUrlError(PairHarvestError):
    """A repository URL cannot be split into owner and name."""


class BranchResolutionError(PairHarvestError):
    """The hosting API could not tell us a repository's default branch."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__(f"Failed to make API request to '{url}': {reason}")


class CloneError(PairHarvestError):
    """A git clone failed."""

    def __init__(self, repository_url: str, reason: str) -> None:
        self.repository_url = repository_url
        super().__init__(f"Failed to clone repository '{repository_url}': {reason}")


class TarballError(PairHarvestError):
    """A repository tarball could not be downloaded or unpacked."""

    def __init__(self, tarball_url: str, reason: str) -> None:
        self.tarball_url = tarball_url
        super().__init__(f"Failed to fetch tarball '{tarball_url}': {reason}")


class CacheEntryError(PairHarvestError):
    """A cache directory exists but cannot be opened as a repository."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Cached repository at '{path}' is unusable: {reason}")


# --- extraction --------------------------------------------------------------


class ExtractionError(PairHarvestError):
    """Copying one program's source files failed."""


class SourcePathError(ExtractionError):
    """A declared source path is missing, nameless, or escapes the repository."""


class FileCopyError(ExtractionError):
    """A single file could not be copied into the program directory."""

    def __init__(self, source: Path, destination: Path, reason: str) -> None:
        self.source = source
        self.destination = destination
        super().__init__(f"Failed to copy '{source}' to '{destination}': {reason}")


class DirectoryCreateError(PairHarvestError):
    """A destination directory could not be created."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to create '{path}': {reason}")
