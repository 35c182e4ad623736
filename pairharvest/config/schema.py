# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for pairharvest.

Every config section gets its own frozen pydantic model. Frozen means once you
create it, you cannot mutate it: a run reads its settings once and never
changes them halfway through.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

All paths are plain strings relative to the working directory the command is
started from, the same way the published metadata layout is laid out.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GlobalConfig(BaseModel):
    """Cross-cutting settings: config version and logging."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        default="1.0.0",
        description="Schema version for compatibility tracking, e.g. '1.0.0'",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class PathsConfig(BaseModel):
    """Where metadata is read from and where downloads land."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    metadata_schema_file: str = Field(
        default="metadata/metadata.schema.json",
        description="JSON Schema every metadata file is validated against",
    )
    project_metadata_directory: str = Field(
        default="metadata/project",
        description="Metadata for projects containing many programs (e.g. coreutils)",
    )
    individual_metadata_directory: str = Field(
        default="metadata/individual",
        description="Metadata for standalone programs, one pair per entry",
    )
    demo_metadata_directory: str = Field(
        default="metadata/demo",
        description="Small metadata subset used by the demo command",
    )
    programs_directory: str = Field(
        default="programs",
        description="Destination root, one sub-directory per program pair",
    )
    repository_cache_directory: str = Field(
        default="repository_cache",
        description="Local clones, laid out as <language>/<repository name>",
    )
    report_file: Optional[str] = Field(
        default="programs/acquisition_report.json",
        description="Where the run report is written; null disables it",
    )


class AcquisitionConfig(BaseModel):
    """How repositories get into the cache and how much runs in parallel."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    strategy: Literal["clone", "tarball"] = Field(
        default="clone",
        description="'clone' does a shallow git clone, 'tarball' downloads a GitHub archive",
    )
    resolve_default_branch: bool = Field(
        default=False,
        description="Ask the hosting API for the default branch before cloning",
    )
    clone_depth: int = Field(
        default=1,
        ge=1,
        description="History depth for clones; 1 means latest commit only",
    )
    max_workers: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Number of program pairs acquired in parallel",
    )
    show_progress: bool = Field(
        default=True,
        description="Draw progress bars on stderr",
    )


class ExtractionConfig(BaseModel):
    """Which files are copied out of directories and how nested names are flattened."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    allowed_extensions: list[str] = Field(
        default_factory=lambda: [".c", ".h", ".rs"],
        description="Extensions copied when a source path names a directory",
    )
    flatten_joiner: str = Field(
        default="__",
        min_length=1,
        description="Replaces path separators when nested files are flattened",
    )

    @field_validator("allowed_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        normalized = []
        for extension in value:
            extension = extension.strip().lower()
            if not extension:
                raise ValueError("empty extension")
            if not extension.startswith("."):
                extension = f".{extension}"
            normalized.append(extension)
        return normalized

    @field_validator("flatten_joiner")
    @classmethod
    def _joiner_is_not_a_separator(cls, value: str) -> str:
        if "/" in value or "\\" in value:
            raise ValueError("flatten_joiner must not contain a path separator")
        return value


class GitHubConfig(BaseModel):
    """Settings for the hosting provider's REST API."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    api_base: str = Field(
        default="https://api.github.com",
        description="REST API root, without trailing slash",
    )
    user_agent: str = Field(
        default="c-rust-program-pairs",
        description="User-Agent header sent with every API request",
    )
    hosts: list[str] = Field(
        default_factory=lambda: ["github.com"],
        description="Hosting domains whose URLs can be resolved through the API",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Per-request timeout for API calls and tarball downloads",
    )
    token_env: str = Field(
        default="GITHUB_TOKEN",
        description="Environment variable holding an optional API token",
    )


class PairHarvestConfig(BaseModel):
    """
    Top-level config container.

    Every section has defaults, so an empty YAML mapping is a valid config
    and reproduces the stock directory layout.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    paths: PathsConfig = Field(default_factory=PathsConfig)
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
