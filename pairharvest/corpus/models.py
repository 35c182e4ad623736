# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Canonical corpus model.

Whatever shape a metadata file had on disk, the parser turns it into these
frozen structures. Nothing downstream of the parser ever sees the raw shapes.
"""

from dataclasses import dataclass
from enum import Enum


class Features(str, Enum):
    """How the ported program's feature set compares to the original's."""

    SUBSET = "subset"
    EQUIVALENT = "equivalent"
    SUPERSET = "superset"
    OVERLAPPING = "overlapping"


class Language(str, Enum):
    """Which side of a pair a program is on."""

    C = "c"
    RUST = "rust"

    @property
    def program_directory(self) -> str:
        """Name of the per-pair sub-directory holding this side's files."""
        return f"{self.value}-program"


@dataclass(frozen=True)
class ProgramSource:
    """One side of a pair: where its code lives and which paths to take."""

    language: Language
    documentation_url: str
    repository_url: str
    source_paths: tuple[str, ...]


@dataclass(frozen=True)
class ProgramPair:
    """A matched original (C) and ported (Rust) program."""

    name: str
    description: str
    translation_tools: tuple[str, ...]
    feature_relationship: Features
    original_program: ProgramSource
    ported_program: ProgramSource

    @property
    def sources(self) -> tuple[ProgramSource, ProgramSource]:
        return (self.original_program, self.ported_program)


@dataclass(frozen=True)
class Corpus:
    """All program pairs from one metadata file, in file order."""

    pairs: tuple[ProgramPair, ...] = ()

    def __len__(self) -> int:
        return len(self.pairs)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self.pairs)
