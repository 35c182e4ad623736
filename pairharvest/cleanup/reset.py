# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Reset of downloaded state.

Removes the programs tree and the repository cache, which is the only way
cached repositories are ever refreshed. Nothing else is touched: metadata,
the schema and configs stay where they are.

A tree that does not exist is skipped, so resetting twice is harmless.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pairharvest.logging.logger import get_logger
from pairharvest.utils.filesystem import remove_tree

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class ResetResult:
    """Outcome of a reset."""

    removed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def reset_downloads(programs_root: Path, cache_root: Path, dry_run: bool = False) -> ResetResult:
    """
    Delete the downloaded programs and the repository cache.

    Args:
        programs_root: Root of the per-pair program directories.
        cache_root: Root of the repository cache.
        dry_run: Report what would be removed without deleting anything.

    Raises:
        OSError: A tree exists but could not be removed.
    """
    removed: list[str] = []
    skipped: list[str] = []

    for target in (programs_root, cache_root):
        if not target.exists():
            _logger.debug("Nothing to remove", extra={"path": str(target)})
            skipped.append(str(target))
            continue

        if dry_run:
            _logger.info("Dry run, would remove", extra={"path": str(target)})
            removed.append(str(target))
            continue

        remove_tree(target)
        _logger.info("Removed", extra={"path": str(target)})
        removed.append(str(target))

    return ResetResult(removed=removed, skipped=skipped)
