# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path utilities for pairharvest.

The rules:
  - directory creation is explicit
  - paths taken from metadata must not escape the tree they are joined onto
"""

from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """
    Create a directory (and parents) if it doesn't exist. Returns the path for chaining.

    Args:
        path: Directory path to create.

    Returns:
        The same path, now guaranteed to exist.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def validate_path_within(target: Path, root: Path) -> Path:
    """
    Make sure a path doesn't escape `root`.

    Both paths are resolved before comparing, so "../../etc/passwd" and
    symlinks pointing outside the tree are caught.

    Args:
        target: The path to validate.
        root: The directory it must stay inside.

    Returns:
        The resolved absolute path if it's safe.

    Raises:
        ValueError: If the path escapes the root.
    """
    resolved_target = target.resolve()
    resolved_root = root.resolve()

    try:
        resolved_target.relative_to(resolved_root)
    except ValueError:
        raise ValueError(
            f"Path '{target}' resolves to '{resolved_target}' which is outside "
            f"'{resolved_root}'. This is not allowed."
        ) from None

    return resolved_target


def resolve_relative(path: str, base: Path) -> Path:
    """Interpret a configured path relative to `base` unless it is absolute."""
    candidate = Path(path).expanduser()
    return candidate if candidate.is_absolute() else base / candidate
