# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pure string helpers for repository URLs.

Supported forms:
  https://github.com/eza-community/eza.git
  ssh://git@github.com/eza-community/eza
  git@github.com:eza-community/eza.git

No I/O happens here. Malformed input raises RepositoryUrlError instead of
producing an empty name that would later turn into a bogus cache path.
"""

from typing import Iterable, Optional
from urllib.parse import urlsplit

from pairharvest.errors import RepositoryUrlError

DEFAULT_HOSTS: tuple[str, ...] = ("github.com",)


def _split_host_and_path(url: str) -> tuple[Optional[str], str]:
    """Return (host, path) for scheme URLs and scp-style git remotes."""
    if "://" in url:
        try:
            parts = urlsplit(url)
            host = parts.hostname
        except ValueError as err:
            raise RepositoryUrlError(f"Malformed repository URL '{url}': {err}") from err
        return host, parts.path

    # scp-style: [user@]host:path, as long as the part before ':' has no '/'
    head, colon, tail = url.partition(":")
    if colon and "/" not in head and head:
        host = head.rsplit("@", 1)[-1]
        return host.lower(), tail

    return None, url


def _path_segments(path: str) -> list[str]:
    return [segment for segment in path.strip().strip("/").split("/") if segment]


def repository_name(url: str) -> str:
    """
    Extract a repository's name from its URL.

    The repository name of "https://github.com/eza-community/eza.git" is "eza".
    Trailing slashes and a trailing ".git" are ignored.
    """
    last_segment = url.strip().rstrip("/").split("/")[-1]
    # scp-style remotes with a single path segment: host:repo.git
    if "://" not in url and ":" in last_segment:
        last_segment = last_segment.rsplit(":", 1)[-1]

    name = last_segment[: -len(".git")] if last_segment.endswith(".git") else last_segment
    if name in ("", ".", ".."):
        raise RepositoryUrlError(f"Cannot determine repository name from URL '{url}'")
    return name


def is_hosted(url: str, hosts: Iterable[str] = DEFAULT_HOSTS) -> bool:
    """True if the URL points at one of the recognized hosting domains."""
    try:
        host, _ = _split_host_and_path(url.strip())
    except RepositoryUrlError:
        return False
    if host is None:
        return False
    known = {h.lower() for h in hosts}
    return host.lower() in known or host.lower().removeprefix("www.") in known


def repository_owner(url: str, hosts: Iterable[str] = DEFAULT_HOSTS) -> str:
    """
    Extract a repository's owner from a hosted URL.

    The repository owner of "https://github.com/eza-community/eza.git" is
    "eza-community".

    Raises:
        RepositoryUrlError: unrecognized host or fewer than two path segments.
    """
    _, path = _split_host_and_path(url.strip())
    if not is_hosted(url, hosts):
        raise RepositoryUrlError(f"URL '{url}' is not on a recognized hosting domain")

    segments = _path_segments(path)
    if len(segments) < 2:
        raise RepositoryUrlError(f"URL '{url}' has no owner/name path")
    return segments[-2]


def owner_and_name(url: str, hosts: Iterable[str] = DEFAULT_HOSTS) -> tuple[str, str]:
    """Both halves of a hosted repository URL, as used for API calls."""
    return repository_owner(url, hosts), repository_name(url)
