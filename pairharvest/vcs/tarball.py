# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tarball acquisition for hosted repositories.

An alternative to cloning: resolve the default branch, stream the archive the
API serves for it, and unpack it. GitHub wraps the tree in a single
"<owner>-<repo>-<sha>/" directory; that level is stripped so the result looks
like a working tree.

Archives are untrusted. Members with absolute paths, ".." components, links
or device nodes are skipped, and only regular files and directories are ever
written.
"""

import shutil
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Optional

import httpx

from pairharvest.errors import TarballError
from pairharvest.logging.logger import get_logger
from pairharvest.vcs.branches import BranchResolver
from pairharvest.vcs.urls import owner_and_name

_logger = get_logger(__name__)

_STREAM_CHUNK_SIZE: int = 65_536  # 64 KiB


def _member_target(member: tarfile.TarInfo) -> Optional[PurePosixPath]:
    """Path of a member below the archive's top-level directory, or None to skip it."""
    name = member.name.replace("\\", "/")
    if name.startswith("/"):
        return None

    parts = PurePosixPath(name).parts
    if ".." in parts or len(parts) < 2:
        return None

    if not (member.isfile() or member.isdir()):
        return None

    return PurePosixPath(*parts[1:])


def extract_tarball(tarball_path: Path, destination: Path) -> int:
    """
    Unpack a gzipped repository archive into `destination`.

    Returns the number of files written.
    """
    destination.mkdir(parents=True, exist_ok=True)
    file_count = 0

    with tarfile.open(tarball_path, "r:gz") as archive:
        for member in archive.getmembers():
            relative = _member_target(member)
            if relative is None:
                is_top_level = member.isdir() and "/" not in member.name.strip("/")
                if not is_top_level:
                    _logger.warning("Skipping unsafe tar member", extra={"member": member.name})
                continue

            target = destination.joinpath(*relative.parts)
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            source = archive.extractfile(member)
            if source is None:
                continue
            with source, open(target, "wb") as out:
                shutil.copyfileobj(source, out)
            file_count += 1

    return file_count


class TarballFetcher:
    """Downloads and unpacks the default-branch archive of a hosted repository."""

    def __init__(self, client: httpx.Client, resolver: BranchResolver) -> None:
        self._client = client
        self._resolver = resolver

    def tarball_url(self, repository_url: str) -> str:
        branch = self._resolver.default_branch(repository_url)
        owner, name = owner_and_name(repository_url, self._resolver.hosts)
        return f"{self._resolver.api_base}/repos/{owner}/{name}/tarball/{branch}"

    def fetch(self, repository_url: str, destination: Path) -> None:
        """
        Populate `destination` with the repository's files.

        Raises:
            BranchResolutionError: the default branch could not be resolved.
            RepositoryUrlError: the URL has no owner/name on a recognized host.
            TarballError: the download or extraction failed.
        """
        url = self.tarball_url(repository_url)
        destination.parent.mkdir(parents=True, exist_ok=True)

        temp_fd = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=str(destination.parent),
            prefix=".pairharvest_dl_",
            suffix=".tar.gz",
            delete=False,
        )
        temp_path = Path(temp_fd.name)

        try:
            with self._client.stream(
                "GET", url, headers=self._resolver.headers, follow_redirects=True
            ) as response:
                response.raise_for_status()
                for chunk in response.iter_bytes(_STREAM_CHUNK_SIZE):
                    temp_fd.write(chunk)
            temp_fd.close()

            file_count = extract_tarball(temp_path, destination)
        except httpx.HTTPError as err:
            raise TarballError(url, str(err)) from err
        except (OSError, tarfile.TarError) as err:
            raise TarballError(url, str(err)) from err
        finally:
            temp_fd.close()
            if temp_path.exists():
                temp_path.unlink()

        _logger.info(
            "Unpacked tarball",
            extra={"url": url, "destination": str(destination), "files": file_count},
        )
