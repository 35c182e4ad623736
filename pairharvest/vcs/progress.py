# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Clone progress reporting.

GitPython parses git's progress lines and calls RemoteProgress.update with an
op code. CloneProgress turns those into TransferProgress tuples and hands
them to a plain callback, so the cache manager never depends on how progress
is displayed. `clone_progress_bar` is the stock callback: a tqdm bar on
stderr that restarts for every stage (receiving objects, then resolving
deltas).
"""

from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, NamedTuple, Optional

from git import RemoteProgress
from tqdm import tqdm


class TransferProgress(NamedTuple):
    """One progress sample from a running clone."""

    stage: str
    current: int
    total: Optional[int]
    message: str


ProgressCallback = Callable[[TransferProgress], None]
ProgressFactory = Callable[[str], ContextManager[ProgressCallback]]

# git's index-pack reports indexing as part of "Receiving objects"; the byte
# count and rate arrive in the message, e.g. ", 1.21 MiB | 2.40 MiB/s".
_STAGES: dict[int, str] = {
    RemoteProgress.COUNTING: "counting",
    RemoteProgress.COMPRESSING: "compressing",
    RemoteProgress.RECEIVING: "receiving",
    RemoteProgress.RESOLVING: "resolving_deltas",
    RemoteProgress.CHECKING_OUT: "checking_out",
}


class CloneProgress(RemoteProgress):
    """Forwards GitPython progress updates to a callback."""

    def __init__(self, callback: ProgressCallback) -> None:
        super().__init__()
        self._callback = callback

    def update(
        self,
        op_code: int,
        cur_count: "str | float",
        max_count: "str | float | None" = None,
        message: str = "",
    ) -> None:
        stage = _STAGES.get(op_code & RemoteProgress.OP_MASK)
        if stage is None:
            return
        total = int(float(max_count)) if max_count else None
        self._callback(
            TransferProgress(
                stage=stage,
                current=int(float(cur_count)),
                total=total,
                message=(message or "").strip(" ,"),
            )
        )


@contextmanager
def clone_progress_bar(label: str, enabled: bool = True) -> Iterator[ProgressCallback]:
    """Yield a callback that draws clone progress for `label` on a tqdm bar."""
    bar = tqdm(total=None, desc=label, unit="obj", leave=False, disable=not enabled)
    current_stage: list[Optional[str]] = [None]

    def report(progress: TransferProgress) -> None:
        if progress.stage != current_stage[0]:
            current_stage[0] = progress.stage
            bar.reset(total=progress.total)
            bar.set_description(f"{label} ({progress.stage})")
        bar.n = progress.current
        if progress.message:
            bar.set_postfix_str(progress.message, refresh=False)
        bar.refresh()

    try:
        yield report
    finally:
        bar.close()


@contextmanager
def no_progress(label: str) -> Iterator[ProgressCallback]:
    """A progress factory that discards every sample."""
    yield lambda progress: None
