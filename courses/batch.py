"""Shared plumbing for the catalogue maintenance jobs.

Both jobs are idempotent, so a run that stops early (interrupted, or with
failed items) is finished by simply running it again.
"""
from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator


StopCheck = Callable[[], bool]


def never_stop() -> bool:
    return False


@dataclass
class BatchReport:
    """Outcome of one job run.

    `failed` holds the ids of items whose write was rejected; the run goes
    on past them.
    """

    dry_run: bool = False
    interrupted: bool = False
    failed: list[int] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.interrupted


class StopFlag:
    """Callable flag flipped by a signal handler; jobs poll it between items."""

    def __init__(self) -> None:
        self._stop = threading.Event()

    def set(self, *_args) -> None:
        self._stop.set()

    def __call__(self) -> bool:
        return self._stop.is_set()


@contextmanager
def stop_on_signals(flag: StopFlag, signums=(signal.SIGINT, signal.SIGTERM)) -> Iterator[StopFlag]:
    """Route SIGINT/SIGTERM to `flag` for the duration of the block.

    Handlers can only be installed from the main thread; elsewhere the flag
    is returned untouched and the process default handling applies.
    """
    if threading.current_thread() is not threading.main_thread():
        yield flag
        return
    previous = {signum: signal.getsignal(signum) for signum in signums}
    for signum in signums:
        signal.signal(signum, flag.set)
    try:
        yield flag
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
