"""Cooperative scheduling primitives for long-running scans.

Long scans are written as generators that ``yield`` whenever
``Checkpoint.due()`` says a bounded slice of work is done. A driver then
either resumes them straight away (``run_steps``) or hands control back to
an asyncio event loop first (``run_steps_async``). Cancellation and stage
timeouts are checked at the same points.
"""

import asyncio
import time
from contextlib import contextmanager
from typing import Callable, Generator, Iterator, Optional, TypeVar

from .errors import AnalysisCancelled, AnalysisTimeout

T = TypeVar("T")

# A scan that yields at checkpoints and returns its result
Steps = Generator[None, None, T]


class CancellationToken:
    """Flag shared between a caller and a running analysis."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AnalysisCancelled("Analysis was cancelled")


class Deadline:
    """Wall-clock budget for one stage."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._start = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._start

    @property
    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed)

    def expired(self) -> bool:
        return self.elapsed > self.seconds


class Checkpoint:
    """Decides when a scan should yield, and enforces cancel/timeout.

    A checkpoint is due after ``every_frames`` calls or once
    ``slice_seconds`` of work has passed since the last yield, whichever
    comes first.
    """

    def __init__(
        self,
        every_frames: int = 200,
        slice_seconds: float = 0.016,
        token: Optional[CancellationToken] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.every_frames = every_frames
        self.slice_seconds = slice_seconds
        self.token = token
        self._clock = clock
        self._count = 0
        self._slice_start = clock()
        self._deadline: Optional[Deadline] = None
        self._stage = ""
        self.yields = 0

    @contextmanager
    def limit(self, seconds: float, stage: str = "") -> Iterator[Deadline]:
        """Run the enclosed stage under a wall-clock deadline."""
        previous = (self._deadline, self._stage)
        self._deadline = Deadline(seconds, self._clock)
        self._stage = stage
        try:
            yield self._deadline
        finally:
            self._deadline, self._stage = previous

    def check(self) -> None:
        """Raise if cancelled or past the current deadline."""
        if self.token is not None:
            self.token.raise_if_cancelled()
        if self._deadline is not None and self._deadline.expired():
            raise AnalysisTimeout(
                f"{self._stage or 'Stage'} exceeded {self._deadline.seconds:.1f}s"
            )

    def due(self) -> bool:
        """Count one unit of work; True when the scan should yield now."""
        self.check()
        self._count += 1
        now = self._clock()
        if self._count >= self.every_frames or now - self._slice_start >= self.slice_seconds:
            self._count = 0
            self._slice_start = now
            self.yields += 1
            return True
        return False


def run_steps(steps: Steps) -> T:
    """Drive a scan to completion without yielding to anyone."""
    while True:
        try:
            next(steps)
        except StopIteration as stop:
            return stop.value


async def run_steps_async(steps: Steps) -> T:
    """Drive a scan, giving the event loop a turn at every checkpoint."""
    while True:
        try:
            next(steps)
        except StopIteration as stop:
            return stop.value
        await asyncio.sleep(0)
