"""
Cooperative chunked execution.

Every long-running engine operation is a ``ChunkedTask``: it walks the row
set in fixed-size slices and keeps its partial state between calls to
``process_chunk``. ``drive`` runs a task on the event loop, yielding between
chunks and checking whether the run is still wanted; ``run_sync`` runs one to
completion in a plain loop.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from core.values import Row

ProgressCallback = Callable[[int], Any]


class RunSuperseded(Exception):
    """A newer run replaced this one before it could finish."""


@dataclass(frozen=True)
class ChunkStatus:
    done: bool
    processed: int
    total: int

    @property
    def progress(self) -> int:
        """Integer percentage 0-100; an empty input is immediately 100."""
        if self.total <= 0:
            return 100
        return round(self.processed / self.total * 100)


class ChunkedTask(ABC):
    """Base for resumable single-pass computations over a row sequence."""

    def __init__(self, rows: Sequence[Row], chunk_size: int) -> None:
        self.rows = rows
        self.chunk_size = max(1, int(chunk_size))
        self.index = 0

    @property
    def total(self) -> int:
        return len(self.rows)

    @property
    def done(self) -> bool:
        return self.index >= self.total

    def process_chunk(self) -> ChunkStatus:
        end = min(self.index + self.chunk_size, self.total)
        for i in range(self.index, end):
            self.consume(self.rows[i])
        self.index = end
        return ChunkStatus(done=self.done, processed=self.index, total=self.total)

    @abstractmethod
    def consume(self, row: Row) -> None:
        ...

    @abstractmethod
    def result(self) -> Any:
        ...


def run_sync(task: ChunkedTask, on_progress: Optional[Callable[[int], None]] = None) -> Any:
    """Process every chunk back to back and return the final result."""
    while True:
        status = task.process_chunk()
        if on_progress is not None:
            on_progress(status.progress)
        if status.done:
            return task.result()


async def report_progress(on_progress: Optional[ProgressCallback], value: int) -> None:
    if on_progress is None:
        return
    out = on_progress(value)
    if inspect.isawaitable(out):
        await out


async def drive(
    task: ChunkedTask,
    on_progress: Optional[ProgressCallback] = None,
    is_current: Optional[Callable[[], bool]] = None,
) -> Any:
    """
    Run *task* one chunk at a time, giving the event loop a turn in between.

    ``is_current`` is checked before every chunk and once more before the
    result is returned; when it reports False the run raises
    ``RunSuperseded`` and its partial state is dropped.
    """
    while True:
        if is_current is not None and not is_current():
            raise RunSuperseded()
        status = task.process_chunk()
        await report_progress(on_progress, status.progress)
        if status.done:
            break
        await asyncio.sleep(0)

    if is_current is not None and not is_current():
        raise RunSuperseded()
    return task.result()
