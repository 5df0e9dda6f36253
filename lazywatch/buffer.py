"""Lock-protected line store shared between reader threads and the UI loop.

A new run is seeded with the previous run's lines and overwrites them in
place, so a refresh of same-shaped output keeps line positions stable.
Readers only ever receive copies.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class Line:
    """One captured output line with its stable 1-based number."""

    number: int
    content: str


@dataclass(frozen=True)
class BufferSnapshot:
    """Point-in-time copy of a ``MergeBuffer``."""

    lines: tuple[Line, ...]
    done: bool
    exit_code: int
    error: BaseException | None
    current_count: int
    revision: int


class MergeBuffer:
    """Line store filled by one run's stdout/stderr readers.

    ``emit`` assigns line numbers from one shared counter under the lock, so
    lines from both streams get unique, gap-free numbers in arrival order.
    ``finish`` truncates stale tail lines left over from a longer previous run.
    """

    def __init__(self, previous_lines: Iterable[Line] = ()) -> None:
        self._lock = threading.Lock()
        self._lines: list[Line] = [
            Line(number=idx + 1, content=line.content) for idx, line in enumerate(previous_lines)
        ]
        self._done = False
        self._exit_code = -1
        self._error: BaseException | None = None
        self._current_count = 0
        self._revision = 0

    def emit(self, content: str) -> Line:
        """Store the next line of the current run and return it."""
        with self._lock:
            self._current_count += 1
            line = Line(number=self._current_count, content=content)
            idx = self._current_count - 1
            if idx < len(self._lines):
                self._lines[idx] = line
            else:
                self._lines.append(line)
            self._revision += 1
            return line

    def finish(self, exit_code: int, error: BaseException | None = None) -> None:
        """Mark the run complete and drop lines beyond this run's output."""
        with self._lock:
            del self._lines[self._current_count :]
            self._exit_code = exit_code
            if error is not None:
                self._error = error
            self._done = True
            self._revision += 1

    def fail(self, error: BaseException) -> None:
        """Record a failure; later writers overwrite earlier ones."""
        with self._lock:
            self._error = error
            self._revision += 1

    def snapshot(self) -> BufferSnapshot:
        with self._lock:
            return BufferSnapshot(
                lines=tuple(self._lines),
                done=self._done,
                exit_code=self._exit_code,
                error=self._error,
                current_count=self._current_count,
                revision=self._revision,
            )

    def lines(self) -> list[Line]:
        with self._lock:
            return list(self._lines)

    def count(self) -> int:
        with self._lock:
            return len(self._lines)

    def current_count(self) -> int:
        with self._lock:
            return self._current_count

    def is_done(self) -> bool:
        with self._lock:
            return self._done

    def exit_code(self) -> int:
        with self._lock:
            return self._exit_code

    def error(self) -> BaseException | None:
        with self._lock:
            return self._error

    def revision(self) -> int:
        with self._lock:
            return self._revision


__all__ = ["BufferSnapshot", "Line", "MergeBuffer"]
