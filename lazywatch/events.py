"""Messages exchanged between the event loop and the viewport reducer.

Events flow into ``viewport.update``; commands flow back out and are executed
by the loop. Both are plain frozen values so the reducer stays side-effect
free.
"""

from __future__ import annotations

from dataclasses import dataclass

from .buffer import BufferSnapshot, Line

POLL_INTERVAL_SECONDS = 0.05
SPINNER_INTERVAL_SECONDS = 0.08
COUNTDOWN_INTERVAL_SECONDS = 1.0
STATUS_MESSAGE_SECONDS = 2.0


@dataclass(frozen=True)
class Key:
    """One decoded key token, e.g. ``"j"``, ``"CTRL_D"`` or ``"PGDN"``."""

    key: str


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class RunRequested:
    """Start (or restart) the command."""


@dataclass(frozen=True)
class BufferPolled:
    """Fresh copy of the active run's buffer for run ``generation``."""

    generation: int
    snapshot: BufferSnapshot


@dataclass(frozen=True)
class RefreshTick:
    generation: int


@dataclass(frozen=True)
class CountdownTick:
    generation: int
    remaining: int


@dataclass(frozen=True)
class SpinnerTick:
    generation: int


@dataclass(frozen=True)
class ClipboardResult:
    ok: bool


@dataclass(frozen=True)
class ClearStatus:
    generation: int


Event = (
    Key
    | Resize
    | RunRequested
    | BufferPolled
    | RefreshTick
    | CountdownTick
    | SpinnerTick
    | ClipboardResult
    | ClearStatus
)


@dataclass(frozen=True)
class StartRun:
    """Cancel any active run, then start run ``generation`` seeded with ``previous_lines``."""

    generation: int
    previous_lines: tuple[Line, ...]


@dataclass(frozen=True)
class PollBuffer:
    """After ``delay`` seconds, deliver ``BufferPolled`` for ``generation``."""

    delay: float
    generation: int


@dataclass(frozen=True)
class ScheduleEvent:
    """After ``delay`` seconds, deliver ``event`` back to the reducer."""

    delay: float
    event: Event


@dataclass(frozen=True)
class CopyToClipboard:
    text: str


@dataclass(frozen=True)
class Quit:
    """Cancel the active run and leave the event loop."""


Command = StartRun | PollBuffer | ScheduleEvent | CopyToClipboard | Quit
