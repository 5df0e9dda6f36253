"""Main interactive event loop for the terminal UI.

The loop owns ``ViewerState``. It feeds events into ``viewport.update``,
executes the commands that come back, keeps a heap of one-shot timers and
redraws when state changed. Background threads (command readers, clipboard)
never touch state; they only write the merge buffer or the inbox queue.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import queue
import sys
import threading
import time
from collections.abc import Callable

from .clipboard import copy_to_clipboard
from .events import (
    BufferPolled,
    ClipboardResult,
    Command,
    CopyToClipboard,
    Event,
    Key,
    PollBuffer,
    Quit,
    Resize,
    RunRequested,
    ScheduleEvent,
    StartRun,
)
from .input import read_key
from .render import render_frame
from .runner import RunHandle, Runner
from .state import ViewerConfig, ViewerState
from .terminal import TerminalController
from .ui_theme import UITheme
from .viewport import update

logger = logging.getLogger(__name__)

# Upper bound on one blocking key read, so resizes are noticed promptly.
MAX_IDLE_MS = 50


class WatchSession:
    """Drive one viewer session: state, timers, the active run, and redraws.

    ``runner``, ``clipboard`` and ``clock`` are injectable so the session can
    be exercised without a terminal.
    """

    def __init__(
        self,
        config: ViewerConfig,
        theme: UITheme,
        runner: Runner | None = None,
        clipboard: Callable[[str], bool] = copy_to_clipboard,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.theme = theme
        self.state = ViewerState()
        self.runner = runner or Runner(config.shell, config.command, config.interactive)
        self.clipboard = clipboard
        self.clock = clock
        self.running = True
        self.dirty = True
        self._handle: RunHandle | None = None
        self._handle_generation = 0
        self._timers: list[tuple[float, int, Command]] = []
        self._timer_seq = itertools.count()
        self._inbox: queue.SimpleQueue[Event] = queue.SimpleQueue()

    @property
    def handle(self) -> RunHandle | None:
        return self._handle

    def dispatch(self, event: Event) -> None:
        """Reduce ``event`` into state and run the resulting commands."""
        self.state, commands = update(self.state, self.config, event)
        self.dirty = True
        for command in commands:
            self.execute(command)

    def execute(self, command: Command) -> None:
        if isinstance(command, StartRun):
            self._start_run(command)
        elif isinstance(command, PollBuffer):
            self._schedule(command.delay, command)
        elif isinstance(command, ScheduleEvent):
            self._schedule(command.delay, command)
        elif isinstance(command, CopyToClipboard):
            self._copy(command.text)
        elif isinstance(command, Quit):
            self.running = False
        else:
            raise TypeError(f"unsupported command: {command!r}")

    def _start_run(self, command: StartRun) -> None:
        if self._handle is not None:
            self._handle.cancel()
        logger.info("starting run %d: %s", command.generation, self.config.command)
        self._handle = self.runner.run_streaming(command.previous_lines)
        self._handle_generation = command.generation

    def _schedule(self, delay: float, command: Command) -> None:
        heapq.heappush(self._timers, (self.clock() + max(delay, 0.0), next(self._timer_seq), command))

    def _copy(self, text: str) -> None:
        def worker() -> None:
            self._inbox.put(ClipboardResult(self.clipboard(text)))

        threading.Thread(target=worker, name="lazywatch-clipboard", daemon=True).start()

    def _timer_event(self, command: Command) -> Event | None:
        if isinstance(command, PollBuffer):
            if self._handle is None or command.generation != self._handle_generation:
                return None
            return BufferPolled(command.generation, self._handle.buffer.snapshot())
        if isinstance(command, ScheduleEvent):
            return command.event
        return None

    def fire_due_timers(self) -> None:
        now = self.clock()
        while self._timers and self._timers[0][0] <= now and self.running:
            _deadline, _seq, command = heapq.heappop(self._timers)
            event = self._timer_event(command)
            if event is not None:
                self.dispatch(event)

    def drain_inbox(self) -> None:
        while self.running:
            try:
                event = self._inbox.get_nowait()
            except queue.Empty:
                return
            self.dispatch(event)

    def next_timeout_ms(self) -> int:
        """Milliseconds until the next timer is due, capped at ``MAX_IDLE_MS``."""
        if not self._timers:
            return MAX_IDLE_MS
        remaining = self._timers[0][0] - self.clock()
        return max(0, min(MAX_IDLE_MS, int(remaining * 1000)))

    def resize(self, width: int, height: int) -> None:
        if (width, height) != (self.state.width, self.state.height):
            self.dispatch(Resize(width, height))

    def render(self) -> str:
        self.dirty = False
        return render_frame(self.state, self.config, self.theme)

    def shutdown(self) -> None:
        self.running = False
        if self._handle is not None:
            self._handle.cancel()

    def run(self, terminal: TerminalController, stdin_fd: int) -> None:
        """Run the interactive loop until a quit key is pressed."""
        with terminal.raw_mode():
            try:
                self.resize(*terminal.size())
                self.dispatch(RunRequested())
                while self.running:
                    self.resize(*terminal.size())
                    self.fire_due_timers()
                    self.drain_inbox()
                    if not self.running:
                        break
                    if self.dirty:
                        terminal.write_frame(self.render())
                    key = read_key(stdin_fd, timeout_ms=self.next_timeout_ms())
                    if key:
                        self.dispatch(Key(key))
            finally:
                self.shutdown()


def run_viewer(
    config: ViewerConfig,
    theme: UITheme,
    stdin_fd: int | None = None,
    stdout_fd: int | None = None,
) -> None:
    """Set up the terminal and run a ``WatchSession`` for ``config``."""
    if stdin_fd is None:
        stdin_fd = sys.stdin.fileno()
    if stdout_fd is None:
        stdout_fd = sys.stdout.fileno()
    terminal = TerminalController(stdin_fd, stdout_fd)
    WatchSession(config, theme).run(terminal, stdin_fd)


__all__ = ["MAX_IDLE_MS", "WatchSession", "run_viewer"]
