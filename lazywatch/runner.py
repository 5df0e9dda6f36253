"""Shell command execution with incremental output capture.

``Runner.run_streaming`` spawns the shell and feeds stdout/stderr lines into a
``MergeBuffer`` from two reader threads while a waiter thread owns the child's
lifetime. ``Runner.run`` is the blocking one-shot variant built on top of it.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from .buffer import Line, MergeBuffer

logger = logging.getLogger(__name__)

TAB_WIDTH = 8
MARKER_ENV_VAR = "LAZYWATCH"
# Seconds a cancelled child gets to exit after SIGTERM before SIGKILL.
KILL_GRACE_SECONDS = 0.5
CANCEL_WAIT_SECONDS = 1.0


class RunnerError(Exception):
    """Base class for command execution failures."""


class SpawnError(RunnerError):
    """The shell or its pipes could not be created."""


class RunCancelled(RunnerError):
    """The run was superseded or stopped before the command exited."""


@dataclass(frozen=True)
class RunResult:
    lines: list[Line]
    exit_code: int


def sanitize_line(text: str) -> str:
    """Make one output line safe for width math.

    Carriage returns are dropped so progress-bar rewrites do not garble the
    view, tabs become a fixed run of spaces, and escape sequences are kept.
    """
    if "\r" in text:
        text = text.replace("\r", "")
    if "\t" in text:
        text = text.replace("\t", " " * TAB_WIDTH)
    return text


def split_lines(text: str) -> list[str]:
    """Split captured text into lines, ignoring one trailing newline."""
    if text.endswith("\n"):
        text = text[:-1]
    if not text:
        return []
    return text.split("\n")


def _exit_code_from_returncode(returncode: int) -> int:
    # Popen reports death-by-signal N as -N; shells report 128 + N.
    if returncode < 0:
        return 128 - returncode
    return returncode


def rc_file_for_shell(shell: str) -> Path | None:
    """Return the interactive startup file sourced for ``shell``."""
    try:
        home = Path.home()
    except RuntimeError:
        return None

    name = Path(shell).name
    if name == "bash":
        bashrc = home / ".bashrc"
        if bashrc.exists():
            return bashrc
        return home / ".bash_profile"
    if name == "zsh":
        return home / ".zshrc"
    if name == "fish":
        config_dir = os.environ.get("XDG_CONFIG_HOME") or str(home / ".config")
        return Path(config_dir) / "fish" / "config.fish"
    if name == "ksh":
        return home / ".kshrc"
    if name == "sh":
        env_file = os.environ.get("ENV")
        if env_file:
            return Path(env_file)
        return home / ".profile"
    return home / f".{name}rc"


class RunHandle:
    """In-progress execution bound to one ``MergeBuffer``."""

    def __init__(self, buffer: MergeBuffer, process: subprocess.Popen | None = None) -> None:
        self.buffer = buffer
        self.process = process
        self._cancelled = threading.Event()
        self._finished = threading.Event()
        if process is None:
            self._finished.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Terminate the child's process group and mark the run cancelled."""
        if self._finished.is_set() or self._cancelled.is_set():
            return
        self._cancelled.set()
        self.buffer.fail(RunCancelled("command cancelled"))
        process = self.process
        if process is None or process.poll() is not None:
            return
        logger.debug("cancelling pid %s", process.pid)
        _signal_group(process, signal.SIGTERM)
        threading.Thread(
            target=self._kill_after_grace,
            name="lazywatch-reaper",
            daemon=True,
        ).start()

    def _kill_after_grace(self) -> None:
        if self._finished.wait(KILL_GRACE_SECONDS):
            return
        process = self.process
        if process is None:
            return
        logger.debug("pid %s ignored SIGTERM, sending SIGKILL", process.pid)
        _signal_group(process, signal.SIGKILL)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the run is finalized; return whether it finished."""
        return self._finished.wait(timeout)

    def _mark_finished(self) -> None:
        self._finished.set()


def _signal_group(process: subprocess.Popen, signum: int) -> None:
    try:
        os.killpg(process.pid, signum)
    except (ProcessLookupError, PermissionError):
        if process.poll() is None:
            process.send_signal(signum)


def _read_pipe(pipe: IO[bytes], buffer: MergeBuffer) -> None:
    with pipe:
        for raw in iter(pipe.readline, b""):
            if raw.endswith(b"\n"):
                raw = raw[:-1]
            buffer.emit(sanitize_line(raw.decode("utf-8", errors="replace")))


class Runner:
    """Run one shell command, optionally inside the user's interactive setup."""

    def __init__(self, shell: str, command: str, interactive: bool = False) -> None:
        self.shell = shell
        self.command = command
        self.interactive = interactive

    def build_command(self) -> list[str]:
        """Return the shell arguments that execute ``command``.

        In interactive mode the shell's rc file is sourced first when it
        exists, so aliases and functions defined there are available.
        """
        if not self.interactive:
            return ["-c", self.command]
        rc_file = rc_file_for_shell(self.shell)
        if rc_file is None:
            return ["-c", self.command]
        quoted = shlex.quote(str(rc_file))
        return ["-c", f"[ -f {quoted} ] && . {quoted}; {self.command}"]

    def _spawn(self) -> subprocess.Popen:
        env = dict(os.environ)
        env[MARKER_ENV_VAR] = "1"
        try:
            return subprocess.Popen(
                [self.shell, *self.build_command()],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            raise SpawnError(f"failed to start command: {exc}") from exc

    def run_streaming(self, previous_lines: Iterable[Line] = ()) -> RunHandle:
        """Start the command and return a handle whose buffer fills live.

        The buffer is seeded with ``previous_lines`` and merged in place.
        Spawn failures are recorded on the buffer instead of raised.
        """
        buffer = MergeBuffer(previous_lines)
        try:
            process = self._spawn()
        except SpawnError as exc:
            logger.warning("%s", exc)
            buffer.finish(-1, exc)
            return RunHandle(buffer)

        logger.debug("started pid %s: %s", process.pid, self.command)
        handle = RunHandle(buffer, process)
        readers = [
            threading.Thread(
                target=_read_pipe,
                args=(pipe, buffer),
                name=f"lazywatch-{label}-reader",
                daemon=True,
            )
            for label, pipe in (("stdout", process.stdout), ("stderr", process.stderr))
        ]

        def wait_for_exit() -> None:
            for reader in readers:
                reader.join()
            exit_code = _exit_code_from_returncode(process.wait())
            error = RunCancelled("command cancelled") if handle.cancelled else None
            buffer.finish(exit_code, error)
            logger.debug("pid %s exited with %s", process.pid, exit_code)
            handle._mark_finished()

        for reader in readers:
            reader.start()
        threading.Thread(target=wait_for_exit, name="lazywatch-waiter", daemon=True).start()
        return handle

    def run(self, timeout: float | None = None) -> RunResult:
        """Run the command to completion and return its lines and exit code.

        Raises ``SpawnError`` when the shell cannot be started and
        ``RunCancelled`` when ``timeout`` elapses first.
        """
        handle = self.run_streaming()
        if not handle.wait(timeout):
            handle.cancel()
            if not handle.wait(KILL_GRACE_SECONDS + CANCEL_WAIT_SECONDS):
                logger.warning("command still running after cancel: %s", self.command)
            raise RunCancelled(f"command timed out after {timeout}s")
        snapshot = handle.buffer.snapshot()
        if isinstance(snapshot.error, RunnerError):
            raise snapshot.error
        return RunResult(lines=list(snapshot.lines), exit_code=snapshot.exit_code)


__all__ = [
    "MARKER_ENV_VAR",
    "RunCancelled",
    "RunHandle",
    "RunResult",
    "Runner",
    "RunnerError",
    "SpawnError",
    "rc_file_for_shell",
    "sanitize_line",
    "split_lines",
]
