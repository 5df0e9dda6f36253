"""Terminal control helpers for the TUI session.

Owns raw-mode lifecycle, alternate-screen switching, and frame output.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import termios
import tty

ENTER_TUI = b"\x1b[?1049h\x1b[?25l\x1b[2J"
LEAVE_TUI = b"\x1b[0m\x1b[?25h\x1b[?1049l"
HOME = "\x1b[H"
CLEAR_TO_END = "\x1b[J"


class TerminalController:
    """Manage terminal mode transitions and full-frame redraws."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)

    def enable_tui_mode(self) -> None:
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        # Enter alternate screen, hide cursor, and clear.
        os.write(self.stdout_fd, ENTER_TUI)

    def disable_tui_mode(self) -> None:
        os.write(self.stdout_fd, LEAVE_TUI)
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    def size(self) -> tuple[int, int]:
        """Current ``(columns, rows)`` of the terminal."""
        columns, rows = shutil.get_terminal_size()
        return columns, rows

    def write_frame(self, frame: str) -> None:
        """Redraw the screen from the top-left corner with ``frame``."""
        # Raw mode disables output post-processing, so newlines need a CR.
        body = frame.replace("\n", "\x1b[K\r\n")
        payload = f"{HOME}{body}\x1b[K{CLEAR_TO_END}"
        os.write(self.stdout_fd, payload.encode("utf-8"))

    @contextlib.contextmanager
    def raw_mode(self):
        try:
            self.enable_tui_mode()
            yield
        finally:
            self.disable_tui_mode()


__all__ = ["TerminalController"]
