"""Viewport state machine: pure reducer from events to new state plus commands.

``update`` never performs I/O. It copies the incoming state, applies one
event, and returns the follow-up effects (start a run, arm a timer, copy to
the clipboard, quit) for the event loop to execute.
"""

from __future__ import annotations

import dataclasses
import math

from .ansi import strip_ansi
from .buffer import Line
from .events import (
    COUNTDOWN_INTERVAL_SECONDS,
    POLL_INTERVAL_SECONDS,
    SPINNER_INTERVAL_SECONDS,
    STATUS_MESSAGE_SECONDS,
    BufferPolled,
    ClearStatus,
    ClipboardResult,
    Command,
    CopyToClipboard,
    CountdownTick,
    Event,
    Key,
    PollBuffer,
    Quit,
    RefreshTick,
    Resize,
    RunRequested,
    ScheduleEvent,
    SpinnerTick,
    StartRun,
)
from .keymap import KeyBinding, KeyRegistry
from .layout import visible_rows
from .runner import RunCancelled
from .state import ViewerConfig, ViewerState

SPINNER_FRAMES: tuple[str, ...] = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")


def filter_indices(lines: tuple[Line, ...], query: str) -> tuple[int, ...]:
    """Indices of ``lines`` whose content contains ``query``, case-insensitively."""
    if not query:
        return tuple(range(len(lines)))
    folded = query.lower()
    return tuple(idx for idx, line in enumerate(lines) if folded in line.content.lower())


def update_filtered(state: ViewerState, config: ViewerConfig) -> None:
    """Recompute ``filtered`` and clamp cursor/offset into the new range.

    Position is clamped rather than reset so streaming merges do not throw
    the user back to the top.
    """
    state.filtered = filter_indices(state.all_lines, state.filter)
    count = len(state.filtered)
    state.cursor = max(0, min(state.cursor, count - 1))
    rows = max(0, visible_rows(state, config))
    state.offset = max(0, min(state.offset, max(0, count - rows)))


def adjust_offset(state: ViewerState, config: ViewerConfig) -> None:
    """Center the viewport on the cursor, clamped to the scrollable range."""
    rows = visible_rows(state, config)
    if rows <= 0:
        return
    ideal = state.cursor - rows // 2
    max_offset = max(len(state.filtered) - rows, 0)
    state.offset = max(0, min(ideal, max_offset))


def move_cursor(state: ViewerState, config: ViewerConfig, delta: int) -> None:
    state.cursor = max(0, min(state.cursor + delta, len(state.filtered) - 1))
    adjust_offset(state, config)


def follow_tail(state: ViewerState, config: ViewerConfig) -> None:
    """Put the cursor on the last line and scroll so it is the bottom row."""
    rows = visible_rows(state, config)
    if rows <= 0:
        return
    count = len(state.filtered)
    state.cursor = max(count - 1, 0)
    state.offset = max(count - rows, 0)


def selected_line(state: ViewerState) -> Line | None:
    if not state.filtered or not 0 <= state.cursor < len(state.filtered):
        return None
    idx = state.filtered[state.cursor]
    if idx >= len(state.all_lines):
        return None
    return state.all_lines[idx]


def _arm_refresh(state: ViewerState, config: ViewerConfig) -> list[Command]:
    generation = state.refresh_generation
    remaining = math.ceil(config.refresh_seconds)
    state.refresh_remaining = remaining
    commands: list[Command] = [ScheduleEvent(config.refresh_seconds, RefreshTick(generation))]
    if remaining > 1:
        commands.append(ScheduleEvent(COUNTDOWN_INTERVAL_SECONDS, CountdownTick(generation, remaining - 1)))
    return commands


def start_run(state: ViewerState, config: ViewerConfig) -> list[Command]:
    """Begin a new run seeded with the current lines for in-place merging."""
    state.run_generation += 1
    state.refresh_generation += 1
    state.streaming = True
    state.loading = True
    state.user_scrolled = False
    state.exit_code = -1
    state.error_message = ""
    state.refresh_pending = False
    state.refresh_remaining = 0
    state.last_revision = -1
    generation = state.run_generation
    commands: list[Command] = [
        StartRun(generation, state.all_lines),
        PollBuffer(POLL_INTERVAL_SECONDS, generation),
        ScheduleEvent(SPINNER_INTERVAL_SECONDS, SpinnerTick(generation)),
    ]
    if config.refresh_seconds > 0 and config.refresh_from_start:
        commands.extend(_arm_refresh(state, config))
    return commands


def _on_buffer_polled(state: ViewerState, config: ViewerConfig, event: BufferPolled) -> list[Command]:
    if event.generation != state.run_generation or not state.streaming:
        return []
    snapshot = event.snapshot
    if snapshot.revision != state.last_revision:
        state.last_revision = snapshot.revision
        state.all_lines = snapshot.lines
        update_filtered(state, config)
        if not state.user_scrolled:
            follow_tail(state, config)

    if not snapshot.done:
        return [PollBuffer(POLL_INTERVAL_SECONDS, event.generation)]

    state.streaming = False
    state.loading = False
    state.exit_code = snapshot.exit_code
    if snapshot.error is not None and not isinstance(snapshot.error, RunCancelled):
        state.error_message = str(snapshot.error)
    if snapshot.current_count < len(state.all_lines):
        state.all_lines = state.all_lines[: snapshot.current_count]
        update_filtered(state, config)

    if state.refresh_pending:
        return start_run(state, config)
    if config.refresh_seconds > 0 and not config.refresh_from_start:
        return _arm_refresh(state, config)
    return []


def _on_refresh_tick(state: ViewerState, config: ViewerConfig, event: RefreshTick) -> list[Command]:
    if config.refresh_seconds <= 0 or event.generation != state.refresh_generation:
        return []
    if state.streaming:
        # Slow command: run again as soon as the current one finishes.
        state.refresh_pending = True
        state.refresh_remaining = 0
        return []
    return start_run(state, config)


def _on_countdown_tick(state: ViewerState, event: CountdownTick) -> list[Command]:
    if event.generation != state.refresh_generation:
        return []
    state.refresh_remaining = event.remaining
    if event.remaining > 1:
        return [ScheduleEvent(COUNTDOWN_INTERVAL_SECONDS, CountdownTick(event.generation, event.remaining - 1))]
    return []


def _on_spinner_tick(state: ViewerState, event: SpinnerTick) -> list[Command]:
    if event.generation != state.run_generation or not (state.loading or state.streaming):
        return []
    state.spinner_frame = (state.spinner_frame + 1) % len(SPINNER_FRAMES)
    return [ScheduleEvent(SPINNER_INTERVAL_SECONDS, SpinnerTick(event.generation))]


def _on_clipboard_result(state: ViewerState, event: ClipboardResult) -> list[Command]:
    state.status_message = "Copied to clipboard" if event.ok else "Failed to copy"
    state.status_generation += 1
    return [ScheduleEvent(STATUS_MESSAGE_SECONDS, ClearStatus(state.status_generation))]


# Normal-mode actions.


def _quit(state: ViewerState, config: ViewerConfig) -> list[Command]:
    return [Quit()]


def _escape(state: ViewerState, config: ViewerConfig) -> list[Command]:
    if state.filter:
        state.filter = ""
        update_filtered(state, config)
        return []
    return [Quit()]


def _scroll_by(delta_for: int | str):
    """Build an action moving the cursor by lines (int) or a page fraction."""

    def action(state: ViewerState, config: ViewerConfig) -> list[Command]:
        state.user_scrolled = True
        if isinstance(delta_for, int):
            delta = delta_for
        else:
            rows = max(0, visible_rows(state, config))
            delta = {
                "half_down": rows // 2,
                "half_up": -(rows // 2),
                "page_down": rows,
                "page_up": -rows,
            }[delta_for]
        move_cursor(state, config, delta)
        return []

    return action


def _go_top(state: ViewerState, config: ViewerConfig) -> list[Command]:
    state.user_scrolled = True
    state.cursor = 0
    state.offset = 0
    return []


def _go_bottom(state: ViewerState, config: ViewerConfig) -> list[Command]:
    state.user_scrolled = False
    if state.filtered:
        state.cursor = len(state.filtered) - 1
        adjust_offset(state, config)
    return []


def _toggle_preview(state: ViewerState, config: ViewerConfig) -> list[Command]:
    state.show_preview = not state.show_preview
    adjust_offset(state, config)
    return []


def _reload(state: ViewerState, config: ViewerConfig) -> list[Command]:
    return start_run(state, config)


def _enter_filter(state: ViewerState, config: ViewerConfig) -> list[Command]:
    state.filter_mode = True
    state.filter = ""
    update_filtered(state, config)
    return []


def _show_help(state: ViewerState, config: ViewerConfig) -> list[Command]:
    state.show_help = True
    return []


def _yank(state: ViewerState, config: ViewerConfig) -> list[Command]:
    line = selected_line(state)
    if line is None:
        return []
    return [CopyToClipboard(strip_ansi(line.content))]


NORMAL_KEYS = KeyRegistry().register(
    KeyBinding(("q", "CTRL_C"), _quit),
    KeyBinding(("ESC",), _escape),
    KeyBinding(("j", "DOWN", "CTRL_N"), _scroll_by(1)),
    KeyBinding(("k", "UP", "CTRL_P"), _scroll_by(-1)),
    KeyBinding(("g", "HOME"), _go_top),
    KeyBinding(("G", "END"), _go_bottom),
    KeyBinding(("CTRL_D",), _scroll_by("half_down")),
    KeyBinding(("CTRL_U",), _scroll_by("half_up")),
    KeyBinding(("PGDN", "CTRL_F", " "), _scroll_by("page_down")),
    KeyBinding(("PGUP", "CTRL_B"), _scroll_by("page_up")),
    KeyBinding(("p",), _toggle_preview),
    KeyBinding(("r", "CTRL_R"), _reload),
    KeyBinding(("/",), _enter_filter),
    KeyBinding(("?",), _show_help),
    KeyBinding(("y",), _yank),
)

HELP_CLOSE_KEYS = frozenset({"?", "ESC", "q", "ENTER"})


def _handle_filter_key(state: ViewerState, config: ViewerConfig, key: str) -> list[Command]:
    if key == "ESC":
        state.filter_mode = False
        state.filter = ""
        update_filtered(state, config)
    elif key == "ENTER":
        state.filter_mode = False
    elif key == "BACKSPACE":
        if state.filter:
            state.filter = state.filter[:-1]
            update_filtered(state, config)
    elif key == "CTRL_U":
        if state.filter:
            state.filter = ""
            update_filtered(state, config)
    elif key == "CTRL_C":
        return [Quit()]
    elif len(key) == 1 and key.isprintable():
        state.filter += key
        update_filtered(state, config)
    return []


def _handle_key(state: ViewerState, config: ViewerConfig, key: str) -> list[Command]:
    if state.show_help:
        if key in HELP_CLOSE_KEYS:
            state.show_help = False
        return []
    if state.filter_mode:
        return _handle_filter_key(state, config, key)
    return NORMAL_KEYS.dispatch(key, state, config) or []


def update(state: ViewerState, config: ViewerConfig, event: Event) -> tuple[ViewerState, list[Command]]:
    """Apply ``event`` to a copy of ``state`` and return it with follow-up commands."""
    state = dataclasses.replace(state)
    if isinstance(event, Key):
        commands = _handle_key(state, config, event.key)
    elif isinstance(event, BufferPolled):
        commands = _on_buffer_polled(state, config, event)
    elif isinstance(event, RunRequested):
        commands = start_run(state, config)
    elif isinstance(event, Resize):
        state.width = event.width
        state.height = event.height
        update_filtered(state, config)
        adjust_offset(state, config)
        commands = []
    elif isinstance(event, SpinnerTick):
        commands = _on_spinner_tick(state, event)
    elif isinstance(event, RefreshTick):
        commands = _on_refresh_tick(state, config, event)
    elif isinstance(event, CountdownTick):
        commands = _on_countdown_tick(state, event)
    elif isinstance(event, ClipboardResult):
        commands = _on_clipboard_result(state, event)
    elif isinstance(event, ClearStatus):
        if event.generation == state.status_generation:
            state.status_message = ""
        commands = []
    else:
        raise TypeError(f"unsupported event: {event!r}")
    return state, commands


__all__ = [
    "SPINNER_FRAMES",
    "adjust_offset",
    "filter_indices",
    "follow_tail",
    "move_cursor",
    "selected_line",
    "start_run",
    "update",
    "update_filtered",
]
