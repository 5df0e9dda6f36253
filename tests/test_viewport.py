"""Tests for the viewport reducer.

Drives ``viewport.update`` with synthetic events and buffer snapshots and
checks the resulting state and follow-up commands. No processes or
terminals are involved.
"""

from __future__ import annotations

import random
import unittest

from lazywatch.buffer import BufferSnapshot, Line
from lazywatch.events import (
    BufferPolled,
    ClearStatus,
    ClipboardResult,
    CopyToClipboard,
    CountdownTick,
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
from lazywatch.layout import visible_rows
from lazywatch.runner import RunCancelled, SpawnError
from lazywatch.state import ViewerConfig, ViewerState
from lazywatch.viewport import filter_indices, selected_line, update


def snapshot(
    contents: list[str],
    done: bool = False,
    exit_code: int = -1,
    error: BaseException | None = None,
    revision: int = 1,
    current_count: int | None = None,
) -> BufferSnapshot:
    return BufferSnapshot(
        lines=tuple(Line(idx + 1, text) for idx, text in enumerate(contents)),
        done=done,
        exit_code=exit_code,
        error=error,
        current_count=len(contents) if current_count is None else current_count,
        revision=revision,
    )


def press(state: ViewerState, config: ViewerConfig, *keys: str) -> tuple[ViewerState, list]:
    commands: list = []
    for key in keys:
        state, commands = update(state, config, Key(key))
    return state, commands


def loaded(config: ViewerConfig, contents: list[str], width: int = 80, height: int = 20) -> ViewerState:
    """State after a completed run of ``contents`` in a sized terminal."""
    state, _ = update(ViewerState(), config, Resize(width, height))
    state, _ = update(state, config, RunRequested())
    state, _ = update(
        state,
        config,
        BufferPolled(state.run_generation, snapshot(contents, done=True, exit_code=0)),
    )
    return state


def numbered(count: int) -> list[str]:
    return [f"line {idx}" for idx in range(count)]


class RunLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = ViewerConfig(command="printf 'a\\nb\\nc'")

    def test_run_requested_starts_run_poll_and_spinner(self) -> None:
        state, commands = update(ViewerState(), self.config, RunRequested())

        self.assertEqual(state.run_generation, 1)
        self.assertTrue(state.streaming)
        self.assertTrue(state.loading)
        self.assertEqual(state.exit_code, -1)
        self.assertEqual(
            commands,
            [StartRun(1, ()), PollBuffer(0.05, 1), ScheduleEvent(0.08, SpinnerTick(1))],
        )

    def test_printf_scenario_then_filter(self) -> None:
        state, _ = update(ViewerState(), self.config, RunRequested())
        state, commands = update(
            state,
            self.config,
            BufferPolled(1, snapshot(["a", "b", "c"], done=True, exit_code=0, revision=4)),
        )

        self.assertEqual(commands, [])
        self.assertEqual([line.number for line in state.all_lines], [1, 2, 3])
        self.assertEqual(state.cursor, 0)
        self.assertFalse(state.streaming)
        self.assertFalse(state.loading)
        self.assertEqual(state.exit_code, 0)

        state, _ = press(state, self.config, "/", "b")
        self.assertTrue(state.filter_mode)
        self.assertEqual(state.filtered, (1,))
        self.assertEqual(state.cursor, 0)

        state, _ = press(state, self.config, "ESC")
        self.assertFalse(state.filter_mode)
        self.assertEqual(state.filter, "")
        self.assertEqual(state.filtered, (0, 1, 2))

    def test_streaming_poll_reschedules_until_done(self) -> None:
        state, _ = update(ViewerState(), self.config, RunRequested())
        state, commands = update(state, self.config, BufferPolled(1, snapshot(["a"])))
        self.assertEqual(commands, [PollBuffer(0.05, 1)])
        self.assertTrue(state.streaming)
        self.assertEqual(len(state.all_lines), 1)

    def test_stale_poll_is_ignored(self) -> None:
        state, _ = update(ViewerState(), self.config, RunRequested())
        state, _ = update(state, self.config, RunRequested())
        after, commands = update(state, self.config, BufferPolled(1, snapshot(["stale"], done=True)))
        self.assertEqual(commands, [])
        self.assertEqual(after, state)

    def test_update_does_not_mutate_input_state(self) -> None:
        state = ViewerState()
        update(state, self.config, RunRequested())
        self.assertEqual(state.run_generation, 0)

    def test_spawn_error_is_shown_and_cancellation_is_silent(self) -> None:
        state, _ = update(ViewerState(), self.config, RunRequested())
        failed, _ = update(
            state, self.config, BufferPolled(1, snapshot([], done=True, error=SpawnError("no shell")))
        )
        self.assertEqual(failed.error_message, "no shell")
        self.assertFalse(failed.loading)

        cancelled, _ = update(
            state, self.config, BufferPolled(1, snapshot([], done=True, error=RunCancelled("x")))
        )
        self.assertEqual(cancelled.error_message, "")

    def test_reload_clears_previous_error_and_seeds_lines(self) -> None:
        state = loaded(self.config, ["a", "b"])
        state.error_message = "old"
        state, commands = press(state, self.config, "r")
        self.assertEqual(state.error_message, "")
        self.assertIsInstance(commands[0], StartRun)
        self.assertEqual(commands[0].previous_lines, (Line(1, "a"), Line(2, "b")))
        self.assertEqual(commands[0].generation, 2)

    def test_trim_to_final_line_count(self) -> None:
        state = loaded(self.config, numbered(10))
        state, _ = update(state, self.config, RunRequested())
        state, _ = update(
            state,
            self.config,
            BufferPolled(
                state.run_generation,
                snapshot(numbered(10), done=True, exit_code=0, current_count=4, revision=9),
            ),
        )
        self.assertEqual(len(state.all_lines), 4)
        self.assertEqual(state.filtered, (0, 1, 2, 3))
        self.assertEqual(state.cursor, 3)


class MergeInPlaceTests(unittest.TestCase):
    def test_same_length_rerun_keeps_numbers_and_position(self) -> None:
        config = ViewerConfig(command="ps")
        state = loaded(config, ["a1", "b1", "c1"])
        before = (state.cursor, state.offset)

        state, _ = update(state, config, RunRequested())
        state, _ = update(
            state,
            config,
            BufferPolled(state.run_generation, snapshot(["a2", "b2", "c2"], done=True, exit_code=0, revision=5)),
        )

        self.assertEqual([line.number for line in state.all_lines], [1, 2, 3])
        self.assertEqual([line.content for line in state.all_lines], ["a2", "b2", "c2"])
        self.assertEqual((state.cursor, state.offset), before)


class AutoFollowTests(unittest.TestCase):
    def setUp(self) -> None:
        # Height 10 leaves 5 list rows.
        self.config = ViewerConfig(command="x")
        state, _ = update(ViewerState(), self.config, Resize(80, 10))
        self.state, _ = update(state, self.config, RunRequested())

    def test_follows_tail_while_not_scrolled(self) -> None:
        state, _ = update(self.state, self.config, BufferPolled(1, snapshot(numbered(20))))
        self.assertEqual(state.cursor, 19)
        self.assertEqual(state.offset, 15)

    def test_manual_scroll_stops_following_until_end_key(self) -> None:
        state, _ = update(self.state, self.config, BufferPolled(1, snapshot(numbered(20))))
        state, _ = press(state, self.config, "k")
        self.assertTrue(state.user_scrolled)
        self.assertEqual(state.cursor, 18)

        state, _ = update(state, self.config, BufferPolled(1, snapshot(numbered(25), revision=2)))
        self.assertEqual(state.cursor, 18)

        state, _ = press(state, self.config, "G")
        self.assertFalse(state.user_scrolled)
        self.assertEqual(state.cursor, 24)
        self.assertEqual(state.offset, 20)

    def test_content_change_with_same_count_is_picked_up(self) -> None:
        state, _ = update(self.state, self.config, BufferPolled(1, snapshot(["a", "b"], revision=2)))
        state, _ = update(state, self.config, BufferPolled(1, snapshot(["x", "y"], revision=3)))
        self.assertEqual([line.content for line in state.all_lines], ["x", "y"])


class NavigationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = ViewerConfig(command="x")
        # 15 visible rows, cursor following the tail of 100 lines.
        self.state = loaded(self.config, numbered(100))

    def test_top_and_single_steps(self) -> None:
        state, _ = press(self.state, self.config, "g")
        self.assertEqual((state.cursor, state.offset), (0, 0))
        self.assertTrue(state.user_scrolled)

        state, _ = press(state, self.config, "j", "DOWN", "CTRL_N")
        self.assertEqual(state.cursor, 3)
        state, _ = press(state, self.config, "UP")
        self.assertEqual(state.cursor, 2)

    def test_page_movement(self) -> None:
        state, _ = press(self.state, self.config, "HOME", "CTRL_D")
        self.assertEqual(state.cursor, 7)
        state, _ = press(state, self.config, "PGDN")
        self.assertEqual(state.cursor, 22)
        state, _ = press(state, self.config, "CTRL_B")
        self.assertEqual(state.cursor, 7)
        state, _ = press(state, self.config, "CTRL_U")
        self.assertEqual(state.cursor, 0)

    def test_movement_is_clamped(self) -> None:
        state, _ = press(self.state, self.config, "PGDN")
        self.assertEqual(state.cursor, 99)
        state, _ = press(state, self.config, "g", "k")
        self.assertEqual(state.cursor, 0)

    def test_offset_centres_cursor(self) -> None:
        state, _ = press(self.state, self.config, "g", "CTRL_F", "CTRL_F", "CTRL_F")
        self.assertEqual(state.cursor, 45)
        self.assertEqual(state.offset, 45 - 15 // 2)

    def test_preview_toggle_recenters(self) -> None:
        state, _ = press(self.state, self.config, "g", "CTRL_F", "CTRL_F", "CTRL_F", "p")
        self.assertTrue(state.show_preview)
        rows = visible_rows(state, self.config)
        self.assertEqual(rows, 6)
        self.assertEqual(state.cursor, 45)
        self.assertEqual(state.offset, 45 - rows // 2)

    def test_resize_recenters_without_moving_cursor(self) -> None:
        state, _ = press(self.state, self.config, "g", "CTRL_F", "CTRL_F", "CTRL_F")
        state, _ = update(state, self.config, Resize(80, 30))
        self.assertEqual(state.cursor, 45)
        self.assertEqual(state.offset, 45 - 25 // 2)

    def test_unknown_key_is_ignored(self) -> None:
        state, commands = press(self.state, self.config, "z")
        self.assertEqual(commands, [])
        self.assertEqual(state, self.state)


class ModeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = ViewerConfig(command="x")
        self.state = loaded(self.config, ["Alpha", "beta", "GAMMA", "alphabet"])

    def test_quit_keys(self) -> None:
        for key in ("q", "CTRL_C", "ESC"):
            _state, commands = press(self.state, self.config, key)
            self.assertEqual(commands, [Quit()], key)

    def test_escape_clears_filter_before_quitting(self) -> None:
        state, _ = press(self.state, self.config, "/", "a", "l", "ENTER")
        self.assertEqual(state.filter, "al")
        self.assertEqual(state.filtered, (0, 3))
        state, commands = press(state, self.config, "ESC")
        self.assertEqual(commands, [])
        self.assertEqual(state.filter, "")
        self.assertEqual(state.filtered, (0, 1, 2, 3))

    def test_filter_is_case_insensitive_and_editable(self) -> None:
        state, _ = press(self.state, self.config, "/", "A", "M")
        self.assertEqual(state.filtered, (2,))
        state, _ = press(state, self.config, "BACKSPACE")
        self.assertEqual(state.filter, "A")
        self.assertEqual(state.filtered, (0, 1, 2, 3))
        state, _ = press(state, self.config, "x", "y", "z")
        self.assertEqual(state.filtered, ())
        self.assertEqual(state.cursor, 0)
        self.assertIsNone(selected_line(state))

    def test_filter_mode_swallows_navigation_letters(self) -> None:
        state, commands = press(self.state, self.config, "/", "q", "j")
        self.assertEqual(commands, [])
        self.assertEqual(state.filter, "qj")

    def test_entering_filter_mode_starts_fresh(self) -> None:
        state, _ = press(self.state, self.config, "/", "b", "ENTER", "/")
        self.assertEqual(state.filter, "")
        self.assertEqual(state.filtered, (0, 1, 2, 3))

    def test_help_overlay_swallows_keys(self) -> None:
        state, _ = press(self.state, self.config, "?")
        self.assertTrue(state.show_help)
        cursor = state.cursor
        state, commands = press(state, self.config, "k")
        self.assertEqual(state.cursor, cursor)
        self.assertTrue(state.show_help)
        state, commands = press(state, self.config, "q")
        self.assertFalse(state.show_help)
        self.assertEqual(commands, [])

    def test_yank_copies_plain_text_of_selected_line(self) -> None:
        state = loaded(self.config, ["\033[31mred\033[0m text"])
        _state, commands = press(state, self.config, "y")
        self.assertEqual(commands, [CopyToClipboard("red text")])

    def test_yank_with_no_lines_does_nothing(self) -> None:
        state = loaded(self.config, [])
        _state, commands = press(state, self.config, "y")
        self.assertEqual(commands, [])


class StatusMessageTests(unittest.TestCase):
    def test_clipboard_status_is_cleared_by_its_own_timer_only(self) -> None:
        config = ViewerConfig(command="x")
        state, commands = update(ViewerState(), config, ClipboardResult(True))
        self.assertEqual(state.status_message, "Copied to clipboard")
        self.assertEqual(commands, [ScheduleEvent(2.0, ClearStatus(1))])

        state, _ = update(state, config, ClipboardResult(False))
        self.assertEqual(state.status_message, "Failed to copy")

        state, _ = update(state, config, ClearStatus(1))
        self.assertEqual(state.status_message, "Failed to copy")
        state, _ = update(state, config, ClearStatus(2))
        self.assertEqual(state.status_message, "")


class TimerTests(unittest.TestCase):
    def test_spinner_advances_only_while_running(self) -> None:
        config = ViewerConfig(command="x")
        state, _ = update(ViewerState(), config, RunRequested())
        state, commands = update(state, config, SpinnerTick(1))
        self.assertEqual(state.spinner_frame, 1)
        self.assertEqual(commands, [ScheduleEvent(0.08, SpinnerTick(1))])

        _stale, commands = update(state, config, SpinnerTick(0))
        self.assertEqual(commands, [])

        state, _ = update(state, config, BufferPolled(1, snapshot([], done=True, exit_code=0)))
        _done, commands = update(state, config, SpinnerTick(1))
        self.assertEqual(commands, [])

    def test_refresh_after_completion(self) -> None:
        config = ViewerConfig(command="x", refresh_seconds=3.0)
        state, commands = update(ViewerState(), config, RunRequested())
        self.assertFalse(any(isinstance(c, ScheduleEvent) and isinstance(c.event, RefreshTick) for c in commands))

        state, commands = update(state, config, BufferPolled(1, snapshot(["a"], done=True, exit_code=0)))
        generation = state.refresh_generation
        self.assertEqual(
            commands,
            [ScheduleEvent(3.0, RefreshTick(generation)), ScheduleEvent(1.0, CountdownTick(generation, 2))],
        )
        self.assertEqual(state.refresh_remaining, 3)

        state, commands = update(state, config, CountdownTick(generation, 2))
        self.assertEqual(state.refresh_remaining, 2)
        self.assertEqual(commands, [ScheduleEvent(1.0, CountdownTick(generation, 1))])

        state, commands = update(state, config, RefreshTick(generation))
        self.assertIsInstance(commands[0], StartRun)
        self.assertEqual(state.run_generation, 2)

    def test_manual_reload_invalidates_pending_refresh(self) -> None:
        config = ViewerConfig(command="x", refresh_seconds=1.0)
        state, _ = update(ViewerState(), config, RunRequested())
        state, _ = update(state, config, BufferPolled(1, snapshot([], done=True, exit_code=0)))
        old_generation = state.refresh_generation
        state, _ = press(state, config, "r")
        _state, commands = update(state, config, RefreshTick(old_generation))
        self.assertEqual(commands, [])

    def test_refresh_from_start_defers_while_streaming(self) -> None:
        config = ViewerConfig(command="x", refresh_seconds=0.5, refresh_from_start=True)
        state, commands = update(ViewerState(), config, RunRequested())
        generation = state.refresh_generation
        self.assertIn(ScheduleEvent(0.5, RefreshTick(generation)), commands)

        state, commands = update(state, config, RefreshTick(generation))
        self.assertEqual(commands, [])
        self.assertTrue(state.refresh_pending)

        state, commands = update(state, config, BufferPolled(1, snapshot(["a"], done=True, exit_code=0)))
        self.assertFalse(state.refresh_pending)
        self.assertEqual(state.run_generation, 2)
        self.assertIsInstance(commands[0], StartRun)

    def test_refresh_tick_ignored_when_disabled(self) -> None:
        config = ViewerConfig(command="x")
        state, _ = update(ViewerState(), config, RunRequested())
        _state, commands = update(state, config, RefreshTick(state.refresh_generation))
        self.assertEqual(commands, [])


class FilterPropertyTests(unittest.TestCase):
    def test_filter_is_ordered_case_insensitive_subsequence(self) -> None:
        rng = random.Random(11)
        alphabet = "abcAB xy"
        for _ in range(200):
            lines = tuple(
                Line(idx + 1, "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 6))))
                for idx in range(rng.randint(0, 12))
            )
            query = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 2)))
            expected = tuple(
                idx for idx, line in enumerate(lines) if query.lower() in line.content.lower()
            )
            self.assertEqual(filter_indices(lines, query), expected)
        self.assertEqual(filter_indices((Line(1, "a"), Line(2, "b")), ""), (0, 1))


class InvariantTests(unittest.TestCase):
    KEYS = ("j", "k", "g", "G", "CTRL_D", "CTRL_U", "PGDN", "PGUP", "p", "/", "a", "b", "BACKSPACE", "ENTER", "ESC", "?")

    def _check(self, state: ViewerState, config: ViewerConfig) -> None:
        count = len(state.filtered)
        if count:
            self.assertTrue(0 <= state.cursor < count)
        else:
            self.assertEqual(state.cursor, 0)
        self.assertGreaterEqual(state.offset, 0)
        self.assertLessEqual(state.offset, max(0, count - visible_rows(state, config)))

    def test_cursor_and_offset_stay_in_range(self) -> None:
        rng = random.Random(3)
        for position in ("bottom", "top", "left", "right"):
            config = ViewerConfig(command="x", preview_position=position)
            state, _ = update(ViewerState(), config, Resize(60, 24))
            state, _ = update(state, config, RunRequested())
            revision = 0
            for _ in range(400):
                roll = rng.random()
                if roll < 0.2:
                    revision += 1
                    contents = [rng.choice(["ab", "b", "xa", "zz"]) for _ in range(rng.randint(0, 60))]
                    event = BufferPolled(state.run_generation, snapshot(contents, revision=revision))
                elif roll < 0.25:
                    event = Resize(rng.randint(10, 100), rng.randint(3, 40))
                else:
                    key = rng.choice(self.KEYS)
                    if key == "ESC" and not (state.filter_mode or state.filter or state.show_help):
                        continue
                    event = Key(key)
                state, _ = update(state, config, event)
                self._check(state, config)


if __name__ == "__main__":
    unittest.main()
