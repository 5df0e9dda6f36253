"""ANSI-aware text measurement and line shaping utilities.

Provides width measurement, truncation, wrapping, and overlay compositing that
preserve escape sequences. Every column computation here is in terminal
display cells, never in code units.
"""

from __future__ import annotations

import re
import unicodedata

ANSI_ESCAPE_RE = re.compile(r"\x1b(?:\[[0-9;?]*[ -/]*[@-~]|\][^\x07\x1b]*(?:\x07|\x1b\\)|[@-Z\\-_])")
ANSI_RESET = "\033[0m"
ELLIPSIS = "…"
_SGR_RESETS = frozenset({"\x1b[0m", "\x1b[m"})


def char_display_width(ch: str) -> int:
    """Return terminal column width for one printable character.

    Combining marks consume no columns and East Asian wide/fullwidth
    characters consume two.
    """
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def _match_escape(text: str, i: int) -> str | None:
    """Return the escape sequence starting at ``text[i]`` or ``None``."""
    if text[i] != "\x1b":
        return None
    match = ANSI_ESCAPE_RE.match(text, i)
    if match is None:
        # Lone ESC: keep it zero-width so it never shifts columns.
        return "\x1b"
    return match.group(0)


def iter_units(text: str):
    """Yield ``(unit, width)`` pairs: escape sequences (width 0) or characters."""
    i = 0
    n = len(text)
    while i < n:
        seq = _match_escape(text, i)
        if seq is not None:
            yield seq, 0
            i += len(seq)
            continue
        ch = text[i]
        yield ch, char_display_width(ch)
        i += 1


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def visual_width(text: str) -> int:
    """Return the number of display columns ``text`` occupies."""
    if not text:
        return 0
    return sum(width for _unit, width in iter_units(text))


def truncate_to_width(text: str, max_width: int) -> str:
    """Fit ``text`` into ``max_width`` columns, ending in an ellipsis if cut.

    Text that already fits is returned unchanged. Otherwise the longest prefix
    of at most ``max_width - 1`` columns is kept and a one-column ellipsis is
    appended. Escape sequences are kept whole; if any styling was opened in
    the kept prefix a reset precedes the ellipsis.
    """
    if max_width <= 0:
        return ""
    if visual_width(text) <= max_width:
        return text
    target = max_width - 1
    if target <= 0:
        return ELLIPSIS

    out: list[str] = []
    col = 0
    styled = False
    for unit, width in iter_units(text):
        if width == 0 and unit.startswith("\x1b"):
            out.append(unit)
            styled = True
            continue
        if col + width > target:
            break
        out.append(unit)
        col += width
    if styled:
        out.append(ANSI_RESET)
    out.append(ELLIPSIS)
    return "".join(out)


def wrap_text(text: str, width: int) -> list[str]:
    """Greedily wrap ``text`` into chunks of at most ``width`` columns.

    Escape sequences that come right before a character which starts a new
    chunk move with it, so styling opened at a boundary applies to the text it
    precedes. Joining the result reproduces ``text`` exactly.
    """
    if width <= 0:
        return [""]
    if not text:
        return [""]

    wrapped: list[str] = []
    chunk: list[str] = []
    pending: list[str] = []
    col = 0
    for unit, w in iter_units(text):
        if w == 0 and unit.startswith("\x1b"):
            pending.append(unit)
            continue
        if w and col + w > width and col > 0:
            wrapped.append("".join(chunk))
            chunk = []
            col = 0
        chunk.extend(pending)
        pending = []
        chunk.append(unit)
        col += w
    chunk.extend(pending)
    wrapped.append("".join(chunk))
    return wrapped


def active_escapes(text: str) -> str:
    """Escape sequences still in effect at the end of ``text``.

    Everything up to and including the last SGR reset is dropped.
    """
    active: list[str] = []
    for unit, w in iter_units(text):
        if w or not unit.startswith("\x1b"):
            continue
        if unit in _SGR_RESETS:
            active = []
        else:
            active.append(unit)
    return "".join(active)


def pad_to_width(text: str, width: int) -> str:
    """Right-pad ``text`` with spaces up to ``width`` columns."""
    gap = width - visual_width(text)
    if gap > 0:
        return text + " " * gap
    return text


def fit_to_width(text: str, width: int) -> str:
    """Truncate with an ellipsis or pad so ``text`` is exactly ``width`` wide."""
    if width <= 0:
        return ""
    if visual_width(text) > width:
        return pad_to_width(truncate_to_width(text, width), width)
    return pad_to_width(text, width)


def split_at_visual_width(text: str, target: int) -> tuple[str, str]:
    """Split a styled line at display column ``target``.

    The left part is padded with spaces to exactly ``target`` columns (a wide
    character that would straddle the boundary goes to the right part). The
    right part is the remainder of the raw text, escapes included.
    """
    left: list[str] = []
    col = 0
    i = 0
    n = len(text)
    while i < n and col < target:
        seq = _match_escape(text, i)
        if seq is not None:
            left.append(seq)
            i += len(seq)
            continue
        w = char_display_width(text[i])
        if col + w > target:
            break
        left.append(text[i])
        col += w
        i += 1
    if col < target:
        left.append(" " * (target - col))
    return "".join(left), text[i:]


def skip_visual_width(text: str, skip: int) -> str:
    """Drop the first ``skip`` display columns of a styled line.

    Escape sequences met while skipping are collected and prepended to the
    remainder, so styling active at the cut is restored. If a wide character
    straddles the cut, the lost half-cell is replaced by a space.
    """
    state: list[str] = []
    col = 0
    i = 0
    n = len(text)
    while i < n and col < skip:
        seq = _match_escape(text, i)
        if seq is not None:
            state.append(seq)
            i += len(seq)
            continue
        col += char_display_width(text[i])
        i += 1
    filler = " " * (col - skip) if col > skip else ""
    return "".join(state) + filler + text[i:]


def overlay_box(
    base: str,
    box: str,
    box_width: int,
    box_height: int,
    screen_width: int,
    screen_height: int,
) -> str:
    """Composite a rendered ``box`` centered on top of ``base``.

    Each covered base row becomes ``left + reset + box row + right`` where
    ``left`` is the row cut at the overlay's left column and ``right`` is the
    row after skipping ``box_width`` more columns, re-opened with the styling
    that was active there.
    """
    base_lines = base.split("\n")
    while len(base_lines) < screen_height:
        base_lines.append("")

    box_lines = box.split("\n")
    start_x = max(0, (screen_width - box_width) // 2)
    start_y = max(0, (screen_height - box_height) // 2)

    for i, box_line in enumerate(box_lines):
        y = start_y + i
        if y >= len(base_lines):
            break
        base_line = base_lines[y]
        left_part, _ = split_at_visual_width(base_line, start_x)
        end_x = start_x + box_width
        right_part = ""
        if end_x < visual_width(base_line):
            right_part = skip_visual_width(base_line, end_x)
        base_lines[y] = left_part + ANSI_RESET + box_line + right_part

    return "\n".join(base_lines)
