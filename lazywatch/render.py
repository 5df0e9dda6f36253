"""Frame rendering for the viewer.

``render_frame`` is a pure function of state, config, and theme. It returns
one string per terminal row joined by ``\\n``; the event loop is responsible
for cursor positioning and writing it out.
"""

from __future__ import annotations

from .ansi import (
    ANSI_RESET,
    active_escapes,
    fit_to_width,
    overlay_box,
    pad_to_width,
    truncate_to_width,
    visual_width,
    wrap_text,
)
from .layout import FrameLayout, compute_layout
from .state import PREVIEW_BOTTOM, PREVIEW_LEFT, PREVIEW_TOP, ViewerConfig, ViewerState
from .ui_theme import UITheme
from .viewport import SPINNER_FRAMES, selected_line

TOP_LEFT = "╭"
TOP_RIGHT = "╮"
BOTTOM_LEFT = "╰"
BOTTOM_RIGHT = "╯"
HORIZONTAL = "─"
VERTICAL = "│"
LEFT_T = "├"
RIGHT_T = "┤"
TOP_T = "┬"
BOTTOM_T = "┴"

APP_TITLE = "lazywatch"
HELP_HINT = "? for help"

HELP_BINDINGS: tuple[tuple[str, str], ...] = (
    ("j / k", "Move down / up"),
    ("g / G", "Go to first / last line"),
    ("Ctrl+d / Ctrl+u", "Half page down / up"),
    ("PgDn / PgUp", "Full page down / up"),
    ("Ctrl+f / Ctrl+b", "Full page down / up"),
    ("", ""),
    ("p", "Toggle preview pane"),
    ("/", "Enter filter mode"),
    ("Esc", "Exit filter / clear"),
    ("", ""),
    ("r / Ctrl+r", "Reload command"),
    ("y", "Copy line to clipboard"),
    ("q / Esc", "Quit"),
    ("?", "Toggle this help"),
)


def _close_styles(text: str) -> str:
    # Child output may leave styling open; stop it at the pane edge.
    if "\x1b" in text:
        return text + ANSI_RESET
    return text


def horizontal_rule(left: str, right: str, inner_width: int, theme: UITheme, split: int = 0, junction: str = TOP_T) -> str:
    """Border row, with ``junction`` at inner column ``split`` when it is inside the box."""
    if 0 < split < inner_width:
        body = HORIZONTAL * split + junction + HORIZONTAL * (inner_width - split - 1)
    else:
        body = HORIZONTAL * max(inner_width, 0)
    return theme.border.render(left + body + right)


def boxed_row(content: str, inner_width: int, theme: UITheme) -> str:
    """Wrap ``content`` in side borders, padded or truncated to the inner width."""
    bar = theme.border.render(VERTICAL)
    return bar + _close_styles(fit_to_width(content, inner_width)) + bar


def header_line(state: ViewerState, config: ViewerConfig, theme: UITheme) -> str:
    prefix = theme.title.render(APP_TITLE) + " • "
    command = config.command
    if state.streaming:
        line = prefix + theme.prompt.render("◉ " + command)
    elif state.loading:
        line = prefix + command
    elif state.exit_code == 0:
        line = prefix + theme.success.render("✓ " + command)
    else:
        line = prefix + theme.failure.render(f"✗ [{state.exit_code}] {command}")
    if config.refresh_seconds > 0 and state.refresh_remaining > 0:
        line += " " + theme.dim.render(f"⟳ {state.refresh_remaining}s")
    return line


def prompt_line(state: ViewerState, config: ViewerConfig, theme: UITheme) -> str:
    """Bottom row: prompt or filter entry, activity, messages, and help hint."""
    if state.filter_mode:
        line = theme.filter.render(f"/{state.filter}█")
    elif state.filter:
        line = theme.prompt.render(f"{config.prompt} (filter: {state.filter})")
    else:
        line = theme.prompt.render(config.prompt)

    frame = SPINNER_FRAMES[state.spinner_frame % len(SPINNER_FRAMES)]
    if state.streaming:
        line += f" {frame} Streaming…"
    elif state.loading:
        line += f" {frame} Running command…"
    if state.status_message:
        line += " " + theme.success.render(state.status_message)
    if state.error_message:
        line += " " + theme.failure.render("Error: " + state.error_message)

    hint = theme.dim.render(HELP_HINT)
    gap = state.width - visual_width(line) - visual_width(hint)
    if gap > 0:
        line += " " * gap + hint
    elif visual_width(line) > state.width:
        line = _close_styles(truncate_to_width(line, state.width))
    return line


def list_rows(state: ViewerState, config: ViewerConfig, theme: UITheme, layout: FrameLayout) -> list[str]:
    """Render the visible window of filtered lines, highlighting the cursor row."""
    rows: list[str] = []
    full_width = layout.list_width + 1
    for i in range(max(layout.list_rows, 0)):
        position = state.offset + i
        if position >= len(state.filtered):
            rows.append("")
            continue
        idx = state.filtered[position]
        if idx >= len(state.all_lines):
            rows.append("")
            continue
        line = state.all_lines[idx]
        selected = position == state.cursor

        if config.show_line_numbers:
            number = f"{line.number:>{config.line_number_width}}  "
            content = truncate_to_width(line.content, layout.list_width - len(number))
            if selected:
                padded = pad_to_width(content, full_width - len(number))
                text = theme.selected_number.render(number) + theme.selected.render(padded)
            else:
                text = theme.line_number.render(number) + content
        else:
            text = truncate_to_width(line.content, layout.list_width)
            if selected:
                text = theme.selected.render(pad_to_width(text, full_width))
        rows.append(text)
    return rows


def preview_rows(state: ViewerState, width: int, height: int) -> list[str]:
    line = selected_line(state)
    rows: list[str] = []
    if line is not None and line.content:
        # Continuation rows re-open the styling still active from earlier rows.
        carried = ""
        for chunk in wrap_text(line.content, width):
            row = carried + chunk
            rows.append(row)
            carried = active_escapes(row)
    while len(rows) < height:
        rows.append("")
    return rows[:height]


def render_main(state: ViewerState, config: ViewerConfig, theme: UITheme) -> str:
    layout = compute_layout(state, config)
    inner = layout.inner_width
    split = layout.split_column if layout.horizontal else 0
    content = list_rows(state, config, theme, layout)
    height = max(layout.list_rows, 0)

    out: list[str] = [
        horizontal_rule(TOP_LEFT, TOP_RIGHT, inner, theme),
        boxed_row(header_line(state, config, theme), inner, theme),
        horizontal_rule(LEFT_T, RIGHT_T, inner, theme, split, TOP_T),
    ]

    if not layout.preview_shown:
        out.extend(boxed_row(row, inner, theme) for row in content)
    elif config.preview_position in {PREVIEW_TOP, PREVIEW_BOTTOM}:
        preview = [boxed_row(row, inner, theme) for row in preview_rows(state, inner, max(layout.preview_cells, 0))]
        listing = [boxed_row(row, inner, theme) for row in content]
        divider = horizontal_rule(LEFT_T, RIGHT_T, inner, theme)
        if config.preview_position == PREVIEW_TOP:
            out.extend(preview)
            out.append(divider)
            out.extend(listing)
        else:
            out.extend(listing)
            out.append(divider)
            out.extend(preview)
    else:
        if config.preview_position == PREVIEW_LEFT:
            left_width = layout.preview_cells
            right_width = inner - left_width - 1
            preview = preview_rows(state, left_width, height)
        else:
            right_width = layout.preview_cells
            left_width = inner - right_width - 1
            preview = preview_rows(state, right_width, height)
        bar = theme.border.render(VERTICAL)
        for i in range(height):
            if config.preview_position == PREVIEW_LEFT:
                left, right = preview[i], content[i]
            else:
                left, right = content[i], preview[i]
            out.append(
                bar
                + _close_styles(fit_to_width(left, left_width))
                + bar
                + _close_styles(fit_to_width(right, right_width))
                + bar
            )

    out.append(horizontal_rule(BOTTOM_LEFT, BOTTOM_RIGHT, inner, theme, split, BOTTOM_T))
    out.append(prompt_line(state, config, theme))
    if len(out) > state.height:
        # Shorter than the chrome itself: keep the top rows and the prompt.
        out = out[: state.height - 1] + out[-1:]
    return "\n".join(out)


def render_help_overlay(theme: UITheme) -> tuple[str, int, int]:
    """Build the key-binding box; returns ``(box, width, height)``."""
    key_width = max(len(key) for key, _desc in HELP_BINDINGS)
    body: list[str] = [theme.title.render("Keybindings"), ""]
    for key, desc in HELP_BINDINGS:
        if not key:
            body.append("")
            continue
        body.append(f"  {theme.help_key.render(key.ljust(key_width))}  {desc}")
    body.append("")
    body.append(theme.dim.render("Press any key to close"))

    content_width = max(visual_width(line) for line in body)
    pad_x, pad_y = 2, 1
    inner_width = content_width + 2 * pad_x
    bar = theme.help_border.render(VERTICAL)
    blank = bar + " " * inner_width + bar

    rows = [theme.help_border.render(TOP_LEFT + HORIZONTAL * inner_width + TOP_RIGHT)]
    rows.extend([blank] * pad_y)
    for line in body:
        rows.append(bar + " " * pad_x + pad_to_width(line, content_width) + " " * pad_x + bar)
    rows.extend([blank] * pad_y)
    rows.append(theme.help_border.render(BOTTOM_LEFT + HORIZONTAL * inner_width + BOTTOM_RIGHT))
    return "\n".join(rows), inner_width + 2, len(rows)


def render_frame(state: ViewerState, config: ViewerConfig, theme: UITheme) -> str:
    """Render the whole screen, with the help box composited on top when open."""
    if state.width <= 0 or state.height <= 0:
        frame = SPINNER_FRAMES[state.spinner_frame % len(SPINNER_FRAMES)]
        return f"{frame} Running command…"

    main = render_main(state, config, theme)
    if state.show_help:
        box, box_width, box_height = render_help_overlay(theme)
        return overlay_box(main, box, box_width, box_height, state.width, state.height)
    return main


__all__ = [
    "HELP_BINDINGS",
    "boxed_row",
    "header_line",
    "horizontal_rule",
    "list_rows",
    "prompt_line",
    "render_frame",
    "render_help_overlay",
]
