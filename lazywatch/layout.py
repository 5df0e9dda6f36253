"""Frame geometry derived from terminal size, config, and preview state.

Nothing here is stored; every render recomputes the split so border
junctions always line up with the pane divider.
"""

from __future__ import annotations

from dataclasses import dataclass

from .state import PREVIEW_BOTTOM, PREVIEW_LEFT, PREVIEW_RIGHT, PREVIEW_TOP, ViewerConfig, ViewerState

# Top border, header, header separator, bottom border, prompt.
CHROME_ROWS = 5


def preview_is_horizontal(config: ViewerConfig) -> bool:
    """Return whether the preview sits beside the list (left/right)."""
    return config.preview_position in {PREVIEW_LEFT, PREVIEW_RIGHT}


def preview_size(width: int, height: int, config: ViewerConfig) -> int:
    """Preview extent in cells: columns for left/right, rows for top/bottom.

    Clamped so the preview, its divider and the chrome always fit the
    terminal; an oversized preview squeezes the list to nothing instead.
    """
    horizontal = preview_is_horizontal(config)
    if config.preview_size_is_percent:
        size = (width if horizontal else height) * config.preview_size // 100
    else:
        size = config.preview_size
    if horizontal:
        # Two side borders, the divider, and at least an empty list column.
        limit = width - 4
    else:
        limit = height - CHROME_ROWS - 1
    return max(0, min(size, limit))


def visible_rows(state: ViewerState, config: ViewerConfig) -> int:
    """Number of list rows available for output lines."""
    rows = state.height - CHROME_ROWS
    if state.show_preview and config.preview_position in {PREVIEW_TOP, PREVIEW_BOTTOM}:
        rows -= preview_size(state.width, state.height, config) + 1
    return rows


@dataclass(frozen=True)
class FrameLayout:
    inner_width: int
    list_rows: int
    list_width: int
    preview_cells: int
    preview_width: int
    split_column: int
    preview_shown: bool
    horizontal: bool


def compute_layout(state: ViewerState, config: ViewerConfig) -> FrameLayout:
    """Resolve every width/height the renderer needs for one frame.

    ``split_column`` is the inner column where the vertical divider sits
    for left/right previews (0 when there is no vertical split).
    """
    inner_width = state.width - 2
    cells = preview_size(state.width, state.height, config)
    horizontal = state.show_preview and preview_is_horizontal(config)

    list_width = inner_width - 1
    preview_width = inner_width
    split_column = 0
    if horizontal:
        list_width = inner_width - cells - 2
        preview_width = cells
        if config.preview_position == PREVIEW_LEFT:
            split_column = cells
        else:
            split_column = inner_width - cells - 1

    return FrameLayout(
        inner_width=inner_width,
        list_rows=visible_rows(state, config),
        list_width=list_width,
        preview_cells=cells,
        preview_width=preview_width,
        split_column=split_column,
        preview_shown=state.show_preview,
        horizontal=horizontal,
    )


__all__ = [
    "CHROME_ROWS",
    "FrameLayout",
    "compute_layout",
    "preview_is_horizontal",
    "preview_size",
    "visible_rows",
]
