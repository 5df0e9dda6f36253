from __future__ import annotations

from dataclasses import dataclass

from .buffer import Line

PREVIEW_BOTTOM = "bottom"
PREVIEW_TOP = "top"
PREVIEW_LEFT = "left"
PREVIEW_RIGHT = "right"
PREVIEW_POSITIONS: tuple[str, ...] = (PREVIEW_BOTTOM, PREVIEW_TOP, PREVIEW_LEFT, PREVIEW_RIGHT)

DEFAULT_PROMPT = "lazywatch> "


@dataclass(frozen=True)
class ViewerConfig:
    """Immutable inputs resolved from config file and CLI flags."""

    command: str
    shell: str = "sh"
    interactive: bool = False
    preview_size: int = 40
    preview_size_is_percent: bool = True
    preview_position: str = PREVIEW_BOTTOM
    show_line_numbers: bool = True
    line_number_width: int = 6
    prompt: str = DEFAULT_PROMPT
    refresh_seconds: float = 0.0
    refresh_from_start: bool = False


@dataclass
class ViewerState:
    all_lines: tuple[Line, ...] = ()
    filtered: tuple[int, ...] = ()
    cursor: int = 0
    offset: int = 0
    filter: str = ""
    filter_mode: bool = False
    show_preview: bool = False
    show_help: bool = False
    streaming: bool = False
    loading: bool = True
    user_scrolled: bool = False
    exit_code: int = -1
    error_message: str = ""
    status_message: str = ""
    width: int = 0
    height: int = 0
    spinner_frame: int = 0
    run_generation: int = 0
    refresh_generation: int = 0
    last_revision: int = -1
    refresh_pending: bool = False
    refresh_remaining: int = 0
    status_generation: int = 0
