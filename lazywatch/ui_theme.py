"""UI theme definitions.

Styling is a small value type applied at render time, so the viewport only
ever produces plain text and the palette can be swapped (or disabled with
``--no-color``) without touching layout code.
"""

from __future__ import annotations

from dataclasses import dataclass

from .ansi import ANSI_RESET


def _color_params(color: str, layer: int) -> str:
    """SGR parameters for a 256-colour index (``"240"``) or hex (``"#000000"``)."""
    if color.startswith("#") and len(color) == 7:
        red = int(color[1:3], 16)
        green = int(color[3:5], 16)
        blue = int(color[5:7], 16)
        return f"{layer};2;{red};{green};{blue}"
    return f"{layer};5;{int(color)}"


@dataclass(frozen=True)
class Style:
    fg: str | None = None
    bg: str | None = None
    bold: bool = False
    reverse: bool = False

    def prefix(self) -> str:
        params: list[str] = []
        if self.bold:
            params.append("1")
        if self.reverse:
            params.append("7")
        if self.fg is not None:
            params.append(_color_params(self.fg, 38))
        if self.bg is not None:
            params.append(_color_params(self.bg, 48))
        if not params:
            return ""
        return f"\033[{';'.join(params)}m"

    def render(self, text: str) -> str:
        """Wrap ``text`` in this style; unstyled text passes through unchanged."""
        prefix = self.prefix()
        if not prefix or not text:
            return text
        return f"{prefix}{text}{ANSI_RESET}"


PLAIN = Style()


@dataclass(frozen=True)
class UITheme:
    """Semantic palette used by the renderer."""

    name: str
    border: Style
    prompt: Style
    selected: Style
    selected_number: Style
    line_number: Style
    filter: Style
    title: Style
    success: Style
    failure: Style
    dim: Style
    help_border: Style
    help_key: Style


DEFAULT_THEME = UITheme(
    name="default",
    border=Style(fg="240"),
    prompt=Style(fg="14"),
    selected=Style(fg="#000000", bg="15", bold=True),
    selected_number=Style(fg="241", bg="15"),
    line_number=Style(fg="241"),
    filter=Style(fg="11"),
    title=Style(fg="12", bold=True),
    success=Style(fg="10"),
    failure=Style(fg="9"),
    dim=Style(fg="241"),
    help_border=Style(fg="12"),
    help_key=Style(fg="11"),
)

PLAIN_THEME = UITheme(
    name="plain",
    border=PLAIN,
    prompt=PLAIN,
    # Reverse video keeps the cursor row visible without colours.
    selected=Style(reverse=True),
    selected_number=Style(reverse=True),
    line_number=PLAIN,
    filter=PLAIN,
    title=PLAIN,
    success=PLAIN,
    failure=PLAIN,
    dim=PLAIN,
    help_border=PLAIN,
    help_key=PLAIN,
)

_THEMES: dict[str, UITheme] = {
    DEFAULT_THEME.name: DEFAULT_THEME,
    PLAIN_THEME.name: PLAIN_THEME,
}


def resolve_theme(no_color: bool = False) -> UITheme:
    return _THEMES["plain" if no_color else "default"]


__all__ = ["DEFAULT_THEME", "PLAIN_THEME", "Style", "UITheme", "resolve_theme"]
