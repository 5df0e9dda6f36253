"""Command-line front door for lazywatch.

Parses CLI options, merges them over the config file, and launches the
interactive viewer on the given shell command.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from . import __version__
from .config import (
    KEY_INTERACTIVE,
    KEY_LINE_NUMBERS,
    KEY_LINE_WIDTH,
    KEY_PREVIEW_POSITION,
    KEY_PREVIEW_SIZE,
    KEY_PROMPT,
    KEY_REFRESH,
    KEY_REFRESH_FROM_START,
    KEY_SHELL,
    ConfigError,
    build_viewer_config,
    format_config,
    load_config,
    merge_settings,
)
from .loop import run_viewer
from .state import PREVIEW_POSITIONS
from .ui_theme import resolve_theme

TRACE_ENV_VAR = "LAZYWATCH_TRACE_LOG"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

KEYBINDINGS_EPILOG = """\
Keybindings:
  r, Ctrl-r      Reload (re-run command)
  q, Esc         Quit
  j, k           Move down/up
  g              Go to first line
  G              Go to last line
  Ctrl-d/u       Half page down/up
  PgDn/Up, ^f/b  Full page down/up
  p              Toggle preview
  /              Enter filter mode
  Esc            Exit filter mode / clear filter
  y              Yank (copy) selected line
  ?              Show help
"""


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def configure_logging(log_file: str | None) -> None:
    """Send log records to ``log_file``, or drop them.

    Console logging would draw over the TUI, so there is no stderr handler.
    """
    root_logger = logging.getLogger()
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.handlers = [file_handler]
        root_logger.setLevel(logging.DEBUG)
    else:
        root_logger.handlers = [logging.NullHandler()]
        root_logger.setLevel(logging.CRITICAL + 1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazywatch",
        usage="%(prog)s [options] <command to run>",
        description="A terminal UI for running and watching command output.",
        epilog=KEYBINDINGS_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Shell command to run.")
    parser.add_argument("-v", "--version", action="version", version=f"lazywatch {__version__}")
    parser.add_argument("-c", "--config", metavar="PATH", help="Load config from PATH.")
    parser.add_argument(
        "-C", "--show-config", action="store_true", help="Show loaded configuration and exit."
    )
    parser.add_argument(
        "-P",
        "--preview-size",
        help="Preview size: number for lines/cols, or number%% for percentage (e.g. 10 or 40%%).",
    )
    parser.add_argument(
        "-o", "--preview-position", choices=PREVIEW_POSITIONS, help="Preview position (default: bottom)."
    )
    parser.add_argument(
        "-n", "--no-line-numbers", action="store_true", help="Disable line numbers."
    )
    parser.add_argument("-w", "--line-width", type=_positive_int, help="Line number width (default: 6).")
    parser.add_argument("-p", "--prompt", help="Prompt string.")
    parser.add_argument("-s", "--shell", help="Shell used to execute the command (default: sh).")
    parser.add_argument(
        "-r",
        "--refresh",
        help="Auto-refresh interval, e.g. 2, 1.5s, 500ms, 5m (0 disables).",
    )
    parser.add_argument(
        "--refresh-from-start",
        action="store_true",
        default=None,
        help="Time refreshes from command start instead of completion.",
    )
    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        default=None,
        help="Source the shell's rc file so aliases and functions are available.",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable color output.")
    parser.add_argument(
        "--log-file", metavar="PATH", help=f"Write debug logs to PATH (or set {TRACE_ENV_VAR})."
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, object | None]:
    """Config keys set explicitly on the command line; unset flags are ``None``."""
    return {
        KEY_SHELL: args.shell,
        KEY_PREVIEW_SIZE: args.preview_size,
        KEY_PREVIEW_POSITION: args.preview_position,
        KEY_LINE_NUMBERS: False if args.no_line_numbers else None,
        KEY_LINE_WIDTH: args.line_width,
        KEY_PROMPT: args.prompt,
        KEY_REFRESH: args.refresh,
        KEY_REFRESH_FROM_START: args.refresh_from_start,
        KEY_INTERACTIVE: args.interactive,
    }


def _has_terminal() -> bool:
    try:
        return os.isatty(sys.stdin.fileno()) and os.isatty(sys.stdout.fileno())
    except (OSError, ValueError):
        return False


def command_text(parts: list[str]) -> str:
    if parts and parts[0] == "--":
        parts = parts[1:]
    return " ".join(parts).strip()


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run the viewer until the user quits."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Loaded before logging is redirected so config warnings still reach stderr.
    try:
        file_values, config_path = load_config(args.config)
    except ConfigError as exc:
        raise SystemExit(f"Error loading config file: {exc}") from exc
    settings = merge_settings(file_values, cli_overrides(args))

    if args.show_config:
        sys.stdout.write(format_config(settings, config_path))
        return

    command = command_text(args.command)
    if not command:
        parser.print_usage(sys.stderr)
        raise SystemExit("Error: No command provided")

    try:
        viewer_config = build_viewer_config(command, settings)
    except ConfigError as exc:
        raise SystemExit(f"Error: {exc}") from exc

    if not _has_terminal():
        raise SystemExit("Error: lazywatch needs an interactive terminal")

    configure_logging(args.log_file or os.environ.get(TRACE_ENV_VAR))
    logging.getLogger(__name__).info("config file: %s", config_path)
    run_viewer(viewer_config, resolve_theme(args.no_color))


if __name__ == "__main__":
    main()
