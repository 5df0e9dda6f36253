"""Config file loading and merging.

Settings resolve as defaults < config file < CLI flags. The config file is
either the one passed with ``--config`` (errors are fatal) or the first of
``./lazywatch.{yaml,yml,toml,json}`` and
``<user config dir>/config.{yaml,yml,toml,json}`` that exists (a malformed
discovered file is skipped with a warning). The parser follows the file
suffix; unknown suffixes are read as JSON.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from collections.abc import Iterable, Mapping
from pathlib import Path

import yaml
from platformdirs import user_config_dir

from .state import DEFAULT_PROMPT, PREVIEW_POSITIONS, ViewerConfig

logger = logging.getLogger(__name__)

APP_NAME = "lazywatch"
CONFIG_STEM = "config"
LOCAL_CONFIG_STEM = "lazywatch"
CONFIG_SUFFIXES: tuple[str, ...] = (".yaml", ".yml", ".toml", ".json")
DEFAULT_CONFIG_DIR = Path(user_config_dir(APP_NAME, appauthor=False))

KEY_SHELL = "shell"
KEY_PREVIEW_SIZE = "preview-size"
KEY_PREVIEW_POSITION = "preview-position"
KEY_LINE_NUMBERS = "line-numbers"
KEY_LINE_WIDTH = "line-width"
KEY_PROMPT = "prompt"
KEY_REFRESH = "refresh"
KEY_REFRESH_FROM_START = "refresh-from-start"
KEY_INTERACTIVE = "interactive"

DEFAULTS: dict[str, object] = {
    KEY_SHELL: "sh",
    KEY_PREVIEW_SIZE: "40%",
    KEY_PREVIEW_POSITION: "bottom",
    KEY_LINE_NUMBERS: True,
    KEY_LINE_WIDTH: 6,
    KEY_PROMPT: DEFAULT_PROMPT,
    KEY_REFRESH: "0",
    KEY_REFRESH_FROM_START: False,
    KEY_INTERACTIVE: False,
}

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)?$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "": 1.0, "m": 60.0, "h": 3600.0}
_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


class ConfigError(ValueError):
    """Raised for unreadable config files and invalid setting values."""


def parse_duration(value: object) -> float:
    """Parse a refresh interval into seconds.

    Accepts bare numbers (seconds) and ``ms``/``s``/``m``/``h`` suffixes,
    e.g. ``"1.5"``, ``"500ms"``, ``"5m"``. Empty and ``"0"`` mean disabled.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigError(f"invalid duration: {value!r} (must be >= 0)")
        return float(value)
    if not isinstance(value, str):
        raise ConfigError(f"invalid duration: {value!r}")
    text = value.strip()
    if text in {"", "0"}:
        return 0.0
    match = _DURATION_RE.match(text)
    if match is None:
        raise ConfigError(f"invalid duration format: {value!r} (expected number, Xms, Xs, Xm, or Xh)")
    return float(match.group(1)) * _DURATION_UNITS[match.group(2) or ""]


def parse_preview_size(value: object) -> tuple[int, bool]:
    """Parse ``"40%"`` into ``(40, True)`` and ``"10"`` (or ``10``) into ``(10, False)``."""
    if isinstance(value, bool):
        raise ConfigError(f"invalid preview size: {value!r}")
    if isinstance(value, int):
        size, is_percent = value, False
    elif isinstance(value, str):
        text = value.strip()
        is_percent = text.endswith("%")
        digits = text[:-1] if is_percent else text
        try:
            size = int(digits)
        except ValueError as exc:
            raise ConfigError(f"invalid preview size: {value!r}") from exc
    else:
        raise ConfigError(f"invalid preview size: {value!r}")
    if size < 0:
        raise ConfigError(f"invalid preview size: {value!r} (must be >= 0)")
    return size, is_percent


def _coerce_bool(key: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConfigError(f"{key}: expected a boolean, got {value!r}")


def _coerce_int(key: str, value: object, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected an integer, got {value!r}")
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key}: expected an integer, got {value!r}") from exc
    if parsed < minimum:
        raise ConfigError(f"{key}: must be >= {minimum}")
    return parsed


def _parse_config_text(path: Path, text: str) -> object:
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
        # An empty YAML document loads as None.
        return {} if data is None else data
    if suffix == ".toml":
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in {path}: {exc}") from exc


def read_config_file(path: Path) -> dict[str, object]:
    """Read one YAML, TOML or JSON config mapping; unknown keys are dropped with a warning."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    data = _parse_config_text(path, text)
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top-level value must be an object")

    values: dict[str, object] = {}
    for key, value in data.items():
        if key not in DEFAULTS:
            logger.warning("ignoring unknown config key %r in %s", key, path)
            continue
        values[key] = value
    return values


def default_search_paths(cwd: Path | None = None) -> list[Path]:
    """Candidate config files in priority order: working directory first."""
    base = cwd if cwd is not None else Path.cwd()
    local = [base / f"{LOCAL_CONFIG_STEM}{suffix}" for suffix in CONFIG_SUFFIXES]
    user = [DEFAULT_CONFIG_DIR / f"{CONFIG_STEM}{suffix}" for suffix in CONFIG_SUFFIXES]
    return local + user


def load_config(
    explicit_path: str | Path | None = None,
    search_paths: Iterable[Path] | None = None,
) -> tuple[dict[str, object], Path | None]:
    """Return ``(file values, path used)``; ``({}, None)`` when no file applies."""
    if explicit_path is not None:
        path = Path(explicit_path)
        return read_config_file(path), path

    for path in search_paths if search_paths is not None else default_search_paths():
        if not path.is_file():
            continue
        try:
            return read_config_file(path), path
        except ConfigError as exc:
            logger.warning("ignoring config file: %s", exc)
    return {}, None


def merge_settings(file_values: Mapping[str, object], overrides: Mapping[str, object | None]) -> dict[str, object]:
    """Layer defaults, file values, and non-``None`` CLI overrides."""
    merged = dict(DEFAULTS)
    merged.update(file_values)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return merged


def build_viewer_config(command: str, settings: Mapping[str, object]) -> ViewerConfig:
    """Validate merged settings and turn them into a ``ViewerConfig``."""
    preview_size, preview_is_percent = parse_preview_size(settings[KEY_PREVIEW_SIZE])
    position = str(settings[KEY_PREVIEW_POSITION]).strip().lower()
    if position not in PREVIEW_POSITIONS:
        raise ConfigError(
            f"{KEY_PREVIEW_POSITION}: expected one of {', '.join(PREVIEW_POSITIONS)}, got {position!r}"
        )
    shell = str(settings[KEY_SHELL]).strip()
    if not shell:
        raise ConfigError(f"{KEY_SHELL}: must not be empty")
    return ViewerConfig(
        command=command,
        shell=shell,
        interactive=_coerce_bool(KEY_INTERACTIVE, settings[KEY_INTERACTIVE]),
        preview_size=preview_size,
        preview_size_is_percent=preview_is_percent,
        preview_position=position,
        show_line_numbers=_coerce_bool(KEY_LINE_NUMBERS, settings[KEY_LINE_NUMBERS]),
        line_number_width=_coerce_int(KEY_LINE_WIDTH, settings[KEY_LINE_WIDTH], minimum=1),
        prompt=str(settings[KEY_PROMPT]),
        refresh_seconds=parse_duration(settings[KEY_REFRESH]),
        refresh_from_start=_coerce_bool(KEY_REFRESH_FROM_START, settings[KEY_REFRESH_FROM_START]),
    )


def format_config(settings: Mapping[str, object], config_path: Path | None) -> str:
    """Human-readable dump of the merged settings for ``--show-config``."""
    lines = [f"Config file: {config_path}" if config_path is not None else "Config file: (none loaded)", ""]
    lines.append("Current configuration:")
    for key in DEFAULTS:
        value = settings.get(key)
        if isinstance(value, bool):
            shown = "true" if value else "false"
        elif key == KEY_PROMPT:
            shown = json.dumps(value)
        else:
            shown = str(value)
        lines.append(f"  {key + ':':<20} {shown}")
    return "\n".join(lines) + "\n"


__all__ = [
    "ConfigError",
    "DEFAULTS",
    "CONFIG_SUFFIXES",
    "DEFAULT_CONFIG_DIR",
    "build_viewer_config",
    "default_search_paths",
    "format_config",
    "load_config",
    "merge_settings",
    "parse_duration",
    "parse_preview_size",
    "read_config_file",
]
