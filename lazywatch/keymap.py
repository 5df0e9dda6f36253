"""Reusable key-binding registry primitives."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .events import Command
from .state import ViewerConfig, ViewerState

KeyAction = Callable[[ViewerState, ViewerConfig], "list[Command]"]


@dataclass(frozen=True)
class KeyBinding:
    """Mapping from one or more key tokens to a single viewport action."""

    keys: tuple[str, ...]
    action: KeyAction


class KeyRegistry:
    """Small key-dispatch table from key tokens to reducer actions."""

    def __init__(self) -> None:
        self._actions: dict[str, KeyAction] = {}

    def register(self, *bindings: KeyBinding) -> KeyRegistry:
        """Register bindings, later ones overriding earlier keys."""
        for binding in bindings:
            for key in binding.keys:
                self._actions[key] = binding.action
        return self

    def dispatch(self, key: str, state: ViewerState, config: ViewerConfig) -> list[Command] | None:
        """Run the action bound to ``key``; ``None`` when the key is unbound."""
        action = self._actions.get(key)
        if action is None:
            return None
        return action(state, config)
