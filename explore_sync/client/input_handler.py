"""Keyboard input mapping for the terminal explorer."""

from __future__ import annotations

from blessed.keyboard import Keystroke

from ..common.protocol import Direction

_KEY_DIRECTIONS = {
    "KEY_UP": Direction.UP,
    "KEY_DOWN": Direction.DOWN,
    "KEY_LEFT": Direction.LEFT,
    "KEY_RIGHT": Direction.RIGHT,
}

_CHAR_DIRECTIONS = {
    "w": Direction.UP,
    "s": Direction.DOWN,
    "a": Direction.LEFT,
    "d": Direction.RIGHT,
}


def get_movement(key: Keystroke) -> Direction | None:
    """Arrow keys or WASD -> Direction."""
    if key.is_sequence:
        return _KEY_DIRECTIONS.get(key.name or "")
    return _CHAR_DIRECTIONS.get(str(key).lower())


def get_layer(key: Keystroke) -> int | None:
    """Keys 1-4 select an editor layer (0-based)."""
    if not key.is_sequence and str(key) in ("1", "2", "3", "4"):
        return int(str(key)) - 1
    return None


def is_quit_key(key: Keystroke) -> bool:
    return str(key).lower() == "q"


def is_pick_key(key: Keystroke) -> bool:
    return str(key).lower() == "p"


def is_place_key(key: Keystroke) -> bool:
    return str(key).lower() == "e"


def is_leave_key(key: Keystroke) -> bool:
    return str(key).lower() == "l"
