"""Keypad: sixteen-key hexadecimal input model.

The physical keypad is a 4x4 grid. Hosts translate their own key events
through KEY_LAYOUT so every front end shares one layout:

    Host keys        Keypad
    1 2 3 4          1 2 3 C
    q w e r    ->    4 5 6 D
    a s d f          7 8 9 E
    z x c v          A 0 B F
"""

from typing import Dict, List, Optional


NUM_KEYS = 16

KEY_LAYOUT: Dict[str, int] = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}


def key_for_symbol(symbol: str) -> Optional[int]:
    """Map a host key symbol to a keypad index.

    Args:
        symbol: Host key name (case insensitive, e.g. "Q")

    Returns:
        Keypad index 0x0-0xF, or None if the key is not part of the layout
    """
    return KEY_LAYOUT.get(symbol.lower())


class Keypad:
    """Boolean pressed-state for keys 0x0-0xF."""

    def __init__(self):
        self.keys: List[bool] = [False] * NUM_KEYS

    def _check(self, index: int) -> int:
        if not 0 <= index < NUM_KEYS:
            raise IndexError(f"Invalid key index: {index}")
        return index

    def key_down(self, index: int) -> None:
        self.keys[self._check(index)] = True

    def key_up(self, index: int) -> None:
        self.keys[self._check(index)] = False

    def is_down(self, index: int) -> bool:
        return self.keys[self._check(index)]

    def pressed_keys(self) -> List[int]:
        """Indices of all keys currently held, ascending."""
        return [index for index, down in enumerate(self.keys) if down]

    def first_pressed(self) -> Optional[int]:
        """Lowest held key index, or None if no key is down."""
        for index, down in enumerate(self.keys):
            if down:
                return index
        return None

    def release_all(self) -> None:
        self.keys = [False] * NUM_KEYS

    def __str__(self) -> str:
        held = " ".join(f"{k:X}" for k in self.pressed_keys())
        return f"Keypad[{held or '-'}]"
