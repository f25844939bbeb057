"""Tests for the Keypad model and host key layout."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.keypad import KEY_LAYOUT, Keypad, key_for_symbol


@pytest.fixture
def keypad():
    return Keypad()


class TestKeypad:
    """Test pressed-state tracking."""

    def test_starts_released(self, keypad):
        """All keys start up."""
        assert all(not keypad.is_down(i) for i in range(16))
        assert keypad.first_pressed() is None

    def test_key_down_up(self, keypad):
        """Keys track press and release."""
        keypad.key_down(0xA)
        assert keypad.is_down(0xA) is True
        keypad.key_up(0xA)
        assert keypad.is_down(0xA) is False

    def test_pressed_keys_sorted(self, keypad):
        """Held keys are listed lowest first."""
        keypad.key_down(9)
        keypad.key_down(2)
        assert keypad.pressed_keys() == [2, 9]
        assert keypad.first_pressed() == 2

    def test_release_all(self, keypad):
        """release_all lifts every key."""
        keypad.key_down(1)
        keypad.key_down(15)
        keypad.release_all()
        assert keypad.pressed_keys() == []

    @pytest.mark.parametrize("index", [-1, 16])
    def test_invalid_index(self, keypad, index):
        """Indices outside 0..15 raise IndexError."""
        with pytest.raises(IndexError):
            keypad.key_down(index)
        with pytest.raises(IndexError):
            keypad.is_down(index)

    def test_str(self, keypad):
        """String form lists held keys in hex."""
        assert str(keypad) == "Keypad[-]"
        keypad.key_down(0xC)
        assert str(keypad) == "Keypad[C]"


class TestKeyLayout:
    """Test the fixed host layout."""

    def test_layout_covers_all_keys(self):
        """Every keypad key has exactly one host key."""
        assert sorted(KEY_LAYOUT.values()) == list(range(16))

    def test_grid_corners(self):
        """Corner host keys map to the conventional keypad keys."""
        assert key_for_symbol("1") == 0x1
        assert key_for_symbol("4") == 0xC
        assert key_for_symbol("z") == 0xA
        assert key_for_symbol("v") == 0xF
        assert key_for_symbol("x") == 0x0

    def test_case_insensitive(self):
        """Host symbols match regardless of case."""
        assert key_for_symbol("Q") == 0x4

    def test_unknown_symbol(self):
        """Unmapped symbols give None."""
        assert key_for_symbol("p") is None
