#!/usr/bin/env python3
# key_event.py - Key event value delivered by the host to the key handler

from dataclasses import dataclass
from typing import Optional


# Modifier flags
SHIFT       = 0x001
CTRL        = 0x002
OPTION      = 0x004
COMMAND     = 0x008
MODIFIERS   = SHIFT | CTRL | OPTION | COMMAND


class KeyCode:
    """Platform key codes of the non-character keys the handler knows."""
    ENTER = 76
    UP = 126
    DOWN = 125
    LEFT = 123
    RIGHT = 124
    PAGE_UP = 116
    PAGE_DOWN = 121
    HOME = 115
    END = 119
    DELETE = 117


class CharCode:
    BACKSPACE = 8
    TAB = 9
    RETURN = 13
    ESC = 27
    SPACE = 32


@dataclass(frozen=True)
class KeyEvent:
    """
    One key press as delivered by the host.

    Attributes:
        text: Logical text of the key (with modifiers applied)
        key_code: Platform key code (0 for plain character keys)
        char_code: Character code of the key
        flags: Bitmask of SHIFT, CTRL, OPTION, COMMAND
        is_vertical_mode: True when the host lays text out vertically
        text_ignoring_modifiers: Text of the key without modifiers, if known
    """
    text: str
    key_code: int = 0
    char_code: int = 0
    flags: int = 0
    is_vertical_mode: bool = False
    text_ignoring_modifiers: Optional[str] = None

    @classmethod
    def from_text(cls, text, flags=0, is_vertical_mode=False):
        """Build an event for a plain character key."""
        char_code = ord(text[0]) if text else 0
        return cls(text, 0, char_code, flags, is_vertical_mode)

    @property
    def key(self):
        """Key text without modifiers, falling back to text."""
        return self.text_ignoring_modifiers if self.text_ignoring_modifiers else self.text

    @property
    def is_shift_hold(self):
        return bool(self.flags & SHIFT)

    @property
    def is_ctrl_hold(self):
        return bool(self.flags & CTRL)

    @property
    def is_option_hold(self):
        return bool(self.flags & OPTION)

    @property
    def is_command_hold(self):
        return bool(self.flags & COMMAND)

    @property
    def is_enter(self):
        return self.key_code == KeyCode.ENTER or self.char_code == CharCode.RETURN

    @property
    def is_esc(self):
        return self.char_code == CharCode.ESC

    @property
    def is_backspace(self):
        return self.char_code == CharCode.BACKSPACE

    @property
    def is_delete(self):
        return self.key_code == KeyCode.DELETE

    @property
    def is_tab(self):
        return self.char_code == CharCode.TAB

    @property
    def is_space(self):
        return self.key_code == 0 and self.char_code == CharCode.SPACE

    @property
    def is_home(self):
        return self.key_code == KeyCode.HOME

    @property
    def is_end(self):
        return self.key_code == KeyCode.END

    @property
    def is_page_up(self):
        return self.key_code == KeyCode.PAGE_UP

    @property
    def is_page_down(self):
        return self.key_code == KeyCode.PAGE_DOWN

    # In vertical mode the text flows top to bottom, so the arrow keys turn
    # by a quarter: Up/Down move the cursor and Left/Right move through the
    # candidate list.

    @property
    def is_cursor_backward(self):
        return self.key_code == (KeyCode.UP if self.is_vertical_mode else KeyCode.LEFT)

    @property
    def is_cursor_forward(self):
        return self.key_code == (KeyCode.DOWN if self.is_vertical_mode else KeyCode.RIGHT)

    @property
    def is_candidate_previous(self):
        return self.key_code == (KeyCode.RIGHT if self.is_vertical_mode else KeyCode.UP)

    @property
    def is_candidate_next(self):
        return self.key_code == (KeyCode.LEFT if self.is_vertical_mode else KeyCode.DOWN)

    @property
    def is_cursor_key(self):
        return self.key_code in (KeyCode.UP, KeyCode.DOWN, KeyCode.LEFT, KeyCode.RIGHT,
                                 KeyCode.HOME, KeyCode.END, KeyCode.PAGE_UP, KeyCode.PAGE_DOWN)
