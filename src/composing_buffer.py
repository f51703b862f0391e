#!/usr/bin/env python3
# composing_buffer.py - Readings, cursor and partial syllable being composed

import logging

import punctuation
from bopomofo import STANDARD_LAYOUT, BopomofoComposer
from grid import PhraseGrid
from language_model import Candidate

logger = logging.getLogger(__name__)


class ComposingBuffer:
    """
    The not-yet-committed text of the key handler.

    Completed readings live in a PhraseGrid; the syllable still being typed
    lives in a BopomofoComposer and is shown at the cursor.  The cursor is an
    index into the readings (0..len inclusive).  display() converts it into a
    character index of the displayed text.

    While marking, marker is the reading index of the other end of the
    marked span; it is None otherwise.
    """

    def __init__(self, language_model, layout=STANDARD_LAYOUT):
        self._lm = language_model
        self.grid = PhraseGrid(self._lookup)
        self.composer = BopomofoComposer(layout)
        self.cursor = 0
        self.marker = None

    def __len__(self):
        return len(self.grid)

    @property
    def readings(self):
        return self.grid.readings

    def is_empty(self):
        return len(self.grid) == 0 and self.composer.is_empty()

    def clear(self):
        self.grid.clear()
        self.composer.clear()
        self.cursor = 0
        self.marker = None

    # ─── Editing ─────────────────────────────────────────────────────────

    def insert_reading(self, reading):
        self.grid.insert_reading(self.cursor, reading)
        self.cursor += 1

    def delete_reading_before_cursor(self):
        if self.cursor == 0:
            return False
        self.grid.delete_reading(self.cursor - 1)
        self.cursor -= 1
        return True

    def delete_reading_after_cursor(self):
        if self.cursor >= len(self.grid):
            return False
        self.grid.delete_reading(self.cursor)
        return True

    def move_cursor(self, offset):
        position = self.cursor + offset
        if not 0 <= position <= len(self.grid):
            return False
        self.cursor = position
        return True

    def move_cursor_to(self, position):
        if position == self.cursor or not 0 <= position <= len(self.grid):
            return False
        self.cursor = position
        return True

    # ─── Rendering ───────────────────────────────────────────────────────

    def walk(self):
        return self.grid.walk()

    def text(self):
        """Concatenation of the best path, without the partial syllable."""
        return ''.join(node.value for node in self.walk())

    def char_index(self, reading_index, walked=None):
        """Convert a reading index into a character index of text()."""
        if walked is None:
            walked = self.walk()
        index = 0
        for node in walked:
            if reading_index >= node.end:
                index += len(node.value)
            else:
                # Inside a phrase: advance at most one character per reading
                index += min(len(node.value), reading_index - node.start)
                break
        return index

    def display(self):
        """
        Return the composing string and its character cursor.

        The partial syllable, if any, is inserted at the cursor.
        """
        walked = self.walk()
        text = ''.join(node.value for node in walked)
        cursor = self.char_index(self.cursor, walked)
        partial = self.composer.composed_string()
        return text[:cursor] + partial + text[cursor:], cursor + len(partial)

    def node_covering(self, reading_index):
        """Return the WalkedNode of the best path that covers reading_index."""
        for node in self.walk():
            if node.start <= reading_index < node.end:
                return node
        return None

    # ─── Snapshots ───────────────────────────────────────────────────────

    def snapshot(self):
        return (self.grid.snapshot(), self.composer.snapshot(), self.cursor, self.marker)

    def restore(self, snapshot):
        grid_snapshot, composer_snapshot, self.cursor, self.marker = snapshot
        self.grid.restore(grid_snapshot)
        self.composer.restore(composer_snapshot)

    def _lookup(self, reading):
        if any(punctuation.is_punctuation_reading(r) for r in reading):
            if len(reading) != 1:
                return []
            return [Candidate(value, reading, 0.0, 'punctuation')
                    for value in punctuation.values_for_reading(reading[0])]
        return self._lm.candidates(reading)
