#!/usr/bin/env python3
# input_state.py - States emitted by the key handler
"""
Input States
============

Every key event produces fresh state values; none of them is mutated after
creation and none refers back into the key handler.

    Empty                       nothing being composed
    EmptyIgnoringPreviousState  cleared by cancel; the presentation layer
                                must not act on the previous state
    Inputting                   composing, no list shown
    ChoosingCandidate           candidate list for a buffer position shown
    Marking                     a span is being selected for phrase learning
    AssociatedPhrases           suggestions following the committed text
    Committing                  text to insert into the host document

The presentation layer matches on the type; the handler consumes the state it
previously emitted as the "current state" of the next event.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class EmptyIgnoringPreviousState:
    pass


@dataclass(frozen=True)
class Committing:
    text: str


@dataclass(frozen=True)
class Inputting:
    composing_buffer: str
    cursor_index: int
    tooltip: str = ''


@dataclass(frozen=True)
class ChoosingCandidate:
    """
    Attributes:
        composing_buffer: Buffer text shown while the list is open
        cursor_index: Cursor position in composing_buffer (characters)
        candidates: Tuple of language_model.Candidate
        selected_index: Highlighted candidate
    """
    composing_buffer: str
    cursor_index: int
    candidates: tuple
    selected_index: int = 0

    @property
    def candidate_values(self):
        return [c.value for c in self.candidates]


@dataclass(frozen=True)
class Marking:
    """
    Attributes:
        composing_buffer: Buffer text
        cursor_index: Cursor position (characters)
        marker_index: The other end of the marked span (characters)
        marked_text: Text between cursor and marker
        readings: Readings of the marked span
        acceptable: Whether Enter would learn the phrase
        tooltip: Explanation shown next to the mark
    """
    composing_buffer: str
    cursor_index: int
    marker_index: int
    marked_text: str
    readings: tuple
    acceptable: bool
    tooltip: str = ''

    @property
    def head(self):
        return self.composing_buffer[:min(self.cursor_index, self.marker_index)]

    @property
    def tail(self):
        return self.composing_buffer[max(self.cursor_index, self.marker_index):]


@dataclass(frozen=True)
class AssociatedPhrases:
    candidates: tuple
    selected_index: int = 0

    @property
    def candidate_values(self):
        return [c.value for c in self.candidates]


EMPTY_STATES = (Empty, EmptyIgnoringPreviousState, Committing, AssociatedPhrases)
