#!/usr/bin/env python3
# key_handler.py - Key event state machine of the Bopomofo input method
"""
Key Handler
===========

Turns one key event plus the current input state into the next input
state(s).  The handler owns the composing buffer; states handed out are
immutable values.

    ┌───────────┐  phonetic key   ┌───────────┐  Down / reading done  ┌───────────────────┐
    │   Empty   │ ──────────────▶ │ Inputting │ ────────────────────▶ │ ChoosingCandidate │
    └───────────┘                 └───────────┘ ◀──────────────────── └───────────────────┘
          ▲                        │    ▲    │        candidate chosen          │
          │     Space / Enter      │    │    │ Shift + ←/→                      │ Esc, Backspace,
          │ ◀──────────────────────┘    │    ▼                                  │ Delete
          │  (Committing, then Empty    │ ┌─────────┐                           ▼
          │   or AssociatedPhrases)     └─│ Marking │          EmptyIgnoringPreviousState
          │                               └─────────┘
          │   any other key    ┌───────────────────┐
          └────────────────────│ AssociatedPhrases │  Shift + selection key commits the
            (re-dispatched)    └───────────────────┘  phrase and looks up the next one

Two input modes are supported:

    plain_bopomofo  A finished syllable with several homophones opens the
                    candidate list right away; choosing commits.
    bopomofo        Syllables accumulate and the phrase grid picks the best
                    phrases; Down (or Space, if configured) opens candidates
                    for the phrase at the cursor.

Every call yields a KeyHandlerResult:

    HANDLED     states to show, the last one is the new current state
    ERROR       the key cannot be applied now; nothing changed
    UNHANDLED   the key means nothing to the input method; pass it on
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum, auto

import bopomofo
import punctuation
from composing_buffer import ComposingBuffer
from grid import MAX_SPAN_LENGTH
from input_state import (
    EMPTY_STATES, AssociatedPhrases, ChoosingCandidate, Committing, Empty,
    EmptyIgnoringPreviousState, Inputting, Marking,
)
from language_model import reading_key

logger = logging.getLogger(__name__)


MIN_MARKED_LENGTH = 2
MAX_MARKED_LENGTH = MAX_SPAN_LENGTH


class KeyHandlerOutcome(Enum):
    HANDLED = auto()
    ERROR = auto()
    UNHANDLED = auto()


@dataclass(frozen=True)
class KeyHandlerResult:
    outcome: KeyHandlerOutcome
    states: tuple = ()

    @property
    def state(self):
        """The resulting current state, or None if no state was emitted."""
        return self.states[-1] if self.states else None

    @property
    def consumed(self):
        return self.outcome is not KeyHandlerOutcome.UNHANDLED


def _handled(*states):
    return KeyHandlerResult(KeyHandlerOutcome.HANDLED, states)


_ERROR = KeyHandlerResult(KeyHandlerOutcome.ERROR)
_UNHANDLED = KeyHandlerResult(KeyHandlerOutcome.UNHANDLED)


def _phonetic_key(text):
    if len(text) == 1 and text.isascii() and text.isalpha():
        return text.lower()
    return text


class KeyHandler:
    """
    Bopomofo key handler.

    Args:
        language_model: language_model.LanguageModel used for every lookup
                        and for learning marked phrases
    """

    def __init__(self, language_model):
        self._lm = language_model
        self._buffer = ComposingBuffer(language_model)

    @property
    def buffer(self):
        return self._buffer

    def reset(self):
        """Drop whatever is being composed."""
        self._buffer.clear()

    def handle(self, event, state, preferences, state_callback, error_callback):
        """
        Handle one key event with callbacks.

        state_callback is called once per emitted state (a commit emits
        Committing followed by Empty or AssociatedPhrases).  error_callback is
        called once on an invalid transition.  Neither is called when the key
        is not handled, except when an associated phrase list is dismissed by
        a key that then passes through.

        Returns:
            bool: False if the key should be passed on to the application
        """
        result = self.process(event, state, preferences)
        for new_state in result.states:
            state_callback(new_state)
        if result.outcome is KeyHandlerOutcome.ERROR:
            error_callback()
        return result.consumed

    def process(self, event, state, preferences):
        """
        Handle one key event.

        Args:
            event: key_event.KeyEvent
            state: The current input state (the last state this handler emitted)
            preferences: preferences.PreferenceSnapshot

        Returns:
            KeyHandlerResult
        """
        if isinstance(state, EMPTY_STATES):
            self._buffer.clear()

        layout = bopomofo.get_layout(preferences.keyboard_layout)
        if self._buffer.composer.layout is not layout:
            self._buffer.composer.clear()
            self._buffer.composer.layout = layout

        snapshot = self._buffer.snapshot()
        if isinstance(state, ChoosingCandidate):
            result = self._handle_candidates(event, state, preferences)
        elif isinstance(state, AssociatedPhrases):
            result = self._handle_associated_phrases(event, state, preferences)
        elif isinstance(state, Marking):
            result = self._handle_marking(event, state, preferences)
        else:
            result = self._handle_input(event, preferences)

        if result.outcome is KeyHandlerOutcome.ERROR:
            self._buffer.restore(snapshot)

        logger.debug(f'{type(state).__name__} + {event.text!r} → {result.outcome.name} '
                     f'{[type(s).__name__ for s in result.states]}')
        return result

    # ─── Empty / Inputting ───────────────────────────────────────────────

    def _handle_input(self, event, preferences):
        buffer = self._buffer
        composer = buffer.composer

        if event.is_ctrl_hold or event.is_command_hold or event.is_option_hold:
            if (event.is_ctrl_hold and not (event.is_command_hold or event.is_option_hold)
                    and composer.is_empty() and punctuation.lookup(event.key, ctrl=True)):
                return self._insert_punctuation(event.key, True, preferences)
            return _UNHANDLED if buffer.is_empty() else _ERROR

        if event.is_esc:
            if buffer.is_empty():
                return _UNHANDLED
            if not composer.is_empty() and len(buffer):
                composer.clear()
                return _handled(self._inputting_state())
            buffer.clear()
            return _handled(EmptyIgnoringPreviousState())

        if event.is_backspace:
            if buffer.is_empty():
                return _UNHANDLED
            if not composer.is_empty():
                composer.backspace()
            elif not buffer.delete_reading_before_cursor():
                return _ERROR
            if buffer.is_empty():
                return _handled(EmptyIgnoringPreviousState())
            return _handled(self._inputting_state())

        if event.is_delete:
            if buffer.is_empty():
                return _UNHANDLED
            if not composer.is_empty() or not buffer.delete_reading_after_cursor():
                return _ERROR
            if buffer.is_empty():
                return _handled(EmptyIgnoringPreviousState())
            return _handled(self._inputting_state())

        if event.is_enter:
            if buffer.is_empty():
                return _UNHANDLED
            if not composer.is_empty():
                return _ERROR
            return self._commit(preferences)

        if event.is_cursor_backward or event.is_cursor_forward:
            if buffer.is_empty():
                return _UNHANDLED
            if not composer.is_empty():
                return _ERROR
            offset = -1 if event.is_cursor_backward else 1
            if event.is_shift_hold:
                return self._start_marking(offset)
            if not buffer.move_cursor(offset):
                return _ERROR
            return _handled(self._inputting_state())

        if event.is_home or event.is_end:
            if buffer.is_empty():
                return _UNHANDLED
            if not composer.is_empty():
                return _ERROR
            if not buffer.move_cursor_to(0 if event.is_home else len(buffer)):
                return _ERROR
            return _handled(self._inputting_state())

        if event.is_candidate_next:
            if buffer.is_empty():
                return _UNHANDLED
            if not composer.is_empty():
                return _ERROR
            return self._open_candidates(preferences)

        if event.is_cursor_key or event.is_tab:
            return _UNHANDLED if buffer.is_empty() else _ERROR

        if event.is_space and composer.is_empty():
            if buffer.is_empty():
                return _UNHANDLED
            if preferences.choose_candidate_using_space and not preferences.is_plain:
                return self._open_candidates(preferences)
            return self._commit(preferences)

        key = event.text
        if composer.layout.is_phonetic_key(_phonetic_key(key)):
            status = composer.process_key(key)
            if status == bopomofo.COMBINED:
                return _handled(self._inputting_state())
            if status == bopomofo.COMPLETED:
                return self._complete_reading(preferences)

        if not composer.is_empty():
            return _ERROR

        if key and punctuation.lookup(key, half_width=preferences.half_width_punctuation_enabled):
            return self._insert_punctuation(key, False, preferences)

        return _UNHANDLED if buffer.is_empty() else _ERROR

    def _complete_reading(self, preferences):
        buffer = self._buffer
        reading = buffer.composer.composed_string()
        buffer.composer.clear()
        buffer.insert_reading(reading)
        logger.debug(f'Reading completed: {reading}')

        if preferences.is_plain:
            position, candidates = self._anchored_candidates(preferences)
            if len(candidates) >= 2:
                return _handled(self._choosing_state(candidates))
            if candidates:
                buffer.grid.fix_candidate(position, candidates[0])
                return self._commit(preferences)
        return _handled(self._inputting_state())

    def _insert_punctuation(self, char, ctrl, preferences):
        half_width = preferences.half_width_punctuation_enabled
        reading = punctuation.reading_for(char, ctrl, half_width)
        self._buffer.insert_reading(reading)
        if len(punctuation.values_for_reading(reading)) > 1:
            position = self._buffer.cursor - 1
            return _handled(self._choosing_state(self._buffer.grid.candidates_at(position)))
        return _handled(self._inputting_state())

    def _commit(self, preferences, associated=True):
        text = self._buffer.text()
        self._buffer.clear()
        logger.debug(f'Committing {text!r}')
        return _handled(Committing(text), self._after_commit(text, preferences, associated))

    def _after_commit(self, text, preferences, associated=True):
        if associated and preferences.associated_phrases_enabled:
            phrases = self._lm.associated_phrases(text)
            if phrases:
                return AssociatedPhrases(tuple(phrases), 0)
        return Empty()

    def _inputting_state(self, tooltip=''):
        text, cursor = self._buffer.display()
        return Inputting(text, cursor, tooltip)

    # ─── ChoosingCandidate ───────────────────────────────────────────────

    def _anchored_candidates(self, preferences):
        """
        Return (position, candidates) for the candidate list at the cursor.

        In plain mode the list holds the single-reading candidates of the
        reading before the cursor.  Otherwise it holds every candidate
        starting where the best-path phrase at the cursor starts.
        """
        buffer = self._buffer
        index = max(buffer.cursor - 1, 0)
        if preferences.is_plain:
            candidates = [c for c in buffer.grid.candidates_at(index) if len(c.reading) == 1]
            return index, candidates
        node = buffer.node_covering(index)
        position = node.start if node is not None else index
        return position, buffer.grid.candidates_at(position)

    def _open_candidates(self, preferences):
        _, candidates = self._anchored_candidates(preferences)
        if not candidates:
            return _ERROR
        return _handled(self._choosing_state(candidates))

    def _choosing_state(self, candidates):
        text, cursor = self._buffer.display()
        return ChoosingCandidate(text, cursor, tuple(candidates), 0)

    def _choose_candidate(self, candidate, preferences, associated=True):
        position, _ = self._anchored_candidates(preferences)
        if not self._buffer.grid.fix_candidate(position, candidate):
            return _ERROR
        logger.debug(f'Candidate chosen: {candidate.value} at {position}')
        if preferences.is_plain:
            return self._commit(preferences, associated)
        return _handled(self._inputting_state())

    def _handle_candidates(self, event, state, preferences):
        candidates = state.candidates
        selection_keys = preferences.candidate_selection_keys

        if event.is_esc or event.is_backspace or event.is_delete:
            self._buffer.clear()
            return _handled(EmptyIgnoringPreviousState())

        if event.is_enter:
            return self._choose_candidate(candidates[state.selected_index], preferences)

        no_modifiers = not (event.is_ctrl_hold or event.is_command_hold or event.is_option_hold)
        key = event.key
        if no_modifiers and len(key) == 1 and key in selection_keys:
            index = _page_start(state.selected_index, len(selection_keys)) + selection_keys.index(key)
            if index >= len(candidates):
                return _ERROR
            return self._choose_candidate(candidates[index], preferences)

        recognized, index = _navigate(event, state.selected_index, len(candidates),
                                      len(selection_keys), space_pages=True)
        if recognized:
            if index is None:
                return _ERROR
            return _handled(replace(state, selected_index=index))

        if preferences.is_plain and no_modifiers and event.text:
            half_width = preferences.half_width_punctuation_enabled
            starts_syllable = bool(self._buffer.composer.layout.components_for(_phonetic_key(event.text)))
            if starts_syllable or punctuation.lookup(event.text, half_width=half_width):
                chosen = self._choose_candidate(candidates[state.selected_index], preferences,
                                                associated=False)
                if chosen.outcome is not KeyHandlerOutcome.HANDLED:
                    return chosen
                follow = self._handle_input(event, preferences)
                if follow.outcome is KeyHandlerOutcome.HANDLED:
                    return _handled(*chosen.states, *follow.states)
                return chosen

        return _ERROR

    # ─── AssociatedPhrases ───────────────────────────────────────────────

    def _handle_associated_phrases(self, event, state, preferences):
        candidates = state.candidates
        selection_keys = preferences.candidate_selection_keys

        if event.is_esc or event.is_backspace or event.is_delete:
            return _handled(EmptyIgnoringPreviousState())

        if event.is_enter:
            return self._commit_associated(candidates[state.selected_index], preferences)

        key = event.key
        if (event.is_shift_hold and not (event.is_ctrl_hold or event.is_command_hold)
                and len(key) == 1 and key in selection_keys):
            index = _page_start(state.selected_index, len(selection_keys)) + selection_keys.index(key)
            if index >= len(candidates):
                return _ERROR
            return self._commit_associated(candidates[index], preferences)

        recognized, index = _navigate(event, state.selected_index, len(candidates),
                                      len(selection_keys), space_pages=False)
        if recognized:
            if index is None:
                return _ERROR
            return _handled(replace(state, selected_index=index))

        # Any other key dismisses the list and is handled as if nothing was shown
        cancel = EmptyIgnoringPreviousState()
        follow = self._handle_input(event, preferences)
        if follow.outcome is KeyHandlerOutcome.HANDLED:
            return _handled(cancel, *follow.states)
        if follow.outcome is KeyHandlerOutcome.UNHANDLED:
            return KeyHandlerResult(KeyHandlerOutcome.UNHANDLED, (cancel,))
        return _handled(cancel)

    def _commit_associated(self, candidate, preferences):
        text = candidate.value
        logger.debug(f'Associated phrase chosen: {text}')
        return _handled(Committing(text), self._after_commit(text, preferences))

    # ─── Marking ─────────────────────────────────────────────────────────

    def _start_marking(self, offset):
        buffer = self._buffer
        marker = buffer.cursor + offset
        if not 0 <= marker <= len(buffer):
            return _ERROR
        buffer.marker = marker
        return _handled(self._marking_state())

    def _handle_marking(self, event, state, preferences):
        buffer = self._buffer
        if buffer.marker is None:
            buffer.marker = buffer.cursor

        if event.is_esc:
            buffer.marker = None
            return _handled(self._inputting_state())

        if event.is_enter:
            if not state.acceptable:
                return _ERROR
            if not self._lm.add_user_phrase(state.marked_text, state.readings):
                return _ERROR
            buffer.grid.refresh()
            start = min(buffer.cursor, buffer.marker)
            for candidate in buffer.grid.candidates_at(start):
                if candidate.value == state.marked_text and candidate.reading == state.readings:
                    buffer.grid.fix_candidate(start, candidate)
                    break
            buffer.marker = None
            return _handled(self._inputting_state(tooltip=f'Added "{state.marked_text}".'))

        if (event.is_shift_hold and not (event.is_ctrl_hold or event.is_command_hold)
                and (event.is_cursor_backward or event.is_cursor_forward)):
            marker = buffer.marker + (-1 if event.is_cursor_backward else 1)
            if not 0 <= marker <= len(buffer):
                return _ERROR
            if marker == buffer.cursor:
                buffer.marker = None
                return _handled(self._inputting_state())
            buffer.marker = marker
            return _handled(self._marking_state())

        buffer.marker = None
        return self._handle_input(event, preferences)

    def _marking_state(self):
        buffer = self._buffer
        walked = buffer.walk()
        text = ''.join(node.value for node in walked)
        cursor = buffer.char_index(buffer.cursor, walked)
        marker = buffer.char_index(buffer.marker, walked)
        low, high = sorted((buffer.cursor, buffer.marker))
        readings = buffer.readings[low:high]
        marked_text = text[min(cursor, marker):max(cursor, marker)]
        acceptable, tooltip = self._check_mark(marked_text, readings)
        return Marking(text, cursor, marker, marked_text, readings, acceptable, tooltip)

    def _check_mark(self, marked_text, readings):
        """Decide whether the marked span may be learned; return (acceptable, tooltip)."""
        if any(punctuation.is_punctuation_reading(r) for r in readings):
            return False, 'Punctuation cannot be part of a phrase.'
        if len(readings) < MIN_MARKED_LENGTH:
            return False, f'Marking at least {MIN_MARKED_LENGTH} syllables is required.'
        if len(readings) > MAX_MARKED_LENGTH:
            return False, f'Marking at most {MAX_MARKED_LENGTH} syllables is allowed.'
        if len(marked_text) != len(readings):
            return False, f'"{marked_text}" does not match its syllables.'
        if any(c.value == marked_text for c in self._lm.candidates(readings)):
            return False, f'"{marked_text}" already exists.'
        return True, f'Press Enter to add "{marked_text}" ({reading_key(readings)}).'


def _page_start(index, page_size):
    return index - index % page_size


def _navigate(event, index, count, page_size, space_pages):
    """
    Move the highlight of a candidate list.

    Returns:
        tuple: (recognized, new_index) where new_index is None when the key
               is a navigation key that cannot move any further
    """
    start = _page_start(index, page_size)
    if event.is_candidate_previous:
        return True, index - 1 if index > 0 else None
    if event.is_candidate_next:
        return True, index + 1 if index + 1 < count else None
    if event.is_page_up:
        return True, max(start - page_size, 0) if start > 0 else None
    if event.is_page_down:
        return True, start + page_size if start + page_size < count else None
    if space_pages and event.is_space:
        # Space wraps around to the first page
        return True, start + page_size if start + page_size < count else 0
    return False, None
