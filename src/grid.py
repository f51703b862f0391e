#!/usr/bin/env python3
# grid.py - Phrase grid over the readings of the composing buffer
"""
Phrase Grid
===========

The grid holds the readings of the composing buffer and, for every span of
up to MAX_SPAN_LENGTH readings that the language model knows, a node with the
candidates for that span:

    readings:   ㄋㄧˇ    ㄏㄠˇ    ㄇㄚ˙
    position:  0       1       2       3

    spans[0] = {1: [你, 妳, 擬, ...], 2: [你好]}
    spans[1] = {1: [好, 號, ...]}
    spans[2] = {1: [嗎, 麼, ...]}

Positions are plain integer indices.  walk() finds the maximum-weight path
from position 0 to len(readings) with a single forward pass of dynamic
programming.  The weight of a node is the score of its selected candidate
plus SPAN_BONUS for every reading beyond the first, so that a longer phrase
wins whenever the scores tie.  A node the user pinned with fix_candidate()
weighs OVERRIDE_SCORE instead.

A single reading with no dictionary entry gets a fallback node that displays
the reading itself, so every position can always be crossed.
"""

import logging
from dataclasses import dataclass

from language_model import Candidate

logger = logging.getLogger(__name__)


MAX_SPAN_LENGTH = 6
SPAN_BONUS = 0.001
OVERRIDE_SCORE = 42.0
FALLBACK_SCORE = -99.0


@dataclass(frozen=True)
class WalkedNode:
    """One step of the best path: the span [start, start + length)."""
    start: int
    length: int
    value: str
    score: float
    reading: tuple

    @property
    def end(self):
        return self.start + self.length


class Node:
    """Candidates of one reading span, plus the user's pinned choice."""

    def __init__(self, reading, candidates):
        self.reading = reading
        self.candidates = list(candidates)
        self.selected = 0
        self.overridden = False

    @property
    def value(self):
        return self.candidates[self.selected].value

    @property
    def score(self):
        if self.overridden:
            return OVERRIDE_SCORE
        return self.candidates[self.selected].score

    def select(self, value):
        for i, candidate in enumerate(self.candidates):
            if candidate.value == value:
                self.selected = i
                self.overridden = True
                return True
        return False

    def reset(self):
        self.selected = 0
        self.overridden = False

    def replace_candidates(self, candidates):
        """Swap in fresh candidates, keeping a pinned value if still offered."""
        pinned = self.value if self.overridden else None
        self.candidates = list(candidates)
        self.reset()
        if pinned is not None:
            self.select(pinned)

    def copy(self):
        node = Node(self.reading, self.candidates)
        node.selected = self.selected
        node.overridden = self.overridden
        return node


class PhraseGrid:
    """
    Segmentation lattice over a sequence of readings.

    Args:
        lookup: callable(tuple of readings) -> list of Candidate, best first
        display: callable(reading) -> str, text shown for a reading that has
                 no candidates (defaults to the reading itself)
    """

    def __init__(self, lookup, display=None):
        self._lookup = lookup
        self._display = display or (lambda reading: reading)
        self._readings = []
        self._spans = []    # _spans[start] = {length: Node}

    def __len__(self):
        return len(self._readings)

    @property
    def readings(self):
        return tuple(self._readings)

    def clear(self):
        self._readings = []
        self._spans = []

    def insert_reading(self, index, reading):
        if not 0 <= index <= len(self._readings):
            raise IndexError(f'Reading index out of range: {index}')
        self._readings.insert(index, reading)
        self._spans.insert(index, {})
        self._drop_crossing(index)
        self._update(index)

    def delete_reading(self, index):
        if not 0 <= index < len(self._readings):
            raise IndexError(f'Reading index out of range: {index}')
        del self._readings[index]
        del self._spans[index]
        self._drop_crossing(index)
        self._update(index)

    def refresh(self):
        """Re-query every span, e.g. after the user dictionary changed."""
        n = len(self._readings)
        for start in range(n):
            for length in range(1, min(MAX_SPAN_LENGTH, n - start) + 1):
                reading = tuple(self._readings[start:start + length])
                candidates = self._candidates_for(reading)
                node = self._spans[start].get(length)
                if not candidates:
                    self._spans[start].pop(length, None)
                elif node is None:
                    self._spans[start][length] = Node(reading, candidates)
                else:
                    node.replace_candidates(candidates)

    def nodes_at(self, start):
        return dict(self._spans[start])

    def walk(self):
        """
        Find the best segmentation of the whole reading sequence.

        Returns:
            list: WalkedNode objects covering [0, len(readings)) in order
        """
        n = len(self._readings)
        best = [float('-inf')] * (n + 1)
        back = [None] * (n + 1)
        best[0] = 0.0

        for i in range(n):
            if best[i] == float('-inf'):
                continue
            for length, node in self._spans[i].items():
                j = i + length
                weight = best[i] + node.score + SPAN_BONUS * (length - 1)
                if weight > best[j] or (weight == best[j] and back[j] is not None
                                        and length > back[j][1]):
                    best[j] = weight
                    back[j] = (i, length)

        path = []
        j = n
        while j > 0:
            i, length = back[j]
            node = self._spans[i][length]
            path.append(WalkedNode(i, length, node.value, node.score, node.reading))
            j = i
        path.reverse()
        return path

    def candidates_at(self, position):
        """
        List every candidate whose span starts at position.

        Sorted by score descending, then by phrase length descending.
        Each value appears once.
        """
        if not 0 <= position < len(self._readings):
            return []
        collected = []
        for length, node in self._spans[position].items():
            collected.extend(node.candidates)
        collected.sort(key=lambda c: (-c.score, -len(c.reading)))
        results = []
        seen = set()
        for candidate in collected:
            if candidate.value in seen:
                continue
            seen.add(candidate.value)
            results.append(candidate)
        return results

    def fix_candidate(self, position, candidate):
        """
        Pin candidate at position so that walk() always goes through it.

        Pins on nodes overlapping the candidate's span are released.

        Returns:
            bool: False if no node at position offers the candidate
        """
        length = len(candidate.reading)
        node = self._spans[position].get(length) if 0 <= position < len(self._spans) else None
        if node is None or all(c.value != candidate.value for c in node.candidates):
            logger.debug(f'Cannot pin {candidate.value} at {position}')
            return False

        end = position + length
        for start in range(max(0, position - MAX_SPAN_LENGTH + 1), min(end, len(self._spans))):
            for other_length, other in self._spans[start].items():
                if start + other_length > position:
                    other.reset()
        node.select(candidate.value)
        return True

    def snapshot(self):
        return (list(self._readings),
                [{length: node.copy() for length, node in span.items()} for span in self._spans])

    def restore(self, snapshot):
        readings, spans = snapshot
        self._readings = list(readings)
        self._spans = [{length: node.copy() for length, node in span.items()} for span in spans]

    def _candidates_for(self, reading):
        candidates = self._lookup(reading)
        if not candidates and len(reading) == 1:
            candidates = [Candidate(self._display(reading[0]), reading, FALLBACK_SCORE, 'fallback')]
        return candidates

    def _drop_crossing(self, index):
        """Remove nodes that span across index (they no longer match)."""
        for start in range(max(0, index - MAX_SPAN_LENGTH + 1), min(index, len(self._spans))):
            span = self._spans[start]
            for length in [n for n in span if start + n > index]:
                del span[length]

    def _update(self, index):
        """Create the missing nodes for spans touching index."""
        n = len(self._readings)
        for start in range(max(0, index - MAX_SPAN_LENGTH + 1), min(index + 1, n)):
            for length in range(1, min(MAX_SPAN_LENGTH, n - start) + 1):
                if length in self._spans[start]:
                    continue
                reading = tuple(self._readings[start:start + length])
                candidates = self._candidates_for(reading)
                if candidates:
                    self._spans[start][length] = Node(reading, candidates)
