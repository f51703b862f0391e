#!/usr/bin/env python3
# punctuation.py - Punctuation tables (full-width, half-width, ctrl shortcuts)
"""
Punctuation keys are entered into the composing buffer as pseudo readings
with the PUNCTUATION_READING_PREFIX, so that the phrase grid can treat them
like any other syllable.  The values offered for such a reading come from the
tables below:

    FULL_WIDTH   character → tuple of full-width candidates
    HALF_WIDTH   character → literal (used when half-width punctuation is on)
    CTRL         ctrl + character → full-width literal

A lookup that yields a single value is inserted directly; several values
open the candidate list.
"""

PUNCTUATION_READING_PREFIX = '_punctuation_'

FULL_WIDTH = {
    '`': ('，', '、', '。', '．', '？', '！', '；', '：', '‧', '‥', '﹐', '﹒',
          '˙', '·', '‘', '’', '“', '”', '〝', '〞', '‵', '′', '〃', '～',
          '＄', '％', '＠', '＆', '＃', '＊'),
    '<': ('，', '＜', '〈', '《'),
    '>': ('。', '＞', '〉', '》'),
    '[': ('「', '【', '〔', '［'),
    ']': ('」', '】', '〕', '］'),
    '{': ('『', '〖', '｛', '《'),
    '}': ('』', '〗', '｝', '》'),
    '~': ('～',),
    '!': ('！',),
    '@': ('＠',),
    '#': ('＃',),
    '$': ('＄',),
    '%': ('％',),
    '^': ('︿',),
    '&': ('＆',),
    '*': ('＊',),
    '(': ('（',),
    ')': ('）',),
    '_': ('——',),
    '+': ('＋',),
    '=': ('＝',),
    '|': ('｜',),
    '\\': ('、',),
    ':': ('：',),
    '"': ('；',),
    "'": ('、',),
    '?': ('？',),
}

HALF_WIDTH = {
    '<': ',',
    '>': '.',
    '[': '[',
    ']': ']',
    '{': '{',
    '}': '}',
    '~': '~',
    '!': '!',
    '@': '@',
    '#': '#',
    '$': '$',
    '%': '%',
    '^': '^',
    '&': '&',
    '*': '*',
    '(': '(',
    ')': ')',
    '_': '_',
    '+': '+',
    '=': '=',
    '|': '|',
    '\\': '\\',
    ':': ':',
    '"': ';',
    "'": "'",
    '?': '?',
}

CTRL = {
    ',': '，',
    '.': '。',
    '/': '？',
    ';': '；',
    "'": '、',
    '[': '「',
    ']': '」',
    '!': '！',
    '?': '？',
}


def lookup(char, ctrl=False, half_width=False):
    """
    Look up the punctuation values for a key.

    Args:
        char: Key text (ignoring ctrl)
        ctrl: Whether the control modifier is held
        half_width: Whether half-width punctuation is enabled

    Returns:
        tuple: Candidate values, empty if the key is not punctuation
    """
    if ctrl:
        return (CTRL[char],) if char in CTRL else ()
    if half_width and char in HALF_WIDTH:
        return (HALF_WIDTH[char],)
    return FULL_WIDTH.get(char, ())


def reading_for(char, ctrl=False, half_width=False):
    """Return the pseudo reading under which the key enters the buffer."""
    if ctrl:
        return f'{PUNCTUATION_READING_PREFIX}ctrl_{char}'
    if half_width and char in HALF_WIDTH:
        return f'{PUNCTUATION_READING_PREFIX}half_{char}'
    return f'{PUNCTUATION_READING_PREFIX}{char}'


def is_punctuation_reading(reading):
    return reading.startswith(PUNCTUATION_READING_PREFIX)


def values_for_reading(reading):
    """Inverse of reading_for(): the values a punctuation reading offers."""
    if not is_punctuation_reading(reading):
        return ()
    rest = reading[len(PUNCTUATION_READING_PREFIX):]
    if rest.startswith('ctrl_') and len(rest) == len('ctrl_') + 1:
        return lookup(rest[-1], ctrl=True)
    if rest.startswith('half_') and len(rest) == len('half_') + 1:
        return lookup(rest[-1], half_width=True)
    return lookup(rest)
