#!/usr/bin/env python3
# bopomofo.py - Bopomofo (注音) syllable model, keyboard layouts and composer
"""
Bopomofo syllable composition.

A Mandarin syllable written in Bopomofo has up to four slots:

    ┌───────────┬─────────┬─────────┬──────┐
    │ consonant │ medial  │ vowel   │ tone │
    │ ㄅ .. ㄙ  │ ㄧ ㄨ ㄩ │ ㄚ .. ㄦ │ 1..5 │
    └───────────┴─────────┴─────────┴──────┘

On the full-size layouts (Standard, ETen, IBM) each key maps to exactly one
component.  Typing a key fills (or replaces) the slot of that component's
category.  Typing a tone key finalizes the syllable, which then becomes a
"reading" that can be looked up in the language model.  The 26-key layouts
(Hsu, ETen26) share keys between components; see KeyboardLayout.

The composed string lists the filled slots in order.  Tone 1 (陰平) carries
no visible mark; tones 2 to 5 are written as ˊ ˇ ˋ ˙.

    ㄋ + ㄧ + 3  →  ㄋㄧˇ
    ㄇ + ㄧ + ㄠ + (space) →  ㄇㄧㄠ
"""

import logging

logger = logging.getLogger(__name__)


CONSONANTS = 'ㄅㄆㄇㄈㄉㄊㄋㄌㄍㄎㄏㄐㄑㄒㄓㄔㄕㄖㄗㄘㄙ'
MEDIALS = 'ㄧㄨㄩ'
VOWELS = 'ㄚㄛㄜㄝㄞㄟㄠㄡㄢㄣㄤㄥㄦ'
TONE_MARKS = {2: 'ˊ', 3: 'ˇ', 4: 'ˋ', 5: '˙'}
MARK_TO_TONE = {mark: tone for tone, mark in TONE_MARKS.items()}

# Phonotactic classes
JQX = 'ㄐㄑㄒ'
ZCSR = 'ㄓㄔㄕㄖㄗㄘㄙ'
GKH = 'ㄍㄎㄏ'
BPMF = 'ㄅㄆㄇㄈ'

# Results of BopomofoComposer.process_key()
COMBINED = 'combined'      # key was accepted, syllable still open
COMPLETED = 'completed'    # tone applied, syllable is a complete reading
IGNORED = 'ignored'        # key is not phonetic here, nothing changed


class BopomofoSyllable:
    """An immutable Bopomofo syllable value.

    Empty slots are '' (tone 0).  Two syllables compare equal when all of
    their slots are equal.
    """

    __slots__ = ('consonant', 'medial', 'vowel', 'tone')

    def __init__(self, consonant='', medial='', vowel='', tone=0):
        if consonant and consonant not in CONSONANTS:
            raise ValueError(f'Not a Bopomofo consonant: {consonant!r}')
        if medial and medial not in MEDIALS:
            raise ValueError(f'Not a Bopomofo medial: {medial!r}')
        if vowel and vowel not in VOWELS:
            raise ValueError(f'Not a Bopomofo vowel: {vowel!r}')
        if tone not in (0, 1, 2, 3, 4, 5):
            raise ValueError(f'Invalid tone: {tone!r}')
        object.__setattr__(self, 'consonant', consonant)
        object.__setattr__(self, 'medial', medial)
        object.__setattr__(self, 'vowel', vowel)
        object.__setattr__(self, 'tone', tone)

    def __setattr__(self, name, value):
        raise AttributeError('BopomofoSyllable is immutable')

    def __eq__(self, other):
        if not isinstance(other, BopomofoSyllable):
            return NotImplemented
        return self._slots() == other._slots()

    def __hash__(self):
        return hash(self._slots())

    def __repr__(self):
        return f'BopomofoSyllable({self.composed_string()!r})'

    def _slots(self):
        return (self.consonant, self.medial, self.vowel, self.tone)

    def replace(self, **slots):
        values = dict(zip(self.__slots__, self._slots()))
        values.update(slots)
        return BopomofoSyllable(**values)

    def is_empty(self):
        return not (self.consonant or self.medial or self.vowel or self.tone)

    def is_complete(self):
        return self.tone != 0

    def has_tone_carrier(self):
        """Return True when the syllable can take a tone mark.

        A tone needs a vowel or a medial, except for ㄓㄔㄕㄖㄗㄘㄙ which
        are syllabic on their own (e.g. ㄓ, ㄙˋ).
        """
        return bool(self.vowel or self.medial or (self.consonant and self.consonant in ZCSR))

    def is_valid(self):
        """Check the phonotactic constraints of Mandarin."""
        c, m, v = self.consonant, self.medial, self.vowel
        if c and c in JQX:
            if m == 'ㄨ':
                return False
            if v and not m:
                return False
        if c and (c in ZCSR or c in GKH) and m in ('ㄧ', 'ㄩ'):
            return False
        if c and c in BPMF and m == 'ㄩ':
            return False
        if v == 'ㄦ' and (c or m):
            return False
        if self.tone and not self.has_tone_carrier():
            return False
        return True

    def composed_string(self):
        tone_mark = TONE_MARKS.get(self.tone, '')
        return f'{self.consonant}{self.medial}{self.vowel}{tone_mark}'

    def absolute_order(self):
        """Compact integer key of the syllable (0 for the empty syllable)."""
        c = CONSONANTS.index(self.consonant) + 1 if self.consonant else 0
        m = MEDIALS.index(self.medial) + 1 if self.medial else 0
        v = VOWELS.index(self.vowel) + 1 if self.vowel else 0
        return c + m * 22 + v * 22 * 4 + self.tone * 22 * 4 * 14

    @classmethod
    def from_composed_string(cls, text):
        """Parse a composed string such as 'ㄋㄧˇ' back into a syllable.

        Raises:
            ValueError: if the string is not a well-formed syllable
        """
        consonant = medial = vowel = ''
        tone = 0
        for i, ch in enumerate(text):
            if ch in MARK_TO_TONE:
                if i != len(text) - 1 or tone:
                    raise ValueError(f'Misplaced tone mark in {text!r}')
                tone = MARK_TO_TONE[ch]
            elif ch in CONSONANTS and not (consonant or medial or vowel):
                consonant = ch
            elif ch in MEDIALS and not (medial or vowel):
                medial = ch
            elif ch in VOWELS and not vowel:
                vowel = ch
            else:
                raise ValueError(f'Malformed Bopomofo syllable: {text!r}')
        if not (consonant or medial or vowel):
            raise ValueError(f'Empty Bopomofo syllable: {text!r}')
        # Tone 1 has no mark: a parsed syllable without a mark is tone 1
        return cls(consonant, medial, vowel, tone or 1)


class KeyboardLayout:
    """
    Maps keyboard keys to Bopomofo components and tones.

    Each key carries a tuple of entries: component characters and tone
    numbers.  Most layouts give every key a single entry.  Compact layouts
    (Hsu, ETen26) put two or three entries on one key; which one a key press
    means is decided from the keys around it, so a compound layout resolves
    the whole key sequence of the syllable on every press.

    Args:
        name: Layout name as used in the configuration
        keys: {key: tuple of entries}
        fixup: optional callable(BopomofoSyllable) -> BopomofoSyllable applied
               after a key sequence has been resolved
    """

    def __init__(self, name, keys, fixup=None):
        self.name = name
        self.keys = {key: tuple(entries) for key, entries in keys.items()}
        self.is_compound = any(len(entries) > 1 for entries in self.keys.values())
        self._fixup = fixup
        self._key_of = {}
        for key, entries in self.keys.items():
            for entry in entries:
                self._key_of.setdefault(entry, key)

    def __repr__(self):
        return f'KeyboardLayout({self.name!r})'

    def is_phonetic_key(self, key):
        return key in self.keys

    def components_for(self, key):
        """Return the component characters (not tones) a key can stand for."""
        return tuple(e for e in self.keys.get(key, ()) if isinstance(e, str))

    def key_for(self, entry):
        return self._key_of.get(entry, '')

    def keys_from_syllable(self, syllable):
        """Return the key sequence that types syllable on this layout."""
        entries = (syllable.consonant, syllable.medial, syllable.vowel, syllable.tone)
        return ''.join(self.key_for(entry) for entry in entries if entry)

    def syllable_from_keys(self, sequence):
        """
        Resolve a key sequence into a syllable.

        Keys with a single entry simply fill their slot.  For a key with
        several entries (head, follow and an optional ending) the choice
        depends on what was typed before it and on the key after it:

            ㄝ vs. other        ㄝ only after the ㄧ or ㄩ key
            ㄐㄑㄒ vs. other     ㄐㄑㄒ only before the ㄧ or ㄩ key
            key typed alone     head, unless follow is the vowel
            otherwise           head while its slot is free, else follow/ending
        """
        syllable = BopomofoSyllable()
        for i, key in enumerate(sequence):
            entries = self.keys.get(key, ())
            if not entries:
                continue
            if len(entries) == 1:
                syllable = _add(syllable, entries[0])
                continue

            head, follow = _entry_syllable(entries[0]), _entry_syllable(entries[1])
            ending = _entry_syllable(entries[2]) if len(entries) > 2 else follow
            before_has_medial = self._has_i_or_ue(sequence[:i])
            ahead_has_medial = self._has_i_or_ue(sequence[i + 1:])
            tone_ahead = self._tone_ahead(sequence[i + 1:])

            if head.vowel == 'ㄝ' and follow.vowel != 'ㄝ':
                chosen = head if before_has_medial else follow
            elif head.vowel != 'ㄝ' and follow.vowel == 'ㄝ':
                chosen = follow if before_has_medial else head
            elif _is_jqx(head) != _is_jqx(follow):
                jqx, other = (head, follow) if _is_jqx(head) else (follow, head)
                if not syllable.is_empty():
                    chosen = ending if ending != follow else None
                else:
                    chosen = jqx if ahead_has_medial else other
            elif len(sequence) == 1:
                if head.vowel or follow.tone or _is_zcsr(head):
                    chosen = head
                elif follow.vowel or ending.tone:
                    chosen = follow
                else:
                    chosen = ending
            elif not (_mask(syllable) & _mask(head)) and not tone_ahead:
                chosen = head
            elif tone_ahead and _is_zcsr(head) and syllable.is_empty():
                chosen = head
            elif _mask(syllable) < _mask(follow):
                chosen = follow
            else:
                chosen = ending

            if chosen is not None:
                syllable = _merge(syllable, chosen)

        if self._fixup is not None:
            syllable = self._fixup(syllable)
        return syllable

    def _has_i_or_ue(self, keys):
        return any(key in keys for key in (self.key_for('ㄧ'), self.key_for('ㄩ')) if key)

    def _tone_ahead(self, keys):
        """True at the end of the sequence or when the next key is a tone key."""
        if not keys:
            return True
        return any(self.key_for(tone) == keys[0] for tone in range(1, 6))


def _entry_syllable(entry):
    return _add(BopomofoSyllable(), entry)


def _add(syllable, entry):
    """Put one component or tone into its slot."""
    if isinstance(entry, int):
        return syllable.replace(tone=entry)
    if entry in CONSONANTS:
        return syllable.replace(consonant=entry)
    if entry in MEDIALS:
        return syllable.replace(medial=entry)
    return syllable.replace(vowel=entry)


def _merge(syllable, other):
    filled = {slot: value for slot, value in zip(other.__slots__, other._slots()) if value}
    return syllable.replace(**filled)


def _mask(syllable):
    return ((1 if syllable.consonant else 0) | (2 if syllable.medial else 0)
            | (4 if syllable.vowel else 0) | (8 if syllable.tone else 0))


def _is_jqx(syllable):
    return bool(syllable.consonant) and syllable.consonant in JQX


def _is_zcsr(syllable):
    return bool(syllable.consonant) and syllable.consonant in ZCSR


def _hsu_fixup(syllable):
    # A lone ㄥ is read as ㄦ, and ㄍ before ㄧ or ㄩ is ㄐ
    if syllable.vowel == 'ㄥ' and not syllable.consonant and not syllable.medial:
        return syllable.replace(vowel='ㄦ')
    if syllable.consonant == 'ㄍ' and syllable.medial in ('ㄧ', 'ㄩ'):
        return syllable.replace(consonant='ㄐ')
    return syllable


def _layout(name, initials, medials, finals, tones):
    keys = {}
    for table in (initials, medials, finals):
        for key, component in zip(table[0], table[1]):
            keys[key] = (component,)
    for key, tone in tones.items():
        keys[key] = (tone,)
    return KeyboardLayout(name, keys)


# 大千 (Standard)
STANDARD_LAYOUT = _layout(
    'standard',
    ('1qaz2wsxedcrfv5tgbyhn', 'ㄅㄆㄇㄈㄉㄊㄋㄌㄍㄎㄏㄐㄑㄒㄓㄔㄕㄖㄗㄘㄙ'),
    ('ujm', 'ㄧㄨㄩ'),
    ('8ik,9ol.0p;/-', 'ㄚㄛㄜㄝㄞㄟㄠㄡㄢㄣㄤㄥㄦ'),
    {' ': 1, '6': 2, '3': 3, '4': 4, '7': 5},
)

# 倚天 (ETen)
ETEN_LAYOUT = _layout(
    'eten',
    ('bpmfdtnlvkhg7c,./j;\'s', 'ㄅㄆㄇㄈㄉㄊㄋㄌㄍㄎㄏㄐㄑㄒㄓㄔㄕㄖㄗㄘㄙ'),
    ('exu', 'ㄧㄨㄩ'),
    ('aorwiqzy890-=', 'ㄚㄛㄜㄝㄞㄟㄠㄡㄢㄣㄤㄥㄦ'),
    {' ': 1, '2': 2, '3': 3, '4': 4, '1': 5},
)

# IBM
IBM_LAYOUT = _layout(
    'ibm',
    ('1234567890-qwertyuiop', 'ㄅㄆㄇㄈㄉㄊㄋㄌㄍㄎㄏㄐㄑㄒㄓㄔㄕㄖㄗㄘㄙ'),
    ('asd', 'ㄧㄨㄩ'),
    ('fghjkl;zxcvbn', 'ㄚㄛㄜㄝㄞㄟㄠㄡㄢㄣㄤㄥㄦ'),
    {' ': 1, 'm': 2, ',': 3, '.': 4, '/': 5},
)

# 許氏 (Hsu)
HSU_LAYOUT = KeyboardLayout('hsu', {
    'b': ('ㄅ',), 'p': ('ㄆ',), 'm': ('ㄇ', 'ㄢ'), 'f': ('ㄈ', 3),
    'd': ('ㄉ', 2), 't': ('ㄊ',), 'n': ('ㄋ', 'ㄣ'), 'l': ('ㄌ', 'ㄥ', 'ㄦ'),
    'g': ('ㄍ', 'ㄜ'), 'k': ('ㄎ', 'ㄤ'), 'h': ('ㄏ', 'ㄛ'),
    'j': ('ㄐ', 'ㄓ', 4), 'v': ('ㄑ', 'ㄔ'), 'c': ('ㄒ', 'ㄕ'), 'r': ('ㄖ',),
    'z': ('ㄗ',), 'a': ('ㄘ', 'ㄟ'), 's': ('ㄙ', 5),
    'e': ('ㄧ', 'ㄝ'), 'x': ('ㄨ',), 'u': ('ㄩ',),
    'y': ('ㄚ',), 'i': ('ㄞ',), 'w': ('ㄠ',), 'o': ('ㄡ',),
    ' ': (1,),
}, fixup=_hsu_fixup)

# 倚天26鍵 (ETen26)
ETEN26_LAYOUT = KeyboardLayout('eten26', {
    'b': ('ㄅ',), 'p': ('ㄆ', 'ㄡ'), 'm': ('ㄇ', 'ㄢ'), 'f': ('ㄈ', 2),
    'd': ('ㄉ', 5), 't': ('ㄊ', 'ㄤ'), 'n': ('ㄋ', 'ㄣ'), 'l': ('ㄌ', 'ㄥ'),
    'v': ('ㄍ', 'ㄑ'), 'k': ('ㄎ', 4), 'h': ('ㄏ', 'ㄦ'),
    'g': ('ㄓ', 'ㄐ'), 'c': ('ㄕ', 'ㄒ'), 'y': ('ㄔ',), 'j': ('ㄖ', 3),
    'q': ('ㄗ', 'ㄟ'), 'w': ('ㄘ', 'ㄝ'), 's': ('ㄙ',),
    'e': ('ㄧ',), 'x': ('ㄨ',), 'u': ('ㄩ',),
    'a': ('ㄚ',), 'o': ('ㄛ',), 'r': ('ㄜ',), 'i': ('ㄞ',), 'z': ('ㄠ',),
    ' ': (1,),
})

LAYOUTS = {
    layout.name: layout
    for layout in (STANDARD_LAYOUT, ETEN_LAYOUT, HSU_LAYOUT, ETEN26_LAYOUT, IBM_LAYOUT)
}


def get_layout(name):
    """Return the keyboard layout registered under name.

    Raises:
        ValueError: for unknown layout names
    """
    try:
        return LAYOUTS[name]
    except KeyError:
        raise ValueError(f'Unknown keyboard layout: {name!r}') from None


class BopomofoComposer:
    """
    Assembles raw key presses into a single Bopomofo syllable.

    Keys that would produce a phonotactically invalid syllable are rejected
    without changing the composer (IGNORED).  backspace() removes the most
    recently filled slot, or the last key of the sequence on a compound
    layout.
    """

    def __init__(self, layout=STANDARD_LAYOUT):
        self.layout = layout
        self._syllable = BopomofoSyllable()
        self._fill_order = []   # slot names, oldest first

    @property
    def syllable(self):
        return self._syllable

    def is_empty(self):
        return self._syllable.is_empty()

    def is_complete(self):
        return self._syllable.is_complete()

    def composed_string(self):
        return self._syllable.composed_string()

    def clear(self):
        self._syllable = BopomofoSyllable()
        self._fill_order = []

    def process_key(self, key):
        """Apply one key to the syllable being composed.

        Args:
            key: Key text (a single character). ASCII letters are case-folded.

        Returns:
            COMBINED, COMPLETED or IGNORED
        """
        if len(key) == 1 and key.isascii() and key.isalpha():
            key = key.lower()

        entries = self.layout.keys.get(key, ())
        if not entries:
            return IGNORED
        if self.layout.is_compound:
            return self._process_sequence(key)

        entry = entries[0]
        if isinstance(entry, str):
            if entry in CONSONANTS:
                slot = 'consonant'
            elif entry in MEDIALS:
                slot = 'medial'
            else:
                slot = 'vowel'
            candidate = self._syllable.replace(**{slot: entry})
            if not candidate.is_valid():
                logger.debug(f'Rejected {entry} for {self._syllable.composed_string()!r}')
                return IGNORED
            self._syllable = candidate
            self._touch(slot)
            return COMBINED

        if self._syllable.is_empty():
            return IGNORED
        candidate = self._syllable.replace(tone=entry)
        if not candidate.is_valid():
            return IGNORED
        self._syllable = candidate
        self._touch('tone')
        return COMPLETED

    def _process_sequence(self, key):
        sequence = self.layout.keys_from_syllable(self._syllable) + key
        candidate = self.layout.syllable_from_keys(sequence)
        if candidate.tone and not (candidate.consonant or candidate.medial or candidate.vowel):
            return IGNORED
        if not candidate.is_valid():
            logger.debug(f'Rejected {sequence!r} on {self.layout.name}: {candidate.composed_string()!r}')
            return IGNORED
        self._syllable = candidate
        return COMPLETED if candidate.tone else COMBINED

    def backspace(self):
        """Remove the most recently filled slot.

        Returns:
            True if a slot was removed, False if the composer was empty
        """
        if self.layout.is_compound:
            sequence = self.layout.keys_from_syllable(self._syllable)
            if not sequence:
                return False
            self._syllable = self.layout.syllable_from_keys(sequence[:-1])
            return True

        if not self._fill_order:
            return False
        slot = self._fill_order.pop()
        self._syllable = self._syllable.replace(**{slot: 0 if slot == 'tone' else ''})
        return True

    def snapshot(self):
        return (self.layout, self._syllable, list(self._fill_order))

    def restore(self, snapshot):
        self.layout, self._syllable, fill_order = snapshot
        self._fill_order = list(fill_order)

    def _touch(self, slot):
        if slot in self._fill_order:
            self._fill_order.remove(slot)
        self._fill_order.append(slot)
