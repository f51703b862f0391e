#!/usr/bin/env python3
# language_model.py - Phrase lookup over the built-in and user dictionaries

import json
import logging
import os
from dataclasses import dataclass

import orjson

import util

logger = logging.getLogger(__name__)


READING_SEPARATOR = '-'
USER_PHRASE_SCORE = 0.0


@dataclass(frozen=True)
class Candidate:
    """A word or phrase proposed for a span of readings.

    Attributes:
        value: The text to display and commit
        reading: Tuple of composed syllable strings the value resolves
        score: log10 probability (higher is better)
        source: 'builtin', 'user', 'punctuation', 'associated' or 'fallback'
    """
    value: str
    reading: tuple = ()
    score: float = 0.0
    source: str = 'builtin'


def reading_key(readings):
    """Join readings into the dictionary key form, e.g. 'ㄋㄧˇ-ㄏㄠˇ'."""
    if isinstance(readings, str):
        return readings
    return READING_SEPARATOR.join(readings)


def split_reading_key(key):
    return tuple(key.split(READING_SEPARATOR)) if key else ()


class LanguageModel:
    """
    Lookup gateway over the phrase dictionaries.

    Two phrase sources are merged for every lookup:

        built-in phrases   read-only, loaded from the shipped dictionaries
        user phrases       learned from marked spans, persisted if a path is set

    On top of them, excluded phrases are filtered out, the optional phrase
    replacement map and external converter rewrite values, and duplicate
    values are dropped.

    Dictionary format (JSON):
        {
            "ㄋㄧˇ": {"你": -3.2, "妳": -4.1, ...},
            "ㄋㄧˇ-ㄏㄠˇ": {"你好": -4.5},
            ...
        }
    where each value is a log10 score.

    Associated phrase format (JSON):
        {"喵": ["嗚", "喵叫", ...], ...}
    """

    def __init__(self):
        self._builtin = {}      # {reading_key: {value: score}}
        self._user = {}         # {reading_key: {value: score}}
        self._excluded = {}     # {reading_key: set(values)}
        self._associated = {}   # {text: [phrases]}
        self._replacements = {} # {value: replacement}
        self._reverse = {}      # {value: (score, reading_key)} for built-in phrases
        self._dictionary_count = 0

        self.phrase_replacement_enabled = False
        # Optional callable(str) -> str applied to every value last
        self.external_converter = None

        self._user_phrase_path = None
        self._excluded_phrase_path = None

    # ─── Loading ─────────────────────────────────────────────────────────

    def load_phrases(self, file_paths):
        """Load built-in phrase dictionaries; later files may add entries."""
        for file_path in file_paths:
            data = _read_json(file_path)
            if data is None:
                continue
            added = self.add_phrases(data)
            self._dictionary_count += 1
            logger.info(f'Loaded phrase dictionary: {file_path} ({added} entries)')

    def load_associated_phrases(self, file_paths):
        for file_path in file_paths:
            data = _read_json(file_path)
            if data is None:
                continue
            added = self.add_associated_phrases(data)
            logger.info(f'Loaded associated phrases: {file_path} ({added} entries)')

    def load_user_phrases(self, file_path):
        """Load the user phrase file and remember it for persisting learned phrases."""
        self._user_phrase_path = file_path
        if not os.path.exists(file_path):
            logger.debug(f'User phrase file not found (will be created on learning): {file_path}')
            return
        data = _read_json(file_path)
        if data is not None:
            added = self.add_phrases(data, source='user')
            logger.info(f'Loaded user phrases: {file_path} ({added} entries)')

    def load_excluded_phrases(self, file_path):
        self._excluded_phrase_path = file_path
        if not os.path.exists(file_path):
            return
        data = _read_json(file_path)
        if data is None:
            return
        for key, values in data.items():
            if isinstance(values, list):
                self._excluded.setdefault(key, set()).update(v for v in values if isinstance(v, str))
        logger.info(f'Loaded excluded phrases: {file_path} ({len(data)} readings)')

    def load_phrase_replacements(self, file_path):
        data = _read_json(file_path)
        if data is None:
            return
        self.set_phrase_replacements(data)
        logger.info(f'Loaded phrase replacements: {file_path} ({len(self._replacements)} entries)')

    def add_phrases(self, data, source='builtin'):
        """Merge a {reading_key: {value: score}} mapping into a phrase source.

        Returns:
            int: Number of (reading, value) entries added
        """
        table = self._user if source == 'user' else self._builtin
        added = 0
        for key, values in data.items():
            if not isinstance(values, dict):
                logger.warning(f'Skipping malformed entry for reading {key!r}')
                continue
            entries = table.setdefault(key, {})
            for value, score in values.items():
                if not isinstance(score, (int, float)):
                    continue
                # Keep the better score for duplicates
                if value in entries and entries[value] >= score:
                    continue
                entries[value] = float(score)
                added += 1
                if source != 'user':
                    best = self._reverse.get(value)
                    if best is None or score > best[0]:
                        self._reverse[value] = (float(score), key)
        return added

    def add_associated_phrases(self, data):
        added = 0
        for text, phrases in data.items():
            if not isinstance(phrases, list):
                logger.warning(f'Skipping malformed associated phrases for {text!r}')
                continue
            existing = self._associated.setdefault(text, [])
            for phrase in phrases:
                if isinstance(phrase, str) and phrase not in existing:
                    existing.append(phrase)
                    added += 1
        return added

    def set_phrase_replacements(self, mapping):
        self._replacements = {k: v for k, v in mapping.items()
                              if isinstance(k, str) and isinstance(v, str)}

    # ─── Lookup ──────────────────────────────────────────────────────────

    def candidates(self, readings):
        """
        Return the candidates for a reading or a span of readings.

        Candidates are ordered by descending score.  Ties keep dictionary
        order with built-in phrases before user phrases.  A reading with no
        entries yields an empty list.

        Args:
            readings: A composed syllable string or a sequence of them

        Returns:
            list: Candidate objects, each value appearing once
        """
        key = reading_key(readings)
        reading = split_reading_key(key)
        excluded = self._excluded.get(key, ())

        collected = []
        for source, table in (('builtin', self._builtin), ('user', self._user)):
            for value, score in table.get(key, {}).items():
                if value in excluded:
                    continue
                collected.append(Candidate(value, reading, score, source))
        # sorted() is stable: ties keep built-in before user
        collected.sort(key=lambda c: c.score, reverse=True)

        results = []
        seen = set()
        for candidate in collected:
            value = self._rewrite(candidate.value)
            if value in seen:
                continue
            seen.add(value)
            if value != candidate.value:
                candidate = Candidate(value, candidate.reading, candidate.score, candidate.source)
            results.append(candidate)
        return results

    def has_candidates(self, readings):
        key = reading_key(readings)
        excluded = self._excluded.get(key, ())
        for table in (self._builtin, self._user):
            if any(value not in excluded for value in table.get(key, {})):
                return True
        return False

    def associated_phrases(self, text):
        """
        Return phrases that commonly follow text.

        The whole text is looked up first; when it has no entry, its last
        character is used instead.
        """
        phrases = self._associated.get(text)
        if not phrases and len(text) > 1:
            phrases = self._associated.get(text[-1])
        if not phrases:
            return []
        results = []
        for phrase in phrases:
            reading = split_reading_key(self.reading_for(phrase))
            results.append(Candidate(phrase, reading, 0.0, 'associated'))
        return results

    def reading_for(self, value):
        """Return the highest-scoring built-in reading key for value, or ''."""
        best = self._reverse.get(value)
        return best[1] if best else ''

    def _rewrite(self, value):
        if self.phrase_replacement_enabled:
            value = self._replacements.get(value, value)
        if self.external_converter is not None:
            value = self.external_converter(value)
        return value

    # ─── Learning ────────────────────────────────────────────────────────

    def add_user_phrase(self, value, readings):
        """
        Learn value as a user phrase for readings.

        Returns:
            bool: True if the phrase was added, False if it already existed
        """
        key = reading_key(readings)
        entries = self._user.setdefault(key, {})
        if value in entries and value not in self._excluded.get(key, ()):
            return False
        entries[value] = USER_PHRASE_SCORE
        if key in self._excluded:
            self._excluded[key].discard(value)
        logger.info(f'Learned user phrase {value} ({key})')
        self._save_user_phrases()
        self._save_excluded_phrases()
        return True

    def exclude_phrase(self, value, readings):
        """Hide value for readings in every phrase source."""
        key = reading_key(readings)
        excluded = self._excluded.setdefault(key, set())
        if value in excluded:
            return False
        excluded.add(value)
        logger.info(f'Excluded phrase {value} ({key})')
        self._save_excluded_phrases()
        return True

    def reset_user_phrases(self):
        """Forget learned and excluded phrases kept in memory."""
        self._user = {}
        self._excluded = {}

    def get_dictionary_stats(self):
        """
        Get statistics about loaded dictionaries.

        Returns:
            dict: Dictionary containing:
                  - 'dictionary_count': Number of loaded built-in files
                  - 'reading_count': Unique readings across built-in and user phrases
                  - 'candidate_count': Built-in (reading, value) entries
                  - 'user_phrase_count': User (reading, value) entries
                  - 'excluded_count': Excluded (reading, value) entries
                  - 'associated_count': Texts with associated phrases
        """
        return {
            'dictionary_count': self._dictionary_count,
            'reading_count': len(set(self._builtin) | set(self._user)),
            'candidate_count': sum(len(v) for v in self._builtin.values()),
            'user_phrase_count': sum(len(v) for v in self._user.values()),
            'excluded_count': sum(len(v) for v in self._excluded.values()),
            'associated_count': len(self._associated),
        }

    def _save_user_phrases(self):
        if not self._user_phrase_path:
            return False
        return _write_json(self._user_phrase_path, self._user)

    def _save_excluded_phrases(self):
        if not self._excluded_phrase_path:
            return False
        data = {key: sorted(values) for key, values in self._excluded.items() if values}
        return _write_json(self._excluded_phrase_path, data)


def _read_json(file_path):
    """Read a JSON object with orjson; log and return None on any problem."""
    if not os.path.exists(file_path):
        logger.warning(f'Dictionary file not found: {file_path}')
        return None
    try:
        with open(file_path, 'rb') as f:
            data = orjson.loads(f.read())
    except orjson.JSONDecodeError as e:
        logger.error(f'Failed to parse dictionary JSON: {file_path} - {e}')
        return None
    except OSError as e:
        logger.error(f'Failed to load dictionary: {file_path} - {e}')
        return None
    if not isinstance(data, dict):
        logger.warning(f'Invalid dictionary format (expected dict): {file_path}')
        return None
    return data


def _write_json(file_path, data):
    try:
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        logger.info(f'Saved {file_path}')
        return True
    except OSError as e:
        logger.error(f'Error saving {file_path}')
        logger.error(e)
        return False


def load_language_model(config):
    """
    Build a LanguageModel from the dictionaries named in config.

    Args:
        config: Configuration dictionary (see util.get_config_data())

    Returns:
        LanguageModel
    """
    lm = LanguageModel()
    files = util.get_dictionary_files(config)
    lm.load_phrases(files['builtin'])
    lm.load_associated_phrases(files['associated'])
    if files['user']:
        lm.load_user_phrases(files['user'])
    if files['excluded']:
        lm.load_excluded_phrases(files['excluded'])
    lm.phrase_replacement_enabled = config.get('phrase_replacement', {}).get('enabled', False)
    if files['replacement'] and os.path.exists(files['replacement']):
        lm.load_phrase_replacements(files['replacement'])
    logger.info(f'Language model ready: {lm.get_dictionary_stats()}')
    return lm
