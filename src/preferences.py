#!/usr/bin/env python3
# preferences.py - Read-only preference snapshot handed to every key event

import logging
from dataclasses import dataclass

import bopomofo

logger = logging.getLogger(__name__)


INPUT_MODE_PLAIN = 'plain_bopomofo'
INPUT_MODE_SMART = 'bopomofo'
INPUT_MODES = (INPUT_MODE_PLAIN, INPUT_MODE_SMART)

DEFAULT_SELECTION_KEYS = '123456789'


@dataclass(frozen=True)
class PreferenceSnapshot:
    """
    Options consulted while handling one key event.

    The key handler only reads these; changing a preference means passing a
    different snapshot with the next event.
    """
    half_width_punctuation_enabled: bool = False
    associated_phrases_enabled: bool = False
    candidate_selection_keys: str = DEFAULT_SELECTION_KEYS
    keyboard_layout: str = 'standard'
    input_mode: str = INPUT_MODE_PLAIN
    choose_candidate_using_space: bool = False

    @property
    def is_plain(self):
        return self.input_mode == INPUT_MODE_PLAIN

    @classmethod
    def from_config(cls, config):
        """
        Build a snapshot from a configuration dictionary.

        Invalid values are replaced by the defaults (with a warning).

        Args:
            config: Dictionary as returned by util.get_config_data()

        Returns:
            PreferenceSnapshot
        """
        layout = config.get('keyboard_layout', 'standard')
        if layout not in bopomofo.LAYOUTS:
            logger.warning(f'Unknown keyboard_layout "{layout}", using "standard"')
            layout = 'standard'

        input_mode = config.get('input_mode', INPUT_MODE_PLAIN)
        if input_mode not in INPUT_MODES:
            logger.warning(f'Unknown input_mode "{input_mode}", using "{INPUT_MODE_PLAIN}"')
            input_mode = INPUT_MODE_PLAIN

        selection_keys = config.get('candidate_selection_keys', DEFAULT_SELECTION_KEYS)
        if (not isinstance(selection_keys, str) or not selection_keys
                or len(set(selection_keys)) != len(selection_keys)):
            logger.warning(f'Invalid candidate_selection_keys "{selection_keys}", '
                           f'using "{DEFAULT_SELECTION_KEYS}"')
            selection_keys = DEFAULT_SELECTION_KEYS

        associated = config.get('associated_phrases', {})
        return cls(
            half_width_punctuation_enabled=bool(config.get('half_width_punctuation', False)),
            associated_phrases_enabled=bool(isinstance(associated, dict) and associated.get('enabled', False)),
            candidate_selection_keys=selection_keys,
            keyboard_layout=layout,
            input_mode=input_mode,
            choose_candidate_using_space=bool(config.get('choose_candidate_using_space', False)),
        )
