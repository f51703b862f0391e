#!/usr/bin/env python3
"""
zhuyin_cli.py - Command-line driver for the Bopomofo key handler

================================================================================
OVERVIEW
================================================================================

Feeds key sequences through the key handler and queries the dictionaries
without any input-method host, which is handy for checking dictionaries and
layouts:

    1. Replay a key sequence and print every emitted state
    2. Look up the candidates of a reading span
    3. List the associated phrases of a text
    4. Learn a user phrase
    5. Show dictionary statistics
    6. Show or change the user config

================================================================================
USAGE
================================================================================

    # Type ㄋㄧˇ with the Standard layout
    zhuyin type su3

    # Smart mode, then commit with Enter
    zhuyin type "su3cl3" --mode bopomofo --enter

    # Candidates for a two-syllable span
    zhuyin lookup ㄋㄧˇ ㄏㄠˇ

    # Phrases following 中
    zhuyin associated 中

    # Learn 你號 for ㄋㄧˇ ㄏㄠˋ
    zhuyin learn 你號 ㄋㄧˇ ㄏㄠˋ

    # Switch to the Hsu layout
    zhuyin config keyboard_layout hsu

================================================================================
"""

import argparse
import codecs
import json
import logging
import sys

import bopomofo
import language_model
import util
from input_state import (
    AssociatedPhrases, ChoosingCandidate, Committing, Empty, Inputting, Marking,
)
from key_event import KeyCode, KeyEvent
from key_handler import KeyHandler, KeyHandlerOutcome
from preferences import INPUT_MODES, PreferenceSnapshot

logger = logging.getLogger(__name__)


ENTER_EVENT = KeyEvent('\r', KeyCode.ENTER, 13)


def load_config(config_path=None):
    """Load the user config, or config_path merged over the default config."""
    if not config_path:
        config, _ = util.get_config_data()
        return config
    config = json.load(codecs.open(util.get_default_config_path(), encoding='utf-8'))
    config.update(json.load(codecs.open(config_path, encoding='utf-8')))
    return config


def describe_state(state):
    """One-line human readable rendering of an input state."""
    name = type(state).__name__
    if isinstance(state, Inputting):
        return f'{name}: "{state.composing_buffer}" (cursor {state.cursor_index})'
    if isinstance(state, ChoosingCandidate):
        return f'{name}: "{state.composing_buffer}" [{" ".join(state.candidate_values)}]'
    if isinstance(state, AssociatedPhrases):
        return f'{name}: [{" ".join(state.candidate_values)}]'
    if isinstance(state, Marking):
        return f'{name}: "{state.marked_text}" ({state.tooltip})'
    if isinstance(state, Committing):
        return f'{name}: "{state.text}"'
    return name


def cmd_type(args, config):
    """Replay keys from the Empty state and print the emitted states."""
    if args.mode:
        config['input_mode'] = args.mode
    if args.layout:
        config['keyboard_layout'] = args.layout
    if args.half_width:
        config['half_width_punctuation'] = True
    if args.associated:
        config['associated_phrases'] = {'enabled': True}
    preferences = PreferenceSnapshot.from_config(config)

    handler = KeyHandler(language_model.load_language_model(config))
    events = [KeyEvent.from_text(ch) for ch in args.keys]
    if args.enter:
        events.append(ENTER_EVENT)

    state = Empty()
    for event in events:
        result = handler.process(event, state, preferences)
        label = repr(event.text)
        if result.outcome is KeyHandlerOutcome.ERROR:
            print(f'{label:>6}  ERROR')
            continue
        if result.outcome is KeyHandlerOutcome.UNHANDLED and not result.states:
            print(f'{label:>6}  UNHANDLED')
            continue
        for new_state in result.states:
            print(f'{label:>6}  {describe_state(new_state)}')
        state = result.state
    return 0


def cmd_lookup(args, config):
    lm = language_model.load_language_model(config)
    if not lm.has_candidates(args.readings):
        print(f'No candidates for {language_model.reading_key(args.readings)}')
        return 1
    candidates = lm.candidates(args.readings)
    for i, candidate in enumerate(candidates, 1):
        print(f'{i:>3}. {candidate.value}\t{candidate.score:.2f}\t{candidate.source}')
    return 0


def cmd_associated(args, config):
    lm = language_model.load_language_model(config)
    phrases = lm.associated_phrases(args.text)
    if not phrases:
        print(f'No associated phrases for {args.text}')
        return 1
    print(' '.join(c.value for c in phrases))
    return 0


def cmd_learn(args, config):
    lm = language_model.load_language_model(config)
    if not lm.add_user_phrase(args.value, args.readings):
        print(f'{args.value} is already a user phrase')
        return 1
    print(f'Learned {args.value} ({language_model.reading_key(args.readings)})')
    return 0


def cmd_stats(args, config):
    lm = language_model.load_language_model(config)
    stats = lm.get_dictionary_stats()
    print("=" * 40)
    print("Dictionary Statistics")
    print("=" * 40)
    print(f"Dictionaries:       {stats['dictionary_count']:,}")
    print(f"Readings:           {stats['reading_count']:,}")
    print(f"Built-in entries:   {stats['candidate_count']:,}")
    print(f"User phrases:       {stats['user_phrase_count']:,}")
    print(f"Excluded phrases:   {stats['excluded_count']:,}")
    print(f"Associated entries: {stats['associated_count']:,}")
    return 0


def cmd_config(args, config):
    """Print the effective config, or set one top-level key in the user config."""
    if args.key is None:
        print(json.dumps(config, ensure_ascii=False, indent=2))
        return 0
    if args.value is None:
        if args.key not in config:
            print(f'Unknown config key: {args.key}')
            return 1
        print(json.dumps(config[args.key], ensure_ascii=False))
        return 0

    try:
        value = json.loads(args.value)
    except json.JSONDecodeError:
        value = args.value
    config[args.key] = value
    if not util.save_config_data(config):
        return 1
    print(f'Set {args.key} = {json.dumps(value, ensure_ascii=False)}')
    return 0


def main(argv=None):
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Bopomofo input method key handler CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {util.get_version()}')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose output')
    parser.add_argument('-c', '--config', help='Path to a config.json (default: user config)')
    parser.add_argument('--log-file', nargs='?', const=util.get_log_file_path(), default=None,
                        help='Write the log to a file (default path: ~/.config/zhuyin-engine/zhuyin-engine.log)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    type_parser = subparsers.add_parser('type', help='Replay keys through the key handler')
    type_parser.add_argument('keys', help='Keys to type, one character per key')
    type_parser.add_argument('-m', '--mode', choices=INPUT_MODES, help='Input mode')
    type_parser.add_argument('-l', '--layout', choices=tuple(bopomofo.LAYOUTS), help='Keyboard layout')
    type_parser.add_argument('--half-width', action='store_true', help='Use half-width punctuation')
    type_parser.add_argument('--associated', action='store_true', help='Enable associated phrases')
    type_parser.add_argument('--enter', action='store_true', help='Press Enter after the keys')

    lookup_parser = subparsers.add_parser('lookup', help='Show the candidates of a reading span')
    lookup_parser.add_argument('readings', nargs='+', help='Composed syllables, e.g. ㄋㄧˇ ㄏㄠˇ')

    associated_parser = subparsers.add_parser('associated', help='Show associated phrases')
    associated_parser.add_argument('text', help='Committed text')

    learn_parser = subparsers.add_parser('learn', help='Add a user phrase')
    learn_parser.add_argument('value', help='Phrase text')
    learn_parser.add_argument('readings', nargs='+', help='Composed syllables of the phrase')

    subparsers.add_parser('stats', help='Show dictionary statistics')

    config_parser = subparsers.add_parser('config', help='Show or change the user config')
    config_parser.add_argument('key', nargs='?', help='Top-level config key')
    config_parser.add_argument('value', nargs='?', help='New value (JSON, or a plain string)')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    util.setup_logging(args.log_file, logging.DEBUG if args.verbose else logging.WARNING)
    config = load_config(args.config)
    if not args.verbose:
        util.load_logging_level(config)

    commands = {
        'type': cmd_type,
        'lookup': cmd_lookup,
        'associated': cmd_associated,
        'learn': cmd_learn,
        'stats': cmd_stats,
        'config': cmd_config,
    }
    return commands[args.command](args, config)


if __name__ == "__main__":
    sys.exit(main())
