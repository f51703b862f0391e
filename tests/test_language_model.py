#!/usr/bin/env python3
# tests/test_language_model.py - Unit tests for language_model.py

import pytest
import json
import os
import sys
import tempfile
import shutil
from unittest.mock import patch

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import language_model
from language_model import Candidate, LanguageModel, USER_PHRASE_SCORE


@pytest.fixture
def sample_phrases():
    """Small built-in dictionary"""
    return {
        'ㄋㄧˇ': {'你': -3.1, '妳': -4.2, '擬': -4.9},
        'ㄏㄠˇ': {'好': -2.8},
        'ㄏㄠˋ': {'號': -3.6, '好': -4.5},
        'ㄋㄧˇ-ㄏㄠˇ': {'你好': -4.0},
        'ㄇㄧㄠ': {'喵': -5.0},
    }


@pytest.fixture
def lm(sample_phrases):
    model = LanguageModel()
    model.add_phrases(sample_phrases)
    model.add_associated_phrases({'喵': ['嗚', '叫'], '好': ['的']})
    return model


@pytest.fixture
def temp_dir():
    """Create a temporary directory for dictionary files"""
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path, ignore_errors=True)


class TestCandidates:
    """Test suite for LanguageModel.candidates()"""

    def test_single_reading(self, lm):
        """Test that candidates come back ordered by score"""
        values = [c.value for c in lm.candidates('ㄋㄧˇ')]
        assert values == ['你', '妳', '擬']

    def test_candidate_fields(self, lm):
        """Test that a candidate carries its reading span and score"""
        candidate = lm.candidates(['ㄋㄧˇ', 'ㄏㄠˇ'])[0]
        assert candidate == Candidate('你好', ('ㄋㄧˇ', 'ㄏㄠˇ'), -4.0, 'builtin')

    def test_sequence_and_string_are_equivalent(self, lm):
        assert lm.candidates(['ㄋㄧˇ']) == lm.candidates('ㄋㄧˇ')
        assert lm.candidates(('ㄋㄧˇ', 'ㄏㄠˇ')) == lm.candidates('ㄋㄧˇ-ㄏㄠˇ')

    def test_missing_reading_is_empty(self, lm):
        """Test that a lookup miss is not an error"""
        assert lm.candidates('ㄅㄚ') == []
        assert not lm.has_candidates('ㄅㄚ')
        assert lm.has_candidates('ㄋㄧˇ')

    def test_tie_keeps_builtin_before_user(self):
        """Test that equal scores keep built-in entries first"""
        model = LanguageModel()
        model.add_phrases({'ㄊㄚ': {'他': -3.0}})
        model.add_phrases({'ㄊㄚ': {'她': -3.0}}, source='user')
        candidates = model.candidates('ㄊㄚ')
        assert [c.value for c in candidates] == ['他', '她']
        assert [c.source for c in candidates] == ['builtin', 'user']

    def test_duplicate_values_are_dropped(self):
        """Test that a value appears once, with its best score"""
        model = LanguageModel()
        model.add_phrases({'ㄊㄚ': {'他': -3.0}})
        model.add_phrases({'ㄊㄚ': {'他': -1.0}}, source='user')
        candidates = model.candidates('ㄊㄚ')
        assert len(candidates) == 1
        assert candidates[0].score == -1.0

    def test_excluded_phrases_are_filtered(self, lm):
        """Test that excluded values disappear from lookups"""
        assert lm.exclude_phrase('妳', ['ㄋㄧˇ']) is True
        assert '妳' not in [c.value for c in lm.candidates('ㄋㄧˇ')]
        assert lm.exclude_phrase('妳', ['ㄋㄧˇ']) is False

    def test_phrase_replacement(self, lm):
        """Test that the replacement map only applies when enabled"""
        lm.set_phrase_replacements({'你': '妳'})
        assert lm.candidates('ㄋㄧˇ')[0].value == '你'

        lm.phrase_replacement_enabled = True
        values = [c.value for c in lm.candidates('ㄋㄧˇ')]
        # 你 became 妳, so the listed 妳 is a duplicate
        assert values == ['妳', '擬']

    def test_external_converter(self, lm):
        """Test that an external converter rewrites values last"""
        lm.external_converter = lambda value: value + '!'
        assert lm.candidates('ㄏㄠˇ')[0].value == '好!'

    def test_malformed_entries_are_skipped(self):
        model = LanguageModel()
        added = model.add_phrases({'ㄊㄚ': ['他'], 'ㄏㄠˇ': {'好': 'high', '郝': -5.5}})
        assert added == 1
        assert [c.value for c in model.candidates('ㄏㄠˇ')] == ['郝']


class TestAssociatedPhrases:
    """Test suite for LanguageModel.associated_phrases()"""

    def test_lookup(self, lm):
        values = [c.value for c in lm.associated_phrases('喵')]
        assert values == ['嗚', '叫']

    def test_last_character_fallback(self, lm):
        """Test that the last character is used when the text has no entry"""
        assert [c.value for c in lm.associated_phrases('你好')] == ['的']

    def test_no_entry(self, lm):
        assert lm.associated_phrases('擬') == []
        assert lm.associated_phrases('') == []


class TestReadingFor:
    """Test suite for reverse lookup"""

    def test_best_reading_wins(self, lm):
        """Test that 好 maps to its highest-scoring reading"""
        assert lm.reading_for('好') == 'ㄏㄠˇ'
        assert lm.reading_for('你好') == 'ㄋㄧˇ-ㄏㄠˇ'

    def test_unknown_value(self, lm):
        assert lm.reading_for('貓') == ''


class TestUserPhrases:
    """Test suite for learning user phrases"""

    def test_add_user_phrase(self, lm):
        """Test that a learned phrase becomes the top candidate"""
        assert lm.add_user_phrase('妳好', ['ㄋㄧˇ', 'ㄏㄠˇ']) is True
        candidates = lm.candidates(['ㄋㄧˇ', 'ㄏㄠˇ'])
        assert candidates[0] == Candidate('妳好', ('ㄋㄧˇ', 'ㄏㄠˇ'), USER_PHRASE_SCORE, 'user')
        assert lm.add_user_phrase('妳好', ['ㄋㄧˇ', 'ㄏㄠˇ']) is False

    def test_learning_undoes_exclusion(self, lm):
        lm.exclude_phrase('擬', ['ㄋㄧˇ'])
        assert lm.add_user_phrase('擬', ['ㄋㄧˇ']) is True
        assert '擬' in [c.value for c in lm.candidates('ㄋㄧˇ')]

    def test_reset_user_phrases(self, lm):
        """Test that resetting forgets learned and excluded phrases"""
        lm.add_user_phrase('妳好', ['ㄋㄧˇ', 'ㄏㄠˇ'])
        lm.exclude_phrase('你', ['ㄋㄧˇ'])
        lm.reset_user_phrases()
        assert [c.value for c in lm.candidates(['ㄋㄧˇ', 'ㄏㄠˇ'])] == ['你好']
        assert lm.candidates('ㄋㄧˇ')[0].value == '你'

    def test_user_phrases_are_persisted(self, lm, temp_dir):
        """Test that learning writes the user phrase file"""
        user_path = os.path.join(temp_dir, 'user_phrases.json')
        lm.load_user_phrases(user_path)
        lm.add_user_phrase('妳好', ['ㄋㄧˇ', 'ㄏㄠˇ'])

        with open(user_path, encoding='utf-8') as f:
            saved = json.load(f)
        assert saved == {'ㄋㄧˇ-ㄏㄠˇ': {'妳好': USER_PHRASE_SCORE}}

        reloaded = LanguageModel()
        reloaded.load_user_phrases(user_path)
        assert reloaded.candidates(['ㄋㄧˇ', 'ㄏㄠˇ'])[0].source == 'user'

    def test_excluded_phrases_are_persisted(self, lm, temp_dir):
        excluded_path = os.path.join(temp_dir, 'excluded_phrases.json')
        lm.load_excluded_phrases(excluded_path)
        lm.exclude_phrase('妳', ['ㄋㄧˇ'])

        reloaded = LanguageModel()
        reloaded.add_phrases({'ㄋㄧˇ': {'你': -3.1, '妳': -4.2}})
        reloaded.load_excluded_phrases(excluded_path)
        assert [c.value for c in reloaded.candidates('ㄋㄧˇ')] == ['你']


class TestLoading:
    """Test suite for dictionary file loading"""

    def test_load_phrases(self, temp_dir, sample_phrases):
        path = os.path.join(temp_dir, 'phrases.json')
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(sample_phrases, f, ensure_ascii=False)

        model = LanguageModel()
        model.load_phrases([path])
        stats = model.get_dictionary_stats()
        assert stats['dictionary_count'] == 1
        assert stats['reading_count'] == 5
        assert stats['candidate_count'] == 8

    def test_missing_and_broken_files_are_skipped(self, temp_dir):
        """Test that unreadable files are logged and skipped"""
        broken = os.path.join(temp_dir, 'broken.json')
        with open(broken, 'w', encoding='utf-8') as f:
            f.write('{not json')
        not_a_dict = os.path.join(temp_dir, 'list.json')
        with open(not_a_dict, 'w', encoding='utf-8') as f:
            f.write('[1, 2]')

        model = LanguageModel()
        model.load_phrases([broken, not_a_dict, os.path.join(temp_dir, 'missing.json')])
        assert model.get_dictionary_stats()['dictionary_count'] == 0

    def test_load_phrase_replacements(self, temp_dir, lm):
        path = os.path.join(temp_dir, 'replacement.json')
        with open(path, 'w', encoding='utf-8') as f:
            json.dump({'喵': '貓'}, f, ensure_ascii=False)
        lm.load_phrase_replacements(path)
        lm.phrase_replacement_enabled = True
        assert lm.candidates('ㄇㄧㄠ')[0].value == '貓'

    def test_load_language_model_from_shipped_data(self, temp_dir):
        """Test building the model from the default config and data files"""
        data_dir = os.path.join(os.path.dirname(__file__), '..', 'data')
        with open(os.path.join(data_dir, 'config.json'), encoding='utf-8') as f:
            config = json.load(f)

        with patch('util.get_user_config_dir', return_value=temp_dir):
            with patch('util.get_datadir', return_value=data_dir):
                model = language_model.load_language_model(config)

        assert '你' in [c.value for c in model.candidates('ㄋㄧˇ')]
        assert [c.value for c in model.candidates('ㄇㄧㄠ')] == ['喵']
        assert '嗚' in [c.value for c in model.associated_phrases('喵')]
        assert model.candidates(['ㄓㄨㄥ', 'ㄨㄣˊ'])[0].value == '中文'
