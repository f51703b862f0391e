#!/usr/bin/env python3
# tests/test_zhuyin_cli.py - Unit tests for zhuyin_cli.py

import pytest
import json
import os
import sys
import tempfile
import shutil
from unittest.mock import patch

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import util
import zhuyin_cli


DATA_DIR = os.path.join(os.path.dirname(__file__), '..', 'data')


@pytest.fixture
def config_dir():
    """Temporary user config directory"""
    path = tempfile.mkdtemp()
    with patch('util.get_user_config_dir', return_value=path):
        with patch('util.get_datadir', return_value=DATA_DIR):
            yield path
    shutil.rmtree(path, ignore_errors=True)


class TestCommands:
    """Test suite for the zhuyin subcommands"""

    def test_no_command_prints_help(self, config_dir, capsys):
        assert zhuyin_cli.main([]) == 1
        assert 'usage' in capsys.readouterr().out

    def test_type_plain(self, config_dir, capsys):
        assert zhuyin_cli.main(['type', 'su3']) == 0
        out = capsys.readouterr().out
        assert 'Inputting: "ㄋㄧ"' in out
        assert 'ChoosingCandidate' in out
        assert '你' in out

    def test_type_smart_with_enter(self, config_dir, capsys):
        assert zhuyin_cli.main(['type', 'su3cl3', '--mode', 'bopomofo', '--enter']) == 0
        out = capsys.readouterr().out
        assert 'Committing: "你好"' in out

    def test_type_reports_errors(self, config_dir, capsys):
        zhuyin_cli.main(['type', 's3'])
        assert 'ERROR' in capsys.readouterr().out

    def test_lookup(self, config_dir, capsys):
        assert zhuyin_cli.main(['lookup', 'ㄋㄧˇ', 'ㄏㄠˇ']) == 0
        assert '你好' in capsys.readouterr().out

    def test_lookup_miss(self, config_dir, capsys):
        assert zhuyin_cli.main(['lookup', 'ㄈㄥˋ']) == 1

    def test_associated(self, config_dir, capsys):
        assert zhuyin_cli.main(['associated', '喵']) == 0
        assert '嗚' in capsys.readouterr().out

    def test_learn_persists_user_phrase(self, config_dir, capsys):
        """Test that a learned phrase is written under the user config dir"""
        assert zhuyin_cli.main(['learn', '你號', 'ㄋㄧˇ', 'ㄏㄠˋ']) == 0
        with open(os.path.join(config_dir, 'user_phrases.json'), encoding='utf-8') as f:
            assert '你號' in json.load(f)['ㄋㄧˇ-ㄏㄠˋ']
        assert zhuyin_cli.main(['learn', '你號', 'ㄋㄧˇ', 'ㄏㄠˋ']) == 1

    def test_stats(self, config_dir, capsys):
        assert zhuyin_cli.main(['stats']) == 0
        assert 'Dictionary Statistics' in capsys.readouterr().out

    def test_config_option(self, config_dir, capsys):
        """Test that --config overrides the default config"""
        path = os.path.join(config_dir, 'custom.json')
        with open(path, 'w', encoding='utf-8') as f:
            json.dump({'keyboard_layout': 'eten'}, f)
        assert zhuyin_cli.main(['--config', path, 'type', 'ne3']) == 0
        assert 'ChoosingCandidate' in capsys.readouterr().out

    def test_type_hsu_layout(self, config_dir, capsys):
        assert zhuyin_cli.main(['type', 'nef', '--layout', 'hsu']) == 0
        out = capsys.readouterr().out
        assert 'ChoosingCandidate' in out
        assert '你' in out

    def test_version(self, config_dir, capsys):
        with pytest.raises(SystemExit) as e:
            zhuyin_cli.main(['--version'])
        assert e.value.code == 0
        assert util.get_version() in capsys.readouterr().out


class TestConfigCommand:
    """Test suite for the config subcommand"""

    def test_show(self, config_dir, capsys):
        assert zhuyin_cli.main(['config']) == 0
        assert json.loads(capsys.readouterr().out)['keyboard_layout'] == 'standard'

    def test_show_single_key(self, config_dir, capsys):
        assert zhuyin_cli.main(['config', 'input_mode']) == 0
        assert capsys.readouterr().out.strip() == '"plain_bopomofo"'
        assert zhuyin_cli.main(['config', 'no_such_key']) == 1

    def test_set_string_value(self, config_dir, capsys):
        """Test that the new value is saved to the user config and used afterwards"""
        assert zhuyin_cli.main(['config', 'keyboard_layout', 'hsu']) == 0
        with open(os.path.join(config_dir, 'config.json'), encoding='utf-8') as f:
            assert json.load(f)['keyboard_layout'] == 'hsu'
        capsys.readouterr()
        assert zhuyin_cli.main(['type', 'nef']) == 0
        assert 'ChoosingCandidate' in capsys.readouterr().out

    def test_set_json_value(self, config_dir, capsys):
        assert zhuyin_cli.main(['config', 'associated_phrases', '{"enabled": true}']) == 0
        with open(os.path.join(config_dir, 'config.json'), encoding='utf-8') as f:
            assert json.load(f)['associated_phrases'] == {'enabled': True}
