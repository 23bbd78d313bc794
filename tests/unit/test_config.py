import argparse
import os

import pytest

from devloop.config import Config


def test_defaults():
    config = Config(environ={})
    assert config.watch_paths == ['.']
    assert config.build_command is None
    assert config.command is None
    assert config.args == []
    assert config.stop_timeout == 5.0
    assert config.debounce == 0.2
    assert not config.poll


def test_env_overrides_defaults():
    environ = {
        'DEVLOOP_WATCH_PATHS': os.pathsep.join(['src', 'templates']),
        'DEVLOOP_STOP_TIMEOUT': '1.5',
        'DEVLOOP_POLL': 'yes',
        'DEVLOOP_BUILD_COMMAND': 'make all',
        'DEVLOOP_IGNORE': '*.log,tmp',
    }
    config = Config(environ=environ)
    assert config.watch_paths == ['src', 'templates']
    assert config.stop_timeout == 1.5
    assert config.poll
    assert config.build_command == 'make all'
    assert config.ignore == ['*.log', 'tmp']


def test_params_override_env():
    config = Config({'stop_timeout': 2.0, 'watch_paths': ['lib']},
                    environ={'DEVLOOP_STOP_TIMEOUT': '9',
                             'DEVLOOP_WATCH_PATHS': 'src'})
    assert config.stop_timeout == 2.0
    assert config.watch_paths == ['lib']


def test_none_and_empty_params_fall_through():
    config = Config({'stop_timeout': None, 'args': []},
                    environ={'DEVLOOP_ARGS': '--reload'})
    assert config.stop_timeout == 5.0
    assert config.args == ['--reload']


def test_invalid_env_value():
    config = Config(environ={'DEVLOOP_DEBOUNCE': 'soon'})
    with pytest.raises(ValueError):
        config.debounce


def test_from_args():
    namespace = argparse.Namespace(command='server', args=['-v'],
                                   poll=None, debug=True)
    config = Config.from_args(namespace, environ={})
    assert config.command == 'server'
    assert config.args == ['-v']
    assert not config.poll


def test_path_validator_skips_ignored_names():
    validator = Config(environ={}).path_validator()
    assert not validator('/src/.git', True)
    assert not validator('/src/pkg/mod.pyc', False)
    assert not validator('/src/node_modules', True)
    assert validator('/src/pkg/mod.py', False)
