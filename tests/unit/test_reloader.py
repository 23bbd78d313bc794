import logging
import threading

import mock
import pytest

from devloop.builders import BuildResult
from devloop.config import Config
from devloop.reloader import DevLoop
from devloop.supervisor import RestartSupervisor
from devloop.watcher.shared import ERROR, EVENT
from tests.conftest import wait_for


class FakeBuilder(object):
    def __init__(self):
        self.calls = []
        self.results = []

    def __call__(self, command, cwd=None):
        self.calls.append(command)
        if self.results:
            return self.results.pop(0)
        return BuildResult([command], 0, '')


@pytest.fixture
def supervisor():
    return mock.Mock(spec=RestartSupervisor)


@pytest.fixture
def builder():
    return FakeBuilder()


def make_config(tmpdir, **params):
    params.setdefault('watch_paths', [str(tmpdir)])
    params.setdefault('build_command', 'make')
    params.setdefault('command', 'server')
    params.setdefault('debounce', 0.0)
    return Config(params, environ={})


def start_loop(loop):
    loop.start()
    thread = threading.Thread(target=loop.run)
    thread.daemon = True
    thread.start()
    return thread


def shutdown(loop, thread):
    loop.stop()
    thread.join(timeout=5.0)
    assert not thread.is_alive()


def test_initial_build_and_start(tmpdir, supervisor, builder, notifier):
    loop = DevLoop(make_config(tmpdir), supervisor=supervisor,
                   notifier=notifier, builder=builder)
    thread = start_loop(loop)

    assert supervisor.start.called
    assert builder.calls == ['make']
    supervisor.send.assert_called_once_with(True)

    shutdown(loop, thread)
    assert supervisor.close.called
    assert supervisor.join.called


def test_change_rebuilds_and_restarts(tmpdir, supervisor, builder, notifier):
    loop = DevLoop(make_config(tmpdir), supervisor=supervisor,
                   notifier=notifier, builder=builder)
    thread = start_loop(loop)
    notifier.push(EVENT, 'modified')

    assert wait_for(lambda: loop.restarts == 2)
    assert builder.calls == ['make', 'make']
    assert supervisor.send.call_args_list == [mock.call(True)] * 2
    shutdown(loop, thread)


def test_failed_build_keeps_process(tmpdir, supervisor, builder, notifier):
    builder.results = [BuildResult(['make'], 0, ''),
                       BuildResult(['make'], 2, 'syntax error')]
    loop = DevLoop(make_config(tmpdir), supervisor=supervisor,
                   notifier=notifier, builder=builder)
    thread = start_loop(loop)
    notifier.push(EVENT, 'modified')

    assert wait_for(lambda: loop.builds == 2)
    shutdown(loop, thread)
    assert supervisor.send.call_count == 1
    assert loop.restarts == 1


def test_burst_of_changes_coalesced(tmpdir, supervisor, builder, notifier):
    loop = DevLoop(make_config(tmpdir, debounce=0.5), supervisor=supervisor,
                   notifier=notifier, builder=builder)
    thread = start_loop(loop)
    for i in range(3):
        notifier.push(EVENT, i)

    assert wait_for(lambda: loop.builds == 2, timeout=3.0)
    shutdown(loop, thread)
    assert loop.builds == 2


def test_watch_errors_are_logged(tmpdir, supervisor, builder, notifier,
                                 caplog):
    loop = DevLoop(make_config(tmpdir), supervisor=supervisor,
                   notifier=notifier, builder=builder)
    with caplog.at_level(logging.WARNING, logger='devloop.reloader'):
        thread = start_loop(loop)
        notifier.push(ERROR, OSError('overflow'))
        assert wait_for(lambda: 'overflow' in caplog.text)
    shutdown(loop, thread)
    assert loop.builds == 1


def test_build_only_without_command(tmpdir, builder, notifier):
    loop = DevLoop(make_config(tmpdir, command=None), notifier=notifier,
                   builder=builder)
    thread = start_loop(loop)
    notifier.push(EVENT, 'modified')

    assert wait_for(lambda: loop.builds == 2)
    assert loop.supervisor is None
    shutdown(loop, thread)


def test_nothing_to_watch_ends_run(tmpdir, supervisor, builder, notifier):
    config = make_config(tmpdir, watch_paths=[str(tmpdir.join('gone'))])
    loop = DevLoop(config, supervisor=supervisor, notifier=notifier,
                   builder=builder)
    loop.start()
    thread = threading.Thread(target=loop.run)
    thread.start()
    thread.join(timeout=5.0)

    assert not thread.is_alive()
    assert supervisor.close.called
