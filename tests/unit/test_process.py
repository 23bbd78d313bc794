import signal
import subprocess
import sys

import mock
import pytest

from devloop.errors import SignalError, SpawnError
from devloop.process import OwnedProcess
from tests.conftest import posix_only


@pytest.fixture
def popen():
    popen = mock.Mock(spec=subprocess.Popen)
    popen.pid = 1234
    popen.poll.return_value = None
    return popen


def test_start_builds_cmdline():
    popen_cls = mock.Mock()
    process = OwnedProcess.start('server', ['--port', '8000'],
                                 popen_cls=popen_cls)
    assert process.cmdline == ['server', '--port', '8000']
    popen_cls.assert_called_with(['server', '--port', '8000'], cwd=None,
                                 env=None, stdout=None, stderr=None)


def test_start_failure_is_spawn_error():
    popen_cls = mock.Mock(side_effect=OSError(2, 'No such file'))
    with pytest.raises(SpawnError) as excinfo:
        OwnedProcess.start('missing-binary', popen_cls=popen_cls)
    assert excinfo.value.cmdline == ['missing-binary']


def test_stop_sends_interrupt(popen):
    process = OwnedProcess(popen, ['server'], supports_interrupt=True)
    process.stop()
    popen.send_signal.assert_called_with(signal.SIGINT)
    assert not popen.kill.called


def test_stop_escalates_when_interrupt_fails(popen):
    popen.send_signal.side_effect = OSError(1, 'Operation not permitted')
    process = OwnedProcess(popen, ['server'], supports_interrupt=True)
    process.stop()
    assert popen.kill.called


def test_stop_kills_without_interrupt_support(popen):
    process = OwnedProcess(popen, ['server'], supports_interrupt=False)
    process.stop()
    assert popen.kill.called
    assert not popen.send_signal.called


def test_stop_ignores_exited_process(popen):
    popen.poll.return_value = 0
    process = OwnedProcess(popen, ['server'])
    process.stop()
    assert not popen.send_signal.called
    assert not popen.kill.called


def test_kill_failure_on_live_process(popen):
    popen.kill.side_effect = OSError(1, 'Operation not permitted')
    process = OwnedProcess(popen, ['server'])
    with pytest.raises(SignalError):
        process.kill()


def test_kill_failure_after_exit_is_ignored(popen):
    popen.kill.side_effect = OSError(3, 'No such process')
    popen.poll.return_value = -9
    OwnedProcess(popen, ['server']).kill()


def test_wait_passes_timeout(popen):
    popen.wait.return_value = 0
    assert OwnedProcess(popen, ['server']).wait(1.5) == 0
    popen.wait.assert_called_with(timeout=1.5)


@posix_only
def test_real_process_stops_on_interrupt():
    process = OwnedProcess.start(
        sys.executable, ['-c', 'import time; time.sleep(30)'],
        stderr=subprocess.DEVNULL)
    assert process.is_running()
    process.stop()
    assert process.wait(10) != 0
    assert not process.is_running()
