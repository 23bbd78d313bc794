"""Keep at most one instance of a command running.

A ``RestartSupervisor`` is driven by boolean signals sent to its control
channel.  ``True`` means "make sure exactly one fresh instance is running"
and ``False`` means "make sure nothing is running".  Signals are handled
one at a time by a single thread, which is the only code that touches the
current process, and a new process is never started before the previous
one has been waited on.
"""
import functools
import logging
import queue
import shlex
import subprocess
import sys
import threading
import time

from devloop.errors import SignalError, SpawnError
from devloop.process import OwnedProcess
from devloop.utils import SupervisedThread

from typing import Any, Callable, Dict, IO, List, Optional  # noqa


LOGGER = logging.getLogger(__name__)

_CLOSE = object()
_PUT_INTERVAL = 0.1


class ControlChannel(object):
    """Single reader loop over a queue of boolean signals.

    The queue holds at most one pending signal, so a producer that is
    faster than the reader blocks in ``send``.
    """
    name = 'control'

    def __init__(self, diagnostics=None):
        # type: (Optional[IO]) -> None
        self._signals = queue.Queue(maxsize=1)  # type: queue.Queue
        self._diagnostics = diagnostics
        self._closed = False
        self._lock = threading.Lock()
        self._thread = None  # type: Optional[SupervisedThread]

    def start(self):
        # type: () -> ControlChannel
        self._thread = SupervisedThread(self.name, self._run)
        self._thread.start()
        return self

    def send(self, value, timeout=None):
        # type: (bool, Optional[float]) -> None
        with self._lock:
            if self._closed:
                raise RuntimeError('%s: send on closed channel' % self.name)
            if not self._alive() or not self._put(bool(value), timeout):
                raise RuntimeError('%s: reader has exited' % self.name)

    def close(self):
        # type: () -> None
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._put(_CLOSE)

    def _alive(self):
        # type: () -> bool
        return self._thread is None or self._thread.is_alive()

    def _put(self, item, timeout=None):
        # type: (Any, Optional[float]) -> bool
        """Enqueue ``item`` unless the reader thread is gone."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            wait = _PUT_INTERVAL
            if deadline is not None:
                wait = max(min(wait, deadline - time.monotonic()), 0)
            try:
                self._signals.put(item, timeout=wait)
                return True
            except queue.Full:
                if not self._alive():
                    return False
                if deadline is not None and time.monotonic() >= deadline:
                    raise

    def join(self, timeout=None):
        # type: (Optional[float]) -> None
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def error(self):
        # type: () -> Optional[Exception]
        if self._thread is None:
            return None
        return self._thread.error

    def _run(self):
        # type: () -> None
        try:
            while True:
                value = self._signals.get()
                if value is _CLOSE:
                    break
                self._handle(value)
        finally:
            self._shutdown()

    def _handle(self, value):
        # type: (bool) -> None
        raise NotImplementedError('_handle')

    def _shutdown(self):
        # type: () -> None
        pass

    def _report(self, message):
        # type: (str) -> None
        LOGGER.error('%s: %s', self.name, message)
        stream = self._diagnostics or sys.stderr
        stream.write('---> %s\n' % message)
        stream.flush()


class RestartSupervisor(ControlChannel):
    def __init__(self, command, args=None, on_started=None, on_stopped=None,
                 stop_timeout=5.0, cwd=None, env=None, stdout=None,
                 stderr=None, diagnostics=None, process_factory=None):
        # type: (str, Optional[List[str]], Optional[Callable[[OwnedProcess], Any]], Optional[Callable[[], Any]], Optional[float], Optional[str], Optional[Dict[str, str]], Optional[IO], Optional[IO], Optional[IO], Optional[Callable[[], OwnedProcess]]) -> None  # noqa
        super(RestartSupervisor, self).__init__(diagnostics)
        if process_factory is None:
            process_factory = functools.partial(
                OwnedProcess.start, command, args, cwd=cwd, env=env,
                stdout=stdout, stderr=stderr)
        self.name = 'supervisor:%s' % command
        self.command = command
        self.args = list(args or [])
        self._process_factory = process_factory
        self._on_started = on_started
        self._on_stopped = on_stopped
        self._stop_timeout = stop_timeout
        self._process = None  # type: Optional[OwnedProcess]

    @classmethod
    def for_binary(cls, binfile, args=None, **kwargs):
        # type: (str, Optional[List[str]], **Any) -> RestartSupervisor
        return cls(binfile, args, **kwargs)

    @classmethod
    def for_script(cls, script, args=None, **kwargs):
        # type: (str, Optional[List[str]], **Any) -> RestartSupervisor
        return cls(sys.executable, [script] + list(args or []), **kwargs)

    @property
    def running(self):
        # type: () -> bool
        return self._process is not None

    @property
    def process(self):
        # type: () -> Optional[OwnedProcess]
        return self._process

    def _handle(self, value):
        # type: (bool) -> None
        self._stop_current()
        if value:
            self._start_new()

    def _shutdown(self):
        # type: () -> None
        self._stop_current()
        if self._on_stopped is not None:
            self._on_stopped()

    def _start_new(self):
        # type: () -> None
        LOGGER.info('Starting %s', ' '.join([self.command] + self.args))
        try:
            process = self._process_factory()
        except SpawnError as e:
            self._report(str(e))
            return
        self._process = process
        if self._on_started is not None:
            self._on_started(process)

    def _stop_current(self):
        # type: () -> None
        process = self._process
        if process is None:
            return
        LOGGER.info('Stopping pid %s', process.pid)
        try:
            process.stop()
        except SignalError as e:
            self._report('Error sending stop signal: %s' % e)
        try:
            process.wait(self._stop_timeout)
        except subprocess.TimeoutExpired:
            LOGGER.warning('pid %s still running after %ss, killing it',
                           process.pid, self._stop_timeout)
            try:
                process.kill()
            except SignalError as e:
                self._report(str(e))
            process.wait()
        self._process = None
        LOGGER.debug('pid %s exited', process.pid)


class CommandRunner(ControlChannel):
    """Fires off a list of commands on every ``True`` without owning them."""

    def __init__(self, commands, done=None, cwd=None, diagnostics=None,
                 popen_cls=subprocess.Popen):
        # type: (List[str], Optional[Callable[[], Any]], Optional[str], Optional[IO], Callable[..., subprocess.Popen]) -> None  # noqa
        super(CommandRunner, self).__init__(diagnostics)
        self.name = 'commands'
        self.commands = [shlex.split(c) for c in commands]
        self._done = done
        self._cwd = cwd
        self._popen_cls = popen_cls

    def _handle(self, value):
        # type: (bool) -> None
        if not value:
            return
        LOGGER.info('Running commands %s', self.commands)
        for cmdline in self.commands:
            if not cmdline:
                continue
            try:
                self._popen_cls(cmdline, cwd=self._cwd)
            except (OSError, ValueError) as e:
                self._report('Error executing command: %s -> %s' % (
                    cmdline, e))
        if self._done is not None:
            self._done()
