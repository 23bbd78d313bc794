import logging
import os
import signal
import subprocess

from devloop.errors import SignalError, SpawnError

from typing import Any, Callable, Dict, IO, List, Optional  # noqa


LOGGER = logging.getLogger(__name__)

# Windows has no interrupt that can be delivered to an arbitrary child, so
# stopping always means terminating there.
SUPPORTS_INTERRUPT = os.name != 'nt'


class OwnedProcess(object):
    """A single child process started by, and belonging to, one owner."""

    def __init__(self, popen, cmdline, supports_interrupt=SUPPORTS_INTERRUPT):
        # type: (subprocess.Popen, List[str], bool) -> None
        self._popen = popen
        self.cmdline = cmdline
        self._supports_interrupt = supports_interrupt

    @classmethod
    def start(cls, command, args=None, cwd=None, env=None, stdout=None,
              stderr=None, popen_cls=subprocess.Popen):
        # type: (str, Optional[List[str]], Optional[str], Optional[Dict[str, str]], Optional[IO], Optional[IO], Callable[..., subprocess.Popen]) -> OwnedProcess  # noqa
        cmdline = [command] + list(args or [])
        try:
            popen = popen_cls(cmdline, cwd=cwd, env=env, stdout=stdout,
                              stderr=stderr)
        except (OSError, ValueError) as e:
            raise SpawnError(cmdline, str(e))
        LOGGER.debug('Started %s (pid %s)', cmdline, popen.pid)
        return cls(popen, cmdline)

    @property
    def pid(self):
        # type: () -> int
        return self._popen.pid

    @property
    def returncode(self):
        # type: () -> Optional[int]
        return self._popen.poll()

    def is_running(self):
        # type: () -> bool
        return self._popen.poll() is None

    def stop(self):
        # type: () -> None
        """Ask the process to exit, forcing it if the request can't be sent.

        This does not wait for the process, call ``wait`` for that.
        """
        if not self.is_running():
            return
        if not self._supports_interrupt:
            self.kill()
            return
        try:
            self._popen.send_signal(signal.SIGINT)
        except OSError as e:
            LOGGER.warning('Unable to interrupt pid %s (%s), killing it',
                           self.pid, e)
            self.kill()

    def kill(self):
        # type: () -> None
        try:
            self._popen.kill()
        except OSError as e:
            if self._popen.poll() is not None:
                return
            raise SignalError('Unable to kill pid %s: %s' % (self.pid, e))

    def wait(self, timeout=None):
        # type: (Optional[float]) -> int
        """Block until the process exits.

        Raises ``subprocess.TimeoutExpired`` if ``timeout`` runs out first.
        """
        return self._popen.wait(timeout=timeout)
