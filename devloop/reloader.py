"""Rebuild and restart a command whenever the watched paths change.

``DevLoop`` wires three independent pieces together through a
``QueueSink``::

    watch_set(paths) --> QueueSink --> DevLoop.run --> run_build
                                                  \--> RestartSupervisor

The watch session and the supervisor never talk to each other directly,
each runs on its own thread and ``run`` is the only consumer of the sink.
"""
import logging
import queue
import time

from devloop.builders import run_build
from devloop.supervisor import RestartSupervisor
from devloop.watcher.eventbased import WatchdogNotifier
from devloop.watcher.session import watch_set
from devloop.watcher.shared import CLOSED, ERROR, EVENT, QueueSink
from devloop.watcher.stat import StatNotifier

from typing import Any, Callable, Optional  # noqa
from devloop.builders import BuildResult  # noqa
from devloop.config import Config  # noqa
from devloop.watcher.session import WatchSetSession  # noqa
from devloop.watcher.shared import Message, Notifier  # noqa


LOGGER = logging.getLogger(__name__)


class DevLoop(object):
    def __init__(self, config, supervisor=None, notifier=None,
                 builder=run_build, sink=None):
        # type: (Config, Optional[RestartSupervisor], Optional[Notifier], Callable[..., BuildResult], Optional[QueueSink]) -> None  # noqa
        self._config = config
        if supervisor is None and config.command is not None:
            supervisor = RestartSupervisor(
                config.command, config.args, cwd=config.cwd,
                stop_timeout=config.stop_timeout)
        if notifier is None:
            if config.poll:
                notifier = StatNotifier(config.poll_interval)
            else:
                notifier = WatchdogNotifier()
        if sink is None:
            sink = QueueSink()
        self.supervisor = supervisor
        self.sink = sink
        self._notifier = notifier
        self._builder = builder
        self.session = None  # type: Optional[WatchSetSession]
        self.builds = 0
        self.restarts = 0

    def start(self):
        # type: () -> DevLoop
        if self.supervisor is not None:
            self.supervisor.start()
        self.rebuild()
        self.session = watch_set(
            self._config.watch_paths, self.sink, notifier=self._notifier,
            validator=self._config.path_validator())
        return self

    def stop(self):
        # type: () -> None
        self.sink.close()

    def run(self):
        # type: () -> None
        """Consume the watch session until it closes."""
        try:
            self._consume()
        finally:
            self.sink.close()
            if self.session is not None:
                self.session.join()
            if self.supervisor is not None:
                self.supervisor.close()
                self.supervisor.join()

    def rebuild(self):
        # type: () -> bool
        command = self._config.build_command
        if command is not None:
            self.builds += 1
            result = self._builder(command, cwd=self._config.cwd)
            if not result.success:
                LOGGER.error('Build failed (rc=%s), keeping the current '
                             'process:\n%s', result.returncode, result.output)
                return False
            if result.output:
                LOGGER.debug('Build output:\n%s', result.output)
        if self.supervisor is not None:
            self.restarts += 1
            self.supervisor.send(True)
        return True

    def _consume(self):
        # type: () -> None
        while True:
            message = self.sink.get()
            if message.kind == CLOSED:
                return
            if message.kind == ERROR:
                self._on_error(message.payload)
                continue
            LOGGER.info('Change detected: %s',
                        getattr(message.payload, 'src_path', message.payload))
            if self._settle():
                return
            self.rebuild()

    def _settle(self):
        # type: () -> bool
        """Swallow the rest of a burst of changes.

        Returns True if the session closed meanwhile.
        """
        deadline = time.monotonic() + self._config.debounce
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            try:
                message = self.sink.get(timeout=remaining)
            except queue.Empty:
                return False
            if message.kind == CLOSED:
                return True
            if message.kind == ERROR:
                self._on_error(message.payload)
            elif message.kind == EVENT:
                LOGGER.debug('Coalesced change: %s',
                             getattr(message.payload, 'src_path',
                                     message.payload))

    def _on_error(self, error):
        # type: (Exception) -> None
        LOGGER.warning('Watch error: %s', error)
