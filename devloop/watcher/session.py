"""Watch loops feeding a ``Sink``.

A session re-registers from scratch on every iteration: it acquires a new
notification handle, registers every path it currently knows about, waits
for one event, error or cancellation, forwards it, releases the handle and
refreshes its directory snapshots.  Changes made while no handle is
installed are not seen; the next registration starts from the reloaded
snapshot instead.
"""
import logging
import os
import stat
import threading

from devloop.errors import NotificationError, RegistrationError
from devloop.utils import OSUtils, SupervisedThread
from devloop.watcher.eventbased import WatchdogNotifier
from devloop.watcher.listing import DirListing
from devloop.watcher.shared import EVENT

from typing import Any, List, Optional, Sequence  # noqa
from devloop.watcher.listing import NameMapper, PathValidator  # noqa
from devloop.watcher.shared import NotificationHandle, Notifier, Sink  # noqa


LOGGER = logging.getLogger(__name__)


class Backoff(object):
    def __init__(self, initial=0.1, maximum=5.0):
        # type: (float, float) -> None
        self._initial = initial
        self._maximum = maximum
        self._current = initial

    def next(self):
        # type: () -> float
        delay = self._current
        self._current = min(self._current * 2, self._maximum)
        return delay

    def reset(self):
        # type: () -> None
        self._current = self._initial


class BaseWatchSession(object):
    def __init__(self, sink, notifier=None, validator=None, name_mapper=None,
                 osutils=None, poll_interval=0.1, backoff=None):
        # type: (Sink, Optional[Notifier], Optional[PathValidator], Optional[NameMapper], Optional[OSUtils], float, Optional[Backoff]) -> None  # noqa
        if notifier is None:
            notifier = WatchdogNotifier()
        if osutils is None:
            osutils = OSUtils()
        if backoff is None:
            backoff = Backoff()
        self.sink = sink
        self._notifier = notifier
        self._validator = validator
        self._name_mapper = name_mapper
        self._osutils = osutils
        self._poll_interval = poll_interval
        self._backoff = backoff
        self._lock = threading.Lock()
        self._running = False
        self._thread = None  # type: Optional[SupervisedThread]
        self.iterations = 0

    def send(self, value):
        # type: (Any) -> None
        """Start trigger.  Only the first one has any effect."""
        if isinstance(value, Exception):
            self.sink.reply_error(value)
            return
        with self._lock:
            if self._running:
                return
            self._running = True
        if not self._setup():
            self.sink.close()
            return
        self._thread = SupervisedThread(
            'watch:%s' % self.name, self._loop, on_exit=self._on_exit)
        self._thread.start()

    def stop(self, timeout=None):
        # type: (Optional[float]) -> None
        self.sink.close()
        self.join(timeout)

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

    @property
    def name(self):
        # type: () -> str
        raise NotImplementedError('name')

    def _setup(self):
        # type: () -> bool
        raise NotImplementedError('_setup')

    def _paths(self):
        # type: () -> List[str]
        raise NotImplementedError('_paths')

    def _reload(self):
        # type: () -> None
        raise NotImplementedError('_reload')

    def _list(self, root):
        # type: (str) -> DirListing
        return DirListing.list(root, self._validator, self._name_mapper,
                               self._osutils)

    def _loop(self):
        # type: () -> None
        cancelled = self.sink.close_notify()
        while not cancelled.is_set():
            try:
                handle = self._notifier.new_watcher()
            except NotificationError as e:
                LOGGER.error('%s: %s', self.name, e)
                self.sink.reply_error(e)
                return
            try:
                registered = self._register(handle)
                self.iterations += 1
                if registered:
                    self._backoff.reset()
                    self._wait(handle, cancelled)
            finally:
                handle.close()
            if not registered:
                delay = self._backoff.next()
                LOGGER.debug('%s: nothing registered, retrying in %.1fs',
                             self.name, delay)
                cancelled.wait(delay)
            if not cancelled.is_set():
                self._reload()

    def _register(self, handle):
        # type: (NotificationHandle) -> int
        count = 0
        for path in self._paths():
            try:
                handle.add(path)
            except RegistrationError as e:
                LOGGER.warning('%s', e)
                self.sink.reply_error(e)
            else:
                count += 1
        LOGGER.debug('%s: registered %s paths', self.name, count)
        return count

    def _wait(self, handle, cancelled):
        # type: (NotificationHandle, threading.Event) -> None
        while not cancelled.is_set():
            outcome = handle.poll(self._poll_interval)
            if outcome is None:
                continue
            kind, payload = outcome
            if kind == EVENT and not self._accepts(payload):
                LOGGER.debug('%s: ignoring %s', self.name, payload)
                continue
            if kind == EVENT:
                self.sink.reply(payload)
            else:
                LOGGER.warning('%s: %s', self.name, payload)
                self.sink.reply_error(payload)
            return

    def _accepts(self, event):
        # type: (Any) -> bool
        if self._validator is None:
            return True
        paths = [getattr(event, 'src_path', None),
                 getattr(event, 'dest_path', None)]
        paths = [os.fsdecode(p) for p in paths if p]
        if not paths:
            return True
        is_dir = getattr(event, 'is_directory', False)
        return any(self._validator(p, is_dir) for p in paths)

    def _on_exit(self, error):
        # type: (Optional[Exception]) -> None
        if error is not None:
            self.sink.reply_error(error)
        self.sink.close()
        LOGGER.debug('%s: session closed', self.name)


class WatchSession(BaseWatchSession):
    """Watches a single file, or a directory tree."""
    def __init__(self, path, sink, **kwargs):
        # type: (str, Sink, **Any) -> None
        super(WatchSession, self).__init__(sink, **kwargs)
        self.path = self._osutils.abspath(path)
        self.listing = None  # type: Optional[DirListing]

    @property
    def name(self):
        # type: () -> str
        return self.path

    def _setup(self):
        # type: () -> bool
        try:
            st = self._osutils.stat(self.path)
            if stat.S_ISDIR(st.st_mode):
                self.listing = self._list(self.path)
        except OSError as e:
            LOGGER.error('Unable to watch %s: %s', self.path, e)
            self.sink.reply_error(e)
            return False
        return True

    def _paths(self):
        # type: () -> List[str]
        if self.listing is None:
            return [self.path]
        return self.listing.paths()

    def _reload(self):
        # type: () -> None
        if self.listing is None:
            return
        try:
            self.listing.reload()
        except OSError as e:
            LOGGER.warning('Unable to reload %s: %s', self.path, e)
            self.sink.reply_error(e)


class WatchSetSession(BaseWatchSession):
    """Watches any mix of files and directory trees as one registration."""
    def __init__(self, paths, sink, **kwargs):
        # type: (Sequence[str], Sink, **Any) -> None
        super(WatchSetSession, self).__init__(sink, **kwargs)
        self.roots = [self._osutils.abspath(p) for p in paths]
        self.listings = []  # type: List[DirListing]
        self.files = []  # type: List[str]

    @property
    def name(self):
        # type: () -> str
        return ','.join(self.roots)

    def _setup(self):
        # type: () -> bool
        for root in self.roots:
            try:
                st = self._osutils.stat(root)
                if stat.S_ISDIR(st.st_mode):
                    self.listings.append(self._list(root))
                else:
                    self.files.append(root)
            except OSError as e:
                LOGGER.warning('Skipping %s: %s', root, e)
                self.sink.reply_error(e)
        if not self.listings and not self.files:
            LOGGER.error('Nothing left to watch in %s', self.name)
            return False
        return True

    def _paths(self):
        # type: () -> List[str]
        paths = []  # type: List[str]
        for listing in self.listings:
            paths.extend(listing.paths())
        paths.extend(self.files)
        return paths

    def _reload(self):
        # type: () -> None
        for listing in self.listings:
            try:
                listing.reload()
            except OSError as e:
                LOGGER.warning('Unable to reload %s: %s', listing.root, e)
                self.sink.reply_error(e)


def watch(path, sink, **kwargs):
    # type: (str, Sink, **Any) -> WatchSession
    session = WatchSession(path, sink, **kwargs)
    session.send(True)
    return session


def watch_set(paths, sink, **kwargs):
    # type: (Sequence[str], Sink, **Any) -> WatchSetSession
    session = WatchSetSession(paths, sink, **kwargs)
    session.send(True)
    return session
