import errno
import os
import queue
import threading

from watchdog.events import DirCreatedEvent, DirDeletedEvent
from watchdog.events import FileCreatedEvent, FileDeletedEvent
from watchdog.events import FileModifiedEvent, FileSystemEvent  # noqa

from devloop.errors import NotificationError, RegistrationError
from devloop.utils import OSUtils
from devloop.watcher.shared import EVENT, ERROR
from devloop.watcher.shared import Notifier, NotificationHandle

from typing import Any, Dict, List, Optional, Set, Tuple  # noqa


class StatFileObserver(object):
    """Detects changes to a set of paths by comparing mtimes.

    Directories are also compared by their entries, so a file appearing in
    a registered directory is reported even though no mtime was recorded
    for it.
    """
    def __init__(self, osutils=None):
        # type: (Optional[OSUtils]) -> None
        if osutils is None:
            osutils = OSUtils()
        self._osutils = osutils
        self._mtimes = {}  # type: Dict[str, Optional[float]]
        self._entries = {}  # type: Dict[str, Set[str]]

    def add(self, path):
        # type: (str) -> None
        self._mtimes[path] = self._safe_mtime(path)
        if self._osutils.directory_exists(path):
            self._entries[path] = set(self._osutils.listdir(path))

    def check(self):
        # type: () -> List[FileSystemEvent]
        changes = []  # type: List[FileSystemEvent]
        for path in list(self._mtimes):
            changes.extend(self._check_file(path))
        for path in list(self._entries):
            changes.extend(self._check_dir(path))
        return changes

    def _safe_mtime(self, path):
        # type: (str) -> Optional[float]
        try:
            return self._osutils.mtime(path)
        except OSError as e:
            if e.errno != errno.ENOENT:
                raise
            return None

    def _check_file(self, path):
        # type: (str) -> List[FileSystemEvent]
        new_mtime = self._safe_mtime(path)
        old_mtime = self._mtimes[path]
        if new_mtime == old_mtime:
            return []
        self._mtimes[path] = new_mtime
        if path in self._entries:
            # Directory entries are compared by _check_dir.
            return []
        if old_mtime is None:
            return [FileCreatedEvent(path)]
        if new_mtime is None:
            return [FileDeletedEvent(path)]
        return [FileModifiedEvent(path)]

    def _check_dir(self, path):
        # type: (str) -> List[FileSystemEvent]
        try:
            current = set(self._osutils.listdir(path))
        except OSError as e:
            if e.errno != errno.ENOENT:
                raise
            current = set()
        previous = self._entries[path]
        self._entries[path] = current
        changes = []  # type: List[FileSystemEvent]
        for name in sorted(current - previous):
            full = os.path.join(path, name)
            if full in self._mtimes:
                continue
            if self._osutils.directory_exists(full):
                changes.append(DirCreatedEvent(full))
            else:
                changes.append(FileCreatedEvent(full))
        for name in sorted(previous - current):
            full = os.path.join(path, name)
            if full in self._mtimes:
                continue
            if full in self._entries:
                changes.append(DirDeletedEvent(full))
            else:
                changes.append(FileDeletedEvent(full))
        return changes


class StatHandle(NotificationHandle):
    def __init__(self, interval=0.5, osutils=None, start=True):
        # type: (float, Optional[OSUtils], bool) -> None
        if osutils is None:
            osutils = OSUtils()
        self._osutils = osutils
        self._interval = interval
        self._observer = StatFileObserver(osutils)
        self._queue = queue.Queue()  # type: queue.Queue
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread = None  # type: Optional[threading.Thread]
        if start:
            self._thread = threading.Thread(target=self._run,
                                            name='stat-notifier')
            self._thread.daemon = True
            self._thread.start()

    def add(self, path):
        # type: (str) -> None
        path = self._osutils.abspath(path)
        if not self._osutils.directory_exists(os.path.dirname(path)):
            raise RegistrationError(path, 'parent directory is missing')
        try:
            with self._lock:
                self._observer.add(path)
        except OSError as e:
            raise RegistrationError(path, str(e))

    def check(self):
        # type: () -> None
        try:
            with self._lock:
                changes = self._observer.check()
        except OSError as e:
            self._queue.put((ERROR, e))
            return
        for event in changes:
            self._queue.put((EVENT, event))

    def poll(self, timeout):
        # type: (float) -> Optional[Tuple[str, Any]]
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        # type: () -> None
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()

    def _run(self):
        # type: () -> None
        while not self._stopped.wait(self._interval):
            self.check()


class StatNotifier(Notifier):
    def __init__(self, interval=0.5, osutils=None):
        # type: (float, Optional[OSUtils]) -> None
        self._interval = interval
        self._osutils = osutils

    def new_watcher(self):
        # type: () -> StatHandle
        try:
            return StatHandle(self._interval, self._osutils)
        except RuntimeError as e:
            raise NotificationError(
                'Unable to start stat poller: %s' % e)
