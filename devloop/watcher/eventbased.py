"""Native change notification built on watchdog.

Every ``WatchdogHandle`` owns a private watchdog ``Observer``.  Paths are
registered one at a time, but watchdog only schedules directories, so a
registered file is covered by scheduling its parent directory and then
filtering out events for siblings that were never registered.  A
registered directory covers its direct children, which is what lets a
newly created file show up before the directory snapshot knows about it.
"""
import logging
import os
import queue
import threading

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
from watchdog.events import FileSystemEvent  # noqa

from devloop.errors import NotificationError, RegistrationError
from devloop.watcher.shared import EVENT, ERROR
from devloop.watcher.shared import Notifier, NotificationHandle

from typing import Any, Callable, Optional, Set, Tuple  # noqa


LOGGER = logging.getLogger(__name__)

# Access-only notifications, nothing on disk changed.
IGNORED_EVENT_TYPES = frozenset(['opened', 'closed_no_write'])


def _decode(path):
    # type: (Any) -> str
    if isinstance(path, bytes):
        return os.fsdecode(path)
    return path


class WatchDogEventAdapter(FileSystemEventHandler):
    """Filters out watchdog access events."""
    def __init__(self, handler):
        # type: (Callable) -> None
        self._handler = handler

    def on_any_event(self, event):
        # type: (FileSystemEvent) -> None
        if event.event_type in IGNORED_EVENT_TYPES:
            return
        self._handler(event)


class WatchdogHandle(NotificationHandle):
    def __init__(self, observer_factory=Observer):
        # type: (Callable[[], Any]) -> None
        self._queue = queue.Queue()  # type: queue.Queue
        self._lock = threading.Lock()
        self._files = set()  # type: Set[str]
        self._dirs = set()  # type: Set[str]
        self._scheduled = set()  # type: Set[str]
        self._adapter = WatchDogEventAdapter(self._on_event)
        self._observer = observer_factory()
        self._observer.start()

    @property
    def registered(self):
        # type: () -> Set[str]
        with self._lock:
            return self._files | self._dirs

    def add(self, path):
        # type: (str) -> None
        path = os.path.abspath(path)
        if os.path.isdir(path):
            target = path
            registry = self._dirs
        else:
            # A missing file is still registered through its parent so
            # that recreating it is noticed.
            target = os.path.dirname(path)
            registry = self._files
            if not os.path.isdir(target):
                raise RegistrationError(path, 'parent directory is missing')
        with self._lock:
            registry.add(path)
            needs_schedule = target not in self._scheduled
            self._scheduled.add(target)
        if needs_schedule:
            try:
                self._observer.schedule(self._adapter, target,
                                        recursive=False)
            except OSError as e:
                with self._lock:
                    registry.discard(path)
                    self._scheduled.discard(target)
                raise RegistrationError(path, str(e))

    def poll(self, timeout):
        # type: (float) -> Optional[Tuple[str, Any]]
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        # type: () -> None
        self._observer.stop()
        if self._observer.is_alive():
            self._observer.join()

    def _is_registered(self, path):
        # type: (str) -> bool
        with self._lock:
            return (path in self._files or path in self._dirs or
                    os.path.dirname(path) in self._dirs)

    def _on_event(self, event):
        # type: (FileSystemEvent) -> None
        paths = [_decode(event.src_path),
                 _decode(getattr(event, 'dest_path', ''))]
        if any(p and self._is_registered(p) for p in paths):
            self._queue.put((EVENT, event))
        elif event.event_type == 'deleted' and self._lost_parent(paths[0]):
            self._queue.put((ERROR, RegistrationError(
                paths[0], 'watched directory was removed')))

    def _lost_parent(self, path):
        # type: (str) -> bool
        # The parent of a registered file went away, so nothing more
        # will be delivered for it on this handle.
        with self._lock:
            return path in self._scheduled and path not in self._dirs


class WatchdogNotifier(Notifier):
    """Uses watchdog to watch files for changes."""
    def __init__(self, observer_factory=Observer):
        # type: (Callable[[], Any]) -> None
        self._observer_factory = observer_factory

    def new_watcher(self):
        # type: () -> WatchdogHandle
        try:
            return WatchdogHandle(self._observer_factory)
        except (OSError, RuntimeError) as e:
            raise NotificationError(
                'Unable to start file system observer: %s' % e)
