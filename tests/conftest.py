import os
import queue
import time

import pytest

from devloop.errors import NotificationError, RegistrationError
from devloop.watcher.shared import NotificationHandle, Notifier


posix_only = pytest.mark.skipif(
    os.name == 'nt', reason='Requires POSIX signal semantics.')


def wait_for(predicate, timeout=2.0, interval=0.01):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeHandle(NotificationHandle):
    def __init__(self, outcomes, unwatchable):
        self.added = []
        self.closed = False
        self._outcomes = outcomes
        self._unwatchable = unwatchable

    def add(self, path):
        if path in self._unwatchable:
            raise RegistrationError(path, 'not allowed')
        self.added.append(path)

    def poll(self, timeout):
        try:
            return self._outcomes.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        self.closed = True


class FakeNotifier(Notifier):
    """Hands out FakeHandles that all read from one outcome queue."""

    def __init__(self, error=None):
        self.handles = []
        self.outcomes = queue.Queue()
        self.unwatchable = set()
        self.overlapping_handles = False
        self._error = error

    def new_watcher(self):
        if self._error is not None:
            raise NotificationError(self._error)
        if any(not h.closed for h in self.handles):
            self.overlapping_handles = True
        handle = FakeHandle(self.outcomes, self.unwatchable)
        self.handles.append(handle)
        return handle

    def push(self, kind, payload):
        self.outcomes.put((kind, payload))


@pytest.fixture
def notifier():
    return FakeNotifier()
