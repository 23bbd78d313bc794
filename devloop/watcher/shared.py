import queue
import threading
from collections import namedtuple

from typing import Any, Callable, Optional, Tuple  # noqa


EVENT = 'event'
ERROR = 'error'
CLOSED = 'closed'

Message = namedtuple('Message', ['kind', 'payload'])


class Sink(object):
    """Destination of everything a watch session observes.

    A session only ever pushes into its sink; the sink's close
    notification is how the consumer asks the session to stop.
    """
    def reply(self, value):
        # type: (Any) -> None
        raise NotImplementedError('reply')

    def reply_error(self, error):
        # type: (Exception) -> None
        raise NotImplementedError('reply_error')

    def close_notify(self):
        # type: () -> threading.Event
        raise NotImplementedError('close_notify')

    def close(self):
        # type: () -> None
        raise NotImplementedError('close')


class QueueSink(Sink):
    """Sink that turns the session output into a stream of ``Message``s.

    The stream always ends with exactly one ``CLOSED`` message.
    """
    def __init__(self, maxsize=0):
        # type: (int) -> None
        self.messages = queue.Queue(maxsize)  # type: queue.Queue
        self._closed = threading.Event()
        self._lock = threading.Lock()

    def reply(self, value):
        # type: (Any) -> None
        self.messages.put(Message(EVENT, value))

    def reply_error(self, error):
        # type: (Exception) -> None
        self.messages.put(Message(ERROR, error))

    def close_notify(self):
        # type: () -> threading.Event
        return self._closed

    def close(self):
        # type: () -> None
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
        self.messages.put(Message(CLOSED, None))

    def get(self, timeout=None):
        # type: (Optional[float]) -> Message
        return self.messages.get(timeout=timeout)


class CallbackSink(Sink):
    def __init__(self, on_event, on_error=None, on_close=None):
        # type: (Callable, Optional[Callable], Optional[Callable]) -> None
        self._on_event = on_event
        self._on_error = on_error
        self._on_close = on_close
        self._closed = threading.Event()
        self._lock = threading.Lock()

    def reply(self, value):
        # type: (Any) -> None
        self._on_event(value)

    def reply_error(self, error):
        # type: (Exception) -> None
        if self._on_error is not None:
            self._on_error(error)

    def close_notify(self):
        # type: () -> threading.Event
        return self._closed

    def close(self):
        # type: () -> None
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
        if self._on_close is not None:
            self._on_close()


class NotificationHandle(object):
    """One registration with the OS change notification layer.

    ``poll`` returns an ``(EVENT, event)`` or ``(ERROR, exception)`` tuple,
    or None if nothing arrived within ``timeout``.
    """
    def add(self, path):
        # type: (str) -> None
        raise NotImplementedError('add')

    def poll(self, timeout):
        # type: (float) -> Optional[Tuple[str, Any]]
        raise NotImplementedError('poll')

    def close(self):
        # type: () -> None
        raise NotImplementedError('close')


class Notifier(object):
    def new_watcher(self):
        # type: () -> NotificationHandle
        raise NotImplementedError('new_watcher')
