import logging
import os
import threading

from typing import Any, Callable, List, Optional  # noqa


LOGGER = logging.getLogger(__name__)


class OSUtils(object):
    def stat(self, path):
        # type: (str) -> os.stat_result
        return os.stat(path)

    def directory_exists(self, path):
        # type: (str) -> bool
        return os.path.isdir(path)

    def mtime(self, path):
        # type: (str) -> float
        return os.stat(path).st_mtime

    def listdir(self, path):
        # type: (str) -> List[str]
        return os.listdir(path)

    def is_link(self, path):
        # type: (str) -> bool
        return os.path.islink(path)

    def abspath(self, path):
        # type: (str) -> str
        return os.path.abspath(path)


class SupervisedThread(threading.Thread):
    """Runs a long lived loop and records how it terminated.

    Any exception escaping ``target`` is logged with its traceback and kept
    on ``error``.  ``on_exit`` is always called with that error (or None)
    once the loop is over, which is where owners release whatever the
    loop was holding.
    """

    def __init__(self, name, target, on_exit=None):
        # type: (str, Callable[[], Any], Optional[Callable]) -> None
        super(SupervisedThread, self).__init__(name=name)
        self.daemon = True
        self.error = None  # type: Optional[Exception]
        self._target_fn = target
        self._on_exit = on_exit

    def run(self):
        # type: () -> None
        LOGGER.debug('%s started', self.name)
        try:
            self._target_fn()
        except Exception as e:
            self.error = e
            LOGGER.error('%s terminated with an error', self.name,
                         exc_info=True)
        else:
            LOGGER.debug('%s finished', self.name)
        finally:
            if self._on_exit is not None:
                self._on_exit(self.error)
