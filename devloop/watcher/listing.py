import contextlib
import logging
import os
import threading

from devloop.utils import OSUtils

from typing import Callable, Dict, Iterator, List, Optional  # noqa


LOGGER = logging.getLogger(__name__)

# (absolute path, is_dir) -> keep entry
PathValidator = Callable[[str, bool], bool]
# path relative to the root -> output name
NameMapper = Callable[[str], str]


def _accept_all(path, is_dir):
    # type: (str, bool) -> bool
    return True


def _identity(path):
    # type: (str) -> str
    return path


class RWLock(object):
    """Many readers or a single writer.

    Waiting writers block new readers so a steady stream of readers can't
    starve a reload.
    """
    def __init__(self):
        # type: () -> None
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextlib.contextmanager
    def read_locked(self):
        # type: () -> Iterator[None]
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write_locked(self):
        # type: () -> Iterator[None]
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class DirListing(object):
    """In memory recursive listing of a directory.

    ``tree`` maps each absolute directory path to the files it directly
    contains, as ``{mapped_name: real_name}``.  It is only replaced
    wholesale by ``reload`` so it may lag behind the disk in between.
    """
    def __init__(self, root, validator=None, name_mapper=None, osutils=None):
        # type: (str, Optional[PathValidator], Optional[NameMapper], Optional[OSUtils]) -> None  # noqa
        if osutils is None:
            osutils = OSUtils()
        self._osutils = osutils
        self.root = osutils.abspath(root)
        self._validator = validator or _accept_all
        self._name_mapper = name_mapper or _identity
        self.lock = RWLock()
        self.tree = {}  # type: Dict[str, Dict[str, str]]

    @classmethod
    def list(cls, root, validator=None, name_mapper=None, osutils=None):
        # type: (str, Optional[PathValidator], Optional[NameMapper], Optional[OSUtils]) -> DirListing  # noqa
        listing = cls(root, validator, name_mapper, osutils)
        listing.reload()
        return listing

    def reload(self):
        # type: () -> None
        tree = self._scan()
        with self.lock.write_locked():
            self.tree = tree
        LOGGER.debug('Reloaded %s: %s directories', self.root, len(tree))

    def paths(self):
        # type: () -> List[str]
        """Every directory in the listing followed by its files."""
        paths = []  # type: List[str]
        with self.lock.read_locked():
            for dirname in sorted(self.tree):
                paths.append(dirname)
                for real in sorted(self.tree[dirname].values()):
                    paths.append(os.path.join(dirname, real))
        return paths

    def files(self):
        # type: () -> Dict[str, str]
        """Mapped output name to absolute path of every listed file."""
        files = {}  # type: Dict[str, str]
        with self.lock.read_locked():
            for dirname, entries in self.tree.items():
                for mapped, real in entries.items():
                    files[mapped] = os.path.join(dirname, real)
        return files

    def __contains__(self, path):
        # type: (object) -> bool
        if not isinstance(path, str):
            return False
        path = self._osutils.abspath(path)
        dirname, name = os.path.split(path)
        with self.lock.read_locked():
            if path in self.tree:
                return True
            return name in self.tree.get(dirname, {}).values()

    def _scan(self):
        # type: () -> Dict[str, Dict[str, str]]
        if not self._osutils.directory_exists(self.root):
            # Surfaces as FileNotFoundError/NotADirectoryError.
            self._osutils.listdir(self.root)
        tree = {}  # type: Dict[str, Dict[str, str]]
        pending = [self.root]
        while pending:
            current = pending.pop()
            try:
                names = self._osutils.listdir(current)
            except OSError as e:
                if current == self.root:
                    raise
                # Vanished subdirectories are skipped quietly.
                if not isinstance(e, FileNotFoundError):
                    LOGGER.warning('Skipping %s: %s', current, e)
                continue
            entries = {}  # type: Dict[str, str]
            for name in sorted(names):
                full = os.path.join(current, name)
                is_dir = self._osutils.directory_exists(full)
                if is_dir and self._osutils.is_link(full):
                    # Symlinked directories are never descended.
                    continue
                if not self._validator(full, is_dir):
                    continue
                if is_dir:
                    pending.append(full)
                    continue
                relpath = os.path.relpath(full, self.root)
                entries[self._name_mapper(relpath)] = name
            tree[current] = entries
        return tree
