import fnmatch
import os

from typing import Any, Callable, Dict, List, Mapping, Optional  # noqa


ENV_PREFIX = 'DEVLOOP_'

DEFAULT_IGNORE = ['.git', '.hg', '.svn', '__pycache__', '*.pyc', '*.swp',
                  '.*.swx', '*~', '.tox', '.venv', 'node_modules']


def _to_bool(value):
    # type: (str) -> bool
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _to_list(value):
    # type: (str) -> List[str]
    return [v for v in value.split(os.pathsep) if v]


class Config(object):
    """Settings looked up from explicit params, then env, then defaults.

    An explicit param of None counts as "not given" so argparse namespaces
    can be passed straight through.
    """

    _DEFAULTS = {
        'watch_paths': ['.'],
        'build_command': None,
        'command': None,
        'args': [],
        'stop_timeout': 5.0,
        'debounce': 0.2,
        'poll': False,
        'poll_interval': 0.5,
        'ignore': DEFAULT_IGNORE,
        'cwd': None,
    }  # type: Dict[str, Any]

    _CONVERTERS = {
        'watch_paths': _to_list,
        'args': _to_list,
        'stop_timeout': float,
        'debounce': float,
        'poll': _to_bool,
        'poll_interval': float,
        'ignore': lambda v: [p for p in v.split(',') if p],
    }  # type: Dict[str, Callable[[str], Any]]

    def __init__(self, params=None, environ=None):
        # type: (Optional[Mapping[str, Any]], Optional[Mapping[str, str]]) -> None  # noqa
        if params is None:
            params = {}
        if environ is None:
            environ = os.environ
        self._params = params
        self._environ = environ

    @classmethod
    def from_args(cls, namespace, environ=None):
        # type: (Any, Optional[Mapping[str, str]]) -> Config
        return cls(vars(namespace), environ)

    def _chain_lookup(self, name):
        # type: (str) -> Any
        value = self._params.get(name)
        if value is not None and value != []:
            return value
        env_name = ENV_PREFIX + name.upper()
        if env_name in self._environ:
            convert = self._CONVERTERS.get(name, str)
            try:
                return convert(self._environ[env_name])
            except ValueError:
                raise ValueError('Invalid value for %s: %r' % (
                    env_name, self._environ[env_name]))
        return self._DEFAULTS[name]

    @property
    def watch_paths(self):
        # type: () -> List[str]
        return list(self._chain_lookup('watch_paths'))

    @property
    def build_command(self):
        # type: () -> Optional[str]
        return self._chain_lookup('build_command')

    @property
    def command(self):
        # type: () -> Optional[str]
        return self._chain_lookup('command')

    @property
    def args(self):
        # type: () -> List[str]
        return list(self._chain_lookup('args'))

    @property
    def stop_timeout(self):
        # type: () -> float
        return self._chain_lookup('stop_timeout')

    @property
    def debounce(self):
        # type: () -> float
        return self._chain_lookup('debounce')

    @property
    def poll(self):
        # type: () -> bool
        return bool(self._chain_lookup('poll'))

    @property
    def poll_interval(self):
        # type: () -> float
        return self._chain_lookup('poll_interval')

    @property
    def ignore(self):
        # type: () -> List[str]
        return list(self._chain_lookup('ignore'))

    @property
    def cwd(self):
        # type: () -> Optional[str]
        return self._chain_lookup('cwd')

    def path_validator(self):
        # type: () -> Callable[[str, bool], bool]
        patterns = self.ignore

        def validator(path, is_dir):
            # type: (str, bool) -> bool
            name = os.path.basename(path)
            return not any(fnmatch.fnmatch(name, p) for p in patterns)
        return validator
