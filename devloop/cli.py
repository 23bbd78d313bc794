"""Command line entry point.

    devloop --watch src --build "make" -- ./bin/server --port 8000
"""
import argparse
import logging
import sys

from devloop import __version__
from devloop.config import Config
from devloop.reloader import DevLoop

from typing import List, Optional  # noqa


LOGGER = logging.getLogger(__name__)


def create_parser():
    # type: () -> argparse.ArgumentParser
    parser = argparse.ArgumentParser(
        prog='devloop',
        description='Rebuild and restart a command when files change.')
    parser.add_argument('--version', action='version',
                        version='%(prog)s ' + __version__)
    parser.add_argument('-w', '--watch', dest='watch_paths',
                        action='append', default=None, metavar='PATH',
                        help='File or directory to watch, may be repeated '
                             '(default: current directory).')
    parser.add_argument('-b', '--build', dest='build_command', default=None,
                        help='Command to run before every (re)start.')
    parser.add_argument('--stop-timeout', type=float, default=None,
                        help='Seconds to wait after an interrupt before '
                             'killing the process.')
    parser.add_argument('--debounce', type=float, default=None,
                        help='Seconds of quiet required after a change.')
    parser.add_argument('--poll', action='store_true', default=None,
                        help='Poll mtimes instead of using native file '
                             'system notifications.')
    parser.add_argument('--poll-interval', type=float, default=None)
    parser.add_argument('--ignore', action='append', default=None,
                        metavar='PATTERN',
                        help='Name pattern to leave out of directory '
                             'listings, may be repeated.')
    parser.add_argument('--debug', action='store_true',
                        help='Print debug logs.')
    parser.add_argument('command', nargs='?', default=None)
    parser.add_argument('args', nargs=argparse.REMAINDER, default=[])
    return parser


def configure_logging(debug):
    # type: (bool) -> None
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level, stream=sys.stderr,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s')


def main(argv=None):
    # type: (Optional[List[str]]) -> int
    parser = create_parser()
    args = parser.parse_args(argv)
    if args.command == '--':
        args.command = args.args.pop(0) if args.args else None
    elif args.args[:1] == ['--']:
        args.args = args.args[1:]
    configure_logging(args.debug)
    config = Config.from_args(args)
    if config.command is None and config.build_command is None:
        parser.error('nothing to do, give a command and/or --build')
    loop = DevLoop(config)
    try:
        loop.start()
        loop.run()
    except KeyboardInterrupt:
        LOGGER.info('Interrupted, shutting down')
        loop.stop()
        loop.run()
    return 0
