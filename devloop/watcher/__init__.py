"""File system watching for the development loop.

A watch session turns low level change notifications into a stream of
events pushed into a ``Sink``.  Two notification backends are provided
behind the same ``Notifier`` interface: ``WatchdogNotifier`` uses the
native OS mechanism through watchdog, and ``StatNotifier`` polls mtimes
for file systems where native notifications don't work (network mounts,
some container volumes).  Directory roots are tracked with a
``DirListing`` snapshot that is reloaded after every change.
"""
from devloop.watcher.session import watch, watch_set  # noqa
from devloop.watcher.session import WatchSession, WatchSetSession  # noqa
from devloop.watcher.shared import CallbackSink, QueueSink  # noqa
