class DevLoopError(Exception):
    pass


class NotificationError(DevLoopError):
    """A filesystem notification handle could not be acquired."""


class RegistrationError(DevLoopError):
    def __init__(self, path, reason):
        # type: (str, str) -> None
        super(RegistrationError, self).__init__(
            'Unable to watch %s: %s' % (path, reason))
        self.path = path
        self.reason = reason


class SpawnError(DevLoopError):
    def __init__(self, cmdline, reason):
        # type: (list, str) -> None
        super(SpawnError, self).__init__(
            'Error starting process %s: %s' % (' '.join(cmdline), reason))
        self.cmdline = cmdline
        self.reason = reason


class SignalError(DevLoopError):
    """Neither an interrupt nor a kill could be delivered to a process."""


class BuildError(DevLoopError):
    def __init__(self, cmdline, returncode, output):
        # type: (list, int, str) -> None
        super(BuildError, self).__init__(
            'Build failed (rc=%s): %s\n%s' % (
                returncode, ' '.join(cmdline), output))
        self.cmdline = cmdline
        self.returncode = returncode
        self.output = output
