import logging
import shlex
import subprocess
from collections import namedtuple

from devloop.errors import BuildError

from typing import Dict, List, Optional, Union  # noqa


LOGGER = logging.getLogger(__name__)


class BuildResult(namedtuple('BuildResult',
                             ['cmdline', 'returncode', 'output'])):
    @property
    def success(self):
        # type: () -> bool
        return self.returncode == 0

    def check(self):
        # type: () -> BuildResult
        if not self.success:
            raise BuildError(self.cmdline, self.returncode, self.output)
        return self


def run_build(cmdline, cwd=None, env=None, timeout=None):
    # type: (Union[str, List[str]], Optional[str], Optional[Dict[str, str]], Optional[float]) -> BuildResult  # noqa
    """Run a build command to completion.

    stdout and stderr are captured together.  A command that can't be
    started at all is reported as a failed build with return code 127.
    """
    if isinstance(cmdline, str):
        cmdline = shlex.split(cmdline)
    LOGGER.info('Building: %s', ' '.join(cmdline))
    try:
        proc = subprocess.run(cmdline, cwd=cwd, env=env, timeout=timeout,
                              stdout=subprocess.PIPE,
                              stderr=subprocess.STDOUT)
    except OSError as e:
        return BuildResult(cmdline, 127, str(e))
    except subprocess.TimeoutExpired as e:
        output = e.output or b''
        return BuildResult(cmdline, -1, output.decode('utf-8', 'replace') +
                           '\nbuild timed out after %ss' % timeout)
    output = proc.stdout.decode('utf-8', 'replace')
    result = BuildResult(cmdline, proc.returncode, output)
    if not result.success:
        LOGGER.debug('Build failed with rc=%s', proc.returncode)
    return result
