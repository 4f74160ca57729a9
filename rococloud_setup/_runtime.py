# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging

from rococloud_setup._core import Command
from rococloud_setup._pipeline import StepError

_VERSION_PREFIX = 'Docker version'


class RuntimeNotInstalled(StepError):
    pass


class VerifyDockerRuntime(Command):
    """Make sure `docker -v` reports a version.

    Everything after this depends on Docker, so it is the gate.
    """

    def __repr__(self):
        return f'{VerifyDockerRuntime.__name__}()'

    def run(self, host):
        r = host.query('docker -v')
        output = r.stdout.decode(errors='backslashreplace').strip()
        if r.returncode != 0 or not output.startswith(_VERSION_PREFIX):
            raise RuntimeNotInstalled(
                "Docker could not be found on this host. "
                f"The installation does not appear to have been successful: {output or r.returncode!r}")
        _logger.info("Docker has been successfully installed: %s", output)


_logger = logging.getLogger(__name__)
