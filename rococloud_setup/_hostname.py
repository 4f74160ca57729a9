# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging

from rococloud_setup._core import Command

HOSTNAME_PATH = '/etc/hostname'
HOSTNAME_BACKUP_PATH = '/etc/hostname.init'


def qualified_hostname(original: str, domain_suffix: str) -> str:
    """Derive FQDN from the hostname the machine was installed with.

    >>> qualified_hostname('node7\\n', 'rococloud.me')
    'node7.rococloud.me'
    """
    return f'{original.strip()}.{domain_suffix}'


class NormalizeHostname(Command):
    """Snapshot the original hostname once, then write the qualified one.

    The derived name is always computed from the snapshot,
    so it does not grow on re-runs. Takes effect after reboot.
    """

    def __init__(self, domain_suffix: str):
        self._domain_suffix = domain_suffix

    def __repr__(self):
        return f'{NormalizeHostname.__name__}({self._domain_suffix!r})'

    def run(self, host):
        if host.exists(HOSTNAME_BACKUP_PATH):
            _logger.info("Original hostname already saved in %s", HOSTNAME_BACKUP_PATH)
            original = host.read_text(HOSTNAME_BACKUP_PATH)
        else:
            original = host.read_text(HOSTNAME_PATH)
            host.write_text(HOSTNAME_BACKUP_PATH, original)
        hostname = qualified_hostname(original, self._domain_suffix)
        host.write_text(HOSTNAME_PATH, hostname + '\n')
        _logger.info("Hostname has been changed to %s", hostname)


_logger = logging.getLogger(__name__)
