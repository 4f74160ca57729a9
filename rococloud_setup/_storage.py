# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
from typing import NamedTuple
from typing import Sequence

from rococloud_setup._config import FULL
from rococloud_setup._config import SwarmConfig
from rococloud_setup._core import AppendLine
from rococloud_setup._core import Command

FSTAB = '/etc/fstab'
STORAGE_ROOT = '/storage'
PROVISIONING_MOUNT_POINT = STORAGE_ROOT + '/provisioning'


class MountEntry(NamedTuple):
    remote: str
    mount_point: str
    options: str
    fstype: str = 'nfs'
    dump: int = 0
    pass_number: int = 0

    def fstab_line(self) -> str:
        """Render as fstab(5) line.

        >>> MountEntry('10.0.0.9:/mnt/', '/storage/', 'rw,user').fstab_line()
        '10.0.0.9:/mnt/ /storage/ nfs rw,user 0 0'
        """
        return ' '.join([
            self.remote,
            self.mount_point,
            self.fstype,
            self.options,
            str(self.dump),
            str(self.pass_number),
            ])


def mount_entries(config: SwarmConfig) -> Sequence[MountEntry]:
    options = config.variant.mount_options
    if config.variant != FULL:
        return [MountEntry(f'{config.storage_ip_address}:/mnt/', STORAGE_ROOT + '/', options)]
    entries = [MountEntry(
        f'{config.storage_ip_address}:/{config.location}',
        f'{STORAGE_ROOT}/{config.location}',
        options,
        )]
    if config.provisioning_server:
        entries.append(MountEntry(
            f'{config.provisioning_server}:{config.provisioning_export}',
            PROVISIONING_MOUNT_POINT,
            options,
            ))
    return entries


class MountStorage(Command):
    """Make mount points, persist entries in fstab and try to mount them.

    The share may be unreachable until the network settles after reboot.
    Then it is mounted on boot, so a failed mount is only reported.
    """

    def __init__(self, entries: Sequence[MountEntry]):
        self._entries = entries

    def __repr__(self):
        return f'{MountStorage.__name__}({[e.mount_point for e in self._entries]!r})'

    def run(self, host):
        for entry in self._entries:
            host.mkdir(entry.mount_point)
            AppendLine(FSTAB, entry.fstab_line()).run(host)
        r = host.run_still('mount -a')
        if r.returncode == 0:
            _logger.info("NFS share successfully mounted")
        else:
            stderr = r.stderr.decode(errors='backslashreplace').strip()
            _logger.error("Failed: to mount NFS share: %s", stderr)


_logger = logging.getLogger(__name__)
