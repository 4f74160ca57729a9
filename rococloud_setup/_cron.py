# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import shlex
from typing import List
from typing import Sequence

from rococloud_setup._core import Command
from rococloud_setup._host import Host

_MARKER = '# rococloud:'


class CronTable:
    """Crontab lines with the ones owned by us marked with a job id.

    Lines of other owners are kept as is and in the same order.

    >>> table = CronTable.parse('MAILTO=""\\n0 3 * * * backup\\n')
    >>> table.upsert('join', '@reboot /bin/sh /root/connect.sh')
    >>> table.upsert('join', '@reboot /bin/sh /root/other.sh')
    >>> print(table.render(), end='')
    MAILTO=""
    0 3 * * * backup
    @reboot /bin/sh /root/other.sh # rococloud:join
    >>> table.remove('join')
    >>> print(table.render(), end='')
    MAILTO=""
    0 3 * * * backup
    """

    def __init__(self, lines: Sequence[str]):
        self._lines: List[str] = list(lines)

    @classmethod
    def parse(cls, text: str) -> 'CronTable':
        return cls([line for line in text.splitlines() if line.strip()])

    def render(self) -> str:
        return ''.join(line + '\n' for line in self._lines)

    def upsert(self, job_id: str, entry: str):
        self.remove(job_id)
        self._lines.append(f'{entry} {job_marker(job_id)}')

    def remove(self, job_id: str):
        marker = job_marker(job_id)
        self._lines = [line for line in self._lines if not line.endswith(marker)]

    def has(self, job_id: str) -> bool:
        marker = job_marker(job_id)
        return any(line.endswith(marker) for line in self._lines)


def job_marker(job_id: str) -> str:
    return _MARKER + job_id


def deregister_command(job_id: str) -> str:
    """Shell command removing the job from the crontab, leaving others.

    >>> deregister_command('swarm-join')
    "crontab -l | grep -v -F '# rococloud:swarm-join' | crontab -"
    """
    return f'crontab -l | grep -v -F {shlex.quote(job_marker(job_id))} | crontab -'


def read_crontab(host: Host) -> CronTable:
    r = host.query('crontab -l')
    if r.returncode == 1 and b'no crontab' in r.stderr.lower():
        _logger.info("No crontab yet")
        return CronTable([])
    r.check_returncode()
    return CronTable.parse(r.stdout.decode())


def write_crontab(host: Host, table: CronTable):
    host.run_input('crontab -', table.render().encode())


class UpsertCronJob(Command):

    def __init__(self, job_id: str, entry: str):
        self._job_id = job_id
        self._entry = entry

    def __repr__(self):
        return f'{UpsertCronJob.__name__}({self._job_id!r}, {self._entry!r})'

    def run(self, host):
        table = read_crontab(host)
        table.upsert(self._job_id, self._entry)
        write_crontab(host, table)
        _logger.info("Cron job %s: %s", self._job_id, self._entry)


class OneShotTask:
    """Commands to run once after the next boot.

    The script removes its own crontab entry and then itself.

    >>> task = OneShotTask('t', '/root/t.sh', ['sleep 5', 'echo hi'])
    >>> print(task.script(), end='')
    sleep 5
    echo hi
    crontab -l | grep -v -F '# rococloud:t' | crontab -
    rm -f /root/t.sh
    """

    def __init__(self, job_id: str, script_path: str, commands: Sequence[str]):
        self.job_id = job_id
        self.script_path = script_path
        self._commands = commands

    def __repr__(self):
        return f'{OneShotTask.__name__}({self.job_id!r}, {self.script_path!r}, {self._commands!r})'

    def script(self) -> str:
        lines = [
            *self._commands,
            deregister_command(self.job_id),
            f'rm -f {shlex.quote(self.script_path)}',
            ]
        return ''.join(line + '\n' for line in lines)


class RunOnceAfterReboot(Command):

    def __init__(self, task: OneShotTask):
        self._task = task

    def __repr__(self):
        return f'{RunOnceAfterReboot.__name__}({self._task!r})'

    def run(self, host):
        host.write_text(self._task.script_path, self._task.script(), 0o755)
        entry = f'@reboot /bin/sh {shlex.quote(self._task.script_path)}'
        UpsertCronJob(self._task.job_id, entry).run(host)


_logger = logging.getLogger(__name__)
