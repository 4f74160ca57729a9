# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import shlex

from rococloud_setup._cron import OneShotTask
from rococloud_setup._cron import RunOnceAfterReboot

SWARM_JOIN_JOB_ID = 'swarm-join'
SWARM_JOIN_SCRIPT = '/root/connect.sh'


def swarm_join_task(token: str, manager_address: str, delay_sec: int = 5) -> OneShotTask:
    """Join the swarm as a worker once the network has settled after reboot.

    >>> print(swarm_join_task('abc123', '10.0.0.5').script(), end='')
    sleep 5
    docker swarm join --token abc123 10.0.0.5
    crontab -l | grep -v -F '# rococloud:swarm-join' | crontab -
    rm -f /root/connect.sh
    """
    join = ['docker', 'swarm', 'join', '--token', token, manager_address]
    return OneShotTask(SWARM_JOIN_JOB_ID, SWARM_JOIN_SCRIPT, [
        f'sleep {delay_sec:d}',
        shlex.join(join),
        ])


class ScheduleSwarmJoin(RunOnceAfterReboot):

    def __init__(self, token: str, manager_address: str, delay_sec: int = 5):
        super().__init__(swarm_join_task(token, manager_address, delay_sec))
        self._manager_address = manager_address

    def __repr__(self):
        # The token grants access to the cluster. Keep it out of logs.
        return f'{ScheduleSwarmJoin.__name__}(<token>, {self._manager_address!r})'
