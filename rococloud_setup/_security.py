# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
from rococloud_setup._core import CompositeCommand
from rococloud_setup._core import ReplaceLine
from rococloud_setup._core import Run
from rococloud_setup._core import WriteFile
from rococloud_setup._packages import AptInstall

SSHD_CONFIG = '/etc/ssh/sshd_config'
FAIL2BAN_FILTER = '/etc/fail2ban/filter.d/sshd-rococloud.conf'
FAIL2BAN_JAIL = '/etc/fail2ban/jail.d/sshd-rococloud.conf'

# language=ini
FAIL2BAN_FILTER_CONTENT = '''\
[Definition]
failregex = ^%(__prefix_line)s(?:error: PAM: )?Authentication failure for .* from <HOST>.*$
ignoreregex =
'''

# language=ini
FAIL2BAN_JAIL_CONTENT = '''\
[sshd-rococloud]
enabled = true
filter = sshd-rococloud
port = ssh
logpath = /var/log/auth.log
maxretry = 3
# 24 hours
bantime = 86400
'''


class HardenSshd(CompositeCommand):
    """Allow key-based authentication only."""

    def __init__(self):
        super().__init__([
            ReplaceLine(SSHD_CONFIG, '#PasswordAuthentication yes', 'PasswordAuthentication no'),
            ReplaceLine(SSHD_CONFIG, '#PermitRootLogin prohibit-password', 'PermitRootLogin without-password'),
            Run('service ssh restart'),
            ])


class InstallFail2Ban(CompositeCommand):
    """Ban for a day hosts failing SSH authentication 3 times."""

    def __init__(self):
        super().__init__([
            AptInstall(['fail2ban']),
            WriteFile(FAIL2BAN_FILTER, FAIL2BAN_FILTER_CONTENT),
            WriteFile(FAIL2BAN_JAIL, FAIL2BAN_JAIL_CONTENT),
            Run('service fail2ban restart'),
            ])
