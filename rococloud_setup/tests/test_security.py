# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import unittest

from rococloud_setup._host import HostCommandFailed
from rococloud_setup._security import FAIL2BAN_FILTER
from rococloud_setup._security import FAIL2BAN_JAIL
from rococloud_setup._security import SSHD_CONFIG
from rococloud_setup._security import HardenSshd
from rococloud_setup._security import InstallFail2Ban
from rococloud_setup.tests._fake_host import FakeHost

_SSHD_CONFIG = '''Include /etc/ssh/sshd_config.d/*.conf
#PermitRootLogin prohibit-password
#StrictModes yes
#PasswordAuthentication yes
#PermitEmptyPasswords no
'''


class TestSecurity(unittest.TestCase):

    def setUp(self):
        self._host = FakeHost()
        self._host.write_text(SSHD_CONFIG, _SSHD_CONFIG)

    def tearDown(self):
        self._host.close()

    def test_harden_sshd(self):
        HardenSshd().run(self._host)
        self.assertEqual(self._host.read_text(SSHD_CONFIG), (
            'Include /etc/ssh/sshd_config.d/*.conf\n'
            'PermitRootLogin without-password\n'
            '#StrictModes yes\n'
            'PasswordAuthentication no\n'
            '#PermitEmptyPasswords no\n'
            ))
        self.assertEqual(self._host.commands, ['service ssh restart'])

    def test_harden_sshd_twice(self):
        HardenSshd().run(self._host)
        hardened = self._host.read_text(SSHD_CONFIG)
        HardenSshd().run(self._host)
        self.assertEqual(self._host.read_text(SSHD_CONFIG), hardened)

    def test_fail2ban(self):
        InstallFail2Ban().run(self._host)
        self.assertTrue(self._host.ran('DEBIAN_FRONTEND=noninteractive apt-get'))
        self.assertTrue(self._host.commands[0].endswith('install -y fail2ban'))
        self.assertEqual(self._host.commands[-1], 'service fail2ban restart')
        jail = self._host.read_text(FAIL2BAN_JAIL)
        self.assertIn('[sshd-rococloud]\n', jail)
        self.assertIn('maxretry = 3\n', jail)
        self.assertIn('bantime = 86400\n', jail)
        self.assertIn('filter = sshd-rococloud\n', jail)
        sshd_filter = self._host.read_text(FAIL2BAN_FILTER)
        self.assertIn('Authentication failure for .* from <HOST>', sshd_filter)

    def test_fail2ban_install_failure(self):
        host = FakeHost({'DEBIAN_FRONTEND=noninteractive apt-get': (100, b'')})
        self.addCleanup(host.close)
        with self.assertRaises(HostCommandFailed):
            InstallFail2Ban().run(host)
        self.assertFalse(host.exists(FAIL2BAN_JAIL))


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)7s %(name)s %(message).5000s",
        )
    unittest.main()
