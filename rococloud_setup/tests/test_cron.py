# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import unittest
from subprocess import CalledProcessError
from subprocess import CompletedProcess

from rococloud_setup._cron import OneShotTask
from rococloud_setup._cron import RunOnceAfterReboot
from rococloud_setup._cron import UpsertCronJob
from rococloud_setup._cron import read_crontab
from rococloud_setup.tests._fake_host import FakeHost


class TestCron(unittest.TestCase):

    def setUp(self):
        self._host = FakeHost()

    def tearDown(self):
        self._host.close()

    def test_no_crontab_yet(self):
        self.assertEqual(read_crontab(self._host).render(), '')

    def test_crontab_unavailable(self):
        host = _BrokenCrontabHost()
        self.addCleanup(host.close)
        with self.assertRaises(CalledProcessError):
            UpsertCronJob('sync', '*/5 * * * * true').run(host)
        self.assertIsNone(host.crontab)

    def test_upsert_keeps_other_jobs(self):
        self._host.crontab = '0 3 * * * /usr/local/bin/backup\n'
        UpsertCronJob('sync', '*/5 * * * * true').run(self._host)
        UpsertCronJob('sync', '*/10 * * * * true').run(self._host)
        self.assertEqual(self._host.crontab, (
            '0 3 * * * /usr/local/bin/backup\n'
            '*/10 * * * * true # rococloud:sync\n'
            ))

    def test_run_once_after_reboot(self):
        task = OneShotTask('hello', '/root/hello.sh', ['echo hello'])
        RunOnceAfterReboot(task).run(self._host)
        self.assertEqual(self._host.read_text('/root/hello.sh'), (
            'echo hello\n'
            "crontab -l | grep -v -F '# rococloud:hello' | crontab -\n"
            'rm -f /root/hello.sh\n'
            ))
        self.assertTrue(self._host.file('/root/hello.sh').stat().st_mode & 0o111)
        self.assertEqual(self._host.crontab, '@reboot /bin/sh /root/hello.sh # rococloud:hello\n')


class _BrokenCrontabHost(FakeHost):

    def query(self, command):
        if command == 'crontab -l':
            return CompletedProcess(command, 1, b'', b'crontab: cannot open spool\n')
        return super().query(command)


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)7s %(name)s %(message).5000s",
        )
    unittest.main()
