# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import base64
import hashlib
import io
import logging
import unittest

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.hazmat.primitives.serialization import PublicFormat
from rich.console import Console

from rococloud_setup._pubkey import AUTHORIZED_KEYS
from rococloud_setup._pubkey import AuthorizedKey
from rococloud_setup._pubkey import SyncAuthorizedKeys
from rococloud_setup._pubkey import parse_authorized_keys
from rococloud_setup.tests._fake_host import FakeHost

_SOURCE = '/storage/provisioning/authorized_keys'


def _make_key() -> str:
    public_key = Ed25519PrivateKey.generate().public_key()
    return public_key.public_bytes(Encoding.OpenSSH, PublicFormat.OpenSSH).decode()


def _expected_fingerprint(body: str) -> str:
    digest = hashlib.sha256(base64.b64decode(body)).digest()
    return 'SHA256:' + base64.b64encode(digest).decode().rstrip('=')


class TestAuthorizedKey(unittest.TestCase):

    def test_fingerprint(self):
        key = AuthorizedKey.parse(_make_key())
        self.assertEqual(key.fingerprint(), _expected_fingerprint(key.body))
        self.assertEqual(key.describe(), f'ssh-ed25519 {key.fingerprint()}')

    def test_comment(self):
        key = AuthorizedKey.parse(_make_key() + ' operator@workstation')
        self.assertEqual(key.describe(), 'operator@workstation')

    def test_security_key(self):
        key = AuthorizedKey.parse('sk-ssh-ed25519@openssh.com AAAAGnNrLXNzaC1lZDI1NTE5QG9wZW5zc2guY29t')
        self.assertEqual(key.algo, 'sk-ssh-ed25519@openssh.com')
        self.assertEqual(key.fingerprint(), _expected_fingerprint(key.body))

    def test_parse_file(self):
        text = '\n'.join([
            '# Operators',
            _make_key() + ' alice',
            '',
            'from="10.0.0.0/8" ' + _make_key() + ' bob',
            'garbage',
            ])
        keys = parse_authorized_keys(text)
        self.assertEqual([k.comment for k in keys], ['alice', 'bob'])
        self.assertEqual(keys[1].options, 'from="10.0.0.0/8"')


class TestSyncAuthorizedKeys(unittest.TestCase):

    def setUp(self):
        self._host = FakeHost()
        self._host.mkdir('/storage/provisioning')
        self._output = io.StringIO()
        self._console = Console(file=self._output, width=120)

    def tearDown(self):
        self._host.close()

    def test_sync(self):
        self._host.write_text(_SOURCE, _make_key() + ' alice\n' + _make_key() + '\n')
        self._host.crontab = '0 3 * * * /usr/local/bin/backup\n'
        SyncAuthorizedKeys(_SOURCE, console=self._console).run(self._host)
        self.assertEqual(self._host.read_text(AUTHORIZED_KEYS), self._host.read_text(_SOURCE))
        self.assertEqual(self._host.file(AUTHORIZED_KEYS).stat().st_mode & 0o777, 0o600)
        self.assertEqual(self._host.crontab, (
            '0 3 * * * /usr/local/bin/backup\n'
            '*/5 * * * * cp /storage/provisioning/authorized_keys /root/.ssh/authorized_keys'
            ' # rococloud:authorized-keys-sync\n'
            ))
        output = self._output.getvalue()
        self.assertIn('alice', output)
        self.assertIn('ssh-ed25519 SHA256:', output)

    def test_overwrite_not_merge(self):
        self._host.mkdir('/root/.ssh')
        self._host.write_text(AUTHORIZED_KEYS, _make_key() + ' stale\n')
        self._host.write_text(_SOURCE, _make_key() + ' fresh\n')
        SyncAuthorizedKeys(_SOURCE, console=self._console).run(self._host)
        SyncAuthorizedKeys(_SOURCE, console=self._console).run(self._host)
        authorized_keys = self._host.read_text(AUTHORIZED_KEYS)
        self.assertNotIn('stale', authorized_keys)
        self.assertEqual(authorized_keys.count('fresh'), 1)
        self.assertEqual(self._host.crontab.count('rococloud:authorized-keys-sync'), 1)

    def test_source_unavailable(self):
        with self.assertRaises(FileNotFoundError):
            SyncAuthorizedKeys(_SOURCE, console=self._console).run(self._host)
        self.assertFalse(self._host.exists(AUTHORIZED_KEYS))
        self.assertEqual(self._host.crontab, (
            '*/5 * * * * cp /storage/provisioning/authorized_keys /root/.ssh/authorized_keys'
            ' # rococloud:authorized-keys-sync\n'
            ))


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)7s %(name)s %(message).5000s",
        )
    unittest.main()
