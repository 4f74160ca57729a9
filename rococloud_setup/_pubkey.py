# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import base64
import binascii
import hashlib
import logging
import re
import shlex
from typing import Optional
from typing import Sequence

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.hazmat.primitives.serialization import PublicFormat
from cryptography.hazmat.primitives.serialization import load_ssh_public_key
from rich.console import Console
from rich.table import Table

from rococloud_setup._core import Command
from rococloud_setup._cron import UpsertCronJob

AUTHORIZED_KEYS = '/root/.ssh/authorized_keys'
AUTHORIZED_KEYS_SYNC_JOB_ID = 'authorized-keys-sync'


class AuthorizedKey:
    """Line of authorized_keys: [options] type base64-body [comment].

    >>> key = AuthorizedKey.parse('no-pty ssh-ed25519 AAAAC3NzaC1lZDI1NTE5 alice@laptop')
    >>> key.options, key.algo, key.comment
    ('no-pty', 'ssh-ed25519', 'alice@laptop')
    >>> AuthorizedKey.parse('ssh-rsa AAAAB3NzaC1yc2E=').comment
    ''
    >>> AuthorizedKey.parse('# ssh-rsa AAAA disabled') is None
    True
    """

    _line_re = re.compile(
        r'(?:(?P<options>.+?)\s+)?'
        r'(?P<algo>(?:ssh|ecdsa|sk)-[\w@.-]+)\s+'
        r'(?P<body>[A-Za-z0-9+/]+=*)'
        r'(?:\s+(?P<comment>.*))?')

    def __init__(self, algo: str, body: str, comment: str = '', options: str = ''):
        self.algo = algo
        self.body = body
        self.comment = comment
        self.options = options

    @classmethod
    def parse(cls, line: str) -> 'Optional[AuthorizedKey]':
        line = line.strip()
        if not line or line.startswith('#'):
            return None
        match = cls._line_re.fullmatch(line)
        if match is None:
            _logger.warning("Not an authorized key: %s", line)
            return None
        return cls(
            match['algo'],
            match['body'],
            match['comment'] or '',
            match['options'] or '',
            )

    def __repr__(self):
        if not self.comment:
            return f'{AuthorizedKey.__name__}({self.algo!r}, {self.body[:16] + "..."!r})'
        return f'{AuthorizedKey.__name__}({self.algo!r}, ..., {self.comment!r})'

    def fingerprint(self) -> str:
        """Compute fingerprint as `ssh-keygen -l` shows it."""
        blob = self._blob()
        digest = base64.b64encode(hashlib.sha256(blob).digest()).decode()
        return 'SHA256:' + digest.rstrip('=')

    def _blob(self) -> bytes:
        try:
            public_key = load_ssh_public_key(f'{self.algo} {self.body}'.encode())
        except (UnsupportedAlgorithm, ValueError) as e:
            # Some types sshd accepts cannot be loaded, e.g. security keys.
            _logger.debug("%s: cannot load, use raw data: %s", self.algo, e)
            try:
                return base64.b64decode(self.body)
            except binascii.Error:
                return self.body.encode()
        canonical = public_key.public_bytes(Encoding.OpenSSH, PublicFormat.OpenSSH)
        [_algo, body, *_] = canonical.split()
        return base64.b64decode(body)

    def describe(self) -> str:
        if self.comment:
            return self.comment
        return f'{self.algo} {self.fingerprint()}'


def parse_authorized_keys(text: str) -> Sequence[AuthorizedKey]:
    keys = []
    for line in text.splitlines():
        key = AuthorizedKey.parse(line)
        if key is not None:
            keys.append(key)
    return keys


def keys_table(keys: Sequence[AuthorizedKey], title: str) -> Table:
    table = Table(title=title)
    table.add_column('#', justify='right')
    table.add_column('Key')
    for i, key in enumerate(keys, 1):
        table.add_row(str(i), key.describe())
    return table


class SyncAuthorizedKeys(Command):
    """Overwrite root's authorized_keys with the copy on shared storage.

    Keep it in sync every 5 minutes. Keys are copied, not merged:
    the shared copy is the only source of truth.
    The recurring job is registered even if the first copy fails.
    """

    def __init__(self, source: str, target: str = AUTHORIZED_KEYS, console: Optional[Console] = None):
        self._source = source
        self._target = target
        self._console = console or Console()

    def __repr__(self):
        return f'{SyncAuthorizedKeys.__name__}({self._source!r}, {self._target!r})'

    def run(self, host):
        copy = shlex.join(['cp', self._source, self._target])
        UpsertCronJob(AUTHORIZED_KEYS_SYNC_JOB_ID, f'*/5 * * * * {copy}').run(host)
        [ssh_dir, _, _] = self._target.rpartition('/')
        host.mkdir(ssh_dir, 0o700)
        data = host.read_bytes(self._source)
        host.write_bytes(self._target, data, 0o600)
        keys = parse_authorized_keys(data.decode(errors='replace'))
        _logger.info("%s: %d keys", self._target, len(keys))
        self._console.print(keys_table(keys, f"Authorized keys from {self._source}"))


_logger = logging.getLogger(__name__)
