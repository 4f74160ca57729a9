# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import os
import subprocess
from abc import ABCMeta
from abc import abstractmethod
from pathlib import Path
from pathlib import PurePosixPath
from subprocess import CalledProcessError
from subprocess import CompletedProcess
from typing import Optional

_DEFAULT_TIMEOUT_SEC = 3600


class HostCommandFailed(CalledProcessError):

    def __str__(self):
        stderr = (self.stderr or b'').decode(errors='backslashreplace')[:5000]
        return f"Command {self.cmd!r} died with exit status {self.returncode}: {stderr}"


class Host(metaclass=ABCMeta):
    """Machine being provisioned.

    Mutating commands go through run(), run_still() and run_input().
    Commands that only look at the system go through query().
    File paths are absolute paths as seen on the host.
    """

    @abstractmethod
    def run(self, command: str) -> CompletedProcess:
        pass

    @abstractmethod
    def run_still(self, command: str) -> CompletedProcess:
        pass

    @abstractmethod
    def run_input(self, command: str, stdin: bytes) -> CompletedProcess:
        pass

    @abstractmethod
    def query(self, command: str) -> CompletedProcess:
        pass

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        pass

    @abstractmethod
    def write_bytes(self, path: str, data: bytes, mode: Optional[int] = None):
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def mkdir(self, path: str, mode: int = 0o755):
        pass

    @abstractmethod
    def chmod(self, path: str, mode: int):
        pass

    def read_text(self, path: str) -> str:
        return self.read_bytes(path).decode()

    def write_text(self, path: str, text: str, mode: Optional[int] = None):
        self.write_bytes(path, text.encode(), mode)


class LocalHost(Host):
    """The machine this process runs on.

    The root may be changed to provision an image mounted elsewhere.
    Commands are still run on this machine then.

    >>> LocalHost('/mnt/image')._local_path('/etc/hostname').as_posix()
    '/mnt/image/etc/hostname'
    >>> LocalHost()._local_path('/etc/hostname').as_posix()
    '/etc/hostname'
    """

    def __init__(self, root: os.PathLike = '/'):
        self._root = Path(root)

    def __repr__(self):
        return f'{self.__class__.__name__}({str(self._root)!r})'

    def run(self, command):
        r = self._run(command, stdin=None)
        _check(r)
        return r

    def run_still(self, command):
        return self._run(command, stdin=None)

    def run_input(self, command, stdin):
        r = self._run(command, stdin=stdin)
        _check(r)
        return r

    def query(self, command):
        return self._run(command, stdin=None)

    def _run(self, command: str, stdin: Optional[bytes]):
        _logger.info("Run: %s", command)
        return subprocess.run(
            command,
            shell=True,
            input=stdin,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            # Do not hang waiting for input when no input is actually needed.
            stdin=subprocess.DEVNULL if stdin is None else None,
            timeout=_DEFAULT_TIMEOUT_SEC,
            )

    def _local_path(self, path: str) -> Path:
        relative = PurePosixPath(path).relative_to('/')
        return self._root.joinpath(relative)

    def read_bytes(self, path):
        return self._local_path(path).read_bytes()

    def write_bytes(self, path, data, mode=None):
        local_path = self._local_path(path)
        _logger.info("Write %d bytes: %s", len(data), path)
        local_path.write_bytes(data)
        if mode is not None:
            local_path.chmod(mode)

    def exists(self, path):
        return self._local_path(path).exists()

    def mkdir(self, path, mode=0o755):
        local_path = self._local_path(path)
        if not local_path.is_dir():
            _logger.info("Make directory: %s", path)
            local_path.mkdir(mode=mode, parents=True, exist_ok=True)

    def chmod(self, path, mode):
        _logger.info("Change mode to %s: %s", oct(mode), path)
        self._local_path(path).chmod(mode)


class DryRunHost(LocalHost):
    """Look at the host but change nothing.

    Queries are run for real. Mutations are logged only.
    """

    def run(self, command):
        return self._pretend(command)

    def run_still(self, command):
        return self._pretend(command)

    def run_input(self, command, stdin):
        _logger.info("Would feed %d bytes to: %s", len(stdin), command)
        return CompletedProcess(command, 0, b'', b'')

    def write_bytes(self, path, data, mode=None):
        _logger.info("Would write %d bytes: %s", len(data), path)

    def mkdir(self, path, mode=0o755):
        _logger.info("Would make directory: %s", path)

    def chmod(self, path, mode):
        _logger.info("Would change mode to %s: %s", oct(mode), path)

    @staticmethod
    def _pretend(command):
        _logger.info("Would run: %s", command)
        return CompletedProcess(command, 0, b'', b'')


def _check(r: CompletedProcess):
    if r.returncode != 0:
        raise HostCommandFailed(r.returncode, r.args, r.stdout, r.stderr)


_logger = logging.getLogger(__name__)
