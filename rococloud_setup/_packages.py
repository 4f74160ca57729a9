# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import shlex
from typing import Mapping
from typing import Sequence

import requests

from rococloud_setup._core import Command
from rococloud_setup._pipeline import StepError

# At most one transparent retry of failed downloads, done by apt itself.
_APT = 'DEBIAN_FRONTEND=noninteractive apt-get -q -o Acquire::Retries=1'

BASE_PACKAGES = ['sudo', 'ca-certificates', 'curl', 'gnupg', 'nfs-common']
DOCKER_PACKAGES = [
    'docker-ce',
    'docker-ce-cli',
    'containerd.io',
    'docker-buildx-plugin',
    'docker-compose-plugin',
    ]
KEYRINGS_DIR = '/etc/apt/keyrings'
DOCKER_KEYRING = KEYRINGS_DIR + '/docker.gpg'
DOCKER_SOURCES_LIST = '/etc/apt/sources.list.d/docker.list'
DOCKER_DOWNLOAD_URL = 'https://download.docker.com/linux'
_SUPPORTED_DISTRIBUTIONS = {'debian', 'ubuntu'}


class DownloadFailed(StepError):
    pass


class AptUpdate(Command):

    def __repr__(self):
        return f'{AptUpdate.__name__}()'

    def run(self, host):
        host.run(f'{_APT} update')


class AptUpgrade(Command):

    def __repr__(self):
        return f'{AptUpgrade.__name__}()'

    def run(self, host):
        host.run(f'{_APT} upgrade -y')


class AptInstall(Command):

    def __init__(self, packages: Sequence[str]):
        self._packages = packages

    def __repr__(self):
        return f'{AptInstall.__name__}({self._packages!r})'

    def run(self, host):
        host.run(f'{_APT} install -y {shlex.join(self._packages)}')


class InstallDockerKey(Command):
    """Put Docker repository signing key in dearmored form to the keyring dir."""

    def __init__(self, url: str = DOCKER_DOWNLOAD_URL):
        self._url = url

    def __repr__(self):
        return f'{InstallDockerKey.__name__}({self._url!r})'

    def run(self, host):
        distribution = _distribution(parse_os_release(host.read_text('/etc/os-release')))
        key_url = f'{self._url}/{distribution}/gpg'
        _logger.info("Download %s", key_url)
        try:
            response = requests.get(key_url, timeout=60)
            response.raise_for_status()
        except (requests.ConnectionError, requests.HTTPError, requests.Timeout) as e:
            raise DownloadFailed(f"Failed to get {key_url}: {e}")
        r = host.run_input('gpg --dearmor', response.content)
        host.mkdir(KEYRINGS_DIR)
        host.write_bytes(DOCKER_KEYRING, r.stdout, 0o644)


class AddDockerRepository(Command):

    def __init__(self, url: str = DOCKER_DOWNLOAD_URL):
        self._url = url

    def __repr__(self):
        return f'{AddDockerRepository.__name__}({self._url!r})'

    def run(self, host):
        os_release = parse_os_release(host.read_text('/etc/os-release'))
        codename = os_release.get('VERSION_CODENAME')
        if not codename:
            raise StepError("VERSION_CODENAME is not in /etc/os-release")
        r = host.query('dpkg --print-architecture')
        r.check_returncode()
        architecture = r.stdout.decode().strip()
        line = docker_sources_line(
            architecture, f'{self._url}/{_distribution(os_release)}', codename)
        host.write_text(DOCKER_SOURCES_LIST, line + '\n', 0o644)


def docker_sources_line(architecture: str, repo_url: str, codename: str) -> str:
    """Make an APT sources.list line for the Docker repository.

    >>> docker_sources_line('amd64', 'https://download.docker.com/linux/debian', 'bookworm')
    'deb [arch=amd64 signed-by=/etc/apt/keyrings/docker.gpg] https://download.docker.com/linux/debian bookworm stable'
    """
    return f'deb [arch={architecture} signed-by={DOCKER_KEYRING}] {repo_url} {codename} stable'


def parse_os_release(text: str) -> Mapping[str, str]:
    """Parse /etc/os-release, which is a shell-compatible assignment list.

    >>> parse_os_release('ID=debian\\nVERSION_CODENAME=bookworm\\nNAME="Debian GNU/Linux"\\n# x\\n')
    {'ID': 'debian', 'VERSION_CODENAME': 'bookworm', 'NAME': 'Debian GNU/Linux'}
    """
    result = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        [name, eq, value] = line.partition('=')
        if not eq:
            continue
        words = shlex.split(value)
        result[name] = words[0] if words else ''
    return result


def _distribution(os_release: Mapping[str, str]) -> str:
    distribution = os_release.get('ID', '')
    if distribution in _SUPPORTED_DISTRIBUTIONS:
        return distribution
    _logger.warning("Unknown distribution %r, use Docker packages for Debian", distribution)
    return 'debian'


_logger = logging.getLogger(__name__)
