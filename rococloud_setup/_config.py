# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import shlex
from configparser import ConfigParser
from configparser import Error as ConfigParserError
from pathlib import Path
from typing import Mapping
from typing import NamedTuple
from typing import Optional

_SECTION = 'swarm'


class ConfigError(Exception):
    pass


class ConfigNotFound(ConfigError):

    def __init__(self, path):
        super().__init__(f"Configuration file {path} not found")
        self.path = path


ConfigMissing = ConfigNotFound


class ConfigUnreadable(ConfigError):

    def __init__(self, path, reason):
        super().__init__(f"Unable to read configuration file {path}: {reason}")
        self.path = path


class ConfigIncomplete(ConfigError):

    def __init__(self, path, key):
        super().__init__(f"Configuration file {path} lacks {key}")
        self.key = key


class Variant(NamedTuple):
    name: str
    mount_options: str


FULL = Variant('full', 'auto,nofail,noatime,nolock,intr,tcp,actimeo=1800')
MINIMAL = Variant('minimal', 'rw,user')
_VARIANTS = {v.name: v for v in (FULL, MINIMAL)}


class SwarmConfig(NamedTuple):
    swarm_token: str
    swarm_ip_address: str
    storage_ip_address: str
    location: str
    provisioning_server: Optional[str] = None
    provisioning_export: str = '/provisioning'
    domain_suffix: str = 'rococloud.me'
    variant: Variant = FULL
    harden_ssh: bool = True
    sync_authorized_keys: bool = False
    join_delay: int = 5


def load_config(path: Path) -> SwarmConfig:
    """Read shell-style key="value" settings.

    The file used to be sourced by a shell script, so the format is kept:
    one assignment per line, # for comments, values may be quoted.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigNotFound(path)
    try:
        text = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigUnreadable(path, e)
    raw = parse_assignments(path, text)
    _logger.info("Config %s: read %d settings", path, len(raw))
    return _make_config(path, raw)


def parse_assignments(path, text: str) -> Mapping[str, str]:
    """Parse assignments into a mapping of unquoted values.

    >>> parse_assignments('x.conf', 'a="1 2"  # one\\n# comment\\nexport b=c\\n')
    {'a': '1 2', 'b': 'c'}
    >>> parse_assignments('x.conf', 'a')  # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
    ...
    ConfigUnreadable: Unable to read configuration file x.conf: ...
    """
    parser = ConfigParser(
        delimiters=('=',),
        comment_prefixes=('#',),
        interpolation=None,
        )
    lines = [_strip_export(line) for line in text.splitlines()]
    try:
        parser.read_string('\n'.join([f'[{_SECTION}]', *lines]), source=str(path))
    except ConfigParserError as e:
        raise ConfigUnreadable(path, e)
    result = {}
    for key, value in parser.items(_SECTION):
        try:
            words = shlex.split(_strip_comment(value))
        except ValueError as e:
            raise ConfigUnreadable(path, f"{key}: {e}")
        if len(words) > 1:
            raise ConfigUnreadable(path, f"{key}: unquoted spaces in {value!r}")
        result[key] = words[0] if words else ''
    return result


def _strip_export(line: str) -> str:
    stripped = line.lstrip()
    if stripped.startswith('export '):
        return stripped[len('export '):]
    return line


def _strip_comment(value: str) -> str:
    """Cut a comment off the value the way a shell does.

    Only an unquoted # starting a word begins a comment.

    >>> _strip_comment('SWMTKN-1-abc#def  # token')
    'SWMTKN-1-abc#def  '
    >>> _strip_comment('"a # b" #c')
    '"a # b" '
    >>> _strip_comment("#all")
    ''
    >>> _strip_comment('a\\\\ #b')
    'a\\\\ #b'
    """
    quote = None
    escaped = False
    word_start = True
    for i, c in enumerate(value):
        if escaped:
            escaped = False
        elif quote is not None:
            if c == quote:
                quote = None
            elif c == '\\' and quote == '"':
                escaped = True
        elif c.isspace():
            word_start = True
        elif c == '#' and word_start:
            return value[:i]
        else:
            word_start = False
            if c == '\\':
                escaped = True
            elif c in ('"', "'"):
                quote = c
    return value


def _make_config(path, raw: Mapping[str, str]) -> SwarmConfig:
    swarm_token = _require(path, raw, 'swarm_token')
    swarm_ip_address = _require(path, raw, 'swarm_ip_address')
    storage = raw.get('nfs_ip_address') or raw.get('storage_ip_address')
    if not storage:
        raise ConfigIncomplete(path, 'nfs_ip_address')
    location = _require(path, raw, 'location')
    provisioning_server = raw.get('provisioning_server') or None
    sync_default = 'yes' if provisioning_server else 'no'
    sync_authorized_keys = _parse_bool(path, raw, 'sync_authorized_keys', sync_default)
    if sync_authorized_keys and not provisioning_server:
        raise ConfigIncomplete(path, 'provisioning_server')
    variant_name = raw.get('variant') or FULL.name
    if variant_name not in _VARIANTS:
        raise ConfigUnreadable(path, f"variant: expected one of {sorted(_VARIANTS)}, got {variant_name!r}")
    join_delay = raw.get('join_delay') or '5'
    if not join_delay.isdigit():
        raise ConfigUnreadable(path, f"join_delay: not a number of seconds: {join_delay!r}")
    return SwarmConfig(
        swarm_token=swarm_token,
        swarm_ip_address=swarm_ip_address,
        storage_ip_address=storage,
        location=location,
        provisioning_server=provisioning_server,
        provisioning_export=raw.get('provisioning_export') or '/provisioning',
        domain_suffix=raw.get('domain_suffix') or 'rococloud.me',
        variant=_VARIANTS[variant_name],
        harden_ssh=_parse_bool(path, raw, 'harden_ssh', 'yes'),
        sync_authorized_keys=sync_authorized_keys,
        join_delay=int(join_delay),
        )


def _require(path, raw: Mapping[str, str], key: str) -> str:
    value = raw.get(key)
    if not value:
        raise ConfigIncomplete(path, key)
    return value


def _parse_bool(path, raw: Mapping[str, str], key: str, default: str) -> bool:
    value = raw.get(key) or default
    try:
        return ConfigParser.BOOLEAN_STATES[value.lower()]
    except KeyError:
        raise ConfigUnreadable(path, f"{key}: expected yes or no, got {value!r}")


_logger = logging.getLogger(__name__)
