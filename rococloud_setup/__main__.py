# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import os
import sys
from argparse import ArgumentParser
from pathlib import Path
from subprocess import SubprocessError

from rich.logging import RichHandler

from rococloud_setup._config import ConfigError
from rococloud_setup._config import load_config
from rococloud_setup._host import DryRunHost
from rococloud_setup._host import LocalHost
from rococloud_setup._pipeline import StepError
from rococloud_setup._setup import build_pipeline


def main(args=None):
    return _run(_parse_args(args))


def _run(parsed_args):
    try:
        config = load_config(parsed_args.config)
    except ConfigError as e:
        _logger.error("Error: %s", e)
        return 1
    _logger.info("Preparing this host, this may take a moment")
    if parsed_args.dry_run:
        host = DryRunHost(parsed_args.root)
    else:
        host = LocalHost(parsed_args.root)
    pipeline = build_pipeline(config, reboot=not parsed_args.no_reboot)
    try:
        pipeline.run(host)
    except (StepError, SubprocessError, OSError) as e:
        _logger.error("Setup stopped at stage %s: %s", pipeline.stage.value, e)
        return 10
    return 0


def _parse_args(args):
    parser = ArgumentParser(
        prog='rococloud-setup',
        description="Prepare this host for connection to the RocoCloud swarm cluster.",
        )
    parser.add_argument(
        '--config',
        type=Path,
        default=Path(os.getenv('ROCOCLOUD_CONFIG', 'swarm_config.conf')),
        help="shell-style key=value file, default: %(default)s",
        )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help="log mutating commands and file writes instead of performing them",
        )
    parser.add_argument(
        '--no-reboot',
        action='store_true',
        help="do not reboot when done; the swarm join happens on the next boot",
        )
    parser.add_argument(
        '--root',
        type=Path,
        default=Path('/'),
        help="filesystem root of the host, default: %(default)s",
        )
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser.parse_args(args)


def cli():
    parsed_args = _parse_args(sys.argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format="%(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=True)],
        )
    exit(_run(parsed_args))


_logger = logging.getLogger(__name__)

if __name__ == '__main__':
    cli()
