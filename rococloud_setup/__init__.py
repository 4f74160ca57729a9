# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
"""Prepare a bare Debian-like host to join the RocoCloud swarm cluster.

The host gets a qualified hostname, key-only SSH, a Fail2Ban jail,
Docker, a one-shot swarm join scheduled for the next boot and NFS storage.
Optionally, authorized keys are kept in sync with the shared storage.
Then the host reboots.

Every action is formulated in terms of a command.
In most cases, it is a Run object
or an instance of a subclass of CompositeCommand.
It is desirable that commands be written in the most raw form,
so that it is clear what is being run and it is easy to copy.

Commands must be idempotent.
The second run must not "accumulate" changes.
Running it multiple times must be safe.

Commands are not executed directly. Only as steps of a pipeline.
A step is either fatal or best-effort. A failed best-effort step is
reported, and the pipeline goes on: partial success, e.g. Docker installed
but NFS not yet reachable, is better than a hard stop on the first boot.
Only the Docker check is fatal: nothing after it makes sense without Docker.

Commands do not touch the machine themselves. They go through a host,
so the same pipeline can be shown in a dry run or played against a fake.
"""
from rococloud_setup._config import ConfigError
from rococloud_setup._config import ConfigIncomplete
from rococloud_setup._config import ConfigMissing
from rococloud_setup._config import ConfigNotFound
from rococloud_setup._config import ConfigUnreadable
from rococloud_setup._config import SwarmConfig
from rococloud_setup._config import load_config
from rococloud_setup._core import Command
from rococloud_setup._core import CompositeCommand
from rococloud_setup._core import Run
from rococloud_setup._host import DryRunHost
from rococloud_setup._host import Host
from rococloud_setup._host import HostCommandFailed
from rococloud_setup._host import LocalHost
from rococloud_setup._pipeline import Pipeline
from rococloud_setup._pipeline import Policy
from rococloud_setup._pipeline import Stage
from rococloud_setup._pipeline import Step
from rococloud_setup._pipeline import StepError
from rococloud_setup._runtime import RuntimeNotInstalled
from rococloud_setup._setup import build_pipeline

__all__ = [
    'Command',
    'CompositeCommand',
    'ConfigError',
    'ConfigIncomplete',
    'ConfigMissing',
    'ConfigNotFound',
    'ConfigUnreadable',
    'DryRunHost',
    'Host',
    'HostCommandFailed',
    'LocalHost',
    'Pipeline',
    'Policy',
    'Run',
    'RuntimeNotInstalled',
    'Stage',
    'Step',
    'StepError',
    'SwarmConfig',
    'build_pipeline',
    'load_config',
    ]
