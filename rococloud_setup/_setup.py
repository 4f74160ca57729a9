# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
from typing import Optional

from rich.console import Console

from rococloud_setup._config import FULL
from rococloud_setup._config import SwarmConfig
from rococloud_setup._core import Reboot
from rococloud_setup._hostname import NormalizeHostname
from rococloud_setup._packages import BASE_PACKAGES
from rococloud_setup._packages import DOCKER_DOWNLOAD_URL
from rococloud_setup._packages import DOCKER_PACKAGES
from rococloud_setup._packages import AddDockerRepository
from rococloud_setup._packages import AptInstall
from rococloud_setup._packages import AptUpdate
from rococloud_setup._packages import AptUpgrade
from rococloud_setup._packages import InstallDockerKey
from rococloud_setup._pipeline import Pipeline
from rococloud_setup._pipeline import Policy
from rococloud_setup._pipeline import Stage
from rococloud_setup._pipeline import Step
from rococloud_setup._pubkey import SyncAuthorizedKeys
from rococloud_setup._runtime import VerifyDockerRuntime
from rococloud_setup._security import HardenSshd
from rococloud_setup._security import InstallFail2Ban
from rococloud_setup._storage import PROVISIONING_MOUNT_POINT
from rococloud_setup._storage import MountStorage
from rococloud_setup._storage import mount_entries
from rococloud_setup._swarm import ScheduleSwarmJoin


def build_pipeline(
        config: SwarmConfig,
        reboot: bool = True,
        reboot_delay_sec: float = 3,
        console: Optional[Console] = None,
        docker_url: str = DOCKER_DOWNLOAD_URL,
        ) -> Pipeline:
    """Lay out all steps that turn a bare host into a swarm worker."""
    steps = [
        Step("Set hostname", Stage.PREPARED, NormalizeHostname(config.domain_suffix)),
        Step("Update package index", Stage.PACKAGES_INSTALLED, AptUpdate()),
        Step("Upgrade packages", Stage.PACKAGES_INSTALLED, AptUpgrade()),
        Step("Install required software", Stage.PACKAGES_INSTALLED, AptInstall(BASE_PACKAGES)),
        Step("Install Docker GPG key", Stage.PACKAGES_INSTALLED, InstallDockerKey(docker_url)),
        Step("Add Docker repository", Stage.PACKAGES_INSTALLED, AddDockerRepository(docker_url)),
        Step("Update package index with Docker repository", Stage.PACKAGES_INSTALLED, AptUpdate()),
        Step("Install Docker", Stage.PACKAGES_INSTALLED, AptInstall(DOCKER_PACKAGES)),
        ]
    if config.harden_ssh:
        steps.append(Step("Configure SSH for key-based authentication", Stage.HARDENED, HardenSshd()))
    steps.extend([
        Step("Install and configure Fail2Ban", Stage.HARDENED, InstallFail2Ban()),
        Step(
            "Verify Docker", Stage.RUNTIME_VERIFIED, VerifyDockerRuntime(),
            policy=Policy.FATAL,
            failure_stage=Stage.RUNTIME_MISSING,
            ),
        Step(
            "Schedule swarm join", Stage.SCHEDULED,
            ScheduleSwarmJoin(config.swarm_token, config.swarm_ip_address, config.join_delay),
            ),
        Step("Mount storage", Stage.MOUNTED, MountStorage(mount_entries(config))),
        ])
    if config.variant == FULL and config.sync_authorized_keys:
        source = PROVISIONING_MOUNT_POINT + '/authorized_keys'
        steps.append(Step(
            "Sync authorized keys", Stage.KEYS_SYNCED,
            SyncAuthorizedKeys(source, console=console),
            ))
    if reboot:
        steps.append(Step("Reboot", Stage.REBOOTING, Reboot(reboot_delay_sec)))
    return Pipeline(steps)
