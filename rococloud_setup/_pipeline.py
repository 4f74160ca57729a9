# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
from enum import Enum
from subprocess import SubprocessError
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Sequence

from rococloud_setup._core import Command
from rococloud_setup._core import Questionnaire
from rococloud_setup._host import Host


class Stage(Enum):
    """Where the host is in its setup.

    INIT is the state before the configuration is loaded.
    A Pipeline is built from a loaded configuration, so it starts at CONFIG_LOADED.
    """

    INIT = 'Init'
    CONFIG_LOADED = 'ConfigLoaded'
    PREPARED = 'Prepared'
    PACKAGES_INSTALLED = 'PackagesInstalled'
    HARDENED = 'Hardened'
    RUNTIME_VERIFIED = 'RuntimeVerified'
    SCHEDULED = 'Scheduled'
    MOUNTED = 'Mounted'
    KEYS_SYNCED = 'KeysSynced'
    REBOOTING = 'Rebooting'
    RUNTIME_MISSING = 'RuntimeMissing'


class Policy(Enum):
    FATAL = 'fatal'
    BEST_EFFORT = 'best-effort'


class StepError(Exception):
    pass


class Step:

    def __init__(
            self,
            name: str,
            stage: Stage,
            command: Command,
            policy: Policy = Policy.BEST_EFFORT,
            failure_stage: Optional[Stage] = None,
            ):
        self.name = name
        self.stage = stage
        self.command = command
        self.policy = policy
        self.failure_stage = failure_stage

    def __repr__(self):
        return f'<{Step.__name__} {self.name!r} {self.policy.value} -> {self.stage.value}>'


class Outcome(NamedTuple):
    step: str
    succeeded: bool
    skipped: bool = False
    error: Optional[Exception] = None


class Pipeline:
    """Run steps one by one, strictly in order.

    A failed best-effort step is logged and the next one runs.
    A failed fatal step stops the pipeline; the error propagates.
    Step failures are StepError, SubprocessError and OSError.
    Anything else is a bug and propagates as is.
    """

    def __init__(self, steps: Sequence[Step], stage: Stage = Stage.CONFIG_LOADED):
        self._steps = steps
        self.stage = stage
        self.outcomes: List[Outcome] = []

    def __repr__(self):
        return f'<{Pipeline.__name__} with {len(self._steps)} steps at {self.stage.value}>'

    def step_names(self) -> Sequence[str]:
        return [step.name for step in self._steps]

    def run(self, host: Host):
        questionnaire = Questionnaire("Run")
        for step in self._steps:
            _logger.info("Step %r: %r", step.name, step.command)
            if not questionnaire.user_agrees_with(step.name):
                _logger.warning("Skipped: %s", step.name)
                self.outcomes.append(Outcome(step.name, succeeded=False, skipped=True))
                self._advance(step.stage)
                continue
            try:
                step.command.run(host)
            except (StepError, SubprocessError, OSError) as e:
                self.outcomes.append(Outcome(step.name, succeeded=False, error=e))
                if step.policy == Policy.FATAL:
                    _logger.error("Error: %s: %s", step.name, e)
                    if step.failure_stage is not None:
                        self.stage = step.failure_stage
                    raise
                _logger.error("Failed: %s: %s", step.name, e)
            else:
                self.outcomes.append(Outcome(step.name, succeeded=True))
                _logger.info("Done: %s", step.name)
            self._advance(step.stage)
        failed = self.failed_steps()
        if failed:
            _logger.warning("Completed with failed steps: %s", ', '.join(failed))
        else:
            _logger.info("Completed, stage %s", self.stage.value)

    def _advance(self, stage: Stage):
        if stage != self.stage:
            _logger.info("Stage: %s -> %s", self.stage.value, stage.value)
            self.stage = stage

    def failed_steps(self) -> Sequence[str]:
        return [o.step for o in self.outcomes if not o.succeeded and not o.skipped]


_logger = logging.getLogger(__name__)
