# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import builtins
import logging
import os
import unittest

from rococloud_setup._core import Command
from rococloud_setup._core import Run
from rococloud_setup._host import HostCommandFailed
from rococloud_setup._pipeline import Pipeline
from rococloud_setup._pipeline import Policy
from rococloud_setup._pipeline import Stage
from rococloud_setup._pipeline import Step
from rococloud_setup._pipeline import StepError
from rococloud_setup.tests._fake_host import FakeHost


class TestPipeline(unittest.TestCase):

    def setUp(self):
        os.environ.pop('ROCOCLOUD_ASK_FOR_CONFIRMATION', None)
        self._host = FakeHost({'false': (1, b'')})

    def tearDown(self):
        self._host.close()

    def test_all_succeed(self):
        pipeline = Pipeline([
            Step("first", Stage.PREPARED, Run('echo first')),
            Step("second", Stage.PACKAGES_INSTALLED, Run('echo second')),
            ])
        self.assertEqual(pipeline.stage, Stage.CONFIG_LOADED)
        pipeline.run(self._host)
        self.assertEqual(pipeline.stage, Stage.PACKAGES_INSTALLED)
        self.assertEqual(self._host.commands, ['echo first', 'echo second'])
        self.assertEqual(pipeline.failed_steps(), [])

    def test_best_effort_failure_continues(self):
        pipeline = Pipeline([
            Step("fails", Stage.PACKAGES_INSTALLED, Run('false')),
            Step("raises", Stage.PACKAGES_INSTALLED, _Raise(StepError("broken"))),
            Step("runs anyway", Stage.HARDENED, Run('echo still here')),
            ])
        with self.assertLogs('rococloud_setup._pipeline', logging.ERROR) as logs:
            pipeline.run(self._host)
        self.assertEqual(len(logs.output), 2)
        self.assertIn('Failed: fails', logs.output[0])
        self.assertEqual(self._host.commands, ['false', 'echo still here'])
        self.assertEqual(pipeline.failed_steps(), ['fails', 'raises'])
        self.assertIsInstance(pipeline.outcomes[0].error, HostCommandFailed)
        self.assertEqual(pipeline.stage, Stage.HARDENED)

    def test_fatal_failure_stops(self):
        pipeline = Pipeline([
            Step(
                "gate", Stage.RUNTIME_VERIFIED, _Raise(StepError("no")),
                policy=Policy.FATAL, failure_stage=Stage.RUNTIME_MISSING,
                ),
            Step("never", Stage.SCHEDULED, Run('echo never')),
            ])
        with self.assertRaises(StepError):
            pipeline.run(self._host)
        self.assertEqual(pipeline.stage, Stage.RUNTIME_MISSING)
        self.assertEqual(self._host.commands, [])
        self.assertEqual(pipeline.failed_steps(), ['gate'])

    def test_bug_is_not_a_step_failure(self):
        pipeline = Pipeline([
            Step("buggy", Stage.PREPARED, _Raise(TypeError("bug"))),
            Step("never", Stage.PACKAGES_INSTALLED, Run('echo never')),
            ])
        with self.assertRaises(TypeError):
            pipeline.run(self._host)
        self.assertEqual(self._host.commands, [])

    def test_declined_step_is_skipped(self):
        pipeline = Pipeline([
            Step("declined", Stage.PREPARED, Run('echo declined')),
            Step("accepted", Stage.PACKAGES_INSTALLED, Run('echo accepted')),
            ])
        answers = iter(['n', 'y'])
        os.environ['ROCOCLOUD_ASK_FOR_CONFIRMATION'] = '1'
        self.addCleanup(os.environ.pop, 'ROCOCLOUD_ASK_FOR_CONFIRMATION', None)
        self.addCleanup(setattr, builtins, 'input', builtins.input)
        builtins.input = lambda prompt: next(answers)
        pipeline.run(self._host)
        self.assertEqual(self._host.commands, ['echo accepted'])
        self.assertTrue(pipeline.outcomes[0].skipped)
        self.assertEqual(pipeline.failed_steps(), [])


class _Raise(Command):

    def __init__(self, exception):
        self._exception = exception

    def __repr__(self):
        return f'{_Raise.__name__}({self._exception!r})'

    def run(self, host):
        raise self._exception


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)7s %(name)s %(message).5000s",
        )
    unittest.main()
