#!/usr/bin/env python3
"""
Unit Tests for the Planner Logger

Covers handler routing for the planner and solver loggers, per-attempt
reports and handler cleanup.
"""

import sys
import os
import logging
import tempfile
import unittest
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from planning.src.ik_planner import AttemptRecord, IKResults, IKResultEntry
from planning.src.planner_logger import PlannerLogger


def make_record(index, tier, attempt, success, violated=()):
    return AttemptRecord(
        waypoint_index=index, tier=tier, attempt=attempt,
        pos_tol=np.full(3, 0.005), rot_tol=0.05, initial_guess=np.zeros(7),
        info=1 if success else 13, infeasible_constraints=list(violated), success=success,
    )


class TestPlannerLogger(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.log_file = os.path.join(self.tmp_dir.name, "logs", "planner.log")
        self.log = PlannerLogger(log_file=self.log_file, level=logging.DEBUG)

    def tearDown(self):
        self.log.close()
        self.tmp_dir.cleanup()

    def _contents(self):
        for handler in self.log.handlers:
            handler.flush()
        with open(self.log_file) as f:
            return f.read()

    def test_routes_planner_and_solver_loggers(self):
        logging.getLogger("planning.src.ik_planner").info("planner message")
        logging.getLogger("kinematics.src.inverse_kinematic").debug("solver message")
        contents = self._contents()
        self.assertIn("planning.src.ik_planner: planner message", contents)
        self.assertIn("kinematics.src.inverse_kinematic: solver message", contents)

    def test_attempt_summary(self):
        attempts = [
            make_record(0, "tight", 0, True),
            make_record(1, "tight", 0, False, ["WorldPositionConstraint(iiwa_link_ee)[x upper]"]),
            make_record(1, "relaxed", 0, False),
            make_record(1, "relaxed", 1, True),
            make_record(2, "tight", 0, False),
            make_record(2, "random_restart", 0, False),
        ]
        summary = self.log.log_attempts(attempts)

        self.assertEqual(summary[0], {'tier': "tight", 'attempts': 1})
        self.assertEqual(summary[1], {'tier': "relaxed", 'attempts': 3})
        self.assertEqual(summary[2], {'tier': None, 'attempts': 2})

        contents = self._contents()
        self.assertIn("waypoint 1: solved by relaxed after 3 attempts", contents)
        self.assertIn("WARNING", contents)
        self.assertIn("waypoint 2: no tier succeeded in 2 attempts", contents)
        self.assertIn("violated=['WorldPositionConstraint(iiwa_link_ee)[x upper]']", contents)

    def test_empty_attempts(self):
        self.assertEqual(self.log.log_attempts([]), {})

    def test_results_report(self):
        ik_res = IKResults([
            IKResultEntry(time=0.0, configuration=np.zeros(7)),
            IKResultEntry(time=1.0, configuration=np.full(7, 0.1), tier="random_restart"),
        ])
        self.log.log_results(ik_res)
        contents = self._contents()
        self.assertIn("t=0.0 tier=seed", contents)
        self.assertIn("t=1.0 tier=random_restart", contents)

    def test_write_levels(self):
        self.log.write("plain message")
        self.log.write("bad thing", level="error")
        contents = self._contents()
        self.assertIn("INFO    planning: plain message", contents)
        self.assertIn("ERROR   planning: bad thing", contents)

    def test_close_detaches_handlers(self):
        handlers = list(self.log.handlers)
        self.log.close()
        for name in ("planning", "kinematics"):
            for handler in handlers:
                self.assertNotIn(handler, logging.getLogger(name).handlers)

    def test_close_restores_levels(self):
        self.log.close()
        routed = logging.getLogger("kinematics")
        routed.setLevel(logging.WARNING)
        try:
            log = PlannerLogger(level=logging.DEBUG)
            self.assertEqual(routed.level, logging.DEBUG)
            log.close()
            self.assertEqual(routed.level, logging.WARNING)
        finally:
            routed.setLevel(logging.NOTSET)


if __name__ == '__main__':
    unittest.main()
