#!/usr/bin/env python3
"""
Unit Tests for First-Order Hold Trajectories
"""

import sys
import os
import unittest
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from planning.src.trajectory_planner import (
    PiecewiseLinearTrajectory, TrajectoryPlanningError,
    generate_first_order_hold_trajectory, sample_trajectory,
)


class TestPiecewiseLinearTrajectory(unittest.TestCase):

    def setUp(self):
        self.q0 = np.array([0.1, -0.2, 0.3, 0.0, 0.7, -1.1, 0.05])
        self.q1 = np.array([0.4, 0.2, -0.3, 1.0, 0.1, -0.6, 0.33])

    def test_two_points_exact_endpoints(self):
        trajectory = generate_first_order_hold_trajectory([0.3, 1.7], [self.q0, self.q1])
        np.testing.assert_array_equal(trajectory.value(0.3), self.q0)
        np.testing.assert_array_equal(trajectory.value(1.7), self.q1)

    def test_two_points_linear_in_between(self):
        trajectory = generate_first_order_hold_trajectory([0.0, 2.0], [self.q0, self.q1])
        for t in (0.25, 1.0, 1.9):
            expected = self.q0 + (self.q1 - self.q0) * t / 2.0
            np.testing.assert_allclose(trajectory.value(t), expected, atol=1e-12)

    def test_idempotent(self):
        a = generate_first_order_hold_trajectory([0.0, 1.0], [self.q0, self.q1])
        b = generate_first_order_hold_trajectory([0.0, 1.0], [self.q0, self.q1])
        for t in np.linspace(0.0, 1.0, 11):
            np.testing.assert_array_equal(a.value(t), b.value(t))

    def test_multiple_segments(self):
        q2 = self.q1 * 2.0
        trajectory = PiecewiseLinearTrajectory([0.0, 1.0, 3.0], [self.q0, self.q1, q2])
        self.assertEqual(trajectory.get_number_of_segments(), 2)
        self.assertEqual(trajectory.rows(), 7)
        np.testing.assert_array_equal(trajectory.value(1.0), self.q1)
        np.testing.assert_allclose(trajectory.value(2.0), 0.5 * (self.q1 + q2), atol=1e-12)
        np.testing.assert_allclose(trajectory.derivative(2.0), (q2 - self.q1) / 2.0)
        np.testing.assert_allclose(trajectory.derivative(0.5), self.q1 - self.q0)

    def test_holds_outside_time_span(self):
        trajectory = PiecewiseLinearTrajectory([1.0, 2.0], [self.q0, self.q1])
        np.testing.assert_allclose(trajectory.value(0.0), self.q0)
        np.testing.assert_allclose(trajectory.value(5.0), self.q1)
        np.testing.assert_array_equal(trajectory.derivative(5.0), np.zeros(7))

    def test_vectorized_call(self):
        trajectory = PiecewiseLinearTrajectory([0.0, 1.0], [self.q0, self.q1])
        values = trajectory([0.0, 0.5, 1.0])
        self.assertEqual(values.shape, (3, 7))
        np.testing.assert_array_equal(values[0], self.q0)
        np.testing.assert_array_equal(values[2], self.q1)

    def test_length_mismatch(self):
        with self.assertRaises(TrajectoryPlanningError):
            generate_first_order_hold_trajectory([0.0, 1.0, 2.0], [self.q0, self.q1])

    def test_invalid_times(self):
        with self.assertRaises(TrajectoryPlanningError):
            PiecewiseLinearTrajectory([1.0, 1.0], [self.q0, self.q1])
        with self.assertRaises(TrajectoryPlanningError):
            PiecewiseLinearTrajectory([2.0, 1.0], [self.q0, self.q1])
        with self.assertRaises(TrajectoryPlanningError):
            PiecewiseLinearTrajectory([0.0], [self.q0])

    def test_mismatched_dimensions(self):
        with self.assertRaises(TrajectoryPlanningError):
            PiecewiseLinearTrajectory([0.0, 1.0], [self.q0, self.q1[:6]])

    def test_sample_trajectory(self):
        trajectory = PiecewiseLinearTrajectory([0.0, 1.0], [self.q0, self.q1])
        samples = sample_trajectory(trajectory, dt=0.25)
        self.assertEqual(samples.shape, (5, 7))
        np.testing.assert_array_equal(samples[-1], self.q1)
        with self.assertRaises(TrajectoryPlanningError):
            sample_trajectory(trajectory, dt=0.0)


if __name__ == '__main__':
    unittest.main()
