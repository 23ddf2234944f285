#!/usr/bin/env python3
"""
Trajectory Planning Module

This module turns a sequence of time-tagged joint configurations into a
continuous-time trajectory using first-order hold (piecewise-linear
interpolation between consecutive samples).

Author: Robot Control Team
"""

import numpy as np
import logging
from typing import List, Sequence, Optional
from scipy.interpolate import interp1d

logger = logging.getLogger(__name__)


class TrajectoryPlanningError(Exception):
    """Custom exception for trajectory planning errors."""
    pass


class PiecewiseLinearTrajectory:
    """
    First-order hold trajectory through (time, configuration) samples.

    Evaluating at a sample time returns that sample exactly. Outside the
    time span the trajectory holds its first/last configuration.
    """

    def __init__(self, times: Sequence[float], samples: Sequence[np.ndarray]):
        """
        Args:
            times: Strictly increasing time tags
            samples: One configuration per time tag

        Raises:
            TrajectoryPlanningError: On length mismatch or invalid times
        """
        times = np.asarray(times, dtype=float)
        if times.ndim != 1:
            raise TrajectoryPlanningError(f"Times must be a 1D sequence, got shape {times.shape}")
        if len(times) != len(samples):
            raise TrajectoryPlanningError(
                f"Number of times ({len(times)}) does not match number of configurations ({len(samples)})")
        if len(times) < 2:
            raise TrajectoryPlanningError("Need at least 2 samples for a trajectory")
        if not np.all(np.isfinite(times)) or np.any(np.diff(times) <= 0):
            raise TrajectoryPlanningError("Times must be finite and strictly increasing")

        samples = [np.asarray(s, dtype=float) for s in samples]
        if any(s.ndim != 1 or s.shape != samples[0].shape for s in samples):
            raise TrajectoryPlanningError("All configurations must be vectors of the same length")
        samples = np.array(samples)

        self._times = times
        self._samples = samples
        self._interp = interp1d(
            times, samples, kind='linear', axis=0, copy=True,
            bounds_error=False, fill_value=(samples[0], samples[-1]),
            assume_sorted=True,
        )

    @property
    def start_time(self) -> float:
        return float(self._times[0])

    @property
    def end_time(self) -> float:
        return float(self._times[-1])

    def rows(self) -> int:
        """Dimension of the configuration."""
        return self._samples.shape[1]

    def get_number_of_segments(self) -> int:
        return len(self._times) - 1

    def value(self, t: float) -> np.ndarray:
        """Configuration at time ``t``."""
        idx = int(np.searchsorted(self._times, t))
        if idx < len(self._times) and self._times[idx] == t:
            return self._samples[idx].copy()
        return np.asarray(self._interp(t), dtype=float)

    def __call__(self, t):
        if np.ndim(t) == 0:
            return self.value(float(t))
        return np.array([self.value(float(ti)) for ti in t])

    def derivative(self, t: float) -> np.ndarray:
        """Piecewise-constant velocity; the right segment is used at interior knots."""
        if t < self._times[0] or t > self._times[-1]:
            return np.zeros(self.rows())
        idx = int(np.searchsorted(self._times, t, side='right')) - 1
        idx = min(max(idx, 0), len(self._times) - 2)
        dt = self._times[idx + 1] - self._times[idx]
        return (self._samples[idx + 1] - self._samples[idx]) / dt


def generate_first_order_hold_trajectory(times: Sequence[float],
                                         configurations: List[np.ndarray]) -> PiecewiseLinearTrajectory:
    """
    Build a piecewise-linear trajectory from time tags and configurations.

    Raises:
        TrajectoryPlanningError: If ``times`` and ``configurations`` differ in length
    """
    trajectory = PiecewiseLinearTrajectory(times, configurations)
    logger.debug(f"First-order hold trajectory built with {trajectory.get_number_of_segments()} segments "
                 f"over [{trajectory.start_time:.3f}, {trajectory.end_time:.3f}]s")
    return trajectory


def sample_trajectory(trajectory: PiecewiseLinearTrajectory, dt: float,
                      end_time: Optional[float] = None) -> np.ndarray:
    """Evaluate ``trajectory`` on a uniform time grid, returning (n_samples x n_joints)."""
    if dt <= 0:
        raise TrajectoryPlanningError(f"Sampling period must be positive, got {dt}")
    end_time = trajectory.end_time if end_time is None else end_time
    grid = np.arange(trajectory.start_time, end_time + 0.5 * dt, dt)
    return trajectory(grid)
