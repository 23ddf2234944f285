#!/usr/bin/env python3
"""
Sequential IK Planning Demonstration

Plans a short Cartesian line for the bundled iiwa14 model:
- Waypoints along a straight segment with a fixed tool orientation
- Sequential IK with relaxation and random restarts
- First-order hold trajectory export and sampling
"""

import argparse
import logging
import os
import sys

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from kinematics.src.forward_kinematic import get_default_model_path
from planning.src.ik_planner import IkPlanner, IkCartesianWaypoint, get_default_config_path
from planning.src.planner_logger import PlannerLogger
from planning.src.trajectory_planner import sample_trajectory


def build_line_waypoints(planner, q_start, offset, num_waypoints, constrain_orientation):
    """Waypoints from the current end effector pose along ``offset``."""
    T_start = planner.get_robot().compute_forward_kinematics(q_start, planner.end_effector_body_idx)
    waypoints = []
    for i in range(1, num_waypoints + 1):
        pose = T_start.copy()
        pose[:3, 3] += offset * i / num_waypoints
        waypoints.append(IkCartesianWaypoint(pose=pose, constrain_orientation=constrain_orientation))
    return waypoints


def main():
    parser = argparse.ArgumentParser(description="Sequential IK planning demo")
    parser.add_argument("--model", default=get_default_model_path())
    parser.add_argument("--config", default=get_default_config_path())
    parser.add_argument("--end-effector", default="iiwa_link_ee")
    parser.add_argument("--waypoints", type=int, default=5)
    parser.add_argument("--seed", type=int, default=1234)
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    log = PlannerLogger(log_file=args.log_file,
                        level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        planner = IkPlanner(args.model, args.end_effector, random_seed=args.seed,
                            config_path=args.config)

        q_start = np.array([0.0, 0.6, 0.0, -1.2, 0.0, 0.8, 0.0])
        waypoints = build_line_waypoints(planner, q_start, np.array([0.1, 0.15, -0.1]),
                                         args.waypoints, constrain_orientation=True)

        success, ik_res = planner.plan_sequential_trajectory(waypoints, q_start)
        log.log_attempts(planner.last_attempts)
        if not success:
            log.write("Sequential planning failed", level="error")
            return 1

        log.log_results(ik_res)

        times = [0.5 * i for i in range(len(ik_res))]
        trajectory = planner.generate_first_order_hold_trajectory(times, ik_res)
        samples = sample_trajectory(trajectory, dt=0.1)
        log.write(f"Trajectory sampled at {len(samples)} points over {trajectory.end_time:.1f}s")
        log.write(f"Planner statistics: {planner.get_statistics()}")
        return 0
    finally:
        log.close()


if __name__ == "__main__":
    sys.exit(main())
