#!/usr/bin/env python3
"""
Robot Motion Planning Package

Sequential Cartesian IK planning for serial manipulators, built on the
kinematics package:
- Single-waypoint IK with position box and orientation constraints
- Retry ladder: tight attempt, relaxed tolerances, random restarts
- Solution chaining between consecutive waypoints
- First-order hold trajectory export

Author: Robot Control Team
Version: 2.0.0
"""

__version__ = "2.0.0"
__author__ = "Robot Control Team"

from .trajectory_planner import (
    PiecewiseLinearTrajectory, TrajectoryPlanningError,
    generate_first_order_hold_trajectory, sample_trajectory,
)
from .ik_planner import (
    IkPlanner, IkCartesianWaypoint, IKResults, IKResultEntry,
    AttemptPolicy, AttemptRecord, GuessStrategy, IkPlanningError,
    build_retry_ladder, load_planner_config, get_default_config_path,
)
from .planner_logger import PlannerLogger

__all__ = [
    'IkPlanner',
    'IkCartesianWaypoint',
    'IKResults',
    'IKResultEntry',
    'AttemptPolicy',
    'AttemptRecord',
    'GuessStrategy',
    'IkPlanningError',
    'build_retry_ladder',
    'load_planner_config',
    'get_default_config_path',
    'PiecewiseLinearTrajectory',
    'TrajectoryPlanningError',
    'generate_first_order_hold_trajectory',
    'sample_trajectory',
    'PlannerLogger',
]

# Package metadata
__title__ = "robot_planning"
__description__ = "Sequential Cartesian IK planning with relaxation and random restarts"
__license__ = "MIT"
