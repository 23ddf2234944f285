#!/usr/bin/env python3
"""
Robot Kinematics Package - Source Module

A kinematics library for serial robot manipulators using the Product of
Exponentials (PoE) formulation.

This package provides:
- Rigid-body kinematic model loaded from a YAML description
- Forward kinematics and space Jacobians for every named body
- Constraint-based single-shot inverse kinematics (position box and
  orientation cone constraints, nominal-posture objective)
- Validation utilities

Author: Robot Control Team
Version: 3.0.0
"""

__version__ = "3.0.0"
__author__ = "Robot Control Team"

# Core kinematics classes
from .forward_kinematic import (
    ForwardKinematics, KinematicModel, RigidBody, RigidBodyFrame,
    ForwardKinematicsError, ModelLoadError, KinematicsModelError,
    load_model, get_default_model_path,
)
from .inverse_kinematic import (
    ConstraintIK, SolverInfo, is_solver_success,
    WorldPositionConstraint, WorldOrientationConstraint, InverseKinematicsError,
)
from .kinematics_validation import KinematicsValidator, pose_error

# Package metadata
__title__ = "robot_kinematics"
__description__ = "Kinematic model and constrained IK for serial robot manipulators"
__license__ = "MIT"
