#!/usr/bin/env python3
"""
Kinematics Validation Utilities

This module provides validation tools for the kinematic model and the
constrained IK solver:
- Pose error between an achieved configuration and a desired pose
- Tolerance checks matching the position box / orientation constraints
- Finite-difference verification of the space Jacobian

Author: Robot Control Team
"""

import numpy as np
from typing import Tuple, Dict, Any, Optional
import logging
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)


def pose_error(T_actual: np.ndarray, T_des: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Error between two poses.

    Returns:
        pos_err: Per-axis absolute position error (3,)
        rot_err: Angle of the relative rotation in radians
    """
    pos_err = np.abs(T_actual[:3, 3] - T_des[:3, 3])
    R_err = Rotation.from_matrix(T_des[:3, :3].T @ T_actual[:3, :3])
    return pos_err, float(R_err.magnitude())


class KinematicsValidator:
    """Validation utilities for a kinematic model."""

    def __init__(self, forward_kinematics):
        """
        Initialize validator.

        Args:
            forward_kinematics: ForwardKinematics instance
        """
        self.fk = forward_kinematics
        self.n_joints = forward_kinematics.n_joints

    def compute_pose_error(self, q: np.ndarray, T_des: np.ndarray,
                           body=None) -> Tuple[np.ndarray, float]:
        """Per-axis position error and rotation angle of ``body`` at ``q``."""
        return pose_error(self.fk.compute_forward_kinematics(q, body), T_des)

    def within_tolerance(self, q: np.ndarray, T_des: np.ndarray, pos_tol: np.ndarray,
                         rot_tol: Optional[float] = None, body=None, slack: float = 1e-6) -> bool:
        """
        Check that ``body`` at ``q`` lies in the tolerance box around ``T_des``.

        The orientation is only checked when ``rot_tol`` is given.
        """
        pos_err, rot_err = self.compute_pose_error(q, T_des, body)
        if np.any(pos_err > np.asarray(pos_tol, dtype=float) + slack):
            return False
        if rot_tol is not None and rot_err > rot_tol + slack:
            return False
        return True

    def validate_jacobian(self, q: np.ndarray, body=None, eps: float = 1e-6,
                          tol: float = 1e-5) -> Dict[str, Any]:
        """
        Compare the analytic space Jacobian against central finite differences.

        Returns:
            Dictionary with 'passed' and the maximum absolute errors found.
        """
        q = np.asarray(q, dtype=float)
        J = self.fk.compute_space_jacobian(q, body)
        T0 = self.fk.compute_forward_kinematics(q, body)
        p0 = T0[:3, 3]

        max_lin_err = 0.0
        max_ang_err = 0.0
        for i in range(self.n_joints):
            dq = np.zeros(self.n_joints)
            dq[i] = eps
            T_plus = self.fk.compute_forward_kinematics(q + dq, body)
            T_minus = self.fk.compute_forward_kinematics(q - dq, body)

            dp_numeric = (T_plus[:3, 3] - T_minus[:3, 3]) / (2 * eps)
            dp_analytic = J[3:, i] + np.cross(J[:3, i], p0)
            max_lin_err = max(max_lin_err, float(np.max(np.abs(dp_numeric - dp_analytic))))

            dR = (T_plus[:3, :3] - T_minus[:3, :3]) / (2 * eps)
            w_hat = dR @ T0[:3, :3].T
            w_numeric = np.array([w_hat[2, 1], w_hat[0, 2], w_hat[1, 0]])
            max_ang_err = max(max_ang_err, float(np.max(np.abs(w_numeric - J[:3, i]))))

        passed = max_lin_err < tol and max_ang_err < tol
        if not passed:
            logger.warning(f"Jacobian validation failed: linear {max_lin_err:.2e}, angular {max_ang_err:.2e}")

        return {
            'passed': passed,
            'max_linear_error': max_lin_err,
            'max_angular_error': max_ang_err,
        }
