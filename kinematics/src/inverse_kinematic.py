#!/usr/bin/env python3
"""
Constraint-Based Inverse Kinematics Module

This module implements a single-shot inverse kinematics solver that finds a
joint configuration close to a nominal posture while satisfying a set of
Cartesian constraints on named bodies of the kinematic model.

The problem solved is

    min_q  (q - q_nom)^T Q (q - q_nom)
    s.t.   lb <= p_body(q) <= ub               (WorldPositionConstraint)
           angle(R_body(q), R_des) <= tol      (WorldOrientationConstraint)
           q_min <= q <= q_max

using Sequential Least Squares Programming (scipy SLSQP) with analytic
gradients from the model's space Jacobian. The solver is only locally
convergent: the result depends on the initial guess, and expected
infeasibility is reported through a status code, never raised.

Author: Robot Control Team
"""

import numpy as np
import logging
from enum import IntEnum
from typing import Tuple, Optional, Dict, Any, List
import time
from scipy.optimize import minimize

logger = logging.getLogger(__name__)


class InverseKinematicsError(Exception):
    """Custom exception for inverse kinematics errors."""
    pass


class SolverInfo(IntEnum):
    """Status codes reported by ConstraintIK.solve.

    Codes below 10 mean the solver converged to a configuration that
    satisfies every constraint.
    """
    SUCCESS = 1
    SUCCESS_LOW_ACCURACY = 3
    INFEASIBLE_CONSTRAINTS = 13
    ITERATION_LIMIT = 32
    NUMERICAL_FAILURE = 41
    INVALID_INPUT = 91


def is_solver_success(info: int) -> bool:
    """Return True if ``info`` lies in the converged range."""
    return 0 < int(info) < 10


class WorldPositionConstraint:
    """Axis-aligned box constraint on a body's world position."""

    AXES = ('x', 'y', 'z')

    def __init__(self, model, body_index: int, lb: np.ndarray, ub: np.ndarray,
                 name: Optional[str] = None):
        self.model = model
        self.body_index = int(body_index)
        self.lb = np.asarray(lb, dtype=float).reshape(3)
        self.ub = np.asarray(ub, dtype=float).reshape(3)
        if np.any(self.lb > self.ub):
            raise InverseKinematicsError(f"Position lower bound {self.lb} exceeds upper bound {self.ub}")
        body_name = model.get_body(self.body_index).name
        self.name = name or f"WorldPositionConstraint({body_name})"

    @property
    def tolerance(self) -> np.ndarray:
        """Half-width of the box."""
        return 0.5 * (self.ub - self.lb)

    def evaluate(self, q: np.ndarray) -> np.ndarray:
        """Six values that are all non-negative when the constraint holds."""
        p = self.model.compute_forward_kinematics(q, self.body_index)[:3, 3]
        return np.concatenate([p - self.lb, self.ub - p])

    def gradient(self, q: np.ndarray) -> np.ndarray:
        T = self.model.compute_forward_kinematics(q, self.body_index)
        J = self.model.compute_space_jacobian(q, self.body_index)
        p = T[:3, 3]
        # Linear velocity of the body origin: v + w x p
        dp = J[3:, :] + np.cross(J[:3, :].T, p).T
        return np.vstack([dp, -dp])

    def violated(self, q: np.ndarray, tol: float) -> List[str]:
        values = self.evaluate(q)
        names = []
        for i, axis in enumerate(self.AXES):
            if values[i] < -tol:
                names.append(f"{self.name}[{axis} lower]")
            if values[i + 3] < -tol:
                names.append(f"{self.name}[{axis} upper]")
        return names


class WorldOrientationConstraint:
    """Bounds the angle between a body's world orientation and a desired one."""

    def __init__(self, model, body_index: int, rotation: np.ndarray, tol: float,
                 name: Optional[str] = None):
        self.model = model
        self.body_index = int(body_index)
        self.rotation = np.asarray(rotation, dtype=float).reshape(3, 3)
        if tol < 0:
            raise InverseKinematicsError(f"Rotation tolerance must be non-negative, got {tol}")
        self.tol = float(tol)
        self._cos_tol = np.cos(min(self.tol, np.pi))
        body_name = model.get_body(self.body_index).name
        self.name = name or f"WorldOrientationConstraint({body_name})"

    def angle(self, q: np.ndarray) -> float:
        R = self.model.compute_forward_kinematics(q, self.body_index)[:3, :3]
        cos_angle = np.clip((np.trace(self.rotation.T @ R) - 1.0) / 2.0, -1.0, 1.0)
        return float(np.arccos(cos_angle))

    def evaluate(self, q: np.ndarray) -> np.ndarray:
        # cos(angle) - cos(tol) >= 0
        R = self.model.compute_forward_kinematics(q, self.body_index)[:3, :3]
        return np.array([(np.trace(self.rotation.T @ R) - 1.0) / 2.0 - self._cos_tol])

    def gradient(self, q: np.ndarray) -> np.ndarray:
        R = self.model.compute_forward_kinematics(q, self.body_index)[:3, :3]
        J = self.model.compute_space_jacobian(q, self.body_index)
        A = self.rotation.T
        grad = np.empty(J.shape[1])
        for i in range(J.shape[1]):
            # dR/dq_i = [w_i] R
            w_hat = self.model.skew_symmetric(J[:3, i])
            grad[i] = 0.5 * np.trace(A @ w_hat @ R)
        return grad.reshape(1, -1)

    def violated(self, q: np.ndarray, tol: float) -> List[str]:
        return [self.name] if self.evaluate(q)[0] < -tol else []


class ConstraintIK:
    """
    Single-shot constrained inverse kinematics solver.

    Minimizes a weighted squared distance to a nominal posture subject to
    Cartesian constraints and joint limits.
    """

    def __init__(self, forward_kinematics, default_params: Optional[Dict[str, Any]] = None):
        """
        Initialize constrained IK solver.

        Args:
            forward_kinematics: ForwardKinematics instance
            default_params: Overrides for the default solver parameters
        """
        self.fk = forward_kinematics
        self.joint_limits = forward_kinematics.joint_limits
        self.n_joints = forward_kinematics.n_joints

        self.default_params = {
            'max_iters': 200,          # SLSQP iteration cap
            'ftol': 1e-9,              # SLSQP objective tolerance
            'feasibility_tol': 1e-6,   # slack allowed when checking constraints
            'nominal_weights': None,   # diagonal of Q, identity if None
        }
        if default_params:
            self.default_params.update(default_params)

        self.stats = {
            'total_calls': 0,
            'successful_calls': 0,
            'total_time': 0.0,
            'average_time': 0.0,
            'total_iterations': 0,
        }

        logger.info(f"Constraint IK solver initialized for {self.n_joints} joints")

    def _weights(self, params: Dict[str, Any]) -> np.ndarray:
        weights = params.get('nominal_weights')
        if weights is None:
            return np.ones(self.n_joints)
        weights = np.asarray(weights, dtype=float)
        if weights.shape != (self.n_joints,) or np.any(weights < 0):
            raise InverseKinematicsError(
                f"nominal_weights must be {self.n_joints} non-negative values, got {weights}")
        return weights

    def _check_vector(self, q: np.ndarray, what: str) -> np.ndarray:
        q = np.asarray(q, dtype=float)
        if q.ndim != 1 or q.shape[0] != self.n_joints:
            raise InverseKinematicsError(
                f"{what} must have shape ({self.n_joints},), got {q.shape}")
        if not np.all(np.isfinite(q)):
            raise InverseKinematicsError(f"{what} contains non-finite values")
        return q

    def solve(self, q_seed: np.ndarray, q_nom: np.ndarray, constraints: List[Any],
              **kwargs) -> Tuple[np.ndarray, int, List[str]]:
        """
        Solve for a configuration satisfying ``constraints``.

        Args:
            q_seed: Initial guess
            q_nom: Nominal posture the objective is biased toward
            constraints: Constraint objects with evaluate/gradient/violated
            **kwargs: Parameter overrides for this call

        Returns:
            q_solution: Best configuration found (clipped to joint limits)
            info: SolverInfo code, success when below 10
            infeasible_constraints: Names of violated constraints (empty on success)

        Raises:
            InverseKinematicsError: On malformed inputs
        """
        start_time = time.time()
        self.stats['total_calls'] += 1

        params = self.default_params.copy()
        params.update(kwargs)

        q_seed = self._check_vector(q_seed, "q_seed")
        q_nom = self._check_vector(q_nom, "q_nom")
        weights = self._weights(params)
        lower, upper = self.joint_limits[0], self.joint_limits[1]

        def objective(q):
            dq = q - q_nom
            return float(dq @ (weights * dq)), 2.0 * weights * dq

        scipy_constraints = [
            {'type': 'ineq', 'fun': c.evaluate, 'jac': c.gradient} for c in constraints
        ]

        result = minimize(
            objective,
            np.clip(q_seed, lower, upper),
            jac=True,
            method="SLSQP",
            bounds=list(zip(lower, upper)),
            constraints=scipy_constraints,
            options={'maxiter': int(params['max_iters']), 'ftol': float(params['ftol'])},
        )

        q_solution = np.clip(result.x, lower, upper)
        self.stats['total_iterations'] += int(getattr(result, 'nit', 0))

        if not np.all(np.isfinite(q_solution)):
            info = SolverInfo.NUMERICAL_FAILURE
            infeasible = [c.name for c in constraints]
            q_solution = np.clip(q_seed, lower, upper)
        else:
            infeasible = []
            for c in constraints:
                infeasible.extend(c.violated(q_solution, params['feasibility_tol']))

            if not infeasible:
                info = SolverInfo.SUCCESS if result.success else SolverInfo.SUCCESS_LOW_ACCURACY
            elif result.status == 9:
                info = SolverInfo.ITERATION_LIMIT
            else:
                info = SolverInfo.INFEASIBLE_CONSTRAINTS

        solve_time = time.time() - start_time
        self.stats['total_time'] += solve_time
        if is_solver_success(info):
            self.stats['successful_calls'] += 1
        self.stats['average_time'] = self.stats['total_time'] / self.stats['total_calls']

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"ConstraintIK solved in {solve_time*1000:.2f}ms, info: {int(info)}, "
                         f"iterations: {getattr(result, 'nit', 0)}, message: {result.message}")

        return q_solution, int(info), infeasible

    def get_statistics(self) -> Dict[str, Any]:
        """Get performance statistics."""
        stats = self.stats.copy()
        if stats['total_calls'] > 0:
            stats['success_rate'] = stats['successful_calls'] / stats['total_calls']
        else:
            stats['success_rate'] = 0.0
        return stats

    def reset_statistics(self):
        """Reset performance statistics."""
        self.stats = {
            'total_calls': 0,
            'successful_calls': 0,
            'total_time': 0.0,
            'average_time': 0.0,
            'total_iterations': 0,
        }

    def update_parameters(self, **params):
        """Update solver parameters."""
        self.default_params.update(params)
        logger.info(f"ConstraintIK parameters updated: {params}")
