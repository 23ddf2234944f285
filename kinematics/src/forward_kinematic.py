#!/usr/bin/env python3
"""
Forward Kinematics Module for Serial Robot Manipulators

This module implements a rigid-body kinematic model using the Product of
Exponentials (PoE) formulation with screw theory. The model is loaded from a
YAML description and provides forward kinematics for every named body of the
chain, joint limits, body lookup by name and space Jacobians.

Key Features:
- Product of Exponentials (PoE) formulation
- Named bodies along the chain (links, flange, tool frames)
- Base-to-world placement by fixed transform or by frame attachment
- Joint limits and uniform random configurations within them

Author: Robot Control Team
"""

import numpy as np
from numpy.linalg import norm
import logging
from dataclasses import dataclass, field
from typing import Tuple, Optional, List, Union
import os
import yaml
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)

WORLD_BODY_NAME = "world"


class ForwardKinematicsError(Exception):
    """Custom exception for forward kinematics errors."""
    pass


class ModelLoadError(ForwardKinematicsError):
    """Raised when a model description cannot be read or is malformed."""
    pass


class KinematicsModelError(ForwardKinematicsError):
    """Raised for unknown bodies/frames or invalid configurations."""
    pass


@dataclass(frozen=True, eq=False)
class RigidBody:
    """A named body of the kinematic chain.

    ``num_joints`` is the number of joints between the robot base and this
    body; ``home`` is the body pose in the base frame at zero configuration.
    """
    name: str
    index: int
    num_joints: int
    home: np.ndarray

    def get_body_index(self) -> int:
        return self.index


@dataclass(eq=False)
class RigidBodyFrame:
    """A frame rigidly attached to a body (``world`` by default)."""
    name: str
    transform_to_body: np.ndarray = field(default_factory=lambda: np.eye(4))
    body_name: str = WORLD_BODY_NAME


def _as_transform(T, what: str = "transform") -> np.ndarray:
    T = np.asarray(T, dtype=float)
    if T.shape != (4, 4):
        raise KinematicsModelError(f"{what} must be a 4x4 homogeneous matrix, got shape {T.shape}")
    if not np.allclose(T[3], [0.0, 0.0, 0.0, 1.0]):
        raise KinematicsModelError(f"{what} has an invalid last row: {T[3]}")
    return T


class ForwardKinematics:
    """Forward kinematics implementation using Product of Exponentials."""

    def __init__(self, screw_axes: np.ndarray, joint_limits: np.ndarray,
                 bodies: List[RigidBody], joint_names: Optional[List[str]] = None,
                 name: str = "robot", base_to_world=None):
        """
        Initialize forward kinematics with robot parameters.

        Args:
            screw_axes: Screw axes matrix (6 x n_joints), columns [w, v] in the base frame
            joint_limits: Joint limits array (2 x n_joints) in radians
            bodies: Named bodies of the chain
            joint_names: Optional joint names
            name: Model name
            base_to_world: X_WB as a 4x4 matrix or RigidBodyFrame (identity if None)
        """
        self.name = name
        self.S = np.asarray(screw_axes, dtype=float)
        if self.S.ndim != 2 or self.S.shape[0] != 6:
            raise ModelLoadError(f"Screw axes must have shape (6, n), got {self.S.shape}")
        self.n_joints = self.S.shape[1]

        if self.n_joints == 0:
            raise ModelLoadError("No active joints found in the kinematic chain.")

        self.joint_limits = np.asarray(joint_limits, dtype=float)
        if self.joint_limits.shape != (2, self.n_joints):
            raise ModelLoadError(
                f"Joint limits must have shape (2, {self.n_joints}), got {self.joint_limits.shape}")
        if np.any(self.joint_limits[0] > self.joint_limits[1]):
            raise ModelLoadError("Joint lower limits exceed upper limits")

        self.joint_names = list(joint_names) if joint_names else [f"j{i + 1}" for i in range(self.n_joints)]
        if len(self.joint_names) != self.n_joints:
            raise ModelLoadError("Number of joint names does not match number of screw axes")

        if not bodies:
            raise ModelLoadError("Model defines no bodies")
        self.bodies = list(bodies)
        self._body_by_name = {}
        for body in self.bodies:
            if body.name in self._body_by_name:
                raise ModelLoadError(f"Duplicate body name: {body.name}")
            if not 0 <= body.num_joints <= self.n_joints:
                raise ModelLoadError(
                    f"Body {body.name} refers to {body.num_joints} joints, model has {self.n_joints}")
            self._body_by_name[body.name] = body

        # Home configuration of the last body, kept for PoE compatibility
        self.M = self.bodies[-1].home.copy()

        self.base_to_world = np.eye(4)
        if base_to_world is not None:
            self.set_base_to_world(base_to_world)

        logger.info(f"Forward kinematics '{self.name}' initialized with {self.n_joints} joints "
                    f"and {len(self.bodies)} bodies")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, model_path: str, base_to_world=None) -> "ForwardKinematics":
        """
        Load a model description from a YAML file.

        Expected layout::

            name: iiwa14
            joints:
              - name: iiwa_joint_1
                screw_axis: [wx, wy, wz, vx, vy, vz]
                limits: {min: -170.0, max: 170.0}   # degrees
            bodies:
              - name: iiwa_link_ee
                num_joints: 7
                home: {position: [x, y, z], rpy: [r, p, y]}

        Raises:
            ModelLoadError: If the file is missing or malformed
        """
        if not model_path or not os.path.exists(model_path):
            raise ModelLoadError(f"Model file not found: {model_path}")

        try:
            with open(model_path, "r") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ModelLoadError(f"Failed to parse model file {model_path}: {e}") from e

        if not isinstance(config, dict):
            raise ModelLoadError(f"Model file {model_path} does not contain a mapping")

        joints = config.get('joints')
        bodies_cfg = config.get('bodies')
        if not joints or not bodies_cfg:
            raise ModelLoadError(f"Model file {model_path} must define 'joints' and 'bodies'")

        try:
            S = np.array([joint['screw_axis'] for joint in joints], dtype=float).T
            lower = [np.deg2rad(joint.get('limits', {}).get('min', -180.0)) for joint in joints]
            upper = [np.deg2rad(joint.get('limits', {}).get('max', 180.0)) for joint in joints]
            joint_names = [joint.get('name', f"j{i + 1}") for i, joint in enumerate(joints)]

            bodies = []
            for index, body_cfg in enumerate(bodies_cfg):
                home_cfg = body_cfg.get('home', {})
                home = np.eye(4)
                home[:3, :3] = cls.rpy_to_matrix(np.asarray(home_cfg.get('rpy', [0.0, 0.0, 0.0]), dtype=float))
                home[:3, 3] = np.asarray(home_cfg.get('position', [0.0, 0.0, 0.0]), dtype=float)
                bodies.append(RigidBody(
                    name=str(body_cfg['name']),
                    index=index,
                    num_joints=int(body_cfg['num_joints']),
                    home=home,
                ))
        except (KeyError, TypeError, ValueError) as e:
            raise ModelLoadError(f"Malformed model file {model_path}: {e}") from e

        logger.info(f"Model loaded from: {model_path}")
        return cls(S, np.array([lower, upper]), bodies, joint_names=joint_names,
                   name=str(config.get('name', 'robot')), base_to_world=base_to_world)

    # ------------------------------------------------------------------
    # Bodies and frames
    # ------------------------------------------------------------------

    def set_base_to_world(self, base_to_world: Union[np.ndarray, RigidBodyFrame]):
        """Place the robot base in the world by a fixed transform or a frame attachment."""
        if isinstance(base_to_world, RigidBodyFrame):
            if base_to_world.body_name != WORLD_BODY_NAME:
                raise KinematicsModelError(
                    f"Base frame '{base_to_world.name}' must be attached to '{WORLD_BODY_NAME}', "
                    f"got '{base_to_world.body_name}'")
            T = _as_transform(base_to_world.transform_to_body, f"frame '{base_to_world.name}'")
        else:
            T = _as_transform(base_to_world, "base_to_world")
        self.base_to_world = T.copy()

    def find_body(self, body_name: str) -> RigidBody:
        """Resolve a body by name."""
        try:
            return self._body_by_name[body_name]
        except KeyError:
            raise KinematicsModelError(
                f"Could not find body '{body_name}' in model '{self.name}'") from None

    def find_body_index(self, body_name: str) -> int:
        return self.find_body(body_name).index

    def get_body(self, body_index: int) -> RigidBody:
        if not 0 <= body_index < len(self.bodies):
            raise KinematicsModelError(f"Body index {body_index} out of range")
        return self.bodies[body_index]

    def get_num_positions(self) -> int:
        return self.n_joints

    # ------------------------------------------------------------------
    # Screw theory
    # ------------------------------------------------------------------

    @staticmethod
    def skew_symmetric(w: np.ndarray) -> np.ndarray:
        """
        Compute skew-symmetric matrix from 3D vector.

        Args:
            w: 3D vector

        Returns:
            3x3 skew-symmetric matrix
        """
        return np.array([
            [0, -w[2], w[1]],
            [w[2], 0, -w[0]],
            [-w[1], w[0], 0]
        ])

    @staticmethod
    def matrix_exp6(xi_theta: np.ndarray) -> np.ndarray:
        """
        Compute matrix exponential of a 6D screw vector.

        Uses the closed-form solution for SE(3) matrix exponential:
        exp([ξ]θ) = [exp([ω]θ)  G·v·θ]
                    [0         1     ]

        Args:
            xi_theta: 6D screw vector [ω·θ, v·θ]

        Returns:
            4x4 homogeneous transformation matrix
        """
        w_theta, v_theta = xi_theta[:3], xi_theta[3:]
        theta = norm(w_theta)

        T = np.eye(4)

        if theta < 1e-12:
            # Pure translation
            T[:3, 3] = v_theta
            return T

        w = w_theta / theta
        v = v_theta / theta
        w_hat = ForwardKinematics.skew_symmetric(w)
        w_hat2 = w_hat @ w_hat

        # Rodrigues' formula
        R = np.eye(3) + np.sin(theta) * w_hat + (1 - np.cos(theta)) * w_hat2

        G = (np.eye(3) * theta +
             (1 - np.cos(theta)) * w_hat +
             (theta - np.sin(theta)) * w_hat2)

        T[:3, :3] = R
        T[:3, 3] = G @ v
        return T

    @staticmethod
    def adjoint_matrix(T: np.ndarray) -> np.ndarray:
        """Compute adjoint matrix for SE(3) transformation (twists ordered [w, v])."""
        R, p = T[:3, :3], T[:3, 3]
        adj = np.zeros((6, 6))
        adj[:3, :3] = R
        adj[3:, 3:] = R
        adj[3:, :3] = ForwardKinematics.skew_symmetric(p) @ R
        return adj

    def _check_configuration(self, q: np.ndarray) -> np.ndarray:
        q = np.asarray(q, dtype=float)
        if q.ndim != 1 or q.shape[0] != self.n_joints:
            raise KinematicsModelError(
                f"Input q must be a numpy array of shape ({self.n_joints},), got shape {q.shape}"
            )
        return q

    def _resolve_body(self, body) -> RigidBody:
        if body is None:
            return self.bodies[-1]
        if isinstance(body, RigidBody):
            return self.get_body(body.index)
        if isinstance(body, str):
            return self.find_body(body)
        return self.get_body(int(body))

    def compute_forward_kinematics(self, q: np.ndarray, body=None) -> np.ndarray:
        """
        Compute the world pose of a body using Product of Exponentials.

        T_W(q) = X_WB · exp([S₁]q₁) · ... · exp([Sₖ]qₖ) · M_body

        Args:
            q: Joint angles in radians (n_joints,)
            body: Body index, name or RigidBody (last body if None)

        Returns:
            4x4 homogeneous transformation matrix of the body in the world frame

        Raises:
            KinematicsModelError: If input dimensions are invalid or body is unknown
        """
        q = self._check_configuration(q)
        rigid_body = self._resolve_body(body)

        T = self.base_to_world.copy()
        for i in range(rigid_body.num_joints):
            T = T @ self.matrix_exp6(self.S[:, i] * q[i])

        return T @ rigid_body.home

    def compute_space_jacobian(self, q: np.ndarray, body=None) -> np.ndarray:
        """
        Compute the space Jacobian (6 x n_joints) in the world frame.

        Columns of joints beyond the body's chain are zero.
        """
        q = self._check_configuration(q)
        rigid_body = self._resolve_body(body)

        J_s = np.zeros((6, self.n_joints))
        T_temp = np.eye(4)
        for i in range(rigid_body.num_joints):
            J_s[:, i] = self.adjoint_matrix(T_temp) @ self.S[:, i]
            T_temp = T_temp @ self.matrix_exp6(self.S[:, i] * q[i])

        return self.adjoint_matrix(self.base_to_world) @ J_s

    @staticmethod
    def rpy_to_matrix(rpy: np.ndarray) -> np.ndarray:
        """
        Convert fixed-axis RPY angles to a rotation matrix, R = Rz(yaw) Ry(pitch) Rx(roll).

        Args:
            rpy: RPY angles [roll, pitch, yaw] in radians

        Returns:
            3x3 rotation matrix
        """
        rpy = np.asarray(rpy, dtype=float)
        if rpy.shape != (3,):
            raise KinematicsModelError(f"RPY must have 3 angles, got shape {rpy.shape}")
        return Rotation.from_euler('xyz', rpy).as_matrix()

    # ------------------------------------------------------------------
    # Joint limits
    # ------------------------------------------------------------------

    def get_joint_limits(self) -> np.ndarray:
        """Get joint limits (2 x n_joints)."""
        return self.joint_limits.copy()

    def within_joint_limits(self, q: np.ndarray, tol: float = 1e-9) -> bool:
        q = self._check_configuration(q)
        return bool(np.all(q >= self.joint_limits[0] - tol) and np.all(q <= self.joint_limits[1] + tol))

    def get_random_configuration(self, rng: np.random.Generator) -> np.ndarray:
        """Draw a configuration uniformly within the joint limits."""
        return rng.uniform(self.joint_limits[0], self.joint_limits[1])


# The planner talks about "the kinematic model"; both names refer to the same class.
KinematicModel = ForwardKinematics


def load_model(model_path: str, base_to_world=None) -> ForwardKinematics:
    """Load a kinematic model from a YAML description."""
    return ForwardKinematics.from_yaml(model_path, base_to_world=base_to_world)


def get_default_model_path() -> str:
    """Path of the bundled 7-DOF iiwa14 model description."""
    return os.path.join(os.path.dirname(__file__), "..", "config", "iiwa14.yaml")
