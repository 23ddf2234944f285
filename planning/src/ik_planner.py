#!/usr/bin/env python3
"""
Sequential Cartesian IK Planning Module

A wrapper around the single-shot constrained IK solver that plans one joint
configuration per Cartesian waypoint. It improves the solver's usability by
handling constraint relaxation and multiple initial guesses internally:

1. tight attempt: waypoint tolerances, previous solution as initial guess
2. relaxed attempts: progressively widened tolerances, same initial guess
3. random restarts: waypoint tolerances, random initial guess within limits

Each solution becomes the initial guess and nominal posture for the next
waypoint. The first waypoint that exhausts every tier fails the whole plan.

Author: Robot Control Team
"""

import numpy as np
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple, Dict, Any, Optional, Sequence, Union
import yaml

from kinematics.src.forward_kinematic import load_model, RigidBody, RigidBodyFrame
from kinematics.src.inverse_kinematic import (
    ConstraintIK, SolverInfo, is_solver_success,
    WorldPositionConstraint, WorldOrientationConstraint,
)
from kinematics.src.kinematics_validation import KinematicsValidator
from .trajectory_planner import PiecewiseLinearTrajectory, generate_first_order_hold_trajectory

logger = logging.getLogger(__name__)

DEFAULT_RANDOM_SEED = 1234

DEFAULT_PLANNER_CONFIG = {
    'enable_relaxation': True,
    'relaxation_attempts': 5,
    'relaxation_factor': 1.5,
    'enable_random_restarts': True,
    'random_restarts': 50,
}


class IkPlanningError(Exception):
    """Custom exception for invalid planner input."""
    pass


@dataclass(frozen=True, eq=False)
class IkCartesianWaypoint:
    """Cartesian waypoint. Input to the IK solver."""
    # Desired end effector pose in the world frame
    pose: np.ndarray = field(default_factory=lambda: np.eye(4))
    # Half-widths of the position box in the world frame
    pos_tol: np.ndarray = field(default_factory=lambda: np.array([0.005, 0.005, 0.005]))
    # Max angle difference (radians) between solved and desired orientation
    rot_tol: float = 0.05
    constrain_orientation: bool = False

    def __post_init__(self):
        pose = np.array(self.pose, dtype=float)
        if pose.shape != (4, 4) or not np.all(np.isfinite(pose)):
            raise ValueError(f"Waypoint pose must be a finite 4x4 matrix, got shape {pose.shape}")
        if not np.allclose(pose[3], [0.0, 0.0, 0.0, 1.0]):
            raise ValueError(f"Waypoint pose has an invalid last row: {pose[3]}")
        R = pose[:3, :3]
        if not np.allclose(R.T @ R, np.eye(3), atol=1e-6) or np.linalg.det(R) <= 0:
            raise ValueError("Waypoint pose rotation must be a proper orthonormal matrix")
        pos_tol = np.array(self.pos_tol, dtype=float)
        if pos_tol.ndim == 0:
            pos_tol = np.full(3, float(pos_tol))
        if pos_tol.shape != (3,) or np.any(pos_tol < 0) or not np.all(np.isfinite(pos_tol)):
            raise ValueError(f"Position tolerance must be 3 non-negative values, got {self.pos_tol}")
        rot_tol = float(self.rot_tol)
        if rot_tol < 0 or not np.isfinite(rot_tol):
            raise ValueError(f"Rotation tolerance must be non-negative, got {self.rot_tol}")

        pose.setflags(write=False)
        pos_tol.setflags(write=False)
        object.__setattr__(self, 'pose', pose)
        object.__setattr__(self, 'pos_tol', pos_tol)
        object.__setattr__(self, 'rot_tol', rot_tol)
        object.__setattr__(self, 'constrain_orientation', bool(self.constrain_orientation))

    @property
    def position(self) -> np.ndarray:
        return self.pose[:3, 3]

    @property
    def rotation(self) -> np.ndarray:
        return self.pose[:3, :3]


@dataclass(frozen=True, eq=False)
class IKResultEntry:
    """One solved configuration with its time tag and solver diagnostics."""
    time: float
    configuration: np.ndarray
    info: int = int(SolverInfo.SUCCESS)
    infeasible_constraints: Tuple[str, ...] = ()
    tier: str = "seed"

    def __post_init__(self):
        configuration = np.array(self.configuration, dtype=float)
        configuration.setflags(write=False)
        object.__setattr__(self, 'configuration', configuration)
        object.__setattr__(self, 'infeasible_constraints', tuple(self.infeasible_constraints))


class IKResults:
    """Ordered IK results of one planning call; entry zero is the seed configuration."""

    def __init__(self, entries: Optional[List[IKResultEntry]] = None):
        self._entries = list(entries or [])

    def append(self, entry: IKResultEntry):
        self._entries.append(entry)

    @property
    def entries(self) -> List[IKResultEntry]:
        return list(self._entries)

    @property
    def q_sol(self) -> List[np.ndarray]:
        return [entry.configuration.copy() for entry in self._entries]

    @property
    def info(self) -> List[int]:
        return [entry.info for entry in self._entries]

    @property
    def times(self) -> List[float]:
        return [entry.time for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __getitem__(self, index) -> IKResultEntry:
        return self._entries[index]


class GuessStrategy(Enum):
    """How an attempt picks its initial guess."""
    PREVIOUS_SOLUTION = "previous_solution"
    RANDOM = "random"


@dataclass(frozen=True)
class AttemptPolicy:
    """One tier of the retry ladder."""
    name: str
    max_attempts: int
    guess_strategy: GuessStrategy = GuessStrategy.PREVIOUS_SOLUTION
    relaxation_factor: float = 1.0

    def tolerance_scale(self, attempt: int) -> float:
        """Multiplier applied to the waypoint tolerances on ``attempt`` (0-based)."""
        if self.relaxation_factor == 1.0:
            return 1.0
        return self.relaxation_factor ** (attempt + 1)


@dataclass
class AttemptRecord:
    """Diagnostics for a single solver invocation."""
    waypoint_index: int
    tier: str
    attempt: int
    pos_tol: np.ndarray
    rot_tol: float
    initial_guess: np.ndarray
    info: int
    infeasible_constraints: List[str]
    success: bool


def load_planner_config(config_path: Optional[str]) -> Dict[str, Any]:
    """
    Load planner and solver parameters from a YAML file.

    Returns a dictionary with 'planner' and 'solver' sections; missing files
    yield empty sections.
    """
    if not config_path or not os.path.exists(config_path):
        logger.warning(f"Planner config file not found: {config_path}, using defaults")
        return {'planner': {}, 'solver': {}}

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}
    logger.info(f"Planner config loaded from: {config_path}")
    return {
        'planner': dict(config.get('planner') or {}),
        'solver': dict(config.get('solver') or {}),
    }


def get_default_config_path() -> str:
    return os.path.join(os.path.dirname(__file__), "..", "config", "planner.yaml")


def build_retry_ladder(config: Dict[str, Any]) -> List[AttemptPolicy]:
    """Ordered attempt tiers: tight, relaxed, random restart."""
    ladder = [AttemptPolicy("tight", 1)]
    if config['enable_relaxation'] and config['relaxation_attempts'] > 0:
        ladder.append(AttemptPolicy("relaxed", config['relaxation_attempts'],
                                    relaxation_factor=config['relaxation_factor']))
    if config['enable_random_restarts'] and config['random_restarts'] > 0:
        ladder.append(AttemptPolicy("random_restart", config['random_restarts'],
                                    guess_strategy=GuessStrategy.RANDOM))
    return ladder


def _validate_planner_config(config: Dict[str, Any]):
    """Check planner parameters and normalize their types in place."""
    unknown = set(config) - set(DEFAULT_PLANNER_CONFIG)
    if unknown:
        raise ValueError(f"Unknown planner parameters: {sorted(unknown)}")

    for key in ('relaxation_attempts', 'random_restarts', 'relaxation_factor'):
        value = config[key]
        # Quoted YAML values and nulls are rejected rather than parsed
        if isinstance(value, (bool, str)) or value is None:
            raise ValueError(f"{key} must be a number, got {value!r}")
        try:
            config[key] = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{key} must be a number, got {value!r}") from e

    for key in ('relaxation_attempts', 'random_restarts'):
        if not config[key].is_integer() or config[key] < 0:
            raise ValueError(f"{key} must be a non-negative integer, got {config[key]}")
        config[key] = int(config[key])
    if not np.isfinite(config['relaxation_factor']) or config['relaxation_factor'] < 1.0:
        raise ValueError(f"relaxation_factor must be a finite value >= 1.0, got {config['relaxation_factor']}")

    for key in ('enable_relaxation', 'enable_random_restarts'):
        config[key] = bool(config[key])


class IkPlanner:
    """
    Sequential IK planner with constraint relaxation and random restarts.

    The planner owns its kinematic model and random generator. It is not safe
    to share one instance between concurrent planning calls.
    """

    def __init__(self, model_path: str, end_effector: Union[str, RigidBody],
                 base_to_world: Union[np.ndarray, RigidBodyFrame, None] = None,
                 random_seed: int = DEFAULT_RANDOM_SEED,
                 config: Optional[Dict[str, Any]] = None,
                 config_path: Optional[str] = None,
                 ik_solver=None):
        """
        Instantiate an internal kinematic model from ``model_path``.

        Args:
            model_path: Path to the YAML model description
            end_effector: Body name or RigidBody of the end effector
            base_to_world: X_WB as a 4x4 transform or a RigidBodyFrame attached to the world
            random_seed: Seed for the generator used for random initial guesses
            config: Planner parameter overrides ('solver' key holds solver overrides)
            config_path: Optional YAML file with 'planner' and 'solver' sections
            ik_solver: Single-shot solver exposing solve(q_seed, q_nom, constraints);
                       a ConstraintIK on the owned model if None

        Raises:
            ModelLoadError: If the model cannot be loaded
            KinematicsModelError: If the end effector or base frame cannot be resolved
        """
        self.robot = load_model(model_path, base_to_world=base_to_world)
        self.end_effector_body_idx = None
        self.set_end_effector(end_effector)

        file_config = load_planner_config(config_path) if config_path else {'planner': {}, 'solver': {}}
        overrides = dict(config or {})
        solver_params = dict(file_config['solver'])
        solver_params.update(overrides.pop('solver', {}) or {})

        self.config = DEFAULT_PLANNER_CONFIG.copy()
        self.config.update(file_config['planner'])
        self.config.update(overrides)
        _validate_planner_config(self.config)
        self.retry_ladder = build_retry_ladder(self.config)

        self.ik_solver = ik_solver if ik_solver is not None else ConstraintIK(self.robot, solver_params)
        self.validator = KinematicsValidator(self.robot)

        self.random_seed = random_seed
        self._rng = np.random.default_rng(random_seed)

        self.stats = self._empty_stats()
        self.last_attempts: List[AttemptRecord] = []

        logger.info(f"IK planner initialized for '{self.robot.name}' "
                    f"(end effector '{self.get_end_effector().name}', tiers: "
                    f"{', '.join(f'{p.name}x{p.max_attempts}' for p in self.retry_ladder)})")

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'total_plans': 0,
            'successful_plans': 0,
            'failed_plans': 0,
            'waypoints_solved': 0,
            'total_attempts': 0,
            'tier_successes': {},
            'total_time': 0.0,
        }

    # ------------------------------------------------------------------
    # Model / end effector
    # ------------------------------------------------------------------

    def get_robot(self):
        """Returns the owned kinematic model."""
        return self.robot

    def set_end_effector(self, end_effector: Union[str, RigidBody]):
        """Sets the end effector by body name or RigidBody; unchanged on failure."""
        if isinstance(end_effector, RigidBody):
            body = self.robot.get_body(end_effector.get_body_index())
            if body.name != end_effector.name:
                raise IkPlanningError(
                    f"Body '{end_effector.name}' does not belong to model '{self.robot.name}'")
        else:
            body = self.robot.find_body(end_effector)
        self.end_effector_body_idx = body.index
        logger.debug(f"End effector set to '{body.name}' (index {body.index})")

    def get_end_effector(self) -> RigidBody:
        return self.robot.get_body(self.end_effector_body_idx)

    def reset_random_generator(self, seed: Optional[int] = None):
        """Reseed the generator used for random restarts (construction seed if None)."""
        if seed is not None:
            self.random_seed = seed
        self._rng = np.random.default_rng(self.random_seed)

    def _check_configuration(self, q: np.ndarray, what: str) -> np.ndarray:
        q = np.asarray(q, dtype=float)
        if q.ndim != 1 or q.shape[0] != self.robot.n_joints:
            raise IkPlanningError(f"{what} must have shape ({self.robot.n_joints},), got {q.shape}")
        return q

    # ------------------------------------------------------------------
    # Single waypoint
    # ------------------------------------------------------------------

    def solve_ik(self, waypoint: IkCartesianWaypoint, q0: np.ndarray, q_nom: np.ndarray,
                 position_tol: np.ndarray, rot_tolerance: float
                 ) -> Tuple[bool, np.ndarray, int, List[str]]:
        """
        Solve one waypoint with the given tolerances.

        Returns:
            success: True if the solver status is in the converged range
            q_sol: Configuration returned by the solver
            info: Solver status code, forwarded unchanged
            infeasible_constraints: Violated constraint names, forwarded unchanged
        """
        position_tol = np.asarray(position_tol, dtype=float)
        constraints = [
            WorldPositionConstraint(self.robot, self.end_effector_body_idx,
                                    waypoint.position - position_tol,
                                    waypoint.position + position_tol)
        ]
        if waypoint.constrain_orientation:
            constraints.append(WorldOrientationConstraint(
                self.robot, self.end_effector_body_idx, waypoint.rotation, rot_tolerance))

        q_sol, info, infeasible_constraints = self.ik_solver.solve(q0, q_nom, constraints)
        return is_solver_success(info), q_sol, info, list(infeasible_constraints)

    def _solve_waypoint(self, index: int, waypoint: IkCartesianWaypoint, q_prev: np.ndarray,
                        attempts: List[AttemptRecord]) -> Optional[IKResultEntry]:
        for policy in self.retry_ladder:
            for attempt in range(policy.max_attempts):
                scale = policy.tolerance_scale(attempt)
                pos_tol = waypoint.pos_tol * scale
                rot_tol = waypoint.rot_tol * scale

                if policy.guess_strategy is GuessStrategy.RANDOM:
                    q0 = self.robot.get_random_configuration(self._rng)
                else:
                    q0 = q_prev

                success, q_sol, info, infeasible = self.solve_ik(waypoint, q0, q_prev, pos_tol, rot_tol)
                attempts.append(AttemptRecord(
                    waypoint_index=index, tier=policy.name, attempt=attempt,
                    pos_tol=pos_tol.copy(), rot_tol=rot_tol, initial_guess=np.array(q0, dtype=float),
                    info=info, infeasible_constraints=infeasible, success=success,
                ))
                logger.debug(f"Waypoint {index} {policy.name} attempt {attempt}: info {info}"
                             + (f", infeasible {infeasible}" if infeasible else ""))

                if success:
                    if logger.isEnabledFor(logging.DEBUG):
                        pos_err, rot_err = self.validator.compute_pose_error(
                            q_sol, waypoint.pose, self.end_effector_body_idx)
                        logger.debug(f"Waypoint {index} solved by {policy.name}: "
                                     f"pos_err={np.max(pos_err)*1000:.2f}mm, rot_err={rot_err:.4f}rad")
                    return IKResultEntry(
                        time=float(index + 1),
                        configuration=q_sol,
                        info=int(info),
                        tier=policy.name,
                    )
        return None

    # ------------------------------------------------------------------
    # Sequential planning
    # ------------------------------------------------------------------

    def plan_sequential_trajectory(self, waypoints: Sequence[IkCartesianWaypoint],
                                   q_current: np.ndarray) -> Tuple[bool, Optional[IKResults]]:
        """
        Generates IK solutions for each waypoint sequentially.

        For waypoint wp_i the solver looks for q_i that satisfies wp_i and
        minimizes the squared difference to q_{i-1}, with q_{-1} = q_current.
        Relaxation and random initial guesses are applied internally.

        Args:
            waypoints: A sequence of desired waypoints
            q_current: The initial generalized position, inserted as entry zero

        Returns:
            (True, IKResults with len(waypoints) + 1 entries) on success,
            (False, None) as soon as one waypoint exhausts every tier.
            Per-attempt diagnostics of the call are kept in ``last_attempts``.
        """
        start_time = time.time()
        q_current = self._check_configuration(q_current, "q_current")

        attempts: List[AttemptRecord] = []
        ik_res = IKResults([IKResultEntry(time=0.0, configuration=q_current.copy())])
        q_prev = q_current.copy()
        success = True

        for index, waypoint in enumerate(waypoints):
            entry = self._solve_waypoint(index, waypoint, q_prev, attempts)
            if entry is None:
                logger.warning(f"IK failed for waypoint {index} after {self._attempt_budget()} attempts")
                success = False
                break
            ik_res.append(entry)
            q_prev = entry.configuration
            self.stats['tier_successes'][entry.tier] = self.stats['tier_successes'].get(entry.tier, 0) + 1
            self.stats['waypoints_solved'] += 1

        self.last_attempts = attempts
        self.stats['total_plans'] += 1
        self.stats['total_attempts'] += len(attempts)
        self.stats['total_time'] += time.time() - start_time

        if not success:
            self.stats['failed_plans'] += 1
            return False, None

        self.stats['successful_plans'] += 1
        logger.info(f"Planned {len(waypoints)} waypoints with {len(attempts)} IK attempts "
                    f"in {time.time() - start_time:.3f}s")
        return True, ik_res

    def _attempt_budget(self) -> int:
        return sum(policy.max_attempts for policy in self.retry_ladder)

    @staticmethod
    def generate_first_order_hold_trajectory(times: Sequence[float],
                                             ik_res: Union[IKResults, List[np.ndarray]]
                                             ) -> PiecewiseLinearTrajectory:
        """
        Returns a piecewise-linear trajectory through ``ik_res`` at ``times``.

        Raises:
            TrajectoryPlanningError: If the number of times does not match the results
        """
        configurations = ik_res.q_sol if isinstance(ik_res, IKResults) else list(ik_res)
        return generate_first_order_hold_trajectory(times, configurations)

    def get_statistics(self) -> Dict[str, Any]:
        """Get planning statistics."""
        stats = dict(self.stats)
        stats['tier_successes'] = dict(self.stats['tier_successes'])
        total = stats['total_plans']
        stats['success_rate'] = stats['successful_plans'] / total if total > 0 else 0.0
        return stats

    def reset_statistics(self):
        """Reset planning statistics."""
        self.stats = self._empty_stats()
