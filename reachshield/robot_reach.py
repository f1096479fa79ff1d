"""Reachable sets, Cartesian velocities and dynamics of a serial robot made of capsules."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from itertools import accumulate, pairwise
from typing import Mapping, Optional, Sequence

import numpy as np

from reachshield import dynamics
from reachshield.geometry import (
    Capsule,
    Point,
    cross_product_matrix,
    point_to_3d_vector,
    point_to_vector,
    rotation_z,
    vector_to_point,
    xyzrpy_to_transformation_matrix,
)
from reachshield.motion import Motion


class VelocityMethod(Enum):
    """How the maximum Cartesian velocity of a capsule is computed."""

    APPROXIMATE = "approximate"
    EXACT = "exact"


@dataclass
class SE3Vel:
    """Linear velocity v and angular velocity w of a point."""

    v: np.ndarray
    w: np.ndarray


@dataclass
class CapsuleVelocity:
    """SE3 velocities of the two points that define a capsule."""

    v1: SE3Vel
    v2: SE3Vel


def _flat(values, expected: int, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=float).reshape(-1)
    if array.size != expected:
        raise ValueError(f"{name} must have {expected} entries, got {array.size}")
    return array


class RobotReach:
    """Kinematic and dynamic model of a serial robot whose links are enclosed by capsules.

    The per-configuration state (capsules for velocity, z-axes and link
    transforms) is filled by calculate_all_transformation_matrices_and_capsules,
    which must be called before any velocity, Jacobian or inertia query.
    """

    def __init__(
        self,
        transformation_matrices: Sequence[float],
        nb_joints: int,
        geom_par: Sequence[float],
        link_masses: Sequence[float],
        link_inertias: Sequence[float],
        link_center_of_masses: Sequence[float],
        x: float = 0.0,
        y: float = 0.0,
        z: float = 0.0,
        roll: float = 0.0,
        pitch: float = 0.0,
        yaw: float = 0.0,
        secure_radius: float = 0.0,
        unclampable_enclosures_map: Optional[Mapping[int, Sequence[int]]] = None,
    ) -> None:
        self._nb_joints = nb_joints
        self._secure_radius = secure_radius
        self.velocity_method = VelocityMethod.APPROXIMATE
        self._unclampable_enclosures_map = {
            int(key): set(value) for key, value in (unclampable_enclosures_map or {}).items()
        }

        joint_matrices = _flat(transformation_matrices, 16 * nb_joints, "transformation_matrices")
        geometry = _flat(geom_par, 7 * nb_joints, "geom_par").reshape(nb_joints, 7)
        inertias = _flat(link_inertias, 6 * nb_joints, "link_inertias").reshape(nb_joints, 6)
        coms = _flat(link_center_of_masses, 6 * nb_joints, "link_center_of_masses").reshape(
            nb_joints, 6
        )
        self._link_masses = [float(m) for m in _flat(link_masses, nb_joints, "link_masses")]

        self._transformation_matrices = [xyzrpy_to_transformation_matrix(x, y, z, roll, pitch, yaw)]
        self._transformation_matrices.extend(joint_matrices.reshape(nb_joints, 4, 4).copy())
        self._link_lengths = [
            float(np.linalg.norm(m[:3, 3])) for m in self._transformation_matrices[1:]
        ]
        self._robot_capsules = [
            Capsule(Point(*row[0:3]), Point(*row[3:6]), float(row[6])) for row in geometry
        ]
        self._link_inertias = [
            np.array([[ixx, ixy, ixz], [ixy, iyy, iyz], [ixz, iyz, izz]])
            for ixx, ixy, ixz, iyy, iyz, izz in inertias
        ]
        self._link_center_of_masses = [xyzrpy_to_transformation_matrix(*row) for row in coms]

        self._robot_capsules_for_velocity: list[Capsule] = []
        self._z_vectors: list[np.ndarray] = []
        self._current_transformation_matrices: list[np.ndarray] = []

    def reset(self, x: float, y: float, z: float, roll: float, pitch: float, yaw: float) -> None:
        """Move the robot base to a new pose."""
        self._transformation_matrices[0] = xyzrpy_to_transformation_matrix(x, y, z, roll, pitch, yaw)

    def forward_kinematic(self, q: float, n_joint: int, t) -> np.ndarray:
        """Transform t into the frame of joint n_joint rotated by angle q."""
        t = np.asarray(t, dtype=float)
        return t @ self._transformation_matrices[n_joint + 1] @ rotation_z(q)

    def transform_capsule(self, n_joint: int, t) -> Capsule:
        """The capsule of link n_joint transformed by t."""
        t = np.asarray(t, dtype=float)
        capsule = self._robot_capsules[n_joint]
        return Capsule(
            vector_to_point(t @ point_to_vector(capsule.p1)),
            vector_to_point(t @ point_to_vector(capsule.p2)),
            capsule.r,
        )

    def reach(
        self, start_config: Motion, goal_config: Motion, s_diff: float, alpha_i: Sequence[float]
    ) -> list[Capsule]:
        """Capsules enclosing every link while moving from start_config to goal_config."""
        alpha_i = list(alpha_i)
        if len(alpha_i) != self._nb_joints:
            raise ValueError("alpha_i must have the same size as the number of joints.")
        t_before = self._transformation_matrices[0]
        t_after = self._transformation_matrices[0]
        capsules = []
        for i, (q1, q2, alpha, link) in enumerate(
            zip(start_config.q, goal_config.q, alpha_i, self._robot_capsules)
        ):
            t_before = self.forward_kinematic(q1, i, t_before)
            before = self.transform_capsule(i, t_before)
            t_after = self.forward_kinematic(q2, i, t_after)
            after = self.transform_capsule(i, t_after)
            center_1 = (before.p1 + after.p1) * 0.5
            center_2 = (before.p2 + after.p2) * 0.5
            expansion = alpha * s_diff * s_diff / 8.0
            r_1 = (before.p1 - after.p1).norm() / 2.0 + expansion + link.r
            r_2 = (before.p2 - after.p2).norm() / 2.0 + expansion + link.r
            capsules.append(Capsule(center_1, center_2, max(r_1, r_2) + self._secure_radius))
        return capsules

    def reach_time_intervals(
        self, motions: Sequence[Motion], alpha_i: Sequence[float]
    ) -> list[list[Capsule]]:
        """Reachable capsules for each interval between consecutive motions."""
        return [
            self.reach(start, goal, goal.s - start.s, alpha_i)
            for start, goal in pairwise(motions)
        ]

    def max_velocity_of_motion(self, motion: Motion) -> float:
        """Largest Cartesian capsule velocity of the robot in the given motion state."""
        self.calculate_all_transformation_matrices_and_capsules(motion.q)
        return max(
            (
                self.calculate_max_velocity_of_capsule(i, motion.dq)
                for i in range(self._nb_joints)
            ),
            default=0.0,
        ) if self._nb_joints else 0.0

    def calculate_max_vel_errors(
        self,
        dt: float,
        dq_max: Sequence[float],
        ddq_max: Sequence[float],
        dddq_max: Sequence[float],
    ) -> list[float]:
        """Upper bound of the Cartesian velocity error of every link over a step dt."""
        return [
            self.calculate_max_vel_error(i, dt, dq_max, ddq_max, dddq_max)
            for i in range(self._nb_joints)
        ]

    def calculate_max_vel_error(
        self,
        link_index: int,
        dt: float,
        dq_max: Sequence[float],
        ddq_max: Sequence[float],
        dddq_max: Sequence[float],
    ) -> float:
        """Upper bound of the Cartesian velocity error of one link over a step dt."""
        n = link_index + 1
        dq_sums = list(accumulate(dq_max[:n]))
        ddq_sums = list(accumulate(ddq_max[:n]))
        total = 0.0
        for k in range(n):
            for i in range(k, n):
                total += self._link_lengths[i] * (
                    dddq_max[k]
                    + ddq_max[k] * dq_sums[i]
                    + dq_max[k] * (ddq_sums[i] + dq_sums[i] * dq_sums[i])
                )
        return total * dt * dt / 8.0

    def calculate_all_transformation_matrices_and_capsules(self, q: Sequence[float]) -> None:
        """Compute link transforms, capsules and joint z-axes for configuration q."""
        q = list(q)
        if len(q) < self._nb_joints:
            raise ValueError(f"q must have at least {self._nb_joints} entries, got {len(q)}")
        t = self._transformation_matrices[0]
        self._z_vectors = [t[:3, 2].copy()]
        self._robot_capsules_for_velocity = []
        self._current_transformation_matrices = []
        for i, angle in enumerate(q[: self._nb_joints]):
            t = self.forward_kinematic(angle, i, t)
            self._robot_capsules_for_velocity.append(self.transform_capsule(i, t))
            self._z_vectors.append(t[:3, 2].copy())
            self._current_transformation_matrices.append(t.copy())

    def calculate_all_capsule_velocities(self, q_dot: Sequence[float]) -> list[CapsuleVelocity]:
        """SE3 velocities of all capsules for joint velocities q_dot."""
        q_dot = list(q_dot)
        if len(q_dot) != self._nb_joints:
            raise ValueError("q_dot must have the same size as the number of joints.")
        return [self.calculate_velocity_of_capsule(i, q_dot) for i in range(self._nb_joints)]

    def calculate_all_com_jacobians(self) -> list[np.ndarray]:
        """Jacobians (6 x nb_joints) of the centre of mass of every link."""
        jacobians = []
        for i, (transform, com) in enumerate(
            zip(self._current_transformation_matrices, self._link_center_of_masses)
        ):
            center = vector_to_point((transform @ com)[:, 3])
            jacobians.append(self.calculate_jacobian(i, center))
        return jacobians

    def calculate_all_inertia_matrices(self) -> list[np.ndarray]:
        """Joint-space inertia matrix seen by every link."""
        robot_inertia = self.calculate_inertia_matrix(self.calculate_all_com_jacobians())
        return [
            self.calculate_link_inertia_matrix(i, robot_inertia) for i in range(self._nb_joints)
        ]

    def calculate_inv_mass_matrix_eef(self) -> np.ndarray:
        """Inverse translational mass matrix of the end effector."""
        jacobians = self.calculate_all_com_jacobians()
        robot_inertia = self.calculate_inertia_matrix(jacobians)
        return dynamics.inv_mass_matrix(jacobians[-1], robot_inertia)

    def calculate_all_inv_mass_matrices(self) -> list[np.ndarray]:
        """Inverse translational mass matrix of every link.

        Links whose inertia matrix is singular get a matrix of NaNs.
        """
        jacobians = self.calculate_all_com_jacobians()
        robot_inertia = self.calculate_inertia_matrix(jacobians)
        result = []
        for i, jacobian in enumerate(jacobians):
            link_inertia = self.calculate_link_inertia_matrix(i, robot_inertia)
            try:
                result.append(dynamics.inv_mass_matrix(jacobian, link_inertia))
            except np.linalg.LinAlgError:
                result.append(np.full((3, 3), np.nan))
        return result

    def calculate_eef_kinetic_energy(self, dq: Sequence[float]) -> float:
        """Kinetic energy of the robot for joint velocities dq."""
        robot_inertia = self.calculate_inertia_matrix(self.calculate_all_com_jacobians())
        return dynamics.kinetic_energy(dq, robot_inertia)

    def calculate_reflected_mass(self, inv_mass_matrix, normal) -> float:
        """Mass reflected along the contact normal."""
        return dynamics.reflected_mass(inv_mass_matrix, normal)

    def calculate_all_max_reflected_masses(self) -> list[float]:
        """Largest reflected mass over all directions for every link (NaN if undefined)."""
        return [
            dynamics.max_reflected_mass(m) if np.all(np.isfinite(m)) else math.nan
            for m in self.calculate_all_inv_mass_matrices()
        ]

    def calculate_inertia_matrix(self, link_jacobians: Sequence) -> np.ndarray:
        """Joint-space inertia matrix of the whole robot."""
        return dynamics.robot_inertia_matrix(
            link_jacobians,
            self._link_masses,
            [t[:3, :3] for t in self._current_transformation_matrices],
            self._link_inertias,
        )

    def calculate_link_inertia_matrix(self, i: int, robot_inertia_matrix) -> np.ndarray:
        """Inertia matrix of link i: the upper-left (i + 1) block of the robot's."""
        robot_inertia_matrix = np.asarray(robot_inertia_matrix, dtype=float)
        if robot_inertia_matrix.shape != (self._nb_joints, self._nb_joints):
            raise ValueError("Robot inertia matrix has wrong dimensions.")
        return dynamics.link_inertia_matrix(i, robot_inertia_matrix)

    def calculate_velocity_of_capsule(self, capsule: int, q_dot: Sequence[float]) -> CapsuleVelocity:
        """SE3 velocity of both end points of a capsule."""
        jacobian = self.calculate_jacobian(capsule, self._robot_capsules_for_velocity[capsule].p1)
        return self.calculate_velocity_of_capsule_with_jacobian(capsule, q_dot, jacobian)

    def calculate_velocity_of_capsule_with_jacobian(
        self, capsule: int, q_dot: Sequence[float], jacobian
    ) -> CapsuleVelocity:
        """SE3 velocity of both end points of a capsule, given the Jacobian at its first point."""
        twist = np.asarray(jacobian, dtype=float) @ np.asarray(q_dot, dtype=float)
        vel1 = SE3Vel(twist[:3].copy(), twist[3:].copy())
        segment = self._robot_capsules_for_velocity[capsule]
        offset = point_to_3d_vector(segment.p2 - segment.p1)
        vel2 = SE3Vel(vel1.v + np.cross(vel1.w, offset), vel1.w.copy())
        return CapsuleVelocity(vel1, vel2)

    def calculate_max_velocity_of_capsule(self, capsule: int, q_dot: Sequence[float]) -> float:
        """Maximum Cartesian velocity of a capsule's surface."""
        velocity = self.calculate_velocity_of_capsule(capsule, q_dot)
        if self.velocity_method is VelocityMethod.EXACT:
            return self.exact_vel_of_capsule(capsule, velocity.v2.v, velocity.v2.w)
        return self.approximate_vel_of_capsule(capsule, velocity.v2.v, velocity.v2.w)

    def calculate_jacobian(self, joint: int, point: Point) -> np.ndarray:
        """Geometric Jacobian (6 x nb_joints) of a point attached to the given joint."""
        jacobian = np.zeros((6, self._nb_joints))
        p_e = point_to_3d_vector(point)
        for i in range(joint + 1):
            z_i = self._z_vectors[i + 1]
            p_i = point_to_3d_vector(self._robot_capsules_for_velocity[i].p1)
            jacobian[:3, i] = np.cross(z_i, p_e - p_i)
            jacobian[3:, i] = z_i
        return jacobian

    def approximate_vel_of_capsule(self, capsule: int, v, omega) -> float:
        """Upper bound of the surface velocity of a capsule from the velocity at its second point."""
        v = np.asarray(v, dtype=float)
        omega = np.asarray(omega, dtype=float)
        segment = self._robot_capsules_for_velocity[capsule]
        link = point_to_3d_vector(segment.p1) - point_to_3d_vector(segment.p2)
        omega_norm = float(np.linalg.norm(omega))
        at_second = float(np.linalg.norm(v)) + omega_norm * segment.r
        at_first = float(np.linalg.norm(v + np.cross(omega, link))) + omega_norm * segment.r
        return max(at_first, at_second)

    def exact_vel_of_capsule(self, capsule: int, v, omega) -> float:
        """Maximum surface velocity of a capsule using its screw axis."""
        v = np.asarray(v, dtype=float)
        omega = np.asarray(omega, dtype=float)
        omega_norm = float(np.linalg.norm(omega))
        n = omega / omega_norm if omega_norm > 0.0 else np.zeros(3)
        scalar_v = float(v @ n)
        segment = self._robot_capsules_for_velocity[capsule]
        p1 = point_to_3d_vector(segment.p1)
        p2 = point_to_3d_vector(segment.p2)
        b = v - scalar_v * n
        x = np.linalg.lstsq(cross_product_matrix(omega), b, rcond=None)[0]
        origin = p2 - x
        d_perp = (
            max(
                float(np.linalg.norm(np.cross(n, p1 - origin))),
                float(np.linalg.norm(np.cross(n, p2 - origin))),
            )
            + segment.r
        )
        rotational = omega_norm * d_perp
        return math.sqrt(scalar_v * scalar_v + rotational * rotational)

    @property
    def nb_joints(self) -> int:
        """Number of joints."""
        return self._nb_joints

    @property
    def unclampable_enclosures(self) -> dict[int, set[int]]:
        """Capsule pairs between which clamping is not possible."""
        return {key: set(value) for key, value in self._unclampable_enclosures_map.items()}

    @property
    def robot_capsules_for_velocity(self) -> list[Capsule]:
        """Capsules of the configuration last passed to the transformation calculation."""
        return list(self._robot_capsules_for_velocity)