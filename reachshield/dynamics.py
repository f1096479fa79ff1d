"""Rigid-body dynamics quantities of a serial robot: inertia, mass and energy."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def _as_jacobian(jacobian) -> np.ndarray:
    jacobian = np.asarray(jacobian, dtype=float)
    if jacobian.ndim != 2 or jacobian.shape[0] != 6:
        raise ValueError(f"jacobian must have shape (6, n), got {jacobian.shape}")
    return jacobian


def local_inertia_matrix(jacobian, mass: float, rotation, inertia) -> np.ndarray:
    """Contribution of one link to the joint-space inertia matrix.

    B = m * J_P^T J_P + J_O^T R I R^T J_O, where J_P and J_O are the
    translational and rotational parts of the link's centre-of-mass Jacobian,
    R the link orientation and I its inertia tensor in link coordinates.
    """
    jacobian = _as_jacobian(jacobian)
    rotation = np.asarray(rotation, dtype=float)
    inertia = np.asarray(inertia, dtype=float)
    j_p = jacobian[:3, :]
    j_o = jacobian[3:, :]
    return mass * j_p.T @ j_p + j_o.T @ rotation @ inertia @ rotation.T @ j_o


def robot_inertia_matrix(
    link_jacobians: Sequence, masses: Sequence[float], rotations: Sequence, inertias: Sequence
) -> np.ndarray:
    """Joint-space inertia matrix of the whole robot, the sum over all links."""
    link_jacobians = list(link_jacobians)
    masses = list(masses)
    rotations = list(rotations)
    inertias = list(inertias)
    count = len(link_jacobians)
    if not count:
        raise ValueError("at least one link is required")
    if not (len(masses) == len(rotations) == len(inertias) == count):
        raise ValueError(
            "link_jacobians, masses, rotations and inertias must have the same length"
        )
    return sum(
        local_inertia_matrix(j, m, r, i)
        for j, m, r, i in zip(link_jacobians, masses, rotations, inertias)
    )


def link_inertia_matrix(i: int, robot_inertia) -> np.ndarray:
    """Inertia matrix seen by link i: B_i = E_i B E_i.

    E_i is diagonal with ones for joints 0..i and zeros elsewhere, so only the
    upper-left (i + 1) x (i + 1) block of the robot inertia matrix is kept.
    """
    robot_inertia = np.asarray(robot_inertia, dtype=float)
    if robot_inertia.ndim != 2 or robot_inertia.shape[0] != robot_inertia.shape[1]:
        raise ValueError("Robot inertia matrix has wrong dimensions.")
    n = robot_inertia.shape[0]
    if not 0 <= i < n:
        raise ValueError(f"link index {i} out of range for {n} joints")
    result = np.zeros_like(robot_inertia)
    result[: i + 1, : i + 1] = robot_inertia[: i + 1, : i + 1]
    return result


def inv_mass_matrix(link_jacobian, inertia_matrix) -> np.ndarray:
    """Inverse translational mass matrix J_P B^-1 J_P^T of a link."""
    jacobian = _as_jacobian(link_jacobian)
    inertia_matrix = np.asarray(inertia_matrix, dtype=float)
    translational = jacobian[:3, :]
    return translational @ np.linalg.inv(inertia_matrix) @ translational.T


def reflected_mass(inv_mass, normal) -> float:
    """Mass reflected along a contact normal: 1 / (n^T M^-1 n)."""
    inv_mass = np.asarray(inv_mass, dtype=float)
    normal = np.asarray(normal, dtype=float).reshape(-1)
    return float(1.0 / (normal @ inv_mass @ normal))


def max_reflected_mass(inv_mass) -> float:
    """Largest reflected mass over all directions: one over the smallest |eigenvalue|."""
    eigenvalues = np.linalg.eigvals(np.asarray(inv_mass, dtype=float)).real
    return float(1.0 / np.min(np.abs(eigenvalues)))


def kinetic_energy(dq, inertia_matrix) -> float:
    """Kinetic energy 0.5 * dq^T B dq."""
    dq = np.asarray(dq, dtype=float).reshape(-1)
    inertia_matrix = np.asarray(inertia_matrix, dtype=float)
    return float(0.5 * dq @ inertia_matrix @ dq)