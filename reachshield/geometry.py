"""Points, capsules and homogeneous transformation helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass
class Point:
    """A point (or vector) in three-dimensional space."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, factor: float) -> Point:
        return Point(self.x * factor, self.y * factor, self.z * factor)

    __rmul__ = __mul__

    def __neg__(self) -> Point:
        return Point(-self.x, -self.y, -self.z)

    def norm(self) -> float:
        """Euclidean length of the point seen as a vector."""
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def as_array(self) -> np.ndarray:
        """The coordinates as a numpy array of shape (3,)."""
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass
class Capsule:
    """A line segment from p1 to p2 swept by a sphere of radius r."""

    p1: Point
    p2: Point
    r: float


def point_to_vector(point: Point) -> np.ndarray:
    """Homogeneous 4-vector (x, y, z, 1) of a point."""
    return np.array([point.x, point.y, point.z, 1.0], dtype=float)


def point_to_3d_vector(point: Point) -> np.ndarray:
    """Plain 3-vector (x, y, z) of a point."""
    return point.as_array()


def vector_to_point(vec) -> Point:
    """Point from the first three entries of a vector."""
    return Point(float(vec[0]), float(vec[1]), float(vec[2]))


def cross_product_matrix(vec) -> np.ndarray:
    """Skew-symmetric matrix S(v) with S(v) @ u == cross(v, u)."""
    x, y, z = (float(c) for c in vec[:3])
    return np.array(
        [
            [0.0, -z, y],
            [z, 0.0, -x],
            [-y, x, 0.0],
        ]
    )


def xyzrpy_to_transformation_matrix(
    x: float, y: float, z: float, roll: float, pitch: float, yaw: float
) -> np.ndarray:
    """Homogeneous transform from a translation and roll-pitch-yaw angles."""
    cg, sg = math.cos(roll), math.sin(roll)
    cb, sb = math.cos(pitch), math.sin(pitch)
    ca, sa = math.cos(yaw), math.sin(yaw)
    return np.array(
        [
            [ca * cb, ca * sb * sg - sa * cg, ca * sb * cg + sa * sg, x],
            [sa * cb, sa * sb * sg + ca * cg, sa * sb * cg - ca * sg, y],
            [-sb, cb * sg, cb * cg, z],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )


def rotation_z(q: float) -> np.ndarray:
    """Homogeneous rotation about the z-axis by angle q."""
    c, s = math.cos(q), math.sin(q)
    return np.array(
        [
            [c, -s, 0.0, 0.0],
            [s, c, 0.0, 0.0],
            [0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )