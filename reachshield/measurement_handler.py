"""Kalman filtering of human joint measurements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from reachshield.geometry import Point
from reachshield.kalman_filter import KalmanFilter

_STATE_DIM = 6
_MEAS_DIM = 3


@dataclass
class Observation:
    """Filtered joint positions and velocities with their variances at one time."""

    time: float = 0.0
    position: list[Point] = field(default_factory=list)
    velocity: list[Point] = field(default_factory=list)
    pos_variance: list[float] = field(default_factory=list)
    vel_variance: list[float] = field(default_factory=list)


def _measurement_matrix() -> np.ndarray:
    """H selecting the x, y and z positions from the (x, vx, y, vy, z, vz) state."""
    h = np.zeros((_MEAS_DIM, _STATE_DIM))
    h[0, 0] = 1.0
    h[1, 2] = 1.0
    h[2, 4] = 1.0
    return h


def _transition_matrix(dt: float) -> np.ndarray:
    """Constant-velocity transition for one axis, repeated for x, y and z."""
    block = np.array([[1.0, dt], [0.0, 1.0]])
    return np.kron(np.eye(3), block)


class MeasurementHandler:
    """Runs one constant-velocity Kalman filter per measured human joint."""

    def __init__(
        self,
        n_joints_meas: int = 0,
        s_w: float = 2e2,
        s_v: float = 1e-6,
        initial_pos_var: float = 0.003,
        initial_vel_var: float = 0.5,
    ) -> None:
        self._n_joints_meas = n_joints_meas
        self._s_w = s_w
        self._s_v = s_v
        self._initial_pos_var = initial_pos_var
        self._initial_vel_var = initial_vel_var
        self._last_meas_timestep = -1.0
        self._kalman_filters = [
            KalmanFilter(_STATE_DIM, _MEAS_DIM) for _ in range(n_joints_meas)
        ]
        self._h = _measurement_matrix()
        self._c_v = self._build_c_v()

    def _build_c_v(self) -> np.ndarray:
        return self._s_v * np.eye(_MEAS_DIM)

    def _build_c_w(self, dt: float) -> np.ndarray:
        block = self._s_w * np.array(
            [[dt**3 / 3.0, dt**2 / 2.0], [dt**2 / 2.0, dt]]
        )
        return np.kron(np.eye(3), block)

    def _check_size(self, measurements: Sequence[Point], where: str) -> None:
        if len(measurements) != self._n_joints_meas:
            raise ValueError(
                f"MeasurementHandler.{where}: measurements must have "
                f"{self._n_joints_meas} entries, got {len(measurements)}"
            )

    def _initial_measurement(self, measurements: Sequence[Point]) -> None:
        self._check_size(measurements, "initial_measurement")
        covariance = np.diag(
            [
                self._initial_pos_var,
                self._initial_vel_var,
                self._initial_pos_var,
                self._initial_vel_var,
                self._initial_pos_var,
                self._initial_vel_var,
            ]
        )
        for kalman_filter, point in zip(self._kalman_filters, measurements):
            state = np.array([point.x, 0.0, point.y, 0.0, point.z, 0.0])
            kalman_filter.reset(state, covariance)

    def filter_measurements(self, measurements: Sequence[Point], time: float) -> Observation:
        """Feed one set of joint measurements taken at ``time`` and return the estimate."""
        measurements = list(measurements)
        self._check_size(measurements, "filter_measurements")
        if time < 0.0:
            raise ValueError(
                "MeasurementHandler.filter_measurements: time must be greater than or equal to 0.0"
            )
        if self._last_meas_timestep == -1:
            self._initial_measurement(measurements)
            self._last_meas_timestep = time
            n = self._n_joints_meas
            return Observation(
                time=time,
                position=[Point(p.x, p.y, p.z) for p in measurements],
                velocity=[Point(0.0, 0.0, 0.0) for _ in range(n)],
                pos_variance=[self._initial_pos_var] * n,
                vel_variance=[self._initial_vel_var] * n,
            )

        dt = time - self._last_meas_timestep
        a = _transition_matrix(dt)
        c_w = self._build_c_w(dt)
        observation = Observation(time=time)
        for kalman_filter, point in zip(self._kalman_filters, measurements):
            kalman_filter.predict(a, c_w)
            kalman_filter.update(np.array([point.x, point.y, point.z]), self._c_v, self._h)
            state = kalman_filter.state
            cov = kalman_filter.covariance
            observation.position.append(Point(state[0], state[2], state[4]))
            observation.velocity.append(Point(state[1], state[3], state[5]))
            observation.pos_variance.append((cov[0, 0] + cov[2, 2] + cov[4, 4]) / 3.0)
            observation.vel_variance.append((cov[1, 1] + cov[3, 3] + cov[5, 5]) / 3.0)
        return observation

    @property
    def n_joints_meas(self) -> int:
        """Number of measured joints."""
        return self._n_joints_meas

    @property
    def last_meas_timestep(self) -> float:
        """Time of the initial measurement, or -1 before any measurement."""
        return self._last_meas_timestep

    @property
    def s_v(self) -> float:
        """Power spectral density of the measurement noise."""
        return self._s_v

    @s_v.setter
    def s_v(self, value: float) -> None:
        self._s_v = value
        self._c_v = self._build_c_v()

    @property
    def s_w(self) -> float:
        """Power spectral density of the system noise."""
        return self._s_w

    @s_w.setter
    def s_w(self, value: float) -> None:
        self._s_w = value