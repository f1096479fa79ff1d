"""A linear Kalman filter."""

from __future__ import annotations

import numpy as np


class KalmanFilterNotInitializedError(RuntimeError):
    """Raised when the filter is used before reset() was called."""


class KalmanFilter:
    """Kalman filter with a state of size dim_x and measurements of size dim_y."""

    def __init__(self, dim_x: int, dim_y: int) -> None:
        self.dim_x = dim_x
        self.dim_y = dim_y
        self._x = np.zeros(dim_x)
        self._c = np.zeros((dim_x, dim_x))
        self._identity = np.eye(dim_x)
        self._initialized = False

    def reset(self, state, covariance) -> None:
        """Set the initial state and covariance."""
        state = np.asarray(state, dtype=float).reshape(-1)
        covariance = np.asarray(covariance, dtype=float)
        if state.shape != (self.dim_x,):
            raise ValueError(f"state must have {self.dim_x} entries, got {state.shape}")
        if covariance.shape != (self.dim_x, self.dim_x):
            raise ValueError(
                f"covariance must be {self.dim_x}x{self.dim_x}, got {covariance.shape}"
            )
        self._x = state.copy()
        self._c = covariance.copy()
        self._initialized = True

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise KalmanFilterNotInitializedError(
                "Kalman Filter not initialized. Call reset() first."
            )

    def predict(self, a, c_w) -> None:
        """Propagate state and covariance with transition a and system noise c_w."""
        self._require_initialized()
        a = np.asarray(a, dtype=float)
        self._x = a @ self._x
        self._c = a @ self._c @ a.T + np.asarray(c_w, dtype=float)

    def update(self, y, c_v, h) -> None:
        """Correct the state with measurement y, noise c_v and measurement matrix h."""
        self._require_initialized()
        y = np.asarray(y, dtype=float).reshape(-1)
        h = np.asarray(h, dtype=float)
        innovation_cov = h @ self._c @ h.T + np.asarray(c_v, dtype=float)
        gain = self._c @ h.T @ np.linalg.inv(innovation_cov)
        self._x = self._x + gain @ (y - h @ self._x)
        self._c = (self._identity - gain @ h) @ self._c

    @property
    def state(self) -> np.ndarray:
        """Current state estimate."""
        return self._x.copy()

    @property
    def covariance(self) -> np.ndarray:
        """Current state covariance."""
        return self._c.copy()