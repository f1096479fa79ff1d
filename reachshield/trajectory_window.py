"""Sliding-window statistics over trajectories."""

from __future__ import annotations

from collections import deque
from itertools import pairwise
from typing import Iterator, Sequence

import numpy as np


def _sliding_max(values: Sequence[float], k: int) -> Iterator[float]:
    """Yield max(values[m:m + k]) for every start index m, windows clipped at the end."""
    window: deque[int] = deque()
    n = len(values)
    for i, value in enumerate(values):
        while window and value >= values[window[-1]]:
            window.pop()
        window.append(i)
        start = i - k + 1
        if start >= 0:
            while window[0] < start:
                window.popleft()
            yield values[window[0]]
    for start in range(max(n - k + 1, 0), n):
        while window[0] < start:
            window.popleft()
        yield values[window[0]]


def max_acc_jerk_window(motions, k: int) -> tuple[list[list[float]], list[list[float]]]:
    """Per time step and joint, the maximum acceleration and jerk over the next k steps.

    Entry m covers motions m .. m + k - 1, cut off at the end of the trajectory.
    k is limited to the trajectory length. Returns (accelerations, jerks).
    """
    motions = list(motions)
    if not motions:
        raise ValueError("trajectory must contain at least one motion")
    if k < 1:
        raise ValueError(f"window size must be at least 1, got {k}")
    k = min(k, len(motions))

    def windows(columns) -> list[list[float]]:
        per_joint = [list(_sliding_max(column, k)) for column in columns]
        if not per_joint:
            return [[] for _ in motions]
        return [list(row) for row in zip(*per_joint)]

    acc = windows(zip(*(m.ddq for m in motions)))
    jerk = windows(zip(*(m.dddq for m in motions)))
    return acc, jerk


def _rate(current, previous, dt: float) -> float:
    return abs(float(np.linalg.norm(current)) - float(np.linalg.norm(previous))) / dt


def alpha_beta(times, capsule_velocities) -> tuple[list[float], list[float]]:
    """Maximum rate of change of linear (alpha) and angular (beta) capsule speeds.

    capsule_velocities[i][j] holds the velocity of capsule j at times[i], with
    attributes v1 and v2, each having linear part v and angular part w.
    """
    times = list(times)
    rows = [list(row) for row in capsule_velocities]
    if len(times) != len(rows):
        raise ValueError("times and capsule_velocities must have the same length")
    nb_modules = len(rows[0]) if rows else 0
    alpha = [0.0] * nb_modules
    beta = [0.0] * nb_modules
    for (t_prev, prev_row), (t, row) in pairwise(zip(times, rows)):
        dt = t - t_prev
        for j, (prev, cur) in enumerate(zip(prev_row, row)):
            alpha_1 = _rate(cur.v1.v, prev.v1.v, dt)
            alpha_2 = _rate(cur.v2.v, prev.v2.v, dt)
            beta_1 = _rate(cur.v1.w, prev.v1.w, dt)
            beta_2 = _rate(cur.v2.w, prev.v2.w, dt)
            alpha[j] = max(alpha[j], alpha_1, alpha_2)
            beta[j] = max(beta[j], beta_1, beta_2)
    return alpha, beta