"""Robot joint-space motion state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence


@dataclass
class Motion:
    """Joint positions and their derivatives at one instant of a trajectory.

    Derivatives that are not given default to zero vectors of the same
    length as ``q``.
    """

    time: float = 0.0
    q: Sequence[float] = field(default_factory=list)
    dq: Optional[Sequence[float]] = None
    ddq: Optional[Sequence[float]] = None
    dddq: Optional[Sequence[float]] = None
    s: float = 0.0
    maximum_cartesian_velocity: float = 0.0
    maximum_cartesian_velocities: list = field(default_factory=list)

    def __post_init__(self) -> None:
        self.q = [float(v) for v in self.q]
        zeros = [0.0] * len(self.q)
        self.dq = list(zeros) if self.dq is None else [float(v) for v in self.dq]
        self.ddq = list(zeros) if self.ddq is None else [float(v) for v in self.ddq]
        self.dddq = list(zeros) if self.dddq is None else [float(v) for v in self.dddq]
        self.maximum_cartesian_velocities = [float(v) for v in self.maximum_cartesian_velocities]

    @classmethod
    def zeros(cls, nb_modules: int) -> Motion:
        """A motion at time zero with all joints at rest at zero."""
        return cls(time=0.0, q=[0.0] * nb_modules, s=0.0)

    @property
    def nb_modules(self) -> int:
        """Number of joints described by this motion."""
        return len(self.q)