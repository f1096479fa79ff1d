"""Robot reachable sets, kinematics, dynamics and Kalman filtering of human joint measurements."""

__version__ = "0.1.0"

__all__ = [
    "dynamics",
    "geometry",
    "kalman_filter",
    "measurement_handler",
    "motion",
    "robot_reach",
    "trajectory_window",
]