# reachshield

Building blocks for checking robot motion near people:

- **Robot reachability** (`reachshield.robot_reach`): capsule enclosures of a serial robot moving between two joint configurations. The robot is described by fixed joint-to-joint transforms, one capsule per link, and link masses, inertias and centres of mass.
- **Kinematics and dynamics** (`reachshield.robot_reach`, `reachshield.dynamics`): forward kinematics, geometric Jacobians, Cartesian capsule velocities, joint-space inertia matrices, inverse translational mass matrices, reflected masses and kinetic energy.
- **Motion samples** (`reachshield.motion`): joint positions, velocities, accelerations and jerks at one instant, together with the path parameter `s`.
- **Human measurement filtering** (`reachshield.measurement_handler`, `reachshield.kalman_filter`): one constant-velocity Kalman filter per measured human joint.
- **Trajectory windows** (`reachshield.trajectory_window`): sliding-window maxima of acceleration and jerk, and bounds on how fast capsule speeds change.

## Installation

```
pip install .
```

Python 3.10 or later is required. The only dependency is `numpy`.

## Modules

| Module | Contents |
| --- | --- |
| `reachshield.geometry` | `Point` (with `norm`, `as_array`, `+`, `-`, scalar `*`), `Capsule`, `point_to_vector`, `point_to_3d_vector`, `vector_to_point`, `cross_product_matrix`, `xyzrpy_to_transformation_matrix`, `rotation_z` |
| `reachshield.motion` | `Motion` (missing derivatives default to zeros; `Motion.zeros(n)`, `nb_modules`) |
| `reachshield.kalman_filter` | `KalmanFilter`, `KalmanFilterNotInitializedError` |
| `reachshield.measurement_handler` | `MeasurementHandler`, `Observation` |
| `reachshield.trajectory_window` | `max_acc_jerk_window`, `alpha_beta` |
| `reachshield.dynamics` | `local_inertia_matrix`, `robot_inertia_matrix`, `link_inertia_matrix`, `inv_mass_matrix`, `reflected_mass`, `max_reflected_mass`, `kinetic_energy` |
| `reachshield.robot_reach` | `RobotReach`, `VelocityMethod`, `SE3Vel`, `CapsuleVelocity` |

## Reachable capsules of a single-joint robot

The fixed transform of the joint rotates the frame about x and lifts it by 0.1. Its capsule runs from the joint to 0.1 along -y with radius 0.01, and a secure radius of 0.03 is added to every enclosure.

```python
import math
from reachshield.motion import Motion
from reachshield.robot_reach import RobotReach

transform = [
    1, 0, 0, 0,
    0, 0, -1, 0,
    0, 1, 0, 0.1,
    0, 0, 0, 1,
]
geometry = [0.0, 0.0, 0.0, 0.0, -0.1, 0.0, 0.01]  # p1, p2, radius
robot = RobotReach(
    transform, 1, geometry,
    link_masses=[1.0],
    link_inertias=[0.01, 0.0, 0.0, 0.01, 0.0, 0.01],  # ixx, ixy, ixz, iyy, iyz, izz
    link_center_of_masses=[0.0] * 6,                  # x, y, z, roll, pitch, yaw
    z=1.0,
    secure_radius=0.03,
)

start = Motion(0.0, [0.0], s=0.0)
goal = Motion(0.1, [math.pi / 8], s=0.1)
capsules = robot.reach(start, goal, s_diff=0.1, alpha_i=[1.0])
```

`reach` raises `ValueError` when `alpha_i` does not have one entry per joint. `reach_time_intervals(motions, alpha_i)` returns one list of capsules for each pair of consecutive motions, using the difference of their `s` values. `reset(x, y, z, roll, pitch, yaw)` moves the robot base.

## Capsule velocities and dynamics

Velocity, Jacobian and inertia queries use the configuration last set with `calculate_all_transformation_matrices_and_capsules`:

```python
robot.calculate_all_transformation_matrices_and_capsules([0.0])
velocity = robot.calculate_velocity_of_capsule(0, [1.0])
print(velocity.v2.v, velocity.v2.w)
print(robot.approximate_vel_of_capsule(0, velocity.v2.v, velocity.v2.w))
```

`max_velocity_of_motion(motion)` sets the configuration from `motion.q` itself and returns the largest capsule velocity for `motion.dq`. It uses the approximate bound unless `robot.velocity_method` is set to `VelocityMethod.EXACT`.

On the current configuration, `calculate_all_inertia_matrices`, `calculate_inv_mass_matrix_eef`, `calculate_all_inv_mass_matrices`, `calculate_all_max_reflected_masses` and `calculate_eef_kinetic_energy(dq)` compute the dynamic quantities. Links whose inertia matrix is singular get NaN entries. `calculate_reflected_mass(inv_mass_matrix, normal)` gives the mass reflected along a contact normal. `calculate_max_vel_errors(dt, dq_max, ddq_max, dddq_max)` bounds the Cartesian velocity error of every link over a step `dt`.

## Filtering human joint measurements

```python
from reachshield.geometry import Point
from reachshield.measurement_handler import MeasurementHandler

handler = MeasurementHandler(2, s_w=2.0e2, s_v=1.0e-6,
                             initial_pos_var=0.003, initial_vel_var=0.5)
first = handler.filter_measurements([Point(0, 0, 0), Point(1, 0, 0)], 0.0)
second = handler.filter_measurements([Point(0.01, 0, 0), Point(1.01, 0, 0)], 0.01)
print(second.position, second.velocity, second.pos_variance)
```

The first call only initialises the filters. It returns the measurements as positions, zero velocities and the initial variances. Each later call predicts and then corrects every joint's filter, with the prediction step measured from the time of that first measurement (`last_meas_timestep`).

`filter_measurements` raises `ValueError` in two cases:

- the number of points differs from `n_joints_meas`;
- the time is negative.

`KalmanFilter` raises `KalmanFilterNotInitializedError` if `predict` or `update` is called before `reset`.

## Trajectory windows

`max_acc_jerk_window(motions, k)` returns, for each step and joint, the maximum acceleration and jerk over that step and the following `k - 1` steps. Windows are cut off at the end of the trajectory, and `k` is limited to the trajectory length.

`alpha_beta(times, capsule_velocities)` returns, per capsule, the largest rate of change of the linear speed (alpha) and of the angular speed (beta).

## What this package does not do

The package provides no human reachability models and no safety-shield stepping loop. It also does not plan trajectories and does not load robot or sensor descriptions from configuration files. All robot parameters are passed to `RobotReach` as flat numeric lists. There is no command-line program.

## Running the tests

```
pip install .[test]
pytest
```