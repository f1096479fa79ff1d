import math

import numpy as np
import pytest

from reachshield.geometry import Capsule, Point
from reachshield.motion import Motion
from reachshield.robot_reach import RobotReach, VelocityMethod


def single_joint_robot(z=1.0):
    return RobotReach(
        [1, 0, 0, 0, 0, 0, -1, 0, 0, 1, 0, 0.1, 0, 0, 0, 1],
        1,
        [0.0, 0.0, 0.0, 0.0, -0.1, 0.0, 0.01],
        [1.0],
        [0.0] * 6,
        [0.0] * 6,
        z=z,
        secure_radius=0.03,
    )


def _identity_flat():
    return list(np.eye(4).reshape(-1))


def _translation_x_flat(a):
    m = np.eye(4)
    m[0, 3] = a
    return list(m.reshape(-1))


def siciliano_robot(z=0.0):
    return RobotReach(
        _identity_flat() + _translation_x_flat(1.0) + _translation_x_flat(1.0),
        3,
        [0, 0, 0, 1, 0, 0, 1.0] * 3,
        [1.0, 1.0, 1.0],
        [0.0] * 18,
        [0.5, 0, 0, 0, 0, 0] * 3,
        z=z,
    )


def siciliano_2_robot():
    return RobotReach(
        _identity_flat() + _translation_x_flat(1.0),
        2,
        [0, 0, 0, 1, 0, 0, 0.05, 0, 0, 0, 2, 0, 0, 0.05],
        [3.0, 2.0],
        [0, 0, 0, 0, 0, 0.03, 0, 0, 0, 0, 0, 0.02],
        [0.5, 0, 0, 0, 0, 0, 1.0, 0, 0, 0, 0, 0],
    )


def assert_capsule_close(result, expect, tol=1e-12):
    assert result.p1.x == pytest.approx(expect.p1.x, abs=tol)
    assert result.p1.y == pytest.approx(expect.p1.y, abs=tol)
    assert result.p1.z == pytest.approx(expect.p1.z, abs=tol)
    assert result.p2.x == pytest.approx(expect.p2.x, abs=tol)
    assert result.p2.y == pytest.approx(expect.p2.y, abs=tol)
    assert result.p2.z == pytest.approx(expect.p2.z, abs=tol)
    assert result.r == pytest.approx(expect.r, abs=tol)


def siciliano_jacobian(q):
    s = [q[0], q[0] + q[1], q[0] + q[1] + q[2]]
    cols = [
        [-(math.sin(s[0]) + math.sin(s[1]) + math.sin(s[2])),
         math.cos(s[0]) + math.cos(s[1]) + math.cos(s[2])],
        [-(math.sin(s[1]) + math.sin(s[2])), math.cos(s[1]) + math.cos(s[2])],
        [-math.sin(s[2]), math.cos(s[2])],
    ]
    jac = np.zeros((6, 3))
    for i, (a, b) in enumerate(cols):
        jac[:, i] = [a, b, 0, 0, 0, 1]
    return jac


def test_reset_moves_base():
    robot = single_joint_robot()
    robot.reset(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    robot.calculate_all_transformation_matrices_and_capsules([0.0])
    assert robot.robot_capsules_for_velocity[0].p1.z == pytest.approx(0.1)


def test_forward_kinematic_zero():
    robot = single_joint_robot()
    result = robot.forward_kinematic(0.0, 0, np.eye(4))
    expect = np.array([[1, 0, 0, 0], [0, 0, -1, 0], [0, 1, 0, 0.1], [0, 0, 0, 1]])
    np.testing.assert_allclose(result, expect, atol=1e-12)


def test_forward_kinematic_half_pi():
    robot = single_joint_robot()
    result = robot.forward_kinematic(math.pi / 2, 0, np.eye(4))
    expect = np.array([[0, -1, 0, 0], [0, 0, -1, 0], [1, 0, 0, 0.1], [0, 0, 0, 1]])
    np.testing.assert_allclose(result, expect, atol=1e-12)


def test_transform_capsule_identity():
    robot = single_joint_robot()
    result = robot.transform_capsule(0, np.eye(4))
    assert_capsule_close(result, Capsule(Point(0, 0, 0), Point(0, -0.1, 0), 0.01))


def test_transform_capsule_rotated():
    robot = single_joint_robot()
    t = np.eye(4)
    t[1, 1] = 0.0
    t[2, 2] = 0.0
    t[1, 2] = -1.0
    t[2, 1] = 1.0
    t[2, 3] = 0.2
    result = robot.transform_capsule(0, t)
    assert_capsule_close(result, Capsule(Point(0, 0, 0.2), Point(0, 0, 0.1), 0.01))


def test_reach_static():
    robot = single_joint_robot()
    start = Motion(0, [0.0], s=0)
    goal = Motion(0.1, [0.0], s=0.1)
    s_diff = 0.1
    result = robot.reach(start, goal, s_diff, [1.0])
    radius = 0.01 + 1.0 / 8.0 * s_diff * s_diff + 0.03
    assert len(result) == 1
    assert_capsule_close(result[0], Capsule(Point(0, 0, 1.1), Point(0, 0, 1.0), radius))


def test_reach_moving():
    robot = single_joint_robot()
    start = Motion(0, [0.0], s=0)
    goal = Motion(0.1, [math.pi / 8.0], s=0.1)
    s_diff = 0.1
    result = robot.reach(start, goal, s_diff, [1.0])
    radius = (
        math.sqrt(0.03826834**2 + (1.1 - 0.09238795 - 1.0) ** 2) / 2.0
        + 0.01
        + 1.0 / 8.0 * s_diff**2
        + 0.03
    )
    expect = Capsule(
        Point(0.0, 0.0, 1.1),
        Point(0.03826834 / 2.0, 0.0, ((1.1 - 0.09238795) + 1.0) / 2),
        radius,
    )
    assert_capsule_close(result[0], expect, tol=1e-5)


def test_reach_rejects_wrong_alpha_length():
    robot = single_joint_robot()
    with pytest.raises(ValueError):
        robot.reach(Motion(0, [0.0]), Motion(0.1, [0.0]), 0.1, [1.0, 1.0])


@pytest.mark.parametrize(
    "q, point, expect",
    [
        (0.0, Point(0.0, 0.0, 1.1), [0, 0, 0, 0, -1, 0]),
        (0.0, Point(0.0, 0.0, 1.0), [0.1, 0, 0, 0, -1, 0]),
        (math.pi / 2.0, Point(0.1, 0.0, 1.1), [0.0, 0, 0.1, 0, -1, 0]),
    ],
)
def test_jacobian_single_joint(q, point, expect):
    robot = single_joint_robot()
    robot.calculate_all_transformation_matrices_and_capsules([q])
    jacobian = robot.calculate_jacobian(0, point)
    assert jacobian.shape == (6, 1)
    np.testing.assert_allclose(jacobian[:, 0], expect, atol=1e-8)


def test_velocity_of_capsule_zero_angle():
    robot = single_joint_robot()
    robot.calculate_all_transformation_matrices_and_capsules([0.0])
    vel = robot.calculate_velocity_of_capsule(0, [1.0])
    np.testing.assert_allclose(vel.v1.v, [0, 0, 0], atol=1e-8)
    np.testing.assert_allclose(vel.v1.w, [0, -1, 0], atol=1e-8)
    np.testing.assert_allclose(vel.v2.v, [0.1, 0, 0], atol=1e-8)
    np.testing.assert_allclose(vel.v2.w, [0, -1, 0], atol=1e-8)


def test_velocity_of_capsule_half_pi():
    robot = single_joint_robot()
    robot.calculate_all_transformation_matrices_and_capsules([math.pi / 2.0])
    vel = robot.calculate_velocity_of_capsule(0, [1.0])
    np.testing.assert_allclose(vel.v1.v, [0, 0, 0], atol=1e-8)
    np.testing.assert_allclose(vel.v1.w, [0, -1, 0], atol=1e-8)
    np.testing.assert_allclose(vel.v2.v, [0, 0, 0.1], atol=1e-8)
    np.testing.assert_allclose(vel.v2.w, [0, -1, 0], atol=1e-8)


@pytest.mark.parametrize("q", [0.0, math.pi / 2.0])
def test_approximate_vel_of_capsule(q):
    robot = single_joint_robot()
    robot.calculate_all_transformation_matrices_and_capsules([q])
    vel = robot.calculate_velocity_of_capsule(0, [1.0])
    result = robot.approximate_vel_of_capsule(0, vel.v2.v, vel.v2.w)
    assert result == pytest.approx(0.11, abs=1e-8)


def test_calculate_max_vel_errors():
    robot = single_joint_robot()
    errors = robot.calculate_max_vel_errors(0.05, [1.0], [10.0], [200.0])
    assert len(errors) == 1
    assert errors[0] == pytest.approx(0.00690625, abs=1e-8)


@pytest.mark.parametrize(
    "q",
    [
        [0.0, 0.0, 0.0],
        [1.0, 1.0, 1.0],
        [2.0, 2.0, 2.0],
        [1.0, 0.5, -1.0],
        [-0.5, 1.0, 1.0],
        [-1.0, -1.0, -1.0],
    ],
)
def test_jacobian_siciliano(q):
    robot = siciliano_robot()
    robot.calculate_all_transformation_matrices_and_capsules(q)
    point = robot.robot_capsules_for_velocity[2].p2
    jacobian = robot.calculate_jacobian(2, point)
    np.testing.assert_allclose(jacobian, siciliano_jacobian(q), atol=1e-8)


@pytest.mark.parametrize("method", [VelocityMethod.APPROXIMATE, VelocityMethod.EXACT])
def test_max_velocity_of_motion(method):
    robot = siciliano_robot()
    robot.velocity_method = method
    q_1, q_2 = [0.0, 0.0, 0.0], [1.0, 0.0, 0.0]
    dq_1, dq_2 = [1.0, 0.0, 0.0], [1.0, 1.0, 1.0]
    assert robot.max_velocity_of_motion(Motion(0.0, q_1, dq_1)) == pytest.approx(4.0, abs=1e-8)
    assert robot.max_velocity_of_motion(Motion(0.0, q_1, dq_2)) == pytest.approx(9.0, abs=1e-8)
    assert robot.max_velocity_of_motion(Motion(0.0, q_2, dq_1)) == pytest.approx(4.0, abs=1e-8)
    assert robot.max_velocity_of_motion(Motion(0.0, q_2, dq_2)) == pytest.approx(9.0, abs=1e-8)


def test_calculate_all_capsule_velocities():
    robot = siciliano_robot()
    robot.calculate_all_transformation_matrices_and_capsules([0.0, 0.0, 0.0])
    vels = robot.calculate_all_capsule_velocities([1.0, 1.0, 1.0])
    expected = [
        ([0, 0, 0], [0, 0, 1], [0, 1, 0], [0, 0, 1]),
        ([0, 1, 0], [0, 0, 2], [0, 3, 0], [0, 0, 2]),
        ([0, 3, 0], [0, 0, 3], [0, 6, 0], [0, 0, 3]),
    ]
    assert len(vels) == 3
    for vel, (v1, w1, v2, w2) in zip(vels, expected):
        np.testing.assert_allclose(vel.v1.v, v1, atol=1e-8)
        np.testing.assert_allclose(vel.v1.w, w1, atol=1e-8)
        np.testing.assert_allclose(vel.v2.v, v2, atol=1e-8)
        np.testing.assert_allclose(vel.v2.w, w2, atol=1e-8)


def test_calculate_all_capsule_velocities_wrong_size():
    robot = siciliano_robot()
    robot.calculate_all_transformation_matrices_and_capsules([0.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        robot.calculate_all_capsule_velocities([1.0, 1.0])


def test_inertia_matrices_siciliano():
    robot = siciliano_2_robot()
    q = [math.pi / 4, math.pi / 4]
    robot.calculate_all_transformation_matrices_and_capsules(q)
    inertia = robot.calculate_all_inertia_matrices()
    assert inertia[0][0, 1] == pytest.approx(0.0, abs=1e-8)
    assert inertia[0][1, 0] == pytest.approx(0.0, abs=1e-8)
    assert inertia[0][1, 1] == pytest.approx(0.0, abs=1e-8)
    a_1, l_1, l_2 = 1.0, 0.5, 1.0
    i_1, i_2, m_1, m_2 = 0.03, 0.02, 3.0, 2.0
    b_11 = i_1 + m_1 * l_1**2 + i_2 + m_2 * (l_2**2 + a_1**2 + 2 * a_1 * l_2 * math.cos(q[1]))
    b_12 = i_2 + m_2 * (l_2**2 + a_1 * l_2 * math.cos(q[1]))
    b_22 = i_2 + m_2 * l_2**2
    assert inertia[1][0, 0] == pytest.approx(b_11, abs=1e-8)
    assert inertia[1][0, 1] == pytest.approx(b_12, abs=1e-8)
    assert inertia[1][1, 0] == pytest.approx(b_12, abs=1e-8)
    assert inertia[1][1, 1] == pytest.approx(b_22, abs=1e-8)


def test_kinetic_energy_siciliano():
    robot = siciliano_2_robot()
    q = [math.pi / 4, math.pi / 4]
    robot.calculate_all_transformation_matrices_and_capsules(q)
    b_11 = 0.03 + 3.0 * 0.25 + 0.02 + 2.0 * (1.0 + 1.0 + 2.0 * math.cos(q[1]))
    b_22 = 0.02 + 2.0
    assert robot.calculate_eef_kinetic_energy([1.0, 0.0]) == pytest.approx(0.5 * b_11, abs=1e-8)
    assert robot.calculate_eef_kinetic_energy([0.0, 1.0]) == pytest.approx(0.5 * b_22, abs=1e-8)


def test_inv_mass_matrix_eef_is_symmetric_positive_semidefinite():
    robot = siciliano_2_robot()
    robot.calculate_all_transformation_matrices_and_capsules([0.3, 0.7])
    inv_mass = robot.calculate_inv_mass_matrix_eef()
    assert inv_mass.shape == (3, 3)
    np.testing.assert_allclose(inv_mass, inv_mass.T, atol=1e-10)
    assert np.all(np.linalg.eigvalsh(inv_mass) > -1e-9)


def test_reflected_mass_of_diagonal_matrix():
    robot = siciliano_2_robot()
    inv_mass = np.diag([0.5, 0.25, 0.125])
    assert robot.calculate_reflected_mass(inv_mass, [1.0, 0.0, 0.0]) == pytest.approx(2.0)
    assert robot.calculate_reflected_mass(inv_mass, [0.0, 1.0, 0.0]) == pytest.approx(4.0)


def test_max_reflected_mass_bounds_directional_mass():
    robot = siciliano_2_robot()
    robot.calculate_all_transformation_matrices_and_capsules([0.3, 0.7])
    masses = robot.calculate_all_max_reflected_masses()
    assert len(masses) == 2
    last_inv = robot.calculate_all_inv_mass_matrices()[-1]
    directional = robot.calculate_reflected_mass(last_inv, [1.0, 0.0, 0.0])
    assert masses[-1] >= directional - 1e-9


def test_link_inertia_matrix():
    robot = siciliano_robot()
    b = np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 5.0], [3.0, 5.0, 6.0]])
    np.testing.assert_array_equal(
        robot.calculate_link_inertia_matrix(0, b), [[1, 0, 0], [0, 0, 0], [0, 0, 0]]
    )
    np.testing.assert_array_equal(
        robot.calculate_link_inertia_matrix(1, b), [[1, 2, 0], [2, 4, 0], [0, 0, 0]]
    )
    np.testing.assert_array_equal(robot.calculate_link_inertia_matrix(2, b), b)


def test_link_inertia_matrix_wrong_dimensions():
    robot = siciliano_robot()
    with pytest.raises(ValueError):
        robot.calculate_link_inertia_matrix(0, np.eye(2))


def test_time_intervals_single_interval_matches_reach():
    robot = single_joint_robot()
    start = Motion(0, [0.0], s=0)
    goal = Motion(0.1, [math.pi / 8.0], s=0.1)
    standard = robot.reach(start, goal, 0.1, [1.0])
    intervals = robot.reach_time_intervals([start, goal], [1.0])
    assert len(intervals) == 1
    assert intervals[0][0] == standard[0]


def test_time_intervals_single_interval_matches_reach_siciliano():
    robot = siciliano_robot(z=1.0)
    start = Motion(0, [0.0, 0.0, 0.0], s=0)
    goal = Motion(0.1, [math.pi / 8.0] * 3, s=0.1)
    standard = robot.reach(start, goal, 0.1, [1.0, 1.0, 1.0])
    intervals = robot.reach_time_intervals([start, goal], [1.0, 1.0, 1.0])
    assert len(intervals) == 1
    assert intervals[0] == standard


def test_time_intervals_two_intervals_differ_from_whole():
    robot = single_joint_robot()
    start = Motion(0, [0.0], s=0)
    mid = Motion(0.05, [math.pi / 16.0], s=0.05)
    goal = Motion(0.1, [math.pi / 8.0], s=0.1)
    standard = robot.reach(start, goal, 0.1, [1.0])
    intervals = robot.reach_time_intervals([start, mid, goal], [1.0])
    assert len(intervals) == 2
    expect = standard[0]
    for interval in intervals:
        result = interval[0]
        assert result.p1.x == pytest.approx(expect.p1.x)
        assert result.p1.y == pytest.approx(expect.p1.y)
        assert result.p1.z == pytest.approx(expect.p1.z)
        assert result.p2.x != expect.p2.x
        assert result.p2.y == pytest.approx(expect.p2.y)
        assert result.p2.z != expect.p2.z
        assert result.r != expect.r


def test_time_intervals_match_separate_reach():
    robot = single_joint_robot()
    start = Motion(0, [0.0], s=0)
    mid = Motion(0.05, [math.pi / 16.0], s=0.05)
    goal = Motion(0.1, [math.pi / 8.0], s=0.1)
    first = robot.reach(start, mid, 0.05, [1.0])
    second = robot.reach(mid, goal, 0.05, [1.0])
    intervals = robot.reach_time_intervals([start, mid, goal], [1.0])
    assert len(intervals) == 2
    assert_capsule_close(intervals[0][0], first[0])
    assert_capsule_close(intervals[1][0], second[0])


def test_time_intervals_match_separate_reach_siciliano():
    robot = siciliano_robot(z=1.0)
    alpha = [1.0, 1.0, 1.0]
    start = Motion(0, [0.0, 0.0, 0.0], s=0)
    mid = Motion(0.1, [math.pi / 16.0] * 3, s=0.05)
    goal = Motion(0.1, [math.pi / 8.0] * 3, s=0.1)
    first = robot.reach(start, mid, 0.05, alpha)
    second = robot.reach(mid, goal, 0.05, alpha)
    intervals = robot.reach_time_intervals([start, mid, goal], alpha)
    assert len(intervals) == 2
    for result, expect in zip(intervals[0], first):
        assert_capsule_close(result, expect)
    for result, expect in zip(intervals[1], second):
        assert_capsule_close(result, expect)


def test_capsules_for_velocity_and_properties():
    robot = RobotReach(
        _identity_flat() + _translation_x_flat(1.0) + _translation_x_flat(1.0),
        3,
        [0, 0, 0, 1, 0, 0, 1.0] * 3,
        [1.0, 1.0, 1.0],
        [0.0] * 18,
        [0.0] * 18,
        unclampable_enclosures_map={0: [1, 2]},
    )
    robot.calculate_all_transformation_matrices_and_capsules([0.0, 0.0, 0.0])
    capsules = robot.robot_capsules_for_velocity
    assert len(capsules) == 3
    assert capsules[2].p2.x == pytest.approx(3.0)
    assert robot.nb_joints == 3
    enclosures = robot.unclampable_enclosures
    assert enclosures == {0: {1, 2}}
    enclosures[0].add(5)
    assert robot.unclampable_enclosures == {0: {1, 2}}


def test_constructor_rejects_wrong_geometry_length():
    with pytest.raises(ValueError):
        RobotReach(_identity_flat(), 1, [0.0] * 6, [1.0], [0.0] * 6, [0.0] * 6)