import jax.numpy as jnp
import numpy as np
import pytest

from gpmp_jit.core.keys import conf_key, vel_key
from gpmp_jit.obstacle.robot import PointRobotModel
from gpmp_jit.obstacle.sdf import SignedDistanceField
from gpmp_jit.planner.collision import collision_cost
from gpmp_jit.planner.initialization import straight_line_init
from gpmp_jit.planner.interpolation import interpolate_trajectory
from gpmp_jit.planner.settings import TrajOptimizerSetting


def _circle_field():
    cell = 0.1
    xs = np.arange(21) * cell
    gx, gy = np.meshgrid(xs, xs, indexing="ij")
    data = np.sqrt((gx - 1.0) ** 2 + (gy - 1.0) ** 2) - 0.5
    return SignedDistanceField(origin=jnp.zeros(2), cell_size=cell, data=jnp.array(data))


def test_straight_line_init():
    values = straight_line_init(jnp.array([0.0, 1.0]), jnp.array([2.0, 1.0]), 4, 2.0)
    assert len(values) == 10
    np.testing.assert_allclose(np.array(values[conf_key(1)]), [0.5, 1.0], atol=1e-6)
    np.testing.assert_allclose(np.array(values[conf_key(4)]), [2.0, 1.0], atol=1e-6)
    for i in range(5):
        np.testing.assert_allclose(np.array(values[vel_key(i)]), [1.0, 0.0], atol=1e-6)


def test_interpolate_straight_line():
    setting = TrajOptimizerSetting.create(dof=2, total_step=4, total_time=2.0)
    values = straight_line_init(jnp.zeros(2), jnp.array([2.0, 0.0]), 4, 2.0)

    dense = interpolate_trajectory(values, setting, inter_step=3)
    n_states = 4 * 4 + 1
    assert len(dense) == 2 * n_states
    for k in range(n_states):
        np.testing.assert_allclose(
            np.array(dense[conf_key(k)]), [2.0 * k / (n_states - 1), 0.0], atol=1e-3
        )
        np.testing.assert_allclose(np.array(dense[vel_key(k)]), [1.0, 0.0], atol=1e-3)


def test_interpolate_sub_range_renumbers_keys():
    setting = TrajOptimizerSetting.create(dof=2, total_step=4, total_time=2.0)
    values = straight_line_init(jnp.zeros(2), jnp.array([2.0, 0.0]), 4, 2.0)

    dense = interpolate_trajectory(values, setting, inter_step=1, start_index=1, end_index=3)
    assert len(dense) == 2 * 5
    np.testing.assert_allclose(np.array(dense[conf_key(0)]), [0.5, 0.0], atol=1e-6)
    np.testing.assert_allclose(np.array(dense[conf_key(1)]), [0.75, 0.0], atol=1e-3)
    np.testing.assert_allclose(np.array(dense[conf_key(4)]), [1.5, 0.0], atol=1e-6)


def test_interpolate_zero_steps_is_identity():
    setting = TrajOptimizerSetting.create(dof=2, total_step=3, total_time=1.0)
    values = straight_line_init(jnp.zeros(2), jnp.ones(2), 3, 1.0)
    dense = interpolate_trajectory(values, setting, inter_step=0)
    assert set(dense) == set(values)


@pytest.mark.parametrize(
    "inter_step,start,end", [(-1, 0, None), (1, 2, 2), (1, 0, 5), (1, -1, 2)]
)
def test_interpolate_invalid_arguments(inter_step, start, end):
    setting = TrajOptimizerSetting.create(dof=2, total_step=4, total_time=1.0)
    values = straight_line_init(jnp.zeros(2), jnp.ones(2), 4, 1.0)
    with pytest.raises(ValueError):
        interpolate_trajectory(values, setting, inter_step, start_index=start, end_index=end)


def test_collision_cost():
    sdf = _circle_field()
    robot = PointRobotModel.point(dof=2, radius=0.05)
    setting = TrajOptimizerSetting.create(
        dof=2, total_step=4, total_time=1.0, obs_check_inter=2, epsilon=0.1
    )

    clear = straight_line_init(jnp.array([0.1, 0.1]), jnp.array([1.9, 0.1]), 4, 1.0)
    assert collision_cost(robot, sdf, clear, setting) == pytest.approx(0.0)

    through = straight_line_init(jnp.array([0.1, 1.0]), jnp.array([1.9, 1.0]), 4, 1.0)
    assert collision_cost(robot, sdf, through, setting) > 1.0
