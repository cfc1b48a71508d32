# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.

from __future__ import annotations

import jax.numpy as jnp
import numpy as np

from gpmp_jit.core.keys import conf_key, vel_key
from gpmp_jit.obstacle.robot import PointRobotModel
from gpmp_jit.obstacle.sdf import SignedDistanceField
from gpmp_jit.planner.collision import collision_cost
from gpmp_jit.planner.initialization import straight_line_init
from gpmp_jit.planner.isam_optimizer import IncrementalTrajOptimizer
from gpmp_jit.planner.settings import TrajOptimizerSetting


def build_disc_field(size: int = 61, cell: float = 0.1) -> SignedDistanceField:
    """
    6 x 6 m planar field with two disc obstacles:

      - radius 0.8 at (3.0, 2.0)
      - radius 0.5 at (4.5, 4.5)

    Distances are exact Euclidean distances to the nearest disc boundary.
    """
    xs = np.arange(size) * cell
    gx, gy = np.meshgrid(xs, xs, indexing="ij")
    d1 = np.sqrt((gx - 3.0) ** 2 + (gy - 2.0) ** 2) - 0.8
    d2 = np.sqrt((gx - 4.5) ** 2 + (gy - 4.5) ** 2) - 0.5
    return SignedDistanceField(
        origin=jnp.zeros(2), cell_size=cell, data=jnp.array(np.minimum(d1, d2))
    )


def print_trajectory(values, total_step: int) -> None:
    for i in range(total_step + 1):
        q = np.asarray(values[conf_key(i)])
        v = np.asarray(values[vel_key(i)])
        print(f"  state {i:2d}: conf = {q}, vel = {v}")


def run_experiment():
    total_step = 10
    total_time = 5.0

    setting = TrajOptimizerSetting.create(
        dof=2,
        total_step=total_step,
        total_time=total_time,
        obs_check_inter=4,
        conf_prior_sigma=1e-2,
        vel_prior_sigma=1e-2,
        epsilon=0.3,
    )
    robot = PointRobotModel.point(dof=2, radius=0.2)
    sdf = build_disc_field()

    start = jnp.array([0.5, 0.5])
    goal = jnp.array([5.5, 3.0])
    zero_vel = jnp.zeros(2)

    opt = IncrementalTrajOptimizer(robot, sdf, setting)
    opt.init_factor_graph(start, zero_vel, goal, zero_vel)
    init = straight_line_init(start, goal, total_step, total_time)
    opt.init_values(init)

    print("=== Initial straight line ===")
    print(f"collision cost: {collision_cost(robot, sdf, init, setting):.4f}")

    values = opt.update()
    print("\n=== After first update ===")
    print_trajectory(values, total_step)
    print(f"collision cost: {collision_cost(robot, sdf, values, setting):.4f}")

    # Robot has executed the first three states; pin them and move the goal.
    for i in range(3):
        opt.fix_config_and_vel(i, values[conf_key(i)], values[vel_key(i)])
    opt.change_goal_config_and_vel(jnp.array([5.0, 5.5]), zero_vel)

    values = opt.update()
    print("\n=== After replanning to new goal ===")
    print_trajectory(values, total_step)
    print(f"collision cost: {collision_cost(robot, sdf, values, setting):.4f}")
    print(f"factor history: {opt.solver.factor_count()} factors, {opt.num_updates} updates")


if __name__ == "__main__":
    run_experiment()
