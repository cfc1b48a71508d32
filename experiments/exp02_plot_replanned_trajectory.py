# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.

from __future__ import annotations

import jax.numpy as jnp
import matplotlib.pyplot as plt

from gpmp_jit.obstacle.robot import PointRobotModel
from gpmp_jit.planner.initialization import straight_line_init
from gpmp_jit.planner.interpolation import interpolate_trajectory
from gpmp_jit.planner.isam_optimizer import IncrementalTrajOptimizer
from gpmp_jit.planner.settings import TrajOptimizerSetting
from gpmp_jit.planner.visualization import plot_trajectory_2d

from exp01_incremental_replanning import build_disc_field


def run_experiment():
    total_step = 10
    total_time = 5.0
    setting = TrajOptimizerSetting.create(
        dof=2, total_step=total_step, total_time=total_time,
        obs_check_inter=4, conf_prior_sigma=1e-2, vel_prior_sigma=1e-2, epsilon=0.3,
    )
    robot = PointRobotModel.point(dof=2, radius=0.2)
    sdf = build_disc_field()

    start, goal = jnp.array([0.5, 0.5]), jnp.array([5.5, 3.0])
    opt = IncrementalTrajOptimizer(robot, sdf, setting)
    opt.init_factor_graph(start, jnp.zeros(2), goal, jnp.zeros(2))
    opt.init_values(straight_line_init(start, goal, total_step, total_time))
    first = opt.update()

    opt.change_goal_config_and_vel(jnp.array([5.0, 5.5]), jnp.zeros(2))
    second = opt.update()

    fig, axes = plt.subplots(1, 2, figsize=(10, 5))
    plot_trajectory_2d(interpolate_trajectory(first, setting, 4), sdf, ax=axes[0], show_states=False)
    plot_trajectory_2d(first, robot=robot, ax=axes[0])
    axes[0].set_title("initial plan")
    plot_trajectory_2d(interpolate_trajectory(second, setting, 4), sdf, ax=axes[1], show_states=False)
    plot_trajectory_2d(second, robot=robot, ax=axes[1])
    axes[1].set_title("after goal change")
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    run_experiment()
