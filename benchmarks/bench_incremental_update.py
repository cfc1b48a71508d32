# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.

import time

import jax.numpy as jnp

from gpmp_jit.core.keys import conf_key
from gpmp_jit.obstacle.robot import PointRobotModel
from gpmp_jit.obstacle.sdf import SignedDistanceField
from gpmp_jit.optimization.incremental import (
    GaussNewtonIncrementalSolver,
    IncrementalSolverConfig,
)
from gpmp_jit.planner.initialization import straight_line_init
from gpmp_jit.planner.isam_optimizer import IncrementalTrajOptimizer
from gpmp_jit.planner.settings import TrajOptimizerSetting


def build_optimizer(total_step: int, obs_check_inter: int, use_jit: bool):
    """
    Planar point robot in an obstacle-free 10 x 10 m field.

    The field is constant, so obstacle factors contribute nothing to the
    solution but are still evaluated on every relinearization.
    """
    setting = TrajOptimizerSetting.create(
        dof=2,
        total_step=total_step,
        total_time=float(total_step) * 0.1,
        obs_check_inter=obs_check_inter,
        conf_prior_sigma=1e-2,
        vel_prior_sigma=1e-2,
    )
    sdf = SignedDistanceField(origin=jnp.zeros(2), cell_size=0.1, data=jnp.full((101, 101), 5.0))
    robot = PointRobotModel.point(dof=2, radius=0.1)
    solver = GaussNewtonIncrementalSolver(IncrementalSolverConfig(use_jit=use_jit))
    return IncrementalTrajOptimizer(robot, sdf, setting, solver=solver), setting


def run_benchmark(total_step: int = 50, obs_check_inter: int = 2, num_replans: int = 5, use_jit: bool = True):
    print("=== Incremental replanning benchmark ===")
    print(f"total_step = {total_step}, obs_check_inter = {obs_check_inter}, use_jit = {use_jit}")

    opt, setting = build_optimizer(total_step, obs_check_inter, use_jit)
    start, goal = jnp.array([1.0, 1.0]), jnp.array([8.0, 8.0])
    opt.init_factor_graph(start, jnp.zeros(2), goal, jnp.zeros(2))
    opt.init_values(straight_line_init(start, goal, total_step, setting.total_time))

    t0 = time.time()
    values = opt.update()
    t1 = time.time()
    print(f"first update:  {(t1 - t0) * 1000.0:.3f} ms ({opt.solver.factor_count()} factors)")

    for k in range(num_replans):
        new_goal = goal + jnp.array([0.0, -0.5 * (k + 1)])
        opt.change_goal_config_and_vel(new_goal, jnp.zeros(2))
        t0 = time.time()
        values = opt.update()
        t1 = time.time()
        print(f"goal change {k}: {(t1 - t0) * 1000.0:.3f} ms")

    print(f"final goal state: {values[conf_key(total_step)]}")


if __name__ == "__main__":
    # Example:
    #   python3 benchmarks/bench_incremental_update.py
    run_benchmark(use_jit=True)
    run_benchmark(use_jit=False)
