# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Factor construction for discretized trajectories.

A trajectory of ``N = total_step`` intervals has states ``0 … N``, each a
configuration key ``x_i`` and a velocity key ``v_i``. The full graph is a
chain:

    • boundary priors on (x_0, v_0) and (x_N, v_N)
    • one obstacle factor on every x_i
    • per interval (i-1, i): ``obs_check_inter`` interpolated obstacle
      factors at τ = j · inter_dt, j = 1 … obs_check_inter, then one GP
      smoothness prior

Factors are emitted in that per-state order. The order matters to callers
that need to know where the goal priors sit in the list, which is why
`build_trajectory_factors` reports their positions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import jax.numpy as jnp

from gpmp_jit.core.keys import conf_key, vel_key
from gpmp_jit.core.noise import Gaussian
from gpmp_jit.core.types import Factor, NodeId
from gpmp_jit.gp.gaussian_process import GPInterpolator, calc_q
from gpmp_jit.gp.measurements import GP_PRIOR, OBSTACLE, OBSTACLE_GP, PRIOR
from .settings import TrajOptimizerSetting


def prior_factor(key: NodeId, target, noise: Gaussian) -> Factor:
    """Pin a single variable to ``target``."""
    return Factor(
        type=PRIOR,
        var_ids=(key,),
        params={"target": jnp.asarray(target, dtype=jnp.float32), "noise": noise},
    )


def obstacle_factor(conf: NodeId, robot, sdf, cost_sigma: float, epsilon: float) -> Factor:
    return Factor(
        type=OBSTACLE,
        var_ids=(conf,),
        params={
            "robot": robot,
            "sdf": sdf,
            "epsilon": epsilon,
            "noise": Gaussian.isotropic(robot.nr_body_spheres, cost_sigma),
        },
    )


def obstacle_gp_factor(
    conf1: NodeId,
    vel1: NodeId,
    conf2: NodeId,
    vel2: NodeId,
    robot,
    sdf,
    cost_sigma: float,
    epsilon: float,
    qc_model: Gaussian,
    delta_t: float,
    tau: float,
) -> Factor:
    """Obstacle cost at fraction ``tau`` of the interval between two states."""
    return Factor(
        type=OBSTACLE_GP,
        var_ids=(conf1, vel1, conf2, vel2),
        params={
            "robot": robot,
            "sdf": sdf,
            "epsilon": epsilon,
            "interpolator": GPInterpolator(
                dof=robot.dof, qc=qc_model.covariance, delta_t=delta_t, tau=tau
            ),
            "noise": Gaussian.isotropic(robot.nr_body_spheres, cost_sigma),
        },
    )


def gp_prior_factor(
    conf1: NodeId,
    vel1: NodeId,
    conf2: NodeId,
    vel2: NodeId,
    delta_t: float,
    qc_model: Gaussian,
) -> Factor:
    dof = qc_model.dim
    return Factor(
        type=GP_PRIOR,
        var_ids=(conf1, vel1, conf2, vel2),
        params={
            "dof": dof,
            "delta_t": delta_t,
            "noise": Gaussian.from_covariance(calc_q(qc_model.covariance, delta_t)),
        },
    )


@dataclass
class TrajectoryFactors:
    factors: List[Factor]
    goal_conf_position: int
    goal_vel_position: int


def _interval_obstacle_factors(setting: TrajOptimizerSetting, robot, sdf, i: int) -> List[Factor]:
    out = []
    for j in range(1, setting.obs_check_inter + 1):
        tau = setting.inter_dt * float(j)
        out.append(
            obstacle_gp_factor(
                conf_key(i - 1), vel_key(i - 1), conf_key(i), vel_key(i),
                robot, sdf, setting.cost_sigma, setting.epsilon,
                setting.qc_model, setting.delta_t, tau,
            )
        )
    return out


def build_trajectory_factors(
    setting: TrajOptimizerSetting,
    robot,
    sdf,
    start_conf,
    start_vel,
    goal_conf,
    goal_vel,
) -> TrajectoryFactors:
    """Build every factor of one trajectory, in chain order.

    :returns: the factors plus the list positions of the goal configuration
        and goal velocity priors.
    """
    factors: List[Factor] = []
    goal_conf_pos = goal_vel_pos = -1

    for i in range(setting.total_step + 1):
        pose = conf_key(i)
        vel = vel_key(i)

        # start and end
        if i == 0:
            factors.append(prior_factor(pose, start_conf, setting.conf_prior_model))
            factors.append(prior_factor(vel, start_vel, setting.vel_prior_model))
        elif i == setting.total_step:
            goal_conf_pos = len(factors)
            factors.append(prior_factor(pose, goal_conf, setting.conf_prior_model))
            goal_vel_pos = len(factors)
            factors.append(prior_factor(vel, goal_vel, setting.vel_prior_model))

        factors.append(
            obstacle_factor(pose, robot, sdf, setting.cost_sigma, setting.epsilon)
        )

        if i > 0:
            factors.extend(_interval_obstacle_factors(setting, robot, sdf, i))
            factors.append(
                gp_prior_factor(
                    conf_key(i - 1), vel_key(i - 1), pose, vel,
                    setting.delta_t, setting.qc_model,
                )
            )

    return TrajectoryFactors(
        factors=factors,
        goal_conf_position=goal_conf_pos,
        goal_vel_position=goal_vel_pos,
    )


def build_obstacle_factors(setting: TrajOptimizerSetting, robot, sdf) -> List[Factor]:
    """Obstacle and interpolated obstacle factors only, in chain order."""
    factors: List[Factor] = []
    for i in range(setting.total_step + 1):
        factors.append(
            obstacle_factor(conf_key(i), robot, sdf, setting.cost_sigma, setting.epsilon)
        )
        if i > 0:
            factors.extend(_interval_obstacle_factors(setting, robot, sdf, i))
    return factors
