# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Residual models (cost factors) for gpmp-jit.

This module defines the *factor-level* building blocks used by the
trajectory factor graph:

    • Each function here implements a residual:
          r(x; params) ∈ ℝᵏ
      compatible with JAX differentiation and JIT compilation.

    • Factor types in the graph ("prior", "gp_prior", "obstacle_sdf",
      "obstacle_sdf_gp") are mapped to these residual functions via
      `FactorGraph.register_residual`; `register_trajectory_residuals`
      does all four at once.

The residuals fall into three families:

1. Boundary priors
------------------
    • `prior_residual`:
        r = x − target
    Pins a configuration or velocity (start, goal, or any state the
    caller wants frozen).

2. Smoothness (GP prior)
------------------------
    • `gp_prior_residual`:
        r = Φ(δt) [q₁; q̇₁] − [q₂; q̇₂]
    whitened by Q(δt), the constant-velocity GP process covariance.
    x stacks [q₁, q̇₁, q₂, q̇₂].

3. Obstacle costs
-----------------
    • `obstacle_residual`:
        per body sphere, hinge cost max(0, ε + radius − sdf(centre)),
        evaluated at one configuration.

    • `obstacle_gp_residual`:
        the same hinge cost evaluated at the GP-interpolated configuration
        at fraction τ inside an interval; x stacks [q₁, q̇₁, q₂, q̇₂].

    Both are whitened by an isotropic `cost_sigma`.

Noise Models
------------
Residuals read an optional `params["noise"]` (a `core.noise.Gaussian`) and
whiten through `_apply_noise`, so that the squared norm of every residual is
its Mahalanobis cost.

Notes
-----
When adding a new factor type:

    1. Implement a residual here:
           def my_factor_residual(x: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray

    2. Register it with the factor graph:
           fg.register_residual("my_factor", my_factor_residual)

Everything a residual needs (robot model, field, interpolator) travels in
`params` and is closed over when the graph's residual is jitted, so it must
hold concrete arrays only.
"""

from __future__ import annotations
from typing import Any, Dict

import jax
import jax.numpy as jnp

from gpmp_jit.core.factor_graph import FactorGraph
from gpmp_jit.gp.gaussian_process import calc_phi

PRIOR = "prior"
GP_PRIOR = "gp_prior"
OBSTACLE = "obstacle_sdf"
OBSTACLE_GP = "obstacle_sdf_gp"


def _apply_noise(residual: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    """
    Optional whitening of residuals.

    If params["noise"] is missing the residual is returned unchanged.
    """
    noise = params.get("noise", None)
    if noise is None:
        return residual
    return noise.whiten(residual)


def prior_residual(x: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    """
    Simple prior on a single variable:
        residual = x - target
    Works for any vector dimension.
    """
    target = params["target"]
    r = x - target
    return _apply_noise(r, params)


def gp_prior_residual(x: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    """
    Constant-velocity GP prior between two consecutive states.

    x: stacked [conf1, vel1, conf2, vel2], each of length dof.
    params:
        "dof"     : int
        "delta_t" : float, time between the two states
        "noise"   : Gaussian with covariance Q(delta_t)
    """
    dof = int(params["dof"])
    assert x.shape[0] == 4 * dof

    s1 = x[: 2 * dof]
    s2 = x[2 * dof :]
    r = calc_phi(dof, params["delta_t"]) @ s1 - s2
    return _apply_noise(r, params)


def hinge_loss_obstacle_cost(point: jnp.ndarray, sdf, eps: float) -> jnp.ndarray:
    """Zero beyond ``eps`` from obstacles, ``eps - d`` inside the margin."""
    dist = sdf.signed_distance(point)
    return jnp.where(dist > eps, 0.0, eps - dist)


def _sphere_costs(conf: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    robot = params["robot"]
    sdf = params["sdf"]
    eps = params["epsilon"]

    centers = robot.sphere_centers(conf)              # (n_spheres, wdim)
    margins = eps + robot.sphere_radii               # (n_spheres,)
    return jax.vmap(lambda c, m: hinge_loss_obstacle_cost(c, sdf, m))(centers, margins)


def obstacle_residual(x: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    """
    Obstacle cost at a single configuration.

    x: [conf] of length dof.
    params:
        "robot"   : RobotModel (body spheres)
        "sdf"     : SignedDistanceField
        "epsilon" : safety distance
        "noise"   : isotropic Gaussian with sigma = cost_sigma

    Returns one entry per body sphere.
    """
    return _apply_noise(_sphere_costs(x, params), params)


def obstacle_gp_residual(x: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    """
    Obstacle cost at a GP-interpolated configuration between two states.

    x: stacked [conf1, vel1, conf2, vel2].
    params: as `obstacle_residual`, plus
        "interpolator" : GPInterpolator for this interval and tau
    """
    interp = params["interpolator"]
    dof = interp.dof
    assert x.shape[0] == 4 * dof

    conf = interp.interpolate_pose(
        x[:dof], x[dof : 2 * dof], x[2 * dof : 3 * dof], x[3 * dof :]
    )
    return _apply_noise(_sphere_costs(conf, params), params)


def register_trajectory_residuals(fg: FactorGraph) -> None:
    """Register every residual a trajectory graph uses."""
    fg.register_residual(PRIOR, prior_residual)
    fg.register_residual(GP_PRIOR, gp_prior_residual)
    fg.register_residual(OBSTACLE, obstacle_residual)
    fg.register_residual(OBSTACLE_GP, obstacle_gp_residual)
