# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Nonlinear least-squares solver for gpmp-jit.

The incremental solver relinearizes the whole active trajectory graph on
every commit with a damped Gauss–Newton loop over a flat Euclidean state
(trajectory configurations and velocities are plain vectors, so no manifold
retraction is needed).

Key Concepts
------------
GNConfig
    Dataclass holding configuration for Gauss–Newton:
    - max_iters: number of GN iterations
    - damping: Levenberg–Marquardt-style diagonal damping
    - max_step_norm: clamp on update step size

gauss_newton(residual_fn, x0, cfg)
    - residual_fn: r(x) -> (m,) JAX array
    - x0: initial state
    - cfg: GNConfig

    Computes updates using normal equations:
        (Jᵀ J + λ I) Δx = Jᵀ r
    and returns the state after `max_iters` steps.

squared_error(residual_fn, x)
    ‖r(x)‖², the quantity Gauss–Newton minimizes.

Notes
-----
The iteration count is fixed and the loop is a `jax.lax.fori_loop`, so the
whole solve can be wrapped in `jax.jit` (see `optimization.jit_wrappers`)
without unrolling.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable

import jax
import jax.numpy as jnp

ResidualVecFn = Callable[[jnp.ndarray], jnp.ndarray]


@dataclass
class GNConfig:
    max_iters: int = 20
    damping: float = 1e-3       # LM-style diagonal damping
    max_step_norm: float = 1.0  # clamp step size for stability


def squared_error(residual_fn: ResidualVecFn, x: jnp.ndarray) -> jnp.ndarray:
    r = residual_fn(x)
    return jnp.sum(r * r)


def gauss_newton(residual_fn: ResidualVecFn, x0: jnp.ndarray, cfg: GNConfig) -> jnp.ndarray:
    """
    Damped Gauss-Newton on r(x): R^n -> R^m.

    J = dr/dx has shape (m, n), matching math convention.
    """
    n = x0.shape[0]
    if n == 0:
        return x0

    J_fn = jax.jacobian(residual_fn)
    eye = jnp.eye(n, dtype=x0.dtype)

    def step(_, x: jnp.ndarray) -> jnp.ndarray:
        r = residual_fn(x)
        J = J_fn(x)

        H = J.T @ J + cfg.damping * eye
        delta = jnp.linalg.solve(H, J.T @ r)

        # Clamp the step to keep early iterations from overshooting
        scale = jnp.minimum(1.0, cfg.max_step_norm / (jnp.linalg.norm(delta) + 1e-9))
        return x - scale * delta

    return jax.lax.fori_loop(0, cfg.max_iters, step, x0)
