# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
JIT-friendly solve helpers for gpmp-jit.

The incremental solver rebuilds the residual function whenever the active
factor set changes and then solves once from the current estimate. This
module provides the two layers it needs:

JittedGN
    Holds a jitted Gauss–Newton solve for one fixed residual function:
        jgn = JittedGN.from_residual(residual_fn, cfg)
        x_opt = jgn(x0)

solve_graph(fg, cfg, use_jit=True)
    Packs a `FactorGraph`, solves it, and returns a `GraphSolveResult` with
    the optimized per-variable values and the squared error before and after.
    The graph itself is not modified.

Cost
----
`solve_graph` traces and compiles a new residual closure on every call, so
a two-factor goal change compiles the whole active graph again and costs
about as much as the first commit. `use_jit=False` skips compilation;
`benchmarks/bench_incremental_update.py` measures both modes.

When modifying this module, keep the wrapped functions purely functional:
no Python-side mutation inside the jitted solve.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

import jax
import jax.numpy as jnp

from gpmp_jit.core.factor_graph import FactorGraph
from gpmp_jit.core.types import NodeId
from .solvers import gauss_newton, squared_error, GNConfig


@dataclass
class JittedGN:
    """Jitted Gauss-Newton solver for a fixed residual function."""
    fn: Callable[[jnp.ndarray], jnp.ndarray]
    cfg: GNConfig

    def __call__(self, x0: jnp.ndarray) -> jnp.ndarray:
        return self.fn(x0)

    @staticmethod
    def from_residual(
        residual_fn: Callable[[jnp.ndarray], jnp.ndarray],
        cfg: GNConfig,
    ) -> "JittedGN":
        # cfg is closed over and treated as static.
        def solve(x0: jnp.ndarray) -> jnp.ndarray:
            return gauss_newton(residual_fn, x0, cfg)

        return JittedGN(fn=jax.jit(solve), cfg=cfg)


@dataclass
class GraphSolveResult:
    values: Dict[NodeId, jnp.ndarray]
    error_before: float
    error_after: float
    finite: bool


def solve_graph(fg: FactorGraph, cfg: GNConfig, use_jit: bool = True) -> GraphSolveResult:
    x0, index = fg.pack_state()
    if x0.shape[0] == 0:
        return GraphSolveResult(values={}, error_before=0.0, error_after=0.0, finite=True)

    residual_fn = fg.build_residual_function()
    if use_jit:
        x_opt = JittedGN.from_residual(residual_fn, cfg)(x0)
    else:
        x_opt = gauss_newton(residual_fn, x0, cfg)

    error_before = float(squared_error(residual_fn, x0))
    error_after = float(squared_error(residual_fn, x_opt))
    finite = bool(jnp.all(jnp.isfinite(x_opt))) and bool(jnp.isfinite(error_after))

    return GraphSolveResult(
        values=fg.unpack_state(x_opt, index),
        error_before=error_before,
        error_after=error_after,
        finite=finite,
    )
