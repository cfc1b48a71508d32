# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Factor graph store for gpmp-jit.

This module implements the committed side of the incremental planner: an
append-only factor history whose entries can later be retracted, plus the
variables the factors reference. From that store it produces fully
JIT-compiled residual and objective functions, which are the inputs to the
Gauss–Newton solvers in `optimization/solvers.py`.

The FactorGraph stores:
    - Variables (trajectory configuration / velocity states)
    - Factors, in commit order; a factor's index is its position in the
      history and never changes
    - The set of retracted factor indices
    - Registered residual functions (by factor type)

Key Features
------------
• Stable factor indices
    Retracting a factor marks its slot instead of deleting it, so indices
    handed out earlier keep pointing at the same factor and the history
    length (`len(fg.factors)`) never decreases. This mirrors how an
    incremental smoother numbers factors, and is what lets callers compute
    the prospective index of a factor before committing it.

• JIT-compiled residual graph
    The active factors are fused into a single residual function
    `r(x) : ℝ^N → ℝ^M`, where N = total variable DOFs.

• Automatic Jacobians
    Since `r(x)` is written in JAX, Jacobians are derived via autodiff.

Primary Methods
---------------
pack_state()
    Concatenates all variable values into a single flat JAX array.

unpack_state(x)
    Splits a flat state vector back into per-variable blocks.

build_residual_function()
    Returns a JIT-compiled residual over the non-retracted factors.

build_objective()
    Returns a scalar objective function `f(x) = ||r(x)||²`.
"""


from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Callable, List, Set, Tuple

import jax
import jax.numpy as jnp

from .types import NodeId, FactorId, Variable, Factor


# Type aliases for clarity
ResidualFn = Callable[[jnp.ndarray, Dict[str, object]], jnp.ndarray]


@dataclass
class FactorGraph:
    """
    Append-only factor graph with retraction.

    - variables: mapping from NodeId -> Variable
    - factors: factor history; FactorId == position in this list
    - removed: FactorIds that have been retracted
    - residual_fns: mapping factor.type -> callable that computes residuals
    """
    variables: Dict[NodeId, Variable] = field(default_factory=dict)
    factors: List[Factor] = field(default_factory=list)
    removed: Set[FactorId] = field(default_factory=set)
    residual_fns: Dict[str, ResidualFn] = field(default_factory=dict)

    def add_variable(self, var: Variable) -> None:
        assert var.id not in self.variables
        self.variables[var.id] = var

    def add_factor(self, factor: Factor) -> FactorId:
        fid = FactorId(len(self.factors))
        self.factors.append(factor)
        return fid

    def remove_factor(self, fid: FactorId) -> None:
        assert 0 <= fid < len(self.factors)
        assert fid not in self.removed
        self.removed.add(FactorId(fid))

    def register_residual(self, factor_type: str, fn: ResidualFn) -> None:
        self.residual_fns[factor_type] = fn

    def active_factor_ids(self) -> List[FactorId]:
        return [FactorId(i) for i in range(len(self.factors)) if i not in self.removed]

    def copy(self) -> "FactorGraph":
        """Shallow copy whose containers can be mutated independently."""
        return FactorGraph(
            variables={
                nid: Variable(id=v.id, type=v.type, value=v.value)
                for nid, v in self.variables.items()
            },
            factors=list(self.factors),
            removed=set(self.removed),
            residual_fns=dict(self.residual_fns),
        )

    # --- State packing/unpacking ---

    def _build_state_index(self) -> Dict[NodeId, Tuple[int, int]]:
        """
        Returns a mapping: NodeId -> (start_index, dim)
        All variable values are 1D arrays.
        """
        index: Dict[NodeId, Tuple[int, int]] = {}
        offset = 0
        for node_id, var in sorted(self.variables.items(), key=lambda x: x[0]):
            v = jnp.asarray(var.value)
            dim = v.shape[0]
            index[node_id] = (offset, dim)
            offset += dim
        return index

    def pack_state(self) -> Tuple[jnp.ndarray, Dict[NodeId, Tuple[int, int]]]:
        index = self._build_state_index()
        chunks = []
        for node_id in sorted(self.variables.keys()):
            var = self.variables[node_id]
            chunks.append(jnp.asarray(var.value, dtype=jnp.float32))
        if not chunks:
            return jnp.zeros((0,), dtype=jnp.float32), index
        return jnp.concatenate(chunks), index

    def unpack_state(self, x: jnp.ndarray, index: Dict[NodeId, Tuple[int, int]]) -> Dict[NodeId, jnp.ndarray]:
        result: Dict[NodeId, jnp.ndarray] = {}
        for node_id, (start, dim) in index.items():
            result[node_id] = x[start:start+dim]
        return result

    # --- Objective ---

    def build_residual_function(self):
        """
        Returns a JIT-able function r(x) -> residual vector,
        where x is the packed state.

        Only non-retracted factors contribute. This is the core for
        Gauss-Newton: we can compute J = dr/dx.
        """
        # Freeze index and factor list inside the closure
        _, index = self.pack_state()
        factors = tuple(self.factors[fid] for fid in self.active_factor_ids())
        residual_fns = dict(self.residual_fns)

        def residual(x: jnp.ndarray) -> jnp.ndarray:
            var_values = self.unpack_state(x, index)
            res_list = []

            for factor in factors:
                residual_fn = residual_fns.get(factor.type, None)
                if residual_fn is None:
                    raise ValueError(f"No residual fn registered for factor type '{factor.type}'")

                vs = [var_values[nid] for nid in factor.var_ids]
                stacked = jnp.concatenate(vs)

                res = residual_fn(stacked, factor.params)
                res_list.append(jnp.reshape(res, (-1,)))

            if not res_list:
                return jnp.zeros((0,), dtype=x.dtype)

            return jnp.concatenate(res_list)

        return jax.jit(residual)

    def build_objective(self):
        """
        Returns a JIT-able function f(x) -> scalar loss = ||r(x)||^2,
        where r(x) is the stacked residual vector.
        """
        residual = self.build_residual_function()

        def objective(x: jnp.ndarray) -> jnp.ndarray:
            r = residual(x)
            return jnp.sum(r ** 2)

        return jax.jit(objective)
