# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Incremental solver interface and a Gauss–Newton implementation of it.

The trajectory planner never touches the committed graph directly. It talks
to an incremental estimator through three calls:

    submit(new_factors, new_values, removed) -> CommitResult
        Append `new_factors` (indices start at the pre-call `factor_count()`),
        seed `new_values` for variables not seen before, and retract the
        committed factors listed in `removed`.

    estimate() -> {key: value}
        Current best estimate for every committed variable.

    factor_count() -> int
        Length of the factor history. Retracted factors keep their slot, so
        this never decreases and `factor_count() + k` is the index the k-th
        factor of the next submission will get.

`GaussNewtonIncrementalSolver` implements this on top of `core.FactorGraph`:
every submission is validated in full first, applied to a copy of the graph,
relinearized with damped Gauss–Newton from the current estimate, and swapped
in only if the estimate stays finite. A rejected submission leaves the
committed graph exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Protocol, Sequence, Tuple

import jax.numpy as jnp
from loguru import logger

from gpmp_jit.core.errors import SolverError
from gpmp_jit.core.factor_graph import FactorGraph
from gpmp_jit.core.keys import format_key, key_role
from gpmp_jit.core.types import Factor, FactorId, NodeId, Variable
from gpmp_jit.gp.measurements import register_trajectory_residuals
from .jit_wrappers import solve_graph
from .solvers import GNConfig


@dataclass(frozen=True)
class CommitResult:
    new_factor_ids: Tuple[FactorId, ...]
    removed_factor_ids: Tuple[FactorId, ...]
    error_before: float
    error_after: float


class IncrementalSolver(Protocol):
    """The narrow interface the planner needs from an incremental estimator."""

    def submit(
        self,
        new_factors: Sequence[Factor],
        new_values: Mapping[NodeId, jnp.ndarray],
        removed: Iterable[int],
    ) -> CommitResult: ...

    def estimate(self) -> Dict[NodeId, jnp.ndarray]: ...

    def factor_count(self) -> int: ...


def _var_type(nid: NodeId) -> str:
    try:
        return key_role(nid)
    except ValueError:
        return "other"


def _default_gn() -> GNConfig:
    # Trajectory graphs are close to linear away from obstacles; a loose step
    # clamp lets a goal change converge in a handful of iterations.
    return GNConfig(max_iters=10, damping=1e-6, max_step_norm=1e3)


@dataclass
class IncrementalSolverConfig:
    gn: GNConfig = field(default_factory=_default_gn)
    use_jit: bool = True


class GaussNewtonIncrementalSolver:
    """Incremental solver that relinearizes the active graph on every commit."""

    def __init__(self, cfg: IncrementalSolverConfig | None = None) -> None:
        self.cfg = cfg if cfg is not None else IncrementalSolverConfig()
        self.fg = FactorGraph()
        register_trajectory_residuals(self.fg)

    # --- Queries ---

    def factor_count(self) -> int:
        return len(self.fg.factors)

    def estimate(self) -> Dict[NodeId, jnp.ndarray]:
        return {nid: var.value for nid, var in self.fg.variables.items()}

    def get_factor(self, fid: int) -> Factor:
        return self.fg.factors[fid]

    def is_removed(self, fid: int) -> bool:
        return FactorId(fid) in self.fg.removed

    def active_factor_ids(self) -> List[FactorId]:
        return self.fg.active_factor_ids()

    # --- Commit ---

    def _validate(
        self,
        new_factors: Sequence[Factor],
        new_values: Mapping[NodeId, jnp.ndarray],
        removed: Sequence[int],
    ) -> None:
        for nid in new_values:
            if nid in self.fg.variables:
                raise SolverError(
                    f"Variable {format_key(nid)} already has a value; "
                    "initial values may only be given for new variables"
                )

        known = set(self.fg.variables) | set(new_values)
        for k, factor in enumerate(new_factors):
            if factor.type not in self.fg.residual_fns:
                raise SolverError(f"New factor {k} has unregistered type '{factor.type}'")
            missing = [format_key(nid) for nid in factor.var_ids if nid not in known]
            if missing:
                raise SolverError(
                    f"New factor {k} ({factor.type}) references variables without "
                    f"an initial value: {', '.join(missing)}"
                )

        end = self.factor_count() + len(new_factors)
        seen = set()
        for fid in removed:
            if fid in seen:
                raise SolverError(f"Factor {fid} listed for removal more than once")
            seen.add(fid)
            if not 0 <= fid < end:
                raise SolverError(f"Cannot remove factor {fid}: no such factor (count {end})")
            if fid in self.fg.removed:
                raise SolverError(f"Cannot remove factor {fid}: already removed")

    def submit(
        self,
        new_factors: Sequence[Factor],
        new_values: Mapping[NodeId, jnp.ndarray],
        removed: Iterable[int],
    ) -> CommitResult:
        """Atomically append, seed, retract and relinearize."""
        new_factors = list(new_factors)
        removed = [int(fid) for fid in removed]
        self._validate(new_factors, new_values, removed)

        fg = self.fg.copy()
        for nid, value in new_values.items():
            fg.add_variable(
                Variable(id=nid, type=_var_type(nid), value=jnp.asarray(value, dtype=jnp.float32))
            )
        new_ids = tuple(fg.add_factor(f) for f in new_factors)
        # Removal runs after appending, so a submission may retract factors it
        # adds itself.
        for fid in removed:
            fg.remove_factor(FactorId(fid))

        result = solve_graph(fg, self.cfg.gn, use_jit=self.cfg.use_jit)
        if not result.finite:
            raise SolverError(
                f"Relinearization diverged (error {result.error_before:.4g} -> {result.error_after})"
            )

        for nid, value in result.values.items():
            fg.variables[nid].value = value
        self.fg = fg

        logger.info(
            "Committed {} new factors, retracted {}; graph has {} active of {} factors "
            "and {} variables, error {:.4g} -> {:.4g}",
            len(new_ids),
            len(removed),
            len(fg.factors) - len(fg.removed),
            len(fg.factors),
            len(fg.variables),
            result.error_before,
            result.error_after,
        )
        return CommitResult(
            new_factor_ids=new_ids,
            removed_factor_ids=tuple(FactorId(fid) for fid in removed),
            error_before=result.error_before,
            error_after=result.error_after,
        )
