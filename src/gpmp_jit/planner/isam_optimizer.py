# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Incremental trajectory optimizer with online replanning.

`IncrementalTrajOptimizer` keeps a trajectory factor graph inside an
incremental solver and lets the caller replan without rebuilding it:

    opt = IncrementalTrajOptimizer(robot, sdf, setting)
    opt.init_factor_graph(start_conf, start_vel, goal_conf, goal_vel)
    opt.init_values(straight_line_init(start_conf, goal_conf, N, T))
    opt.update()                                   # first commit

    opt.fix_config_and_vel(k, conf_k, vel_k)       # freeze executed part
    opt.change_goal_config_and_vel(new_goal, new_goal_vel)
    opt.update()                                   # retract old goal, commit new

Bookkeeping
-----------
The optimizer owns three pending buffers that `update()` submits in one
call and then clears:

    pending factors        new factors, in submission order
    pending values         initial values for new variables
    removal list           *committed* factor indices to retract

The solver numbers factors by position in its history, so the k-th pending
factor will get index ``solver.factor_count() + k``. The only indices the
optimizer remembers across commits are those of the current goal priors,
because a later goal change has to retract them. Between commits they are
prospective; the optimizer records the solver count they were computed
against and refuses to submit if the solver has moved since.

Failure contract
----------------
If the solver rejects a submission (`SolverError`), `update()` re-raises and
leaves the pending buffers and goal handles exactly as they were before the
call. The caller may fix the cause and retry, or discard the optimizer.

The optimizer is not thread-safe.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Tuple

import jax.numpy as jnp
from loguru import logger

from gpmp_jit.core.errors import ConfigurationError, SessionStateError, StaleHandleError
from gpmp_jit.core.keys import conf_key, vel_key
from gpmp_jit.core.types import Factor, NodeId
from gpmp_jit.optimization.incremental import (
    GaussNewtonIncrementalSolver,
    IncrementalSolver,
)
from .graph_builder import build_trajectory_factors, prior_factor
from .settings import TrajOptimizerSetting


class IncrementalTrajOptimizer:
    """Incremental planner over a GP trajectory factor graph."""

    def __init__(
        self,
        robot,
        sdf,
        setting: TrajOptimizerSetting,
        solver: Optional[IncrementalSolver] = None,
    ) -> None:
        if robot.dof != setting.dof:
            raise ConfigurationError(
                f"Robot has dof={robot.dof} but the setting expects dof={setting.dof}"
            )
        if robot.workspace_dim != sdf.dim:
            raise ConfigurationError(
                f"Robot body spheres are {robot.workspace_dim}-D but the field is {sdf.dim}-D"
            )

        self.robot = robot
        self.sdf = sdf
        self._setting = setting
        self.solver: IncrementalSolver = (
            solver if solver is not None else GaussNewtonIncrementalSolver()
        )

        self._inc_factors: List[Factor] = []
        self._init_values: Dict[NodeId, jnp.ndarray] = {}
        self._removed_factor_indices: List[int] = []
        # Solver count the pending factors were numbered against.
        self._pending_base: Optional[int] = None

        self._goal_conf_factor_idx: Optional[int] = None
        self._goal_vel_factor_idx: Optional[int] = None
        self._graph_initialized = False
        self._num_updates = 0
        self._opt_values: Dict[NodeId, jnp.ndarray] = {}

    # --- Read-only state ---

    @property
    def setting(self) -> TrajOptimizerSetting:
        return self._setting

    @property
    def goal_conf_factor_idx(self) -> Optional[int]:
        return self._goal_conf_factor_idx

    @property
    def goal_vel_factor_idx(self) -> Optional[int]:
        return self._goal_vel_factor_idx

    @property
    def pending_factors(self) -> Tuple[Factor, ...]:
        return tuple(self._inc_factors)

    @property
    def pending_values(self) -> Dict[NodeId, jnp.ndarray]:
        return dict(self._init_values)

    @property
    def removed_factor_indices(self) -> Tuple[int, ...]:
        return tuple(self._removed_factor_indices)

    @property
    def num_updates(self) -> int:
        return self._num_updates

    def values(self) -> Dict[NodeId, jnp.ndarray]:
        """Estimate returned by the last successful `update()`."""
        return dict(self._opt_values)

    # --- Pending buffer helpers ---

    def _append(self, factor: Factor) -> int:
        """Append to the pending set and return the factor's prospective index."""
        if self._pending_base is None:
            self._pending_base = self.solver.factor_count()
        self._inc_factors.append(factor)
        return self._pending_base + len(self._inc_factors) - 1

    def _check_state_index(self, state_idx: int) -> None:
        if not 0 <= state_idx <= self._setting.total_step:
            raise ValueError(
                f"State index {state_idx} out of range [0, {self._setting.total_step}]"
            )

    # --- Operations ---

    def init_factor_graph(self, start_conf, start_vel, goal_conf, goal_vel) -> None:
        """Queue the full trajectory graph for the first commit."""
        if self._graph_initialized or self._num_updates > 0:
            raise SessionStateError(
                "Factor graph already initialized; use change_goal_config_and_vel "
                "or fix_config_and_vel to replan"
            )

        built = build_trajectory_factors(
            self._setting, self.robot, self.sdf, start_conf, start_vel, goal_conf, goal_vel
        )
        indices = [self._append(f) for f in built.factors]
        self._goal_conf_factor_idx = indices[built.goal_conf_position]
        self._goal_vel_factor_idx = indices[built.goal_vel_position]
        self._graph_initialized = True

        logger.debug(
            "Built trajectory graph: {} factors over {} states, goal priors at {} / {}",
            len(built.factors),
            self._setting.total_step + 1,
            self._goal_conf_factor_idx,
            self._goal_vel_factor_idx,
        )

    def init_values(self, values: Mapping[NodeId, jnp.ndarray]) -> None:
        """Replace the pending initial values wholesale."""
        self._init_values = {
            NodeId(int(k)): jnp.asarray(v, dtype=jnp.float32) for k, v in values.items()
        }

    def update(self) -> Dict[NodeId, jnp.ndarray]:
        """Submit all pending state in one commit and refresh the estimate."""
        if self._pending_base is not None and self.solver.factor_count() != self._pending_base:
            raise StaleHandleError(
                f"Solver factor count moved from {self._pending_base} to "
                f"{self.solver.factor_count()} while factors were pending; "
                "cached indices no longer match"
            )

        self.solver.submit(
            list(self._inc_factors),
            dict(self._init_values),
            list(self._removed_factor_indices),
        )
        self._opt_values = self.solver.estimate()

        # clean used buffers
        self._inc_factors = []
        self._init_values = {}
        self._removed_factor_indices = []
        self._pending_base = None
        self._num_updates += 1
        return self.values()

    def change_goal_config_and_vel(self, goal_conf, goal_vel) -> None:
        """Replace the goal priors; takes effect at the next `update()`."""
        if self._num_updates == 0 or self._goal_conf_factor_idx is None:
            raise StaleHandleError(
                "No committed goal factors to replace; call update() after "
                "init_factor_graph() first"
            )

        # retract the current goal priors
        self._removed_factor_indices.append(self._goal_conf_factor_idx)
        self._removed_factor_indices.append(self._goal_vel_factor_idx)

        last = self._setting.total_step
        self._goal_conf_factor_idx = self._append(
            prior_factor(conf_key(last), goal_conf, self._setting.conf_prior_model)
        )
        self._goal_vel_factor_idx = self._append(
            prior_factor(vel_key(last), goal_vel, self._setting.vel_prior_model)
        )

        logger.debug(
            "Goal change queued: retracting {}, new goal priors at {} / {}",
            self._removed_factor_indices[-2:],
            self._goal_conf_factor_idx,
            self._goal_vel_factor_idx,
        )

    def fix_config_and_vel(self, state_idx: int, conf_fix, vel_fix) -> None:
        """Add priors pinning state ``state_idx``; nothing is removed."""
        self._check_state_index(state_idx)
        self._append(prior_factor(conf_key(state_idx), conf_fix, self._setting.conf_prior_model))
        self._append(prior_factor(vel_key(state_idx), vel_fix, self._setting.vel_prior_model))
        logger.debug("Fixed state {} with two priors", state_idx)
