# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""Collision cost of a trajectory."""

from __future__ import annotations

from typing import Mapping

import jax.numpy as jnp

from gpmp_jit.core.factor_graph import FactorGraph
from gpmp_jit.core.types import NodeId, Variable
from gpmp_jit.core.keys import key_role
from gpmp_jit.gp.measurements import register_trajectory_residuals
from .graph_builder import build_obstacle_factors
from .settings import TrajOptimizerSetting


def collision_cost(
    robot,
    sdf,
    values: Mapping[NodeId, jnp.ndarray],
    setting: TrajOptimizerSetting,
) -> float:
    """
    ``0.5 * Σ ‖r‖²`` over the obstacle and interpolated obstacle factors of
    the trajectory in ``values``. Zero means every checked body sphere is at
    least ``epsilon`` away from obstacles.
    """
    fg = FactorGraph()
    register_trajectory_residuals(fg)
    for nid, value in values.items():
        fg.add_variable(Variable(id=nid, type=key_role(nid), value=jnp.asarray(value)))
    for factor in build_obstacle_factors(setting, robot, sdf):
        fg.add_factor(factor)

    x, _ = fg.pack_state()
    return 0.5 * float(fg.build_objective()(x))
