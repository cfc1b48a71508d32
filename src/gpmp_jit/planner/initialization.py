# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""Initial trajectory guesses."""

from __future__ import annotations

from typing import Dict

import jax.numpy as jnp

from gpmp_jit.core.keys import conf_key, vel_key
from gpmp_jit.core.types import NodeId


def straight_line_init(start_conf, goal_conf, total_step: int, total_time: float) -> Dict[NodeId, jnp.ndarray]:
    """
    Straight line in configuration space at constant velocity.

    Configurations are evenly spaced from ``start_conf`` to ``goal_conf``;
    every velocity is the average velocity ``(goal - start) / total_time``.
    Returns values for all ``2 * (total_step + 1)`` trajectory keys.
    """
    start = jnp.asarray(start_conf, dtype=jnp.float32)
    goal = jnp.asarray(goal_conf, dtype=jnp.float32)
    avg_vel = (goal - start) / total_time

    values: Dict[NodeId, jnp.ndarray] = {}
    for i in range(total_step + 1):
        ratio = i / float(total_step)
        values[conf_key(i)] = (1.0 - ratio) * start + ratio * goal
        values[vel_key(i)] = avg_vel
    return values
