# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Densify a solved trajectory with GP-mean states.

A solution only has states at the ``total_step + 1`` support times. For
execution or collision checking it is often useful to have states in
between; the GP prior gives the mean at any time inside an interval, so no
extra optimization is needed.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

import jax.numpy as jnp

from gpmp_jit.core.keys import conf_key, vel_key
from gpmp_jit.core.types import NodeId
from gpmp_jit.gp.gaussian_process import GPInterpolator
from .settings import TrajOptimizerSetting


def interpolate_trajectory(
    values: Mapping[NodeId, jnp.ndarray],
    setting: TrajOptimizerSetting,
    inter_step: int,
    start_index: int = 0,
    end_index: Optional[int] = None,
) -> Dict[NodeId, jnp.ndarray]:
    """
    Insert ``inter_step`` GP-interpolated states into every interval between
    ``start_index`` and ``end_index`` (default: the last state).

    The output keys are renumbered from 0, so the result holds
    ``(end_index - start_index) * (inter_step + 1) + 1`` states.
    """
    if end_index is None:
        end_index = setting.total_step
    if inter_step < 0:
        raise ValueError(f"inter_step must be >= 0, got {inter_step}")
    if not 0 <= start_index < end_index <= setting.total_step:
        raise ValueError(
            f"Invalid interpolation range [{start_index}, {end_index}] for "
            f"total_step={setting.total_step}"
        )

    delta_t = setting.delta_t
    inter_dt = delta_t / float(inter_step + 1)
    interpolators = [
        GPInterpolator(dof=setting.dof, qc=setting.qc_model.covariance, delta_t=delta_t, tau=inter_dt * j)
        for j in range(1, inter_step + 1)
    ]

    result: Dict[NodeId, jnp.ndarray] = {}
    k = 0
    for i in range(start_index, end_index):
        conf1, vel1 = values[conf_key(i)], values[vel_key(i)]
        conf2, vel2 = values[conf_key(i + 1)], values[vel_key(i + 1)]

        result[conf_key(k)] = conf1
        result[vel_key(k)] = vel1
        k += 1
        for interp in interpolators:
            conf, vel = interp.interpolate(conf1, vel1, conf2, vel2)
            result[conf_key(k)] = conf
            result[vel_key(k)] = vel
            k += 1

    result[conf_key(k)] = values[conf_key(end_index)]
    result[vel_key(k)] = values[vel_key(end_index)]
    return result
