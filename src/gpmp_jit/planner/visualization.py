# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Visualization utilities for planar trajectories.

`plot_trajectory_2d()` draws a top-down Matplotlib view of a trajectory:

1. **Field**: the signed distance field as a background image, with the
   zero level set (obstacle boundary) drawn as a contour.
2. **Trajectory**: the configuration path through the support states,
   using the first two configuration coordinates as x–y.
3. **Body spheres**: one circle per body sphere at every state, so clearance
   against the obstacles is visible at a glance.

Pass a dense trajectory from `planner.interpolation.interpolate_trajectory`
to see the GP-interpolated path between support states.
"""

from __future__ import annotations

from typing import Mapping, Optional

import jax.numpy as jnp
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Circle

from gpmp_jit.core.keys import CONF_CHR, conf_key, symbol_chr
from gpmp_jit.core.types import NodeId


def _trajectory_xy(values: Mapping[NodeId, jnp.ndarray]) -> np.ndarray:
    """Positions (first two conf coordinates) ordered by state index."""
    n_states = sum(1 for k in values if symbol_chr(k) == CONF_CHR)
    return np.array([np.asarray(values[conf_key(i)])[:2] for i in range(n_states)])


def plot_trajectory_2d(
    values: Mapping[NodeId, jnp.ndarray],
    sdf=None,
    robot=None,
    ax: Optional[plt.Axes] = None,
    show_states: bool = True,
) -> plt.Axes:
    """
    Top-down view of a planar trajectory.

    :param values: Trajectory values keyed by `conf_key(i)` / `vel_key(i)`.
    :param sdf: Optional 2-D `SignedDistanceField` drawn as background.
    :param robot: Optional robot model; its body spheres are drawn per state.
    :param ax: Axes to draw into; a new figure is created if omitted.
    :param show_states: Whether to mark the support states.
    :return: The axes drawn into.
    """
    if ax is None:
        _, ax = plt.subplots()
    ax.set_aspect("equal")

    if sdf is not None:
        if sdf.dim != 2:
            raise ValueError(f"plot_trajectory_2d needs a 2-D field, got {sdf.dim}-D")
        lo = np.asarray(sdf.origin)
        hi = np.asarray(sdf.upper_corner)
        # data axis 0 is world x; imshow wants rows = y
        field = np.asarray(sdf.data).T
        extent = (lo[0], hi[0], lo[1], hi[1])
        ax.imshow(field, origin="lower", extent=extent, cmap="viridis", alpha=0.6)
        ax.contour(field, levels=[0.0], origin="lower", extent=extent, colors="k", linewidths=1.5)

    xy = _trajectory_xy(values)
    ax.plot(xy[:, 0], xy[:, 1], color="C3", linewidth=1.5)
    if show_states:
        ax.scatter(xy[:, 0], xy[:, 1], s=12, c="C3", zorder=3)

    if robot is not None:
        n_states = xy.shape[0]
        radii = np.asarray(robot.sphere_radii)
        for i in range(n_states):
            centers = np.asarray(robot.sphere_centers(jnp.asarray(values[conf_key(i)])))
            for c, r in zip(centers, radii):
                ax.add_patch(Circle((c[0], c[1]), r, fill=False, color="C1", alpha=0.5))

    ax.set_xlabel("x")
    ax.set_ylabel("y")
    return ax
