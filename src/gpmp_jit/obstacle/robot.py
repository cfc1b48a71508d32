# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Body-sphere robot models for obstacle costs.

Obstacle factors only need to know where the robot's collision geometry is
for a given configuration. The geometry is a set of spheres; the cost is
evaluated at each sphere centre against the signed distance field, inflated
by the sphere radius.

:class:`PointRobotModel` is the simplest such model: the leading
``workspace_dim`` configuration entries are the robot's position, and every
sphere is rigidly offset from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

import jax.numpy as jnp


class RobotModel(Protocol):
    """What obstacle residuals need from a robot."""

    dof: int

    @property
    def nr_body_spheres(self) -> int: ...

    @property
    def workspace_dim(self) -> int: ...

    @property
    def sphere_radii(self) -> jnp.ndarray: ...

    def sphere_centers(self, conf: jnp.ndarray) -> jnp.ndarray: ...


@dataclass(frozen=True)
class BodySphere:
    center: Tuple[float, ...]   # offset from the robot position
    radius: float


@dataclass(frozen=True)
class PointRobotModel:
    dof: int
    spheres: Tuple[BodySphere, ...]

    def __post_init__(self) -> None:
        if not self.spheres:
            raise ValueError("PointRobotModel needs at least one body sphere")
        dims = {len(s.center) for s in self.spheres}
        if len(dims) != 1:
            raise ValueError("All body spheres must have the same dimension")
        if dims.pop() > self.dof:
            raise ValueError("Body sphere dimension exceeds robot dof")
        object.__setattr__(self, "spheres", tuple(self.spheres))

    @classmethod
    def point(cls, dof: int, radius: float, workspace_dim: Optional[int] = None) -> "PointRobotModel":
        """Single sphere of ``radius`` centred on the robot position."""
        wdim = dof if workspace_dim is None else workspace_dim
        return cls(dof=dof, spheres=(BodySphere(center=(0.0,) * wdim, radius=radius),))

    @classmethod
    def from_spheres(cls, dof: int, centers: Sequence[Sequence[float]], radii: Sequence[float]) -> "PointRobotModel":
        spheres = tuple(
            BodySphere(center=tuple(float(c) for c in ctr), radius=float(r))
            for ctr, r in zip(centers, radii)
        )
        return cls(dof=dof, spheres=spheres)

    @property
    def nr_body_spheres(self) -> int:
        return len(self.spheres)

    @property
    def workspace_dim(self) -> int:
        return len(self.spheres[0].center)

    @property
    def sphere_radii(self) -> jnp.ndarray:
        return jnp.array([s.radius for s in self.spheres], dtype=jnp.float32)

    def sphere_centers(self, conf: jnp.ndarray) -> jnp.ndarray:
        """Sphere centres in world frame, shape (nr_body_spheres, workspace_dim)."""
        offsets = jnp.array([s.center for s in self.spheres], dtype=jnp.float32)
        position = conf[: self.workspace_dim]
        return position[None, :] + offsets
