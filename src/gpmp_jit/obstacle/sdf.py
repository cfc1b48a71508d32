# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Signed distance field lookup.

The field is a regular grid of precomputed signed distances (positive in free
space, negative inside obstacles). Cell ``(i, j[, k])`` of ``data`` holds the
distance at ``origin + cell_size * (i, j[, k])``, i.e. axis 0 of ``data`` runs
along world x, axis 1 along world y, and so on. Queries between grid points
are multilinearly interpolated; queries outside the grid are clamped to the
nearest edge value, which keeps the lookup total and differentiable under
JIT. Use :meth:`SignedDistanceField.contains` to check range explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass

import jax.numpy as jnp
from jax.scipy.ndimage import map_coordinates


@dataclass(frozen=True, eq=False)
class SignedDistanceField:
    origin: jnp.ndarray
    cell_size: float
    data: jnp.ndarray

    def __post_init__(self) -> None:
        origin = jnp.asarray(self.origin, dtype=jnp.float32).reshape(-1)
        data = jnp.asarray(self.data, dtype=jnp.float32)
        if data.ndim != origin.shape[0]:
            raise ValueError(
                f"Field data has {data.ndim} axes but origin has {origin.shape[0]} coordinates"
            )
        if self.cell_size <= 0.0:
            raise ValueError(f"cell_size must be positive, got {self.cell_size}")
        object.__setattr__(self, "origin", origin)
        object.__setattr__(self, "data", data)

    @property
    def dim(self) -> int:
        return int(self.origin.shape[0])

    @property
    def upper_corner(self) -> jnp.ndarray:
        extent = jnp.asarray(self.data.shape, dtype=jnp.float32) - 1.0
        return self.origin + self.cell_size * extent

    def contains(self, point: jnp.ndarray) -> bool:
        p = jnp.asarray(point)[: self.dim]
        return bool(jnp.all(p >= self.origin) & jnp.all(p <= self.upper_corner))

    def signed_distance(self, point: jnp.ndarray) -> jnp.ndarray:
        """Interpolated signed distance at ``point`` (scalar)."""
        coords = (jnp.asarray(point)[: self.dim] - self.origin) / self.cell_size
        return map_coordinates(
            self.data,
            [coords[d][None] for d in range(self.dim)],
            order=1,
            mode="nearest",
        )[0]
