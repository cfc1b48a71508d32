# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Gaussian noise models.

A noise model turns a raw residual into a whitened one, so that the squared
norm of the whitened residual is the Mahalanobis cost ``rᵀ Σ⁻¹ r``. The
whitening matrix is the inverse of the Cholesky factor of the covariance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Union

import jax.numpy as jnp


@dataclass(frozen=True, eq=False)
class Gaussian:
    covariance: jnp.ndarray
    # Computed eagerly so residuals traced under jit only ever close over
    # concrete arrays.
    sqrt_precision_matrix: jnp.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        cov = jnp.asarray(self.covariance, dtype=jnp.float32)
        if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
            raise ValueError(f"Covariance must be a square matrix, got shape {cov.shape}")
        sqrt_precision = jnp.linalg.inv(jnp.linalg.cholesky(cov))
        if not bool(jnp.all(jnp.isfinite(sqrt_precision))):
            raise ValueError("Covariance must be symmetric positive definite")
        object.__setattr__(self, "covariance", cov)
        object.__setattr__(self, "sqrt_precision_matrix", sqrt_precision)

    @staticmethod
    def from_covariance(covariance) -> "Gaussian":
        return Gaussian(covariance=jnp.asarray(covariance))

    @staticmethod
    def isotropic(dim: int, sigma: float) -> "Gaussian":
        if sigma <= 0.0:
            raise ValueError(f"sigma must be positive, got {sigma}")
        return Gaussian(covariance=(sigma * sigma) * jnp.eye(dim))

    @staticmethod
    def diagonal(sigmas: Union[Sequence[float], jnp.ndarray]) -> "Gaussian":
        s = jnp.asarray(sigmas, dtype=jnp.float32)
        if bool(jnp.any(s <= 0.0)):
            raise ValueError("All sigmas must be positive")
        return Gaussian(covariance=jnp.diag(s * s))

    @property
    def dim(self) -> int:
        return int(self.covariance.shape[0])

    def whiten(self, residual: jnp.ndarray) -> jnp.ndarray:
        """Return ``L r`` so that ``‖L r‖² = rᵀ Σ⁻¹ r``."""
        return self.sqrt_precision_matrix @ residual
