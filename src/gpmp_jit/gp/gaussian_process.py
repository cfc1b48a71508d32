# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Constant-velocity Gaussian-process prior utilities.

The trajectory is modelled as a white-noise-on-acceleration GP. Each support
state stacks configuration and velocity, ``s = [q; q̇] ∈ ℝ^{2·dof}``, and the
prior between two states ``δt`` apart is

    s₂ ~ N( Φ(δt) s₁ , Q(δt) )

with the transition matrix and process covariance

    Φ(τ) = [[I, τ I],      Q(τ) = [[τ³/3 Qc, τ²/2 Qc],
            [0,   I ]]              [τ²/2 Qc,   τ  Qc]]

where ``Qc`` is the power-spectral density of the acceleration noise.

The same model gives the GP mean at any time ``τ`` inside an interval, which
is what the interpolated obstacle factors and the trajectory densifier use:

    s(τ) = Λ(τ) s₁ + Ψ(τ) s₂
    Ψ(τ) = Q(τ) Φ(δt − τ)ᵀ Q(δt)⁻¹
    Λ(τ) = Φ(τ) − Ψ(τ) Φ(δt)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import jax.numpy as jnp


def calc_phi(dof: int, tau: float) -> jnp.ndarray:
    """State transition matrix Φ(τ), shape (2·dof, 2·dof)."""
    eye = jnp.eye(dof)
    zeros = jnp.zeros((dof, dof))
    return jnp.block([[eye, tau * eye], [zeros, eye]])


def calc_q(qc: jnp.ndarray, tau: float) -> jnp.ndarray:
    """Process covariance Q(τ) for power-spectral density ``qc``."""
    qc = jnp.asarray(qc)
    return jnp.block(
        [
            [(tau ** 3 / 3.0) * qc, (tau ** 2 / 2.0) * qc],
            [(tau ** 2 / 2.0) * qc, tau * qc],
        ]
    )


def calc_q_inv(qc: jnp.ndarray, tau: float) -> jnp.ndarray:
    """Closed-form inverse of :func:`calc_q`."""
    qc_inv = jnp.linalg.inv(jnp.asarray(qc))
    return jnp.block(
        [
            [(12.0 / tau ** 3) * qc_inv, (-6.0 / tau ** 2) * qc_inv],
            [(-6.0 / tau ** 2) * qc_inv, (4.0 / tau) * qc_inv],
        ]
    )


@dataclass(frozen=True, eq=False)
class GPInterpolator:
    """GP mean at time ``tau`` inside an interval of length ``delta_t``.

    ``lambda_`` and ``psi`` are precomputed at construction so residuals that
    hold an interpolator close over concrete arrays only.
    """
    dof: int
    qc: jnp.ndarray
    delta_t: float
    tau: float
    lambda_: jnp.ndarray = field(init=False, repr=False)
    psi: jnp.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not 0.0 <= self.tau <= self.delta_t:
            raise ValueError(
                f"Interpolation time tau={self.tau} outside [0, {self.delta_t}]"
            )
        qc = jnp.asarray(self.qc, dtype=jnp.float32)
        object.__setattr__(self, "qc", qc)

        if self.tau == 0.0:
            # Q(0) is singular but Ψ(0) = 0 and Λ(0) = I exactly.
            psi = jnp.zeros((2 * self.dof, 2 * self.dof))
            lam = jnp.eye(2 * self.dof)
        else:
            psi = (
                calc_q(qc, self.tau)
                @ calc_phi(self.dof, self.delta_t - self.tau).T
                @ calc_q_inv(qc, self.delta_t)
            )
            lam = calc_phi(self.dof, self.tau) - psi @ calc_phi(self.dof, self.delta_t)
        object.__setattr__(self, "lambda_", lam)
        object.__setattr__(self, "psi", psi)

    def interpolate(
        self,
        conf1: jnp.ndarray,
        vel1: jnp.ndarray,
        conf2: jnp.ndarray,
        vel2: jnp.ndarray,
    ) -> Tuple[jnp.ndarray, jnp.ndarray]:
        """Return the interpolated ``(conf, vel)`` at ``tau``."""
        s = self.lambda_ @ jnp.concatenate([conf1, vel1]) + self.psi @ jnp.concatenate(
            [conf2, vel2]
        )
        return s[: self.dof], s[self.dof :]

    def interpolate_pose(self, conf1, vel1, conf2, vel2) -> jnp.ndarray:
        return self.interpolate(conf1, vel1, conf2, vel2)[0]
