# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Trajectory optimizer settings.

`TrajOptimizerSetting` is fixed for the lifetime of a planner. It describes
the discretization (`total_time` split into `total_step` intervals, so
`total_step + 1` states), how densely obstacle costs are checked between
states, the obstacle-cost shaping, and the three noise models:

    qc_model          GP power-spectral density Qc (dof × dof covariance)
    conf_prior_model  boundary prior on a configuration
    vel_prior_model   boundary prior on a velocity

Invalid values raise `ConfigurationError` at construction.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

import jax.numpy as jnp

from gpmp_jit.core.errors import ConfigurationError
from gpmp_jit.core.noise import Gaussian


@dataclass(frozen=True)
class TrajOptimizerSetting:
    dof: int
    total_step: int
    total_time: float
    qc_model: Gaussian
    conf_prior_model: Gaussian
    vel_prior_model: Gaussian
    obs_check_inter: int = 0
    cost_sigma: float = 0.1
    epsilon: float = 0.2

    def __post_init__(self) -> None:
        if self.dof < 1:
            raise ConfigurationError(f"dof must be >= 1, got {self.dof}")
        if self.total_step < 1:
            raise ConfigurationError(f"total_step must be >= 1, got {self.total_step}")
        if not self.total_time > 0.0:
            raise ConfigurationError(f"total_time must be positive, got {self.total_time}")
        if self.obs_check_inter < 0:
            raise ConfigurationError(
                f"obs_check_inter must be >= 0, got {self.obs_check_inter}"
            )
        if not self.cost_sigma > 0.0:
            raise ConfigurationError(f"cost_sigma must be positive, got {self.cost_sigma}")
        if self.epsilon < 0.0:
            raise ConfigurationError(f"epsilon must be >= 0, got {self.epsilon}")
        for name in ("qc_model", "conf_prior_model", "vel_prior_model"):
            model = getattr(self, name)
            if model.dim != self.dof:
                raise ConfigurationError(
                    f"{name} has dimension {model.dim}, expected dof={self.dof}"
                )

    @classmethod
    def create(
        cls,
        dof: int,
        total_step: int,
        total_time: float,
        qc: float = 1.0,
        conf_prior_sigma: float = 1e-4,
        vel_prior_sigma: float = 1e-4,
        **kwargs,
    ) -> "TrajOptimizerSetting":
        """Build settings with isotropic noise models.

        :param qc: Scalar power-spectral density; ``Qc = qc * I``.
        :param conf_prior_sigma: Std-dev of configuration boundary priors.
        :param vel_prior_sigma: Std-dev of velocity boundary priors.
        :param kwargs: ``obs_check_inter``, ``cost_sigma``, ``epsilon``.
        """
        if dof < 1:
            raise ConfigurationError(f"dof must be >= 1, got {dof}")
        try:
            return cls(
                dof=dof,
                total_step=total_step,
                total_time=total_time,
                qc_model=Gaussian.from_covariance(qc * jnp.eye(dof)),
                conf_prior_model=Gaussian.isotropic(dof, conf_prior_sigma),
                vel_prior_model=Gaussian.isotropic(dof, vel_prior_sigma),
                **kwargs,
            )
        except ValueError as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(str(e)) from e

    @property
    def delta_t(self) -> float:
        """Time between consecutive states."""
        return self.total_time / float(self.total_step)

    @property
    def inter_dt(self) -> float:
        """Time between consecutive interpolated obstacle checks."""
        return self.delta_t / float(self.obs_check_inter + 1)

    def with_qc_model(self, qc) -> "TrajOptimizerSetting":
        """Copy with ``Qc`` set from a dof × dof covariance."""
        return dataclasses.replace(self, qc_model=Gaussian.from_covariance(qc))

    def with_conf_prior_sigma(self, sigma: float) -> "TrajOptimizerSetting":
        return dataclasses.replace(self, conf_prior_model=Gaussian.isotropic(self.dof, sigma))

    def with_vel_prior_sigma(self, sigma: float) -> "TrajOptimizerSetting":
        return dataclasses.replace(self, vel_prior_model=Gaussian.isotropic(self.dof, sigma))
