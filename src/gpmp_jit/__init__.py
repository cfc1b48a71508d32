# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""gpmp-jit: incremental Gaussian-process trajectory replanning in JAX."""

from gpmp_jit.core.errors import (
    ConfigurationError,
    GPMPError,
    SessionStateError,
    SolverError,
    StaleHandleError,
)
from gpmp_jit.core.keys import conf_key, vel_key, variable_key
from gpmp_jit.core.noise import Gaussian
from gpmp_jit.obstacle.robot import BodySphere, PointRobotModel
from gpmp_jit.obstacle.sdf import SignedDistanceField
from gpmp_jit.optimization.incremental import (
    GaussNewtonIncrementalSolver,
    IncrementalSolverConfig,
)
from gpmp_jit.planner.initialization import straight_line_init
from gpmp_jit.planner.isam_optimizer import IncrementalTrajOptimizer
from gpmp_jit.planner.settings import TrajOptimizerSetting

__version__ = "0.1.0"
