# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""Exception types raised by gpmp-jit."""


class GPMPError(Exception):
    """Base class for all gpmp-jit errors."""


class ConfigurationError(GPMPError, ValueError):
    """Invalid planner settings (e.g. ``total_step == 0``)."""


class SessionStateError(GPMPError, RuntimeError):
    """A planner operation was called in the wrong phase of its lifecycle."""


class StaleHandleError(SessionStateError):
    """A cached factor index does not (or no longer) refer to a committed factor."""


class SolverError(GPMPError, RuntimeError):
    """The incremental solver rejected a submission or failed to converge."""
