# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Core typed data structures for gpmp-jit.

This module defines the lightweight container classes used throughout the
incremental trajectory factor graph. These types are intentionally minimal:
they store only structural information and initial values, while all numerical
operations are performed by JAX-compiled functions in the optimization layer.

Classes
-------
Variable
    Represents a node in the factor graph. A variable contains:
    - id: Integer key (see `core.keys`), e.g. the configuration at step 3
    - type: "conf" or "vel" for trajectory states
    - value: Current numeric state, a 1-D JAX array of length `dof`

Factor
    Represents a constraint between one or more variables. A factor contains:
    - type: String key selecting a residual function
    - var_ids: Ordered tuple of variable keys used by the residual
    - params: Dictionary of parameters passed into the residual function
              (targets, noise models, robot / field collaborators, ...)

Notes
-----
A Factor does not know its own index. Indices are assigned by the graph that
commits the factor (position in its cumulative factor history), which is what
lets the planner refer to not-yet-committed factors by prospective index.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import NewType, Dict, Any

NodeId = NewType("NodeId", int)
FactorId = NewType("FactorId", int)


@dataclass
class Variable:
    """Generic optimization variable node in the factor graph."""
    id: NodeId
    type: str          # "conf" or "vel"
    value: Any         # 1-D JAX array


@dataclass
class Factor:
    """Factor connecting variables; indexed by whichever graph commits it."""
    type: str          # e.g. "prior", "gp_prior", "obstacle_sdf"
    var_ids: tuple[NodeId, ...]
    params: Dict[str, Any]  # Target, noise model, collaborators, etc.
