# Copyright (c) 2025.
# This file is part of gpmp-jit, released under the MIT License.
"""
Variable keys for trajectory states.

Every state of a discretized trajectory is a (configuration, velocity) pair.
Each half gets its own integer key, built the way gtsam builds a ``Symbol``:
a one-character role tag in the top 8 bits and the step index in the low 56
bits. Keys are plain ints, so they sort, hash and pack into the factor
graph's state vector like any other :class:`~gpmp_jit.core.types.NodeId`.
"""

from __future__ import annotations

from gpmp_jit.core.types import NodeId

_CHR_BITS = 8
_INDEX_BITS = 56
_INDEX_MASK = (1 << _INDEX_BITS) - 1

CONF_CHR = "x"
VEL_CHR = "v"


class StateRole:
    """Role of a trajectory variable."""
    CONF = "conf"
    VEL = "vel"


_ROLE_TO_CHR = {StateRole.CONF: CONF_CHR, StateRole.VEL: VEL_CHR}
_CHR_TO_ROLE = {c: r for r, c in _ROLE_TO_CHR.items()}


def symbol(chr_: str, index: int) -> NodeId:
    """Build an integer key from a one-character tag and an index."""
    if len(chr_) != 1 or ord(chr_) >= (1 << _CHR_BITS):
        raise ValueError(f"Key tag must be a single 8-bit character, got {chr_!r}")
    index = int(index)
    if index < 0 or index > _INDEX_MASK:
        raise ValueError(f"Key index {index} out of range [0, {_INDEX_MASK}]")
    return NodeId((ord(chr_) << _INDEX_BITS) | index)


def symbol_chr(key: int) -> str:
    return chr(int(key) >> _INDEX_BITS)


def symbol_index(key: int) -> int:
    return int(key) & _INDEX_MASK


def conf_key(index: int) -> NodeId:
    """Key of the configuration at trajectory step ``index``."""
    return symbol(CONF_CHR, index)


def vel_key(index: int) -> NodeId:
    """Key of the velocity at trajectory step ``index``."""
    return symbol(VEL_CHR, index)


def variable_key(role: str, index: int) -> NodeId:
    """Key for ``role`` (``StateRole.CONF`` / ``StateRole.VEL``) at ``index``."""
    try:
        chr_ = _ROLE_TO_CHR[role]
    except KeyError:
        raise ValueError(f"Unknown state role '{role}'") from None
    return symbol(chr_, index)


def key_role(key: int) -> str:
    """Inverse of :func:`variable_key` for the role part."""
    chr_ = symbol_chr(key)
    if chr_ not in _CHR_TO_ROLE:
        raise ValueError(f"Key {int(key)} is not a trajectory state key")
    return _CHR_TO_ROLE[chr_]


def format_key(key: int) -> str:
    """Human readable form, e.g. ``x3``."""
    return f"{symbol_chr(key)}{symbol_index(key)}"
