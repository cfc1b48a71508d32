from __future__ import annotations

import pytest
import jax.numpy as jnp

from gpmp_jit.core.types import NodeId, FactorId, Variable, Factor
from gpmp_jit.core.factor_graph import FactorGraph
from gpmp_jit.gp.measurements import prior_residual
from gpmp_jit.optimization.solvers import gauss_newton, GNConfig


def _scalar_graph() -> FactorGraph:
    fg = FactorGraph()
    fg.add_variable(Variable(id=NodeId(0), type="scalar", value=jnp.array([0.0])))
    fg.register_residual("prior", prior_residual)
    return fg


def test_single_variable_prior():
    """
    One variable x, one prior factor:
        residual = x - target
    The optimum should be x ~= target.
    """
    fg = _scalar_graph()
    fid = fg.add_factor(
        Factor(type="prior", var_ids=(NodeId(0),), params={"target": jnp.array([2.0])})
    )
    assert fid == FactorId(0)

    x_init, index = fg.pack_state()
    residual_fn = fg.build_residual_function()

    cfg = GNConfig(max_iters=5, damping=1e-6)
    x_opt = gauss_newton(residual_fn, x_init, cfg)

    assert x_opt.shape == (1,)
    assert float(x_opt[0]) == pytest.approx(2.0, abs=1e-3)


def test_retracted_factor_no_longer_contributes():
    """
    Two priors pull the same scalar to 0 and to 2; the optimum is 1.
    Retracting the first prior leaves only the pull towards 2.
    """
    fg = _scalar_graph()
    f0 = fg.add_factor(Factor(type="prior", var_ids=(NodeId(0),), params={"target": jnp.array([0.0])}))
    f1 = fg.add_factor(Factor(type="prior", var_ids=(NodeId(0),), params={"target": jnp.array([2.0])}))

    cfg = GNConfig(max_iters=5, damping=1e-6)
    x_init, _ = fg.pack_state()
    x_both = gauss_newton(fg.build_residual_function(), x_init, cfg)
    assert float(x_both[0]) == pytest.approx(1.0, abs=1e-3)

    fg.remove_factor(f0)
    assert fg.active_factor_ids() == [f1]
    # History length is unchanged by retraction
    assert len(fg.factors) == 2

    x_one = gauss_newton(fg.build_residual_function(), x_init, cfg)
    assert float(x_one[0]) == pytest.approx(2.0, abs=1e-3)


def test_copy_is_independent():
    fg = _scalar_graph()
    fg.add_factor(Factor(type="prior", var_ids=(NodeId(0),), params={"target": jnp.array([1.0])}))

    other = fg.copy()
    other.remove_factor(FactorId(0))
    other.variables[NodeId(0)].value = jnp.array([5.0])

    assert fg.removed == set()
    assert float(fg.variables[NodeId(0)].value[0]) == 0.0


def test_empty_graph_packs_to_empty_state():
    fg = FactorGraph()
    x, index = fg.pack_state()
    assert x.shape == (0,)
    assert index == {}
