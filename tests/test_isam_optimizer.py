"""
Replanning bookkeeping of IncrementalTrajOptimizer.

Most tests run against a recording solver so the exact submissions can be
inspected; the end-to-end tests use the Gauss-Newton incremental solver on
an obstacle-free field.
"""

from typing import Dict, List

import jax.numpy as jnp
import numpy as np
import pytest

from gpmp_jit.core.errors import (
    ConfigurationError,
    SessionStateError,
    SolverError,
    StaleHandleError,
)
from gpmp_jit.core.keys import conf_key, vel_key
from gpmp_jit.gp.measurements import PRIOR
from gpmp_jit.obstacle.robot import PointRobotModel
from gpmp_jit.obstacle.sdf import SignedDistanceField
from gpmp_jit.optimization.incremental import CommitResult, GaussNewtonIncrementalSolver
from gpmp_jit.planner.initialization import straight_line_init
from gpmp_jit.planner.isam_optimizer import IncrementalTrajOptimizer
from gpmp_jit.planner.settings import TrajOptimizerSetting


class RecordingSolver:
    """Keeps every submission; the estimate is just the seeded values."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.count = 0
        self.values: Dict[int, jnp.ndarray] = {}

    def submit(self, new_factors, new_values, removed):
        new_factors = list(new_factors)
        removed = list(removed)
        self.calls.append((new_factors, dict(new_values), removed))
        ids = tuple(range(self.count, self.count + len(new_factors)))
        self.count += len(new_factors)
        self.values.update(new_values)
        return CommitResult(ids, tuple(removed), 0.0, 0.0)

    def estimate(self):
        return dict(self.values)

    def factor_count(self):
        return self.count


class FailingSolver(RecordingSolver):
    def submit(self, new_factors, new_values, removed):
        raise SolverError("rejected")


def _free_field():
    return SignedDistanceField(origin=jnp.zeros(2), cell_size=0.5, data=jnp.full((10, 10), 10.0))


def _setting(total_step=2, obs_check_inter=1):
    return TrajOptimizerSetting.create(
        dof=2,
        total_step=total_step,
        total_time=1.0,
        obs_check_inter=obs_check_inter,
        conf_prior_sigma=1e-2,
        vel_prior_sigma=1e-2,
    )


def _optimizer(solver=None, total_step=2, obs_check_inter=1):
    robot = PointRobotModel.point(dof=2, radius=0.1)
    return IncrementalTrajOptimizer(robot, _free_field(), _setting(total_step, obs_check_inter), solver=solver)


START, GOAL = jnp.array([0.0, 0.0]), jnp.array([1.0, 0.0])
VEL = jnp.array([1.0, 0.0])


def _initialized(solver=None, total_step=2, obs_check_inter=1):
    opt = _optimizer(solver, total_step, obs_check_inter)
    opt.init_factor_graph(START, VEL, GOAL, VEL)
    opt.init_values(straight_line_init(START, GOAL, total_step, 1.0))
    return opt


def test_init_factor_graph_fills_pending_buffer():
    opt = _optimizer(RecordingSolver())
    opt.init_factor_graph(START, VEL, GOAL, VEL)

    assert len(opt.pending_factors) == 11
    assert opt.goal_conf_factor_idx == 6
    assert opt.goal_vel_factor_idx == 7
    assert opt.removed_factor_indices == ()


def test_update_submits_everything_once_and_clears_buffers():
    solver = RecordingSolver()
    opt = _initialized(solver)
    values = opt.update()

    assert len(solver.calls) == 1
    factors, seeded, removed = solver.calls[0]
    assert len(factors) == 11
    assert len(seeded) == 6
    assert removed == []

    assert opt.pending_factors == ()
    assert opt.pending_values == {}
    assert opt.removed_factor_indices == ()
    assert opt.num_updates == 1
    assert set(values) == set(seeded)


def test_goal_change_retracts_old_pair_and_commits_new():
    solver = RecordingSolver()
    opt = _initialized(solver)
    opt.update()

    new_goal = jnp.array([2.0, 0.0])
    opt.change_goal_config_and_vel(new_goal, VEL)
    assert opt.removed_factor_indices == (6, 7)
    assert opt.goal_conf_factor_idx == 11
    assert opt.goal_vel_factor_idx == 12

    opt.update()
    factors, seeded, removed = solver.calls[1]
    assert removed == [6, 7]
    assert seeded == {}
    assert [f.var_ids for f in factors] == [(conf_key(2),), (vel_key(2),)]
    assert jnp.allclose(factors[0].params["target"], new_goal)

    # handles now refer to committed factors
    assert solver.factor_count() == 13
    assert opt.goal_conf_factor_idx == 11
    assert opt.goal_vel_factor_idx == 12


def test_two_goal_changes_before_one_update():
    solver = RecordingSolver()
    opt = _initialized(solver)
    opt.update()

    opt.change_goal_config_and_vel(jnp.array([2.0, 0.0]), VEL)
    opt.change_goal_config_and_vel(jnp.array([3.0, 0.0]), VEL)
    # the second change retracts the first change's prospective handles
    assert opt.removed_factor_indices == (6, 7, 11, 12)
    assert opt.goal_conf_factor_idx == 13
    assert opt.goal_vel_factor_idx == 14

    opt.update()
    factors, _, removed = solver.calls[1]
    assert removed == [6, 7, 11, 12]
    assert len(factors) == 4


def test_fix_twice_adds_two_separate_pairs():
    solver = RecordingSolver()
    opt = _initialized(solver)
    opt.update()

    conf = jnp.array([0.5, 0.0])
    opt.fix_config_and_vel(1, conf, VEL)
    opt.fix_config_and_vel(1, conf, VEL)
    assert opt.removed_factor_indices == ()
    factors = opt.pending_factors
    assert len(factors) == 4
    assert all(f.type == PRIOR for f in factors)
    assert [f.var_ids for f in factors] == [(conf_key(1),), (vel_key(1),)] * 2
    assert factors[0] is not factors[2]

    # goal handles are untouched by fixing
    assert opt.goal_conf_factor_idx == 6
    opt.update()
    assert len(solver.calls[1][0]) == 4
    assert solver.calls[1][2] == []


def test_fix_twice_with_same_arguments_commits_four_factors():
    opt = _initialized()
    opt.update()

    conf = jnp.array([0.5, 0.0])
    opt.fix_config_and_vel(1, conf, VEL)
    opt.fix_config_and_vel(1, conf, VEL)
    opt.update()

    solver = opt.solver
    assert solver.factor_count() == 15
    new_ids = list(range(11, 15))
    assert all(fid in solver.active_factor_ids() for fid in new_ids)
    assert not any(solver.is_removed(fid) for fid in new_ids)
    assert [solver.get_factor(fid).var_ids for fid in new_ids] == [
        (conf_key(1),), (vel_key(1),), (conf_key(1),), (vel_key(1),)
    ]


def test_robot_dof_must_match_setting():
    robot = PointRobotModel.point(dof=3, radius=0.1, workspace_dim=2)
    with pytest.raises(ConfigurationError):
        IncrementalTrajOptimizer(robot, _free_field(), _setting(), solver=RecordingSolver())


def test_robot_workspace_must_match_field():
    robot = PointRobotModel.point(dof=2, radius=0.1)
    field_3d = SignedDistanceField(origin=jnp.zeros(3), cell_size=0.5, data=jnp.full((4, 4, 4), 10.0))
    with pytest.raises(ConfigurationError):
        IncrementalTrajOptimizer(robot, field_3d, _setting(), solver=RecordingSolver())


def test_fix_out_of_range():
    opt = _initialized(RecordingSolver())
    with pytest.raises(ValueError):
        opt.fix_config_and_vel(3, START, VEL)
    with pytest.raises(ValueError):
        opt.fix_config_and_vel(-1, START, VEL)


def test_init_values_replaces_wholesale():
    opt = _optimizer(RecordingSolver())
    opt.init_values({conf_key(0): jnp.zeros(2), vel_key(0): jnp.zeros(2)})
    opt.init_values({conf_key(1): jnp.ones(2)})
    assert set(opt.pending_values) == {conf_key(1)}


def test_goal_change_before_first_update():
    opt = _initialized(RecordingSolver())
    with pytest.raises(StaleHandleError):
        opt.change_goal_config_and_vel(jnp.array([2.0, 0.0]), VEL)


def test_init_factor_graph_twice():
    opt = _initialized(RecordingSolver())
    with pytest.raises(SessionStateError):
        opt.init_factor_graph(START, VEL, GOAL, VEL)
    opt.update()
    with pytest.raises(SessionStateError):
        opt.init_factor_graph(START, VEL, GOAL, VEL)


def test_update_refuses_when_solver_moved_underneath():
    solver = RecordingSolver()
    opt = _initialized(solver)
    opt.update()
    opt.change_goal_config_and_vel(jnp.array([2.0, 0.0]), VEL)

    # someone else commits to the shared solver
    solver.submit([opt.pending_factors[0]], {}, [])
    with pytest.raises(StaleHandleError):
        opt.update()


def test_failed_update_keeps_buffers_and_handles():
    opt = _initialized(FailingSolver())
    pending = opt.pending_factors
    seeded = opt.pending_values

    with pytest.raises(SolverError):
        opt.update()

    assert len(opt.pending_factors) == len(pending)
    assert all(a is b for a, b in zip(opt.pending_factors, pending))
    assert set(opt.pending_values) == set(seeded)
    assert opt.goal_conf_factor_idx == 6
    assert opt.num_updates == 0
    assert opt.values() == {}


def test_end_to_end_commit_counts():
    opt = _initialized()
    values = opt.update()

    assert opt.solver.factor_count() == 11
    assert len(values) == 6
    assert set(values) == {conf_key(i) for i in range(3)} | {vel_key(i) for i in range(3)}
    assert opt.pending_factors == ()
    assert opt.pending_values == {}
    assert opt.removed_factor_indices == ()


def test_end_to_end_goal_change_moves_final_state():
    opt = _initialized(total_step=4, obs_check_inter=1)
    values = opt.update()
    np.testing.assert_allclose(np.array(values[conf_key(4)]), [1.0, 0.0], atol=0.05)
    np.testing.assert_allclose(np.array(values[conf_key(2)]), [0.5, 0.0], atol=0.05)

    old_conf, old_vel = opt.goal_conf_factor_idx, opt.goal_vel_factor_idx
    opt.change_goal_config_and_vel(jnp.array([2.0, 0.0]), VEL)
    values = opt.update()

    solver = opt.solver
    assert isinstance(solver, GaussNewtonIncrementalSolver)
    assert solver.is_removed(old_conf) and solver.is_removed(old_vel)
    np.testing.assert_allclose(np.array(values[conf_key(4)]), [2.0, 0.0], atol=0.05)
    np.testing.assert_allclose(np.array(values[vel_key(4)]), [1.0, 0.0], atol=0.05)
    np.testing.assert_allclose(np.array(values[conf_key(0)]), [0.0, 0.0], atol=0.05)


def test_end_to_end_double_goal_change_only_last_is_effective():
    opt = _initialized()
    opt.update()

    opt.change_goal_config_and_vel(jnp.array([3.0, 0.0]), VEL)
    opt.change_goal_config_and_vel(jnp.array([1.5, 0.0]), VEL)
    values = opt.update()

    solver = opt.solver
    assert solver.factor_count() == 15
    assert [fid for fid in range(15) if solver.is_removed(fid)] == [6, 7, 11, 12]
    np.testing.assert_allclose(np.array(values[conf_key(2)]), [1.5, 0.0], atol=0.05)


def test_end_to_end_fix_intermediate_state():
    opt = _initialized(total_step=4, obs_check_inter=0)
    opt.update()

    opt.fix_config_and_vel(2, jnp.array([0.5, 0.3]), VEL)
    values = opt.update()
    assert opt.solver.factor_count() == 4 + 5 + 4 + 2
    np.testing.assert_allclose(np.array(values[conf_key(2)]), [0.5, 0.3], atol=0.05)


def main() -> None:
    """Allow running the end-to-end scenarios without pytest."""
    for test in (
        test_end_to_end_commit_counts,
        test_end_to_end_goal_change_moves_final_state,
        test_end_to_end_double_goal_change_only_last_is_effective,
        test_end_to_end_fix_intermediate_state,
    ):
        try:
            test()
        except Exception as e:
            raise SystemExit(f"FAILED: {test.__name__}: {e}")
        print(f"OK: {test.__name__}")


if __name__ == "__main__":
    main()
