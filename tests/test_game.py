import math

import numpy as np
import pytest

from pursuit_evasion.debug import check_symmetry
from pursuit_evasion.definitions import Player, InfeasibleStateError
from pursuit_evasion.domains import SquareDomain, SquareDomainSquareHole, SquareDomainRoundHole
from pursuit_evasion.game import Game


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------

def test_defaults() -> None:
    game = Game()

    assert game.get_control_resolution() == 50
    assert game.get_allow_standing_still() is True
    assert game.get_time_step_size() == pytest.approx(0.1)
    assert game.get_beta() == pytest.approx(math.exp(-0.1))
    assert game.get_max_iterations() == 150
    assert game.get_max_time_steps() == 2000
    assert game.get_velocity(Player.PURSUER) == 1.0
    assert game.get_velocity(Player.EVADER) == 1.0


def test_set_domain_resets_time_step() -> None:
    game = Game()
    game.set_time_step_size(0.3)
    game.set_domain(SquareDomain(-2, 2, 14))

    assert game.get_time_step_size() == pytest.approx(2 / 13)
    assert game.get_beta() == pytest.approx(math.exp(-2 / 13))


@pytest.mark.parametrize("setter, value", [
    ("set_time_step_size", 0.0),
    ("set_time_step_size", -1.0),
    ("set_control_resolution", -1),
    ("set_control_resolution", 2.5),
    ("set_max_iterations", -1),
    ("set_max_time_steps", -5),
])
def test_invalid_configuration_is_rejected(setter: str, value) -> None:
    with pytest.raises(ValueError):
        getattr(Game(), setter)(value)


def test_negative_velocity_is_rejected() -> None:
    with pytest.raises(ValueError, match="Velocity"):
        Game().set_velocity(Player.EVADER, -1)


def test_compute_without_domain_raises() -> None:
    with pytest.raises(ValueError, match="no domain"):
        Game().compute_value_function(1e-3)


def test_negative_tolerance_raises(small_game) -> None:
    with pytest.raises(ValueError, match="Tolerance"):
        small_game.compute_value_function(-1e-3)


def test_controls_include_standing_still_only_when_allowed(small_game) -> None:
    assert list(small_game.get_controls()) == list(range(9))
    small_game.set_allow_standing_still(False)
    assert list(small_game.get_controls()) == list(range(1, 9))


def test_symmetry_gating() -> None:
    game = Game(SquareDomain(-2, 2, 5))
    game.set_control_resolution(8)
    assert game.symmetry_enabled()

    game.set_control_resolution(7)
    assert not game.symmetry_enabled()

    game.set_control_resolution(8)
    game.use_symmetry = False
    assert not game.symmetry_enabled()

    assert not Game(SquareDomainSquareHole(-2, 2, -1.0, 0.5, 16)).symmetry_enabled()
    assert not Game(SquareDomainRoundHole(-2, 2, 0.5, 0.0, 0.5, 16)).symmetry_enabled()
    assert Game(SquareDomainRoundHole(-2, 2, 0.0, 0.0, 0.5, 16)).symmetry_enabled()


# ----------------------------------------------------------------------
# Kinematics and terminal predicate
# ----------------------------------------------------------------------

def test_eval_ke_moves_both_agents() -> None:
    game = Game(SquareDomain(-2, 2, 5))
    game.set_control_resolution(4)
    game.set_velocity(Player.PURSUER, 2)

    x = np.zeros(4)
    moved = game.eval_ke(x, 1, 2, 0.5)

    assert np.allclose(moved, [0, 1, -0.5, 0], atol=1e-12)
    assert np.allclose(game.eval_ke(x, 0, 0, 0.5), x)
    assert np.array_equal(x, np.zeros(4))


def test_eval_ke_rejects_unknown_control() -> None:
    game = Game(SquareDomain(-2, 2, 5))
    game.set_control_resolution(4)
    with pytest.raises(ValueError, match="Control 5"):
        game.eval_ke(np.zeros(4), 5, 0)


def test_displacements_have_agent_speed(small_game) -> None:
    step = small_game.get_time_step_size()
    d_p = small_game.displacements(Player.PURSUER)
    d_e = small_game.displacements(Player.EVADER)

    assert np.allclose(d_p[0], 0) and np.allclose(d_e[0], 0)
    assert np.allclose(np.linalg.norm(d_p[1:], axis=1), 2 * step)
    assert np.allclose(np.linalg.norm(d_e[1:], axis=1), step)


def test_admissible_controls_at_corner() -> None:
    game = Game(SquareDomain(-2, 2, 5))
    game.set_control_resolution(4)
    x = [-2, -2, 0, 0]

    assert game.is_admissible_control(x, Player.PURSUER, 1)
    assert not game.is_admissible_control(x, Player.PURSUER, 2)
    assert not game.is_admissible_control(x, Player.PURSUER, 3)
    assert game.is_admissible_control(x, Player.PURSUER, 4)
    assert game.is_admissible_control(x, Player.PURSUER, 0)
    assert game.is_admissible_control(x, Player.EVADER, 2)

    game.set_allow_standing_still(False)
    assert not game.is_admissible_control(x, Player.PURSUER, 0)


def test_admissibility_of_infeasible_state_raises() -> None:
    game = Game(SquareDomain(-2, 2, 5))
    with pytest.raises(InfeasibleStateError):
        game.is_admissible_control([3, 0, 0, 0], Player.PURSUER, 1)


def test_admissible_controls_respect_hole() -> None:
    game = Game(SquareDomainSquareHole(-1, 1, -0.5, 0.5, 21))
    game.set_control_resolution(4)
    game.set_time_step_size(0.2)

    assert not game.is_admissible_control([-0.6, 0.0, 1, 1], Player.PURSUER, 4)
    assert game.is_admissible_control([-0.6, 0.0, 1, 1], Player.PURSUER, 2)


def test_terminal_predicate() -> None:
    game = Game(SquareDomain(-2, 2, 14))
    width = 4 / 13

    assert game.is_terminal([0, 0, 0.3, 0.3])
    assert game.is_terminal([0, 0, width, -width])
    assert not game.is_terminal([0, 0, 0.4, 0])
    assert game.is_terminal_index([3, 3, 4, 2])
    assert not game.is_terminal_index([3, 3, 5, 3])


# ----------------------------------------------------------------------
# Value iteration
# ----------------------------------------------------------------------

@pytest.mark.parametrize("tol", [0.0, 1e-12])
def test_two_node_domain_converges_to_zero(tol: float) -> None:
    game = Game(SquareDomain(-2, 2, 2))
    game.set_control_resolution(6)
    game.set_velocity(Player.PURSUER, 2)
    game.set_time_step_size(1)
    game.set_max_iterations(5)

    vfunc = game.compute_value_function(tol)

    assert np.all(vfunc.values == 0.0)
    assert 1 <= vfunc.get_iterations() <= 5
    assert game.convergence_history[-1] <= tol


def test_values_are_bounded(solved_small_game) -> None:
    game, vfunc = solved_small_game
    domain = game.get_domain()

    assert vfunc.get_iterations() < game.get_max_iterations()
    assert np.all(vfunc.values >= 0.0)
    assert np.all(vfunc.values <= 1.0)

    for index in np.ndindex(*domain.get_grid_shape()):
        value = vfunc.get_value(index)
        if game.is_terminal_index(index):
            assert value == 0.0
        else:
            assert value >= 1 - game.get_beta() - 1e-12


def test_convergence_history_matches_iterations(solved_small_game) -> None:
    game, vfunc = solved_small_game

    assert len(game.convergence_history) == vfunc.get_iterations()
    assert game.convergence_history[0] > 1e-10
    assert game.convergence_history[-1] <= 1e-10


def test_converged_value_is_a_fixed_point(solved_small_game) -> None:
    game, vfunc = solved_small_game

    for index in [(0, 0, 4, 4), (0, 4, 4, 0), (1, 2, 3, 0), (4, 4, 0, 1)]:
        backed_up = game.compute_value_on_grid(vfunc, np.array(index))
        assert backed_up == pytest.approx(vfunc.get_value(index), abs=1e-8)

    assert game.compute_value_on_grid(vfunc, np.array([2, 2, 2, 3])) == 0.0
    corner = game.compute_value_on_grid(vfunc, [-2.0, -2.0, 2.0, 2.0])
    assert corner == pytest.approx(vfunc.get_value([0, 0, 4, 4]), abs=1e-8)


def test_symmetric_and_full_sweeps_agree(solved_small_game) -> None:
    game, symmetric = solved_small_game
    assert game.symmetry_enabled()

    full_game = Game(SquareDomain(-2, 2, 5))
    full_game.set_control_resolution(8)
    full_game.set_velocity(Player.PURSUER, 2)
    full_game.use_symmetry = False
    full = full_game.compute_value_function(1e-10)

    assert np.allclose(full.values, symmetric.values, atol=1e-7)


@pytest.mark.parametrize("domain_factory", [
    lambda: SquareDomainSquareHole(-2, 2, -0.5, 0.5, 14),
    lambda: SquareDomainRoundHole(-2, 2, 0, 0, 0.6, 10),
])
def test_symmetric_and_full_sweeps_agree_around_centered_hole(domain_factory) -> None:
    def solve(use_symmetry: bool):
        game = Game(domain_factory())
        game.set_control_resolution(8)
        game.set_velocity(Player.PURSUER, 2)
        game.set_max_iterations(8)
        game.use_symmetry = use_symmetry
        return game, game.compute_value_function(0.0)

    game, symmetric = solve(True)
    _, full = solve(False)

    assert game.symmetry_enabled()
    assert np.allclose(full.values, symmetric.values, rtol=0, atol=1e-9)


def test_value_function_has_reflective_symmetries(solved_small_game) -> None:
    _, vfunc = solved_small_game
    violations = check_symmetry(vfunc, tol=1e-6)

    assert violations == {"full": [], "x": [], "y": []}


def test_off_center_hole_is_solved_without_mirroring() -> None:
    def solve(use_symmetry: bool):
        game = Game(SquareDomainSquareHole(-2, 2, -1.2, 0.4, 6))
        game.set_control_resolution(8)
        game.set_velocity(Player.PURSUER, 2)
        game.use_symmetry = use_symmetry
        return game.compute_value_function(1e-6)

    assert np.array_equal(solve(True).values, solve(False).values)


def test_square_hole_values_are_bounded() -> None:
    game = Game(SquareDomainSquareHole(-2, 2, -0.5, 0.5, 6))
    game.set_control_resolution(8)
    game.set_velocity(Player.PURSUER, 2)
    vfunc = game.compute_value_function(1e-6)

    mask = game.get_domain().feasibility_mask()
    assert np.all((vfunc.values[mask] >= 0) & (vfunc.values[mask] <= 1))


def test_vertices_without_admissible_controls_keep_their_value() -> None:
    game = Game(SquareDomain(-1, 1, 3))
    game.set_control_resolution(4)
    game.set_allow_standing_still(False)
    game.set_velocity(Player.PURSUER, 100)
    game.set_velocity(Player.EVADER, 100)

    vfunc = game.compute_value_function(0.0)

    assert vfunc.get_iterations() == 2
    assert vfunc.get_value([0, 0, 2, 2]) == 1.0
    assert vfunc.get_value([0, 0, 1, 1]) == 0.0

    trajectory = game.compute_trajectory(vfunc, [-1, -1, 1, 1])
    assert trajectory.time_steps == 0
    assert not trajectory.captured


# ----------------------------------------------------------------------
# Trajectories
# ----------------------------------------------------------------------

def test_trajectory_from_terminal_state_is_empty(solved_small_game) -> None:
    game, vfunc = solved_small_game
    trajectory = game.compute_trajectory(vfunc, [0, 0, 0.5, 0.5])

    assert trajectory.time_steps == 0
    assert trajectory.captured
    assert trajectory.states.shape == (1, 4)


def test_trajectory_respects_step_limit(solved_small_game) -> None:
    game, vfunc = solved_small_game
    trajectory = game.compute_trajectory(vfunc, [-2, -2, 2, 2], max_time_steps=1)

    assert trajectory.time_steps == 1
    assert not trajectory.captured
    assert len(trajectory.states) == 2


def test_trajectory_steps_follow_kinematics(solved_small_game) -> None:
    game, vfunc = solved_small_game
    domain = game.get_domain()
    step = game.get_time_step_size()
    trajectory = game.compute_trajectory(vfunc, [-2, -2, 2, 2], max_time_steps=50)

    assert trajectory.time_steps <= 50
    assert len(trajectory.states) == trajectory.time_steps + 1
    assert np.all(domain.feasible_states(trajectory.states))

    moves = np.diff(trajectory.states, axis=0)
    p_norms = np.linalg.norm(moves[:, 0:2], axis=1)
    e_norms = np.linalg.norm(moves[:, 2:4], axis=1)
    assert np.all(np.isclose(p_norms, 0) | np.isclose(p_norms, 2 * step))
    assert np.all(np.isclose(e_norms, 0) | np.isclose(e_norms, step))
    if trajectory.captured:
        assert game.is_terminal(trajectory.states[-1])


def test_trajectory_from_infeasible_state_raises(solved_small_game) -> None:
    game, vfunc = solved_small_game
    with pytest.raises(InfeasibleStateError):
        game.compute_trajectory(vfunc, [3, 0, 0, 0])


def test_plot_trajectories_writes_data_and_figure(solved_small_game, tmp_path) -> None:
    game, vfunc = solved_small_game
    data_file = tmp_path / "run.traj"
    figure_file = tmp_path / "run.png"
    game.set_max_time_steps(20)
    try:
        steps = game.plot_trajectories(vfunc, [-1.5, -2, 1.7, 2], str(data_file), str(figure_file))
    finally:
        game.set_max_time_steps(2000)

    states = np.loadtxt(data_file, ndmin=2)
    assert states.shape == (steps + 1, 4)
    assert np.allclose(states[0], [-1.5, -2, 1.7, 2])
    assert figure_file.exists()
