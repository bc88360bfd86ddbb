import matplotlib

matplotlib.use("Agg")

import pytest

from pursuit_evasion.definitions import Player
from pursuit_evasion.domains import SquareDomain
from pursuit_evasion.game import Game


@pytest.fixture
def small_game() -> Game:
    """5 nodes on [-2, 2] (grid spacing 1), 8 directions, pursuer twice as fast."""
    game = Game(SquareDomain(-2, 2, 5))
    game.set_control_resolution(8)
    game.set_velocity(Player.PURSUER, 2)
    return game


@pytest.fixture(scope="session")
def solved_small_game():
    game = Game(SquareDomain(-2, 2, 5))
    game.set_control_resolution(8)
    game.set_velocity(Player.PURSUER, 2)
    vfunc = game.compute_value_function(1e-10)
    return game, vfunc
