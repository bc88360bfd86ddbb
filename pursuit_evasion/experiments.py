# experiments.py
from dataclasses import dataclass, field
from typing import List, Tuple

from .definitions import Player, MAX_TIME_STEPS
from .domains import GameStateDomain, SquareDomain, SquareDomainSquareHole, SquareDomainRoundHole
from .game import Game

DOMAIN_TYPES = ("square", "square-hole", "round-hole")


@dataclass
class Experiment:
    """Parameters of one value-function computation and the plots made from it."""
    code: str
    description: str
    num_nodes: int
    control_resolution: int
    domain: str = "square"
    min_pos: float = -2.0
    max_pos: float = 2.0
    hole_min: float = -0.5
    hole_max: float = 0.5
    hole_center: Tuple[float, float] = (0.0, 0.0)
    radius: float = 0.5
    velocity_pursuer: float = 1.0
    velocity_evader: float = 1.0
    allow_standing_still: bool = True
    tolerance: float = 1e-3
    max_time_steps: int = MAX_TIME_STEPS
    # states whose pursuer position is held fixed for value slices
    slices: List[Tuple[float, float, float, float]] = field(default_factory=list)
    trajectories: List[Tuple[float, float, float, float]] = field(default_factory=list)

    @property
    def name(self) -> str:
        return "experiment_" + self.code.replace(".", "_")

    def build_domain(self) -> GameStateDomain:
        if self.domain == "square":
            return SquareDomain(self.min_pos, self.max_pos, self.num_nodes)
        if self.domain == "square-hole":
            return SquareDomainSquareHole(self.min_pos, self.max_pos,
                                          self.hole_min, self.hole_max, self.num_nodes)
        if self.domain == "round-hole":
            return SquareDomainRoundHole(self.min_pos, self.max_pos, self.hole_center[0],
                                         self.hole_center[1], self.radius, self.num_nodes)
        raise ValueError(f"Unknown domain type '{self.domain}', expected one of {DOMAIN_TYPES}")

    def build_game(self) -> Game:
        game = Game(self.build_domain())
        game.set_control_resolution(self.control_resolution)
        game.set_allow_standing_still(self.allow_standing_still)
        game.set_velocity(Player.PURSUER, self.velocity_pursuer)
        game.set_velocity(Player.EVADER, self.velocity_evader)
        game.set_max_time_steps(self.max_time_steps)
        return game


_ORIGIN = (0.0, 0.0, 0.0, 0.0)
_CORNER_START = (-2.0, -2.0, 0.0, 0.0)
_SIDE_START = (-1.8, -1.8, 0.5, -1.6)
_ACROSS_HOLE = (-1.9, -1.9, 1.9, 1.9)
_BESIDE_HOLE = (-1.9, 0.0, 1.0, 0.0)
_ROUND_HOLE_NEAR = (-1.0, 0.0, 1.0, 0.4)
_ROUND_HOLE_RADIUS = 7.0 * (4.0 / 49.0)

EXPERIMENTS = {e.code: e for e in [
    Experiment("0.0.1", "coarse square, fast pursuer, 8 directions",
               num_nodes=14, control_resolution=8, velocity_pursuer=2.0,
               slices=[_ORIGIN], trajectories=[_CORNER_START, _SIDE_START]),
    Experiment("0.0.2", "square, equal speeds",
               num_nodes=20, control_resolution=20,
               slices=[_ORIGIN], trajectories=[_CORNER_START, _SIDE_START]),
    Experiment("0.0.3", "square hole, fast pursuer",
               num_nodes=16, control_resolution=20, domain="square-hole", velocity_pursuer=2.0,
               tolerance=1e-5, slices=[(-1.5, -1.5, -1.0, -1.0), _SIDE_START, _ACROSS_HOLE],
               trajectories=[(-2.0, -2.0, -1.0, -1.0), _SIDE_START, _ACROSS_HOLE, _BESIDE_HOLE]),
    Experiment("0.0.4", "square, odd number of directions",
               num_nodes=20, control_resolution=21, velocity_pursuer=2.0,
               slices=[_ORIGIN], trajectories=[_CORNER_START, _SIDE_START]),
    Experiment("0.0.5", "square, 48 directions",
               num_nodes=24, control_resolution=48, velocity_pursuer=2.0,
               slices=[_ORIGIN]),
    Experiment("0.0.6", "square, slightly faster evader",
               num_nodes=14, control_resolution=20, velocity_evader=1.25,
               slices=[(-1.0, -1.0, 0.0, 0.0)],
               trajectories=[(-1.0, -1.0, -1.0, 1.0), (-1.0, -1.0, -0.5, -0.5)]),
    Experiment("0.0.7", "round hole, fast pursuer",
               num_nodes=16, control_resolution=20, domain="round-hole", velocity_pursuer=2.0,
               tolerance=1e-5, slices=[_ACROSS_HOLE, _ROUND_HOLE_NEAR],
               trajectories=[_ACROSS_HOLE, _ROUND_HOLE_NEAR]),
    Experiment("1.1.0", "fine square, fast pursuer",
               num_nodes=50, control_resolution=48, velocity_pursuer=2.0,
               slices=[_ORIGIN],
               trajectories=[(-1.0, 0.0, 0.0, 0.0), (-2.0, -2.0, 1.0, 0.7), _SIDE_START,
                             (-1.8, -1.8, 0.5, -1.8)]),
    Experiment("1.2.0", "square, tight tolerance",
               num_nodes=26, control_resolution=36, velocity_pursuer=2.0, tolerance=1e-5,
               slices=[_ORIGIN], trajectories=[_SIDE_START]),
    Experiment("1.3.0", "fine square hole",
               num_nodes=50, control_resolution=48, domain="square-hole",
               hole_min=-0.53, hole_max=0.53, velocity_pursuer=2.0, tolerance=1e-4,
               slices=[(-1.5, -1.5, 0.0, 0.0)], trajectories=[_ACROSS_HOLE, _BESIDE_HOLE]),
    Experiment("1.4.0", "fine round hole",
               num_nodes=50, control_resolution=48, domain="round-hole",
               radius=_ROUND_HOLE_RADIUS, velocity_pursuer=2.0, tolerance=1e-4,
               slices=[_ACROSS_HOLE, _ROUND_HOLE_NEAR],
               trajectories=[_ACROSS_HOLE, _ROUND_HOLE_NEAR]),
    Experiment("2.5.0", "equal speeds without standing still",
               num_nodes=50, control_resolution=36, allow_standing_still=False,
               slices=[_ORIGIN, (1.15, 1.15, 0.0, 0.0)],
               trajectories=[(0.0, 1.0, 0.0, 0.0), (1.0, 1.5, -0.5, 0.0), (1.3, 1.8, 0.0, 0.0),
                             (-1.9, -1.9, -1.7, -1.9)]),
    Experiment("2.7.0", "fine square, slightly faster evader",
               num_nodes=50, control_resolution=48, velocity_evader=1.25,
               slices=[(-1.0, -1.0, 0.0, 0.0)],
               trajectories=[(-1.0, -1.0, -1.0, 1.0), (-1.0, -1.0, -0.5, -0.5)]),
    Experiment("2.8.0", "faster evader without standing still",
               num_nodes=50, control_resolution=36, allow_standing_still=False,
               velocity_evader=1.5, tolerance=1e-4,
               slices=[(-1.0, -1.0, 0.0, 0.0)],
               trajectories=[(0.5, 0.5, 1.5, 1.5), (0.0, -0.8, -0.3, -1.3)]),
]}


def get_experiment(code: str) -> Experiment:
    try:
        return EXPERIMENTS[code]
    except KeyError:
        raise ValueError(
            f"Unknown experiment '{code}', available: {', '.join(sorted(EXPERIMENTS))}") from None
