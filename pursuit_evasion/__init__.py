from .definitions import Player, InfeasibleStateError, GridSizeMismatchError
from .domains import SquareDomain, SquareDomainSquareHole, SquareDomainRoundHole
from .linear_combination import LinearCombination
from .value_function import ValueFunction
from .game import Game, Trajectory

__version__ = "0.1.0"
