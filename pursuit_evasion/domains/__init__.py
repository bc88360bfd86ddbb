from .base import GameStateDomain
from .square import SquareDomain
from .square_hole import SquareDomainSquareHole
from .round_hole import SquareDomainRoundHole

__all__ = [
    "GameStateDomain",
    "SquareDomain",
    "SquareDomainSquareHole",
    "SquareDomainRoundHole",
]
