# definitions.py
from enum import Enum

STATE_SPACE_DIMENSION = 4
LINEAR_COMBINATION_LENGTH = 2 ** STATE_SPACE_DIMENSION

VALUE_UNDEFINED = -1.0
VALUE_FUNCTION_INITIAL = 1.0

MAX_ITERATIONS = 150
MAX_TIME_STEPS = 2000

CONTROL_RESOLUTION = 50
TIME_STEP_SIZE = 0.1


class Player(Enum):
    """The two agents of the game, each owning one planar position."""
    PURSUER = 0
    EVADER = 1

    @property
    def coordinates(self) -> slice:
        """Slice of the 4D state holding this player's (x, y)."""
        start = 2 * self.value
        return slice(start, start + 2)

    @property
    def opponent(self) -> "Player":
        return Player.EVADER if self is Player.PURSUER else Player.PURSUER


class InfeasibleStateError(ValueError):
    """Raised when an operation requires a feasible state or grid index."""


class GridSizeMismatchError(ValueError):
    """Raised when a persisted value function does not match the domain grid."""

    def __init__(self, dimension: int, expected: int, actual: int):
        super().__init__(
            f"Grid size mismatch in dimension {dimension}: "
            f"domain expects {expected} nodes, file holds {actual}"
        )
        self.dimension = dimension
        self.expected = expected
        self.actual = actual
