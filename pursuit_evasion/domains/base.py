# domains/base.py
import numpy as np
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from ..definitions import STATE_SPACE_DIMENSION, Player, InfeasibleStateError
from ..linear_combination import LinearCombination


class GameStateDomain(ABC):
    """Base domain class: feasible region plus the grid used to discretize it"""

    dimension: int = STATE_SPACE_DIMENSION

    @staticmethod
    def clone_state(x) -> np.ndarray:
        return np.array(x, dtype=float, copy=True)

    @staticmethod
    def equals(x1, x2, eps: float = 0.0) -> bool:
        return bool(np.all(np.abs(np.asarray(x1, float) - np.asarray(x2, float)) <= eps))

    @abstractmethod
    def feasible_positions(self, xy: np.ndarray) -> np.ndarray:
        """
        Feasibility of single-agent positions.
        xy has shape (..., 2); returns a boolean array of shape (...).
        """
        pass

    @abstractmethod
    def get_bounds(self) -> Tuple[float, float]:
        """(min, max) of every coordinate"""
        pass

    @abstractmethod
    def get_maximal_grid_index(self) -> np.ndarray:
        pass

    @abstractmethod
    def get_maximal_resolution_width(self) -> float:
        pass

    @abstractmethod
    def get_point(self, index) -> np.ndarray:
        pass

    @abstractmethod
    def get_grid_index(self, x) -> np.ndarray:
        pass

    @abstractmethod
    def is_grid_point(self, x) -> bool:
        pass

    @abstractmethod
    def convex_decomposition(self, x) -> LinearCombination:
        pass

    @abstractmethod
    def convex_decomposition_batch(self, states: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        pass

    def is_symmetric(self) -> bool:
        """Whether the domain is invariant under reflection through its center."""
        return False

    def get_grid_shape(self) -> Tuple[int, ...]:
        return tuple(int(m) + 1 for m in self.get_maximal_grid_index())

    def get_grid_size(self) -> int:
        return int(np.prod(self.get_grid_shape()))

    def feasible_states(self, states) -> np.ndarray:
        """Full-state feasibility for an array of shape (..., dimension)."""
        states = np.asarray(states, dtype=float)
        if self.dimension == STATE_SPACE_DIMENSION:
            return (self.feasible_positions(states[..., Player.PURSUER.coordinates])
                    & self.feasible_positions(states[..., Player.EVADER.coordinates]))
        return self.feasible_positions(states)

    def is_feasible(self, x, player: Optional[Player] = None) -> bool:
        x = np.asarray(x, dtype=float)
        if x.shape != (self.dimension,):
            raise ValueError(f"Expected a state of dimension {self.dimension}, got shape {x.shape}")
        if player is None:
            return bool(self.feasible_states(x))
        return bool(self.feasible_positions(x[player.coordinates]))

    def index_in_range(self, index, player: Optional[Player] = None) -> bool:
        index = np.asarray(index)
        max_index = self.get_maximal_grid_index()
        if player is not None:
            index, max_index = index[player.coordinates], max_index[player.coordinates]
        return bool(np.all((index >= 0) & (index <= max_index)))

    def is_feasible_index(self, index, player: Optional[Player] = None) -> bool:
        if not self.index_in_range(index, player):
            return False
        return self.is_feasible(self.get_point(index), player)

    def grid_points(self) -> np.ndarray:
        """All grid vertices in row-major order, shape (N, dimension)."""
        indices = np.indices(self.get_grid_shape()).reshape(self.dimension, -1).T
        return self.get_point(indices)

    def feasibility_mask(self) -> np.ndarray:
        """Flat boolean mask of feasible grid vertices (row-major)."""
        mask = getattr(self, "_feasibility_mask", None)
        if mask is None:
            mask = self.feasible_states(self.grid_points())
            mask.setflags(write=False)
            self._feasibility_mask = mask
        return mask

    def require_feasible(self, x, player: Optional[Player] = None):
        if not self.is_feasible(x, player):
            who = "" if player is None else f" for {player.name.lower()}"
            raise InfeasibleStateError(f"State {np.asarray(x).tolist()} is not feasible{who} in {self}")
