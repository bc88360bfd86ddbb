# domains/square.py
import numpy as np
from typing import Tuple

from .base import GameStateDomain
from ..definitions import STATE_SPACE_DIMENSION
from ..linear_combination import LinearCombination

# Tolerance (in grid index units) for treating a coordinate as lying on a grid line
SNAP_EPS = 1e-10


class SquareDomain(GameStateDomain):
    """
    Hyper-square [min_pos, max_pos]^dimension discretized with num_nodes
    equally spaced grid lines per axis.
    """

    def __init__(self, min_pos: float, max_pos: float, num_nodes: int,
                 dimension: int = STATE_SPACE_DIMENSION,
                 recursive_decomposition: bool = False):
        if not min_pos < max_pos:
            raise ValueError(f"min_pos must be smaller than max_pos, got [{min_pos}, {max_pos}]")
        if int(num_nodes) != num_nodes or num_nodes < 2:
            raise ValueError(f"num_nodes must be an integer >= 2, got {num_nodes}")
        if dimension < 1:
            raise ValueError(f"dimension must be positive, got {dimension}")

        self.min_pos = float(min_pos)
        self.max_pos = float(max_pos)
        self.num_nodes = int(num_nodes)
        self.dimension = int(dimension)
        self.segments = self.num_nodes - 1
        self.width = (self.max_pos - self.min_pos) / self.segments
        self.max_index = np.full(self.dimension, self.segments, dtype=int)
        self.recursive_decomposition = recursive_decomposition

        # slot s is the ceil corner in dimension d iff bit (dimension-1-d) of s is set
        n_slots = 2 ** self.dimension
        shifts = self.dimension - 1 - np.arange(self.dimension)
        self._ceil_bits = ((np.arange(n_slots)[:, None] >> shifts[None, :]) & 1).astype(bool)

    # ------------------------------------------------------------------
    # Grid arithmetic
    # ------------------------------------------------------------------

    def _to_grid(self, x) -> np.ndarray:
        return (np.asarray(x, dtype=float) - self.min_pos) / self.width

    def _cell_value(self, index) -> np.ndarray:
        """Coordinate of grid line `index`, exact at both ends of the domain."""
        index = np.asarray(index)
        return np.where(index == self.segments, self.max_pos, self.min_pos + index * self.width)

    def _split(self, x) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Floor index, ceil index and floor weight lambda of every coordinate.
        lambda is exactly 1 when the coordinate lies on a grid line.
        """
        t = self._to_grid(x)
        floor_idx = np.clip(np.floor(t + SNAP_EPS), 0, self.segments).astype(int)
        ceil_idx = np.clip(np.ceil(t - SNAP_EPS), 0, self.segments).astype(int)
        lam = np.where(floor_idx == ceil_idx, 1.0, np.clip(1.0 - (t - floor_idx), 0.0, 1.0))
        return floor_idx, ceil_idx, lam

    def floor_to_cell(self, x) -> np.ndarray:
        return self._cell_value(self._split(x)[0])

    def ceil_to_cell(self, x) -> np.ndarray:
        return self._cell_value(self._split(x)[1])

    def round_to_cell(self, x) -> np.ndarray:
        return self._cell_value(self.get_grid_index(x))

    def get_bounds(self) -> Tuple[float, float]:
        return self.min_pos, self.max_pos

    def get_maximal_grid_index(self) -> np.ndarray:
        return self.max_index.copy()

    def get_maximal_resolution_width(self) -> float:
        return self.width

    def get_point(self, index) -> np.ndarray:
        return self._cell_value(np.asarray(index, dtype=int)).astype(float)

    def get_grid_index(self, x) -> np.ndarray:
        # half rounds up; t is non-negative inside the domain
        t = self._to_grid(x)
        return np.clip(np.floor(t + 0.5), 0, self.segments).astype(int)

    def is_grid_point(self, x) -> bool:
        t = self._to_grid(x)
        return bool(np.all(np.abs(t - np.round(t)) < 0.01))

    # ------------------------------------------------------------------
    # Feasibility
    # ------------------------------------------------------------------

    def in_bounds(self, xy: np.ndarray) -> np.ndarray:
        # compared in grid units so that rounding on the outer grid lines is absorbed
        t = self._to_grid(xy)
        return np.all((t >= -SNAP_EPS) & (t <= self.segments + SNAP_EPS), axis=-1)

    def feasible_positions(self, xy: np.ndarray) -> np.ndarray:
        return self.in_bounds(xy)

    def is_feasible_index(self, index, player=None) -> bool:
        return self.index_in_range(index, player)

    def is_symmetric(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Convex decomposition
    # ------------------------------------------------------------------

    def convex_decomposition(self, x) -> LinearCombination:
        """
        Express a feasible state as a convex combination of the corners of
        its grid cell. Corners that coincide in some dimension are stored once.
        """
        self.require_feasible(x)
        x = self.clone_state(x)
        floor_idx, ceil_idx, lam = self._split(x)
        floor_val = self._cell_value(floor_idx)
        ceil_val = self._cell_value(ceil_idx)

        lc = LinearCombination(2 ** self.dimension)
        if self.recursive_decomposition:
            for i in range(lc.length):
                lc.clear(i)
            self._decompose_recursive(lc, x, np.zeros(self.dimension, dtype=int), 1.0, 0, 0,
                                      floor_idx, ceil_idx, floor_val, ceil_val, lam)
        else:
            self._decompose_iterative(lc, x, floor_idx, ceil_idx, floor_val, ceil_val, lam)
        return lc

    def _decompose_iterative(self, lc, x, floor_idx, ceil_idx, floor_val, ceil_val, lam):
        n = lc.length
        for i in range(n):
            lc.set_point(i, x)
            lc.set_index(i, np.zeros(self.dimension, dtype=int))

        for d in range(self.dimension):
            half = 2 ** (self.dimension - 1 - d)
            for start in range(0, n, 2 * half):
                if not lc.is_populated(start):
                    # whole group was discarded in an earlier dimension
                    continue
                for i in range(start, start + half):
                    lc.factors[i] *= lam[d]
                    lc.points[i][d] = floor_val[d]
                    lc.indexes[i][d] = floor_idx[d]
                for i in range(start + half, start + 2 * half):
                    if floor_idx[d] == ceil_idx[d]:
                        lc.clear(i)
                    else:
                        lc.factors[i] *= 1.0 - lam[d]
                        lc.points[i][d] = ceil_val[d]
                        lc.indexes[i][d] = ceil_idx[d]

    def _decompose_recursive(self, lc, point, index, factor, d, start,
                             floor_idx, ceil_idx, floor_val, ceil_val, lam):
        if d == self.dimension:
            lc.set_factor(start, factor)
            lc.set_point(start, point)
            lc.set_index(start, index)
            return

        lower, lower_index = point.copy(), index.copy()
        lower[d], lower_index[d] = floor_val[d], floor_idx[d]
        self._decompose_recursive(lc, lower, lower_index, factor * lam[d], d + 1, start,
                                  floor_idx, ceil_idx, floor_val, ceil_val, lam)

        if floor_idx[d] != ceil_idx[d]:
            upper, upper_index = point.copy(), index.copy()
            upper[d], upper_index[d] = ceil_val[d], ceil_idx[d]
            self._decompose_recursive(lc, upper, upper_index, factor * (1.0 - lam[d]), d + 1,
                                      start + 2 ** (self.dimension - 1 - d),
                                      floor_idx, ceil_idx, floor_val, ceil_val, lam)

    def convex_decomposition_batch(self, states: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Vectorized decomposition of states with shape (M, dimension).

        Returns weights of shape (M, 2**dimension) and grid indices of shape
        (M, 2**dimension, dimension) using the same slot layout as
        convex_decomposition. Discarded slots carry weight 0.
        Feasibility is not checked.
        """
        states = np.asarray(states, dtype=float).reshape(-1, self.dimension)
        floor_idx, ceil_idx, lam = self._split(states)
        bits = self._ceil_bits[None, :, :]
        indices = np.where(bits, ceil_idx[:, None, :], floor_idx[:, None, :])
        factors = np.where(bits, (1.0 - lam)[:, None, :], lam[:, None, :])
        return factors.prod(axis=2), indices

    def __str__(self) -> str:
        return (f"SquareDomain([{self.min_pos}, {self.max_pos}]^{self.dimension}, "
                f"nodes={self.num_nodes}, width={self.width:.6g})")
