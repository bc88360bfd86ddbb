# domains/square_hole.py
import numpy as np

from .square import SquareDomain, SNAP_EPS
from ..definitions import STATE_SPACE_DIMENSION


class SquareDomainSquareHole(SquareDomain):
    """
    Square domain with an axis-aligned square obstacle [hole_min, hole_max]^2
    removed from each agent's plane. The hole bounds are rounded to the
    nearest grid lines, so the hole is a union of whole grid cells.
    """

    def __init__(self, min_pos: float, max_pos: float, hole_min: float, hole_max: float,
                 num_nodes: int, recursive_decomposition: bool = False):
        super().__init__(min_pos, max_pos, num_nodes,
                         dimension=STATE_SPACE_DIMENSION,
                         recursive_decomposition=recursive_decomposition)
        if not min_pos < hole_min < hole_max < max_pos:
            raise ValueError(
                f"Hole [{hole_min}, {hole_max}] must lie strictly inside [{min_pos}, {max_pos}]")
        self.requested_hole = (float(hole_min), float(hole_max))
        # grid lines bounding the hole
        self.hole_index = (int(self.get_grid_index(hole_min)), int(self.get_grid_index(hole_max)))
        if not self.hole_index[0] < self.hole_index[1]:
            raise ValueError(
                f"Hole [{hole_min}, {hole_max}] vanishes on a grid of width {self.width:.6g}")
        self.hole_min = float(self.get_point(self.hole_index[0]))
        self.hole_max = float(self.get_point(self.hole_index[1]))

    def in_hole(self, xy: np.ndarray) -> np.ndarray:
        # strict interior in grid units; positions on the bounding grid lines stay feasible
        t = self._to_grid(xy)
        lo, hi = self.hole_index
        inside = (t > lo + SNAP_EPS) & (t < hi - SNAP_EPS)
        return inside[..., 0] & inside[..., 1]

    def feasible_positions(self, xy: np.ndarray) -> np.ndarray:
        return self.in_bounds(xy) & ~self.in_hole(xy)

    def is_feasible_index(self, index, player=None) -> bool:
        if not self.index_in_range(index, player):
            return False
        return self.is_feasible(self.get_point(index), player)

    def is_symmetric(self) -> bool:
        return self.hole_index[0] == self.segments - self.hole_index[1]

    def __str__(self) -> str:
        return (f"SquareDomainSquareHole([{self.min_pos}, {self.max_pos}]^2 x 2, "
                f"hole=[{self.hole_min:.6g}, {self.hole_max:.6g}]^2, "
                f"nodes={self.num_nodes}, width={self.width:.6g})")
