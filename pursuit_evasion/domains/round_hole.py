# domains/round_hole.py
import numpy as np

from .square import SquareDomain, SNAP_EPS
from ..definitions import STATE_SPACE_DIMENSION


class SquareDomainRoundHole(SquareDomain):
    """
    Square domain with a disk obstacle in each agent's plane.

    Feasibility is decided per grid cell: a position is blocked when the
    corner of its cell nearest to the hole center lies within the radius.
    """

    def __init__(self, min_pos: float, max_pos: float, hole_x: float, hole_y: float,
                 radius: float, num_nodes: int, recursive_decomposition: bool = False):
        super().__init__(min_pos, max_pos, num_nodes,
                         dimension=STATE_SPACE_DIMENSION,
                         recursive_decomposition=recursive_decomposition)
        if not 0 < radius < max_pos - min_pos:
            raise ValueError(f"radius must lie in (0, {max_pos - min_pos}), got {radius}")
        if not (min_pos < hole_x < max_pos and min_pos < hole_y < max_pos):
            raise ValueError(
                f"Hole center ({hole_x}, {hole_y}) must lie strictly inside [{min_pos}, {max_pos}]")
        self.hole_center = np.array([hole_x, hole_y], dtype=float)
        self.radius = float(radius)

    def in_hole(self, xy: np.ndarray) -> np.ndarray:
        # nearest corner and distance are measured in grid units
        t = self._to_grid(xy)
        center = self._to_grid(self.hole_center)
        floor_idx, ceil_idx, _ = self._split(xy)
        residual = np.where(t < center, ceil_idx, floor_idx) - center
        return np.hypot(residual[..., 0], residual[..., 1]) <= self.radius / self.width + SNAP_EPS

    def feasible_positions(self, xy: np.ndarray) -> np.ndarray:
        return self.in_bounds(xy) & ~self.in_hole(xy)

    def is_feasible_index(self, index, player=None) -> bool:
        if not self.index_in_range(index, player):
            return False
        return self.is_feasible(self.get_point(index), player)

    def is_symmetric(self) -> bool:
        center = self._to_grid(self.hole_center)
        return bool(np.all(np.abs(center - 0.5 * self.segments) <= SNAP_EPS))

    def __str__(self) -> str:
        return (f"SquareDomainRoundHole([{self.min_pos}, {self.max_pos}]^2 x 2, "
                f"center=({self.hole_center[0]:.6g}, {self.hole_center[1]:.6g}), "
                f"radius={self.radius:.6g}, nodes={self.num_nodes}, width={self.width:.6g})")
