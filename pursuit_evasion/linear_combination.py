# linear_combination.py
import numpy as np
from typing import Iterator, Optional, Tuple

from .definitions import LINEAR_COMBINATION_LENGTH


class LinearCombination:
    """
    Sparse convex combination of grid vertices.

    Holds a fixed number of slots of (factor, point, index). A slot is either
    populated (point and index set) or empty (both None). Fresh slots carry
    factor 1 so that the decomposition can multiply weights in place.
    """

    def __init__(self, length: int = LINEAR_COMBINATION_LENGTH):
        if length < 1:
            raise ValueError(f"length must be positive, got {length}")
        self.length = length
        self.factors = [1.0] * length
        self.points: list = [None] * length
        self.indexes: list = [None] * length

    def _check(self, i: int):
        if not 0 <= i < self.length:
            raise IndexError(f"slot {i} out of range [0, {self.length})")

    def get_factor(self, i: int) -> float:
        self._check(i)
        return self.factors[i]

    def set_factor(self, i: int, factor: float):
        self._check(i)
        self.factors[i] = float(factor)

    def get_point(self, i: int) -> Optional[np.ndarray]:
        self._check(i)
        return self.points[i]

    def set_point(self, i: int, point: Optional[np.ndarray]):
        self._check(i)
        self.points[i] = None if point is None else np.array(point, dtype=float)

    def get_index(self, i: int) -> Optional[np.ndarray]:
        self._check(i)
        return self.indexes[i]

    def set_index(self, i: int, index: Optional[np.ndarray]):
        self._check(i)
        self.indexes[i] = None if index is None else np.array(index, dtype=int)

    def clear(self, i: int):
        """Mark slot i as empty."""
        self._check(i)
        self.factors[i] = 0.0
        self.points[i] = None
        self.indexes[i] = None

    def is_populated(self, i: int) -> bool:
        self._check(i)
        return self.points[i] is not None

    def entries(self) -> Iterator[Tuple[float, np.ndarray, np.ndarray]]:
        """Yield (factor, point, index) for every populated slot."""
        for factor, point, index in zip(self.factors, self.points, self.indexes):
            if point is not None:
                yield factor, point, index

    def eval(self) -> np.ndarray:
        """Weighted sum of the populated points."""
        total = None
        for factor, point, _ in self.entries():
            total = factor * point if total is None else total + factor * point
        if total is None:
            raise ValueError("linear combination has no populated slots")
        return total

    def total_weight(self) -> float:
        return sum(factor for factor, _, _ in self.entries())

    def __len__(self) -> int:
        return sum(1 for p in self.points if p is not None)

    def __str__(self) -> str:
        terms = [f"{factor:.4f} * {np.array2string(point, precision=4)}"
                 for factor, point, _ in self.entries()]
        return " + ".join(terms) if terms else "<empty>"
