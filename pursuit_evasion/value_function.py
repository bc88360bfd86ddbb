# value_function.py
import numpy as np
from typing import Tuple

from .definitions import (Player, VALUE_UNDEFINED, VALUE_FUNCTION_INITIAL,
                          InfeasibleStateError, GridSizeMismatchError)
from .domains.base import GameStateDomain


def to_time_value(v):
    """Map a normalized value v in [0, 1) to the time-like quantity -ln(1 - v)."""
    with np.errstate(divide="ignore"):
        return -np.log(1.0 - np.asarray(v, dtype=float))


class ValueFunction:
    """
    Dense value function over all grid vertices of a domain.

    Values live in a flat buffer with row-major strides. Infeasible vertices
    hold VALUE_UNDEFINED; continuous states are evaluated through the
    domain's convex decomposition.
    """

    def __init__(self, domain: GameStateDomain, initial_value: float = VALUE_FUNCTION_INITIAL,
                 values: np.ndarray = None):
        self.domain = domain
        self.shape = domain.get_grid_shape()
        self.size = int(np.prod(self.shape))
        self.strides = np.array([int(np.prod(self.shape[d + 1:])) for d in range(len(self.shape))],
                                dtype=np.int64)
        if values is None:
            self.values = np.where(domain.feasibility_mask(), float(initial_value),
                                   VALUE_UNDEFINED).astype(float)
        else:
            values = np.asarray(values, dtype=float).ravel()
            if values.size != self.size:
                raise ValueError(f"Expected {self.size} values for {domain}, got {values.size}")
            self.values = values.copy()
        self.iterations = -1

    def to_array_index(self, index):
        return np.asarray(index, dtype=np.int64) @ self.strides

    def get_value(self, index) -> float:
        return float(self.values[self.to_array_index(index)])

    def set_value(self, index, value: float):
        self.values[self.to_array_index(index)] = value

    def get_iterations(self) -> int:
        return self.iterations

    def set_iterations(self, iterations: int):
        self.iterations = int(iterations)

    def get_domain(self) -> GameStateDomain:
        return self.domain

    def eval(self, x, time_value: bool = False) -> float:
        """Interpolated value at a feasible state."""
        lc = self.domain.convex_decomposition(x)
        value = 0.0
        for factor, _, index in lc.entries():
            value += factor * self.values[self.to_array_index(index)]
        if time_value:
            return float(to_time_value(value))
        return float(value)

    def eval_many(self, states, time_value: bool = False, check: bool = True) -> np.ndarray:
        """Interpolated values for an array of states of shape (M, dimension)."""
        states = np.asarray(states, dtype=float).reshape(-1, self.domain.dimension)
        if check:
            feasible = self.domain.feasible_states(states)
            if not np.all(feasible):
                bad = states[~feasible][0]
                raise InfeasibleStateError(f"State {bad.tolist()} is not feasible in {self.domain}")
        weights, indices = self.domain.convex_decomposition_batch(states)
        values = (weights * self.values[indices @ self.strides]).sum(axis=1)
        return to_time_value(values) if time_value else values

    def copy(self) -> "ValueFunction":
        vfunc = ValueFunction(self.domain, values=self.values)
        vfunc.iterations = self.iterations
        return vfunc

    def grid_samples(self) -> Tuple[np.ndarray, np.ndarray]:
        """(points, values) of every feasible grid vertex."""
        mask = self.domain.feasibility_mask()
        return self.domain.grid_points()[mask], self.values[mask]

    def value_slice(self, player: Player, x, time_value: bool = False):
        """
        Sample the value over the grid positions of the opponent while
        `player` stays at its coordinates in x.

        Returns meshgrid arrays X, Y, V; V is NaN where the sample is infeasible.
        """
        x = self.domain.clone_state(x)
        free = player.opponent.coordinates
        axis_x, axis_y = range(free.start, free.stop)
        xs = self.domain.get_point(np.arange(self.shape[axis_x]))
        ys = self.domain.get_point(np.arange(self.shape[axis_y]))
        X, Y = np.meshgrid(xs, ys)

        states = np.tile(x, (X.size, 1))
        states[:, axis_x] = X.ravel()
        states[:, axis_y] = Y.ravel()
        feasible = self.domain.feasible_states(states)

        V = np.full(X.size, np.nan)
        if np.any(feasible):
            V[feasible] = self.eval_many(states[feasible], time_value=time_value, check=False)
        return X, Y, V.reshape(X.shape)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def persist(self, filename: str):
        """Write grid sizes (one per line) followed by all values in row-major order."""
        with open(filename, "w") as f:
            for n in self.shape:
                f.write(f"{n}\n")
            np.savetxt(f, self.values, fmt="%.17g")

    @classmethod
    def load(cls, domain: GameStateDomain, filename: str) -> "ValueFunction":
        data = np.loadtxt(filename, ndmin=1)
        shape = domain.get_grid_shape()
        if data.size < len(shape):
            raise ValueError(f"{filename} is too short to hold a value function header")
        for d, expected in enumerate(shape):
            actual = int(data[d])
            if actual != expected:
                raise GridSizeMismatchError(d, expected, actual)
        return cls(domain, values=data[len(shape):])

    def __str__(self) -> str:
        return f"ValueFunction(shape={self.shape}, iterations={self.iterations}, domain={self.domain})"
