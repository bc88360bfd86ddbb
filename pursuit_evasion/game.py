# game.py
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from .definitions import (Player, CONTROL_RESOLUTION, TIME_STEP_SIZE, MAX_ITERATIONS,
                          MAX_TIME_STEPS, VALUE_FUNCTION_INITIAL)
from .domains.base import GameStateDomain
from .plotting import plot_trajectory
from .value_function import ValueFunction

# Relative slack on the capture distance for continuous states
TERMINAL_RTOL = 1e-9


@dataclass
class Trajectory:
    """States visited by a greedy rollout, initial state first."""
    states: np.ndarray
    time_steps: int
    captured: bool


class Game:
    """
    Discrete-time pursuit-evasion game on a grid domain.

    The pursuer minimizes and the evader maximizes the discounted capture
    value. Each time step both agents pick one of control_resolution
    directions (or stand still) and move with their own velocity.
    """

    def __init__(self, domain: Optional[GameStateDomain] = None):
        self.domain = None
        self.velocities = {Player.PURSUER: 1.0, Player.EVADER: 1.0}
        self.control_resolution = CONTROL_RESOLUTION
        self.allow_standing_still = True
        self.set_time_step_size(TIME_STEP_SIZE)
        self.max_iterations = MAX_ITERATIONS
        self.max_time_steps = MAX_TIME_STEPS
        self.initial_value = VALUE_FUNCTION_INITIAL
        self.use_symmetry = True
        self.verbose = False
        # upper bound on interpolation weights held in memory per backup chunk
        self.chunk_budget = 2 ** 20
        self.convergence_history = []
        if domain is not None:
            self.set_domain(domain)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_domain(self, domain: GameStateDomain):
        """Attach a domain; the time step is reset to half the grid spacing."""
        self.domain = domain
        self.set_time_step_size(domain.get_maximal_resolution_width() / 2)

    def get_domain(self) -> GameStateDomain:
        return self.domain

    def set_velocity(self, player: Player, velocity: float):
        if velocity < 0:
            raise ValueError(f"Velocity must be non-negative, got {velocity}")
        self.velocities[player] = float(velocity)

    def get_velocity(self, player: Player) -> float:
        return self.velocities[player]

    def set_control_resolution(self, resolution: int):
        if int(resolution) != resolution or resolution < 0:
            raise ValueError(f"Control resolution must be a non-negative integer, got {resolution}")
        self.control_resolution = int(resolution)

    def get_control_resolution(self) -> int:
        return self.control_resolution

    def set_allow_standing_still(self, allow: bool):
        self.allow_standing_still = bool(allow)

    def get_allow_standing_still(self) -> bool:
        return self.allow_standing_still

    def set_time_step_size(self, step: float):
        if not step > 0:
            raise ValueError(f"Time step size must be positive, got {step}")
        self.time_step_size = float(step)
        self.beta = float(np.exp(-self.time_step_size))

    def get_time_step_size(self) -> float:
        return self.time_step_size

    def get_beta(self) -> float:
        return self.beta

    def set_max_iterations(self, n: int):
        if n < 0:
            raise ValueError(f"max_iterations must be non-negative, got {n}")
        self.max_iterations = int(n)

    def get_max_iterations(self) -> int:
        return self.max_iterations

    def set_max_time_steps(self, n: int):
        if n < 0:
            raise ValueError(f"max_time_steps must be non-negative, got {n}")
        self.max_time_steps = int(n)

    def get_max_time_steps(self) -> int:
        return self.max_time_steps

    def _require_domain(self):
        if self.domain is None:
            raise ValueError("Game has no domain; call set_domain first")

    def symmetry_enabled(self) -> bool:
        """
        Mirroring through the domain center is exact only for centrally
        symmetric domains and a control set closed under reflection.
        """
        return (self.use_symmetry and self.domain is not None and self.domain.is_symmetric()
                and self.control_resolution % 2 == 0)

    # ------------------------------------------------------------------
    # Kinematics
    # ------------------------------------------------------------------

    def get_controls(self) -> np.ndarray:
        start = 0 if self.allow_standing_still else 1
        return np.arange(start, self.control_resolution + 1)

    def displacements(self, player: Player, step: Optional[float] = None) -> np.ndarray:
        """Position change of every control in get_controls(), shape (n_controls, 2)."""
        step = self.time_step_size if step is None else step
        controls = self.get_controls()
        theta = 2 * np.pi * controls / max(self.control_resolution, 1)
        delta = step * self.velocities[player] * np.stack([np.cos(theta), np.sin(theta)], axis=-1)
        delta[controls == 0] = 0.0
        return delta

    def _displacement(self, player: Player, control: int, step: Optional[float]) -> np.ndarray:
        if control == 0:
            return np.zeros(2)
        if not 1 <= control <= self.control_resolution:
            raise ValueError(f"Control {control} outside [0, {self.control_resolution}]")
        step = self.time_step_size if step is None else step
        theta = 2 * np.pi * control / self.control_resolution
        return step * self.velocities[player] * np.array([np.cos(theta), np.sin(theta)])

    def eval_ke(self, x, p_control: int, e_control: int, step: Optional[float] = None) -> np.ndarray:
        """One Euler step of the kinematic equations for both agents."""
        x = GameStateDomain.clone_state(x)
        x[Player.PURSUER.coordinates] += self._displacement(Player.PURSUER, p_control, step)
        x[Player.EVADER.coordinates] += self._displacement(Player.EVADER, e_control, step)
        return x

    def is_admissible_control(self, x, player: Player, control: int) -> bool:
        self._require_domain()
        self.domain.require_feasible(x, player)
        if control == 0:
            return self.allow_standing_still
        moved = GameStateDomain.clone_state(x)
        moved[player.coordinates] += self._displacement(player, control, None)
        return self.domain.is_feasible(moved, player)

    def is_terminal(self, x) -> bool:
        self._require_domain()
        return bool(self._terminal_states(np.asarray(x, dtype=float)))

    def is_terminal_index(self, index) -> bool:
        index = np.asarray(index)
        return bool(np.all(np.abs(index[:2] - index[2:]) <= 1))

    def _terminal_states(self, states: np.ndarray) -> np.ndarray:
        limit = self.domain.get_maximal_resolution_width() * (1 + TERMINAL_RTOL)
        dist = np.abs(states[..., 0:2] - states[..., 2:4])
        return np.all(dist <= limit, axis=-1)

    # ------------------------------------------------------------------
    # Bellman backup
    # ------------------------------------------------------------------

    def _control_table(self, vfunc: ValueFunction, states: np.ndarray) -> np.ndarray:
        """
        beta * V(successor) + (1 - beta) for every state and control pair.

        Returns shape (B, n_evader_controls, n_pursuer_controls); NaN marks
        pairs where one of the agents would leave the feasible region.
        """
        states = np.asarray(states, dtype=float).reshape(-1, 4)
        d_p = self.displacements(Player.PURSUER)
        d_e = self.displacements(Player.EVADER)

        moved_p = states[:, None, 0:2] + d_p[None, :, :]
        moved_e = states[:, None, 2:4] + d_e[None, :, :]
        ok_p = self.domain.feasible_positions(moved_p)
        ok_e = self.domain.feasible_positions(moved_e)
        ok = ok_e[:, :, None] & ok_p[:, None, :]

        n_e, n_p = len(d_e), len(d_p)
        table = np.full((len(states), n_e, n_p), np.nan)
        if not np.any(ok):
            return table

        b, i, j = np.nonzero(ok)
        successors = np.concatenate([moved_p[b, j], moved_e[b, i]], axis=1)
        table[b, i, j] = self.beta * vfunc.eval_many(successors, check=False) + (1 - self.beta)
        return table

    @staticmethod
    def _minimax(table: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Max over evader rows of the min over pursuer columns, ignoring NaN.

        Returns (value, evader choice, pursuer choice, solvable) per state.
        Ties go to the first control.
        """
        n_states = len(table)
        if table.shape[1] == 0 or table.shape[2] == 0:
            none = np.zeros(n_states, dtype=int)
            return np.full(n_states, np.nan), none, none, np.zeros(n_states, dtype=bool)

        ok = ~np.isnan(table)
        inner = np.where(ok, table, np.inf)
        p_choice = inner.argmin(axis=2)
        row_min = np.take_along_axis(inner, p_choice[:, :, None], axis=2)[:, :, 0]
        row_ok = ok.any(axis=2)
        outer = np.where(row_ok, row_min, -np.inf)
        e_choice = outer.argmax(axis=1)
        rows = np.arange(n_states)
        value = outer[rows, e_choice]
        return value, e_choice, p_choice[rows, e_choice], row_ok.any(axis=1)

    def _backup(self, vfunc: ValueFunction, states: np.ndarray, fallback: np.ndarray) -> np.ndarray:
        n_pairs = len(self.get_controls()) ** 2
        batch = max(1, self.chunk_budget // (n_pairs * 2 ** self.domain.dimension))
        result = np.empty(len(states))
        for start in range(0, len(states), batch):
            stop = start + batch
            value, _, _, solvable = self._minimax(self._control_table(vfunc, states[start:stop]))
            result[start:stop] = np.where(solvable, value, fallback[start:stop])
        return result

    def compute_value_on_grid(self, vfunc: ValueFunction, x) -> float:
        """One backup at a single feasible state or grid index."""
        self._require_domain()
        x = np.asarray(x)
        if np.issubdtype(x.dtype, np.integer):
            x = self.domain.get_point(x)
        self.domain.require_feasible(x)
        if self.is_terminal(x):
            return 0.0
        value, _, _, solvable = self._minimax(self._control_table(vfunc, x[None, :]))
        return float(value[0]) if solvable[0] else vfunc.eval(x)

    # ------------------------------------------------------------------
    # Value iteration
    # ------------------------------------------------------------------

    def compute_value_function(self, tol: float) -> ValueFunction:
        """
        Fixed-point iteration of the discrete Isaacs equation.

        Stops once no vertex changes by more than tol or after max_iterations
        sweeps. The returned value function records the number of sweeps.
        """
        self._require_domain()
        if tol < 0:
            raise ValueError(f"Tolerance must be non-negative, got {tol}")

        domain = self.domain
        mask = domain.feasibility_mask()
        n = mask.size
        vertices = np.flatnonzero(mask)
        symmetric = self.symmetry_enabled()
        if symmetric:
            vertices = vertices[vertices <= n - 1 - vertices]
        mirrors = n - 1 - vertices

        grid_index = np.stack(np.unravel_index(vertices, domain.get_grid_shape()), axis=-1)
        terminal = np.all(np.abs(grid_index[:, 0:2] - grid_index[:, 2:4]) <= 1, axis=-1)
        active = vertices[~terminal]
        active_states = domain.get_point(grid_index[~terminal])
        visited = np.union1d(vertices, mirrors) if symmetric else vertices

        current = ValueFunction(domain, self.initial_value)
        following = ValueFunction(domain, self.initial_value)
        self.convergence_history = []

        if self.verbose:
            print(f"\nStarting value iteration (max {self.max_iterations} iterations)...")
            print(f"Convergence tolerance: {tol}")
            print(f"Feasible vertices: {int(mask.sum())}, evaluated per sweep: {len(vertices)}"
                  f" ({int(terminal.sum())} terminal)")
            print(f"Symmetry optimization: {'on' if symmetric else 'off'}")

        iterations = 0
        for iteration in range(self.max_iterations):
            iterations = iteration + 1
            following.values[vertices[terminal]] = 0.0
            following.values[active] = self._backup(current, active_states, current.values[active])
            if symmetric:
                following.values[mirrors] = following.values[vertices]

            diff = float(np.max(np.abs(following.values[visited] - current.values[visited]),
                                initial=0.0))
            self.convergence_history.append(diff)
            current, following = following, current

            if self.verbose:
                print(f"Iteration {iterations}: ||V^k - V^{{k-1}}||_∞ = {diff:.6f}")
            if diff <= tol:
                if self.verbose:
                    print(f"\nConverged at iteration {iterations}!")
                break
        else:
            if self.verbose:
                print(f"\nReached maximum iterations ({self.max_iterations})")

        current.set_iterations(iterations)
        return current

    # ------------------------------------------------------------------
    # Trajectories
    # ------------------------------------------------------------------

    def compute_trajectory(self, vfunc: ValueFunction, x,
                           max_time_steps: Optional[int] = None) -> Trajectory:
        """
        Greedy rollout: both agents respond optimally to the interpolated
        value one step ahead until capture or the step limit.
        """
        self._require_domain()
        self.domain.require_feasible(x)
        max_time_steps = self.max_time_steps if max_time_steps is None else max_time_steps
        d_p = self.displacements(Player.PURSUER)
        d_e = self.displacements(Player.EVADER)

        x = GameStateDomain.clone_state(x)
        states = [x]
        steps = 0
        captured = self.is_terminal(x)
        while not captured and steps < max_time_steps:
            _, e_choice, p_choice, solvable = self._minimax(self._control_table(vfunc, x[None, :]))
            if not solvable[0]:
                if self.verbose:
                    print(f"No admissible controls at {x.tolist()}, stopping after {steps} steps")
                break
            # same arithmetic as _control_table, so the chosen move stays feasible
            x = np.concatenate([x[0:2] + d_p[p_choice[0]], x[2:4] + d_e[e_choice[0]]])
            states.append(x)
            steps += 1
            captured = self.is_terminal(x)

        return Trajectory(states=np.array(states), time_steps=steps, captured=captured)

    def plot_trajectories(self, vfunc: ValueFunction, x, out_file: Optional[str] = None,
                          figure_file: Optional[str] = None) -> int:
        """Roll out from x, optionally write data and figure; returns the number of steps."""
        trajectory = self.compute_trajectory(vfunc, x)
        if out_file is not None:
            np.savetxt(out_file, trajectory.states, delimiter="\t", fmt="%.10g")
        if figure_file is not None:
            plot_trajectory(self.domain, trajectory, figure_file)
        return trajectory.time_steps

    def __str__(self) -> str:
        lines = [str(self.domain)]
        if self.domain is not None:
            lines.append(f"n = {self.domain.get_maximal_grid_index()[0] + 1}")
        lines += [
            f"n_c = {self.control_resolution} + {int(self.allow_standing_still)}",
            f"vP = {self.velocities[Player.PURSUER]:f}",
            f"vE = {self.velocities[Player.EVADER]:f}",
            f"timeStepSize = {self.time_step_size}",
            f"max Iterations: {self.max_iterations}",
            f"max Time Steps for Trajectory Plots: {self.max_time_steps}",
        ]
        return "\n".join(lines)
