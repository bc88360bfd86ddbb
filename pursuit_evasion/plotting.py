# plotting.py
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle, Circle

from .definitions import Player
from .domains import GameStateDomain, SquareDomainSquareHole, SquareDomainRoundHole


def draw_domain(ax, domain: GameStateDomain):
    """Draw the planar domain of one agent: outer bounds and the obstacle, if any."""
    lo, hi = domain.get_bounds()
    ax.add_patch(Rectangle((lo, lo), hi - lo, hi - lo, fill=False,
                           edgecolor='black', linewidth=1.5))

    if isinstance(domain, SquareDomainSquareHole):
        size = domain.hole_max - domain.hole_min
        ax.add_patch(Rectangle((domain.hole_min, domain.hole_min), size, size,
                               color='gray', alpha=0.6, zorder=10))
    elif isinstance(domain, SquareDomainRoundHole):
        ax.add_patch(Circle(domain.hole_center, domain.radius,
                            color='gray', alpha=0.6, zorder=10))

    margin = 0.05 * (hi - lo)
    ax.set_xlim(lo - margin, hi + margin)
    ax.set_ylim(lo - margin, hi + margin)
    ax.set_aspect('equal')
    ax.set_xlabel('x')
    ax.set_ylabel('y')


def plot_domain(domain: GameStateDomain, filename: str, show_grid: bool = True):
    fig, ax = plt.subplots(figsize=(6, 6))
    draw_domain(ax, domain)
    if show_grid:
        lines = domain.get_point(np.arange(domain.get_maximal_grid_index()[0] + 1))
        for v in lines:
            ax.axvline(v, color='black', linewidth=0.3, alpha=0.4)
            ax.axhline(v, color='black', linewidth=0.3, alpha=0.4)
    ax.set_title(str(domain), fontsize=8)
    plt.tight_layout()
    plt.savefig(filename, dpi=150, bbox_inches='tight')
    plt.close()


def plot_value_slice(vfunc, player: Player, x, filename: str, time_value: bool = False):
    """
    Contour plot of the value over the opponent's position while `player`
    stays at its coordinates in x.
    """
    domain = vfunc.get_domain()
    X, Y, V = vfunc.value_slice(player, x, time_value=time_value)
    V = np.ma.masked_invalid(V)

    fig, ax = plt.subplots(figsize=(7, 6))
    if V.count() > 0:
        im = ax.contourf(X, Y, V, levels=20, cmap='viridis')
        ax.contour(X, Y, V, levels=10, colors='black', linewidths=0.5, alpha=0.5)
        label = 'time to capture' if time_value else 'value'
        plt.colorbar(im, ax=ax).set_label(label)
    draw_domain(ax, domain)

    fixed = np.asarray(x, dtype=float)[player.coordinates]
    color = 'blue' if player is Player.PURSUER else 'red'
    ax.plot(fixed[0], fixed[1], marker='o', color=color, markersize=8, zorder=11,
            label=f"{player.name.lower()} at ({fixed[0]:.2f}, {fixed[1]:.2f})")
    ax.legend(loc='upper right', fontsize=9)

    ax.set_title(f"Value function slice (iterations: {vfunc.get_iterations()})")
    plt.tight_layout()
    plt.savefig(filename, dpi=150, bbox_inches='tight')
    plt.close()


def plot_trajectory(domain: GameStateDomain, trajectory, filename: str):
    states = np.atleast_2d(trajectory.states)
    fig, ax = plt.subplots(figsize=(6, 6))
    draw_domain(ax, domain)

    ax.plot(states[:, 0], states[:, 1], 'b.-', linewidth=1.5, markersize=3, label='pursuer')
    ax.plot(states[:, 2], states[:, 3], 'r.-', linewidth=1.5, markersize=3, label='evader')
    ax.plot(states[0, 0], states[0, 1], 'bs', markersize=8)
    ax.plot(states[0, 2], states[0, 3], 'rs', markersize=8)
    ax.plot(states[-1, 0], states[-1, 1], 'bx', markersize=10)
    ax.plot(states[-1, 2], states[-1, 3], 'rx', markersize=10)

    outcome = "captured" if trajectory.captured else "not captured"
    ax.set_title(f"Trajectory: {trajectory.time_steps} steps, {outcome}")
    ax.grid(True, alpha=0.2)
    ax.legend(fontsize=9)
    plt.tight_layout()
    plt.savefig(filename, dpi=150, bbox_inches='tight')
    plt.close()


def plot_convergence(history, filename: str):
    fig, ax = plt.subplots(figsize=(10, 6))
    history = np.asarray(history, dtype=float)
    iterations = np.arange(1, len(history) + 1)
    # zero differences cannot be drawn on a log axis
    ax.semilogy(iterations, np.where(history > 0, history, np.nan), 'b-',
                label='||V^k - V^{k-1}||_∞', linewidth=2)
    ax.set_xlabel('Iteration', fontsize=12)
    ax.set_ylabel('Infinity Norm Difference', fontsize=12)
    ax.set_title('Value Iteration Convergence', fontsize=14)
    ax.grid(True, alpha=0.3)
    ax.legend(fontsize=11)
    plt.tight_layout()
    plt.savefig(filename, dpi=150, bbox_inches='tight')
    plt.close()
    print(f"Convergence plot saved to {filename}")
