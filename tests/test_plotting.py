import numpy as np
import pytest

from pursuit_evasion.debug import check_symmetry
from pursuit_evasion.definitions import Player
from pursuit_evasion.domains import SquareDomain, SquareDomainSquareHole, SquareDomainRoundHole
from pursuit_evasion.game import Trajectory
from pursuit_evasion.plotting import (plot_convergence, plot_domain, plot_trajectory,
                                      plot_value_slice)
from pursuit_evasion.value_function import ValueFunction


@pytest.mark.parametrize("domain", [
    SquareDomain(-2, 2, 6),
    SquareDomainSquareHole(-2, 2, -0.5, 0.5, 6),
    SquareDomainRoundHole(-2, 2, 0, 0, 0.5, 6),
])
def test_plot_domain_writes_png(domain, tmp_path) -> None:
    filename = tmp_path / "domain.png"
    plot_domain(domain, str(filename))
    assert filename.stat().st_size > 0


def test_plot_value_slice_writes_png(tmp_path) -> None:
    domain = SquareDomainSquareHole(-2, 2, -0.5, 0.5, 6)
    vfunc = ValueFunction(domain)
    rng = np.random.default_rng(1)
    mask = domain.feasibility_mask()
    vfunc.values[mask] = 0.9 * rng.random(mask.sum())

    filename = tmp_path / "slice.png"
    plot_value_slice(vfunc, Player.PURSUER, [-2, -2, 0, 0], str(filename), time_value=True)
    assert filename.exists()


def test_plot_trajectory_writes_png(tmp_path) -> None:
    domain = SquareDomainRoundHole(-2, 2, 0, 0, 0.5, 6)
    states = np.array([[-2, -2, 2, 2], [-1.5, -1.8, 2, 1.6], [-1.0, -1.6, 2, 1.2]])
    filename = tmp_path / "traj.png"

    plot_trajectory(domain, Trajectory(states=states, time_steps=2, captured=False), str(filename))
    assert filename.exists()


def test_plot_convergence_handles_zero_difference(tmp_path, capsys) -> None:
    filename = tmp_path / "convergence.png"
    plot_convergence([1.0, 0.3, 0.01, 0.0], str(filename))

    assert filename.exists()
    assert "Convergence plot saved" in capsys.readouterr().out


def test_check_symmetry_reports_violations(capsys) -> None:
    vfunc = ValueFunction(SquareDomain(-1, 1, 3), initial_value=0.5)
    assert check_symmetry(vfunc) == {"full": [], "x": [], "y": []}

    vfunc.set_value([0, 1, 2, 1], 0.9)
    violations = check_symmetry(vfunc, verbose=True)

    assert (0, 1, 2, 1) in violations["full"]
    assert (2, 1, 0, 1) in violations["full"]
    assert (2, 1, 0, 1) in violations["x"]
    assert violations["y"] == []
    assert "violations" in capsys.readouterr().out
