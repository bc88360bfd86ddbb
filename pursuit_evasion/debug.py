# debug.py
import numpy as np
from typing import Dict, List, Tuple

from .value_function import ValueFunction

# Index reflections under which the value function of a centered domain is
# invariant: all axes, the two x axes, the two y axes.
SYMMETRIES = {
    "full": (True, True, True, True),
    "x": (True, False, True, False),
    "y": (False, True, False, True),
}


def check_symmetry(vfunc: ValueFunction, tol: float = 1e-3,
                   verbose: bool = False) -> Dict[str, List[Tuple[int, ...]]]:
    """
    Compare every grid value with its mirror image under each reflection.
    Returns the grid indices violating each symmetry by more than tol.
    """
    values = vfunc.values.reshape(vfunc.shape)
    violations = {}
    for name, flips in SYMMETRIES.items():
        axes = tuple(d for d, flip in enumerate(flips) if flip)
        mirrored = np.flip(values, axis=axes)
        bad = np.argwhere(np.abs(values - mirrored) > tol)
        violations[name] = [tuple(int(i) for i in index) for index in bad]
        if verbose:
            if len(bad) == 0:
                print(f"Symmetry '{name}': ok")
            else:
                first = tuple(bad[0])
                print(f"Symmetry '{name}': {len(bad)} violations, e.g. at {first} "
                      f"({values[first]:.6f} != {mirrored[first]:.6f})")
    return violations
