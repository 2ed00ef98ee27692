"""Jacobian computation utilities."""

import numpy as np
from typing import Callable, Optional


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: Optional[float] = None,
    method: str = "central"
) -> np.ndarray:
    """Compute Jacobian using finite differences.

    Args:
        func: Function that takes x and returns residual vector
        x: Input parameters
        h: Fixed step size; None scales the step to each parameter's magnitude
        method: Finite difference method ("forward", "central")

    Returns:
        Jacobian matrix J where J[i,j] = df_i/dx_j
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    f0 = np.atleast_1d(func(x))

    m, n = len(f0), len(x)
    J = np.zeros((m, n))

    if h is None:
        steps = 1e-6 * np.maximum(1.0, np.abs(x))
    else:
        steps = np.full(n, h)

    if method == "forward":
        for j in range(n):
            x_plus = x.copy()
            x_plus[j] += steps[j]
            J[:, j] = (func(x_plus) - f0) / steps[j]

    elif method == "central":
        for j in range(n):
            x_plus = x.copy()
            x_minus = x.copy()
            x_plus[j] += steps[j]
            x_minus[j] -= steps[j]
            J[:, j] = (func(x_plus) - func(x_minus)) / (2 * steps[j])

    else:
        raise ValueError(f"Unknown finite difference method: {method}")

    return J
