"""Diagnostics for checking simulation results.

Problems found here are reported to the caller and logged as warnings; they are
never raised as exceptions.
"""

import logging

import numpy as np
import jax.numpy as jnp
from jaxtyping import Array

from soilbento.core import StateContainer

logger = logging.getLogger(__name__)


def column_integral(grid, values: Array) -> Array:
    """Integrate a column variable over depth, one value per column."""
    return jnp.sum(values * grid.dz, axis = -1)


def conservation_residual(
    grid,
    before: StateContainer,
    after: StateContainer,
    name: str,
    boundary_flux = 0.0,
    tolerance: float = 1e-8
) -> float:
    """Relative change of a column-integrated quantity between two states.

    The expected change, boundary_flux integrated over the elapsed time, is
    removed first. A residual larger than tolerance is logged as a warning.

    Returns:
        The largest relative residual over all columns.
    """
    dt = after.time - before.time
    total_before = column_integral(grid, before[name])
    total_after = column_integral(grid, after[name])

    expected = total_before + dt * jnp.asarray(boundary_flux)
    scale = jnp.maximum(jnp.abs(total_before), 1.0)
    residual = float(jnp.max(jnp.abs(total_after - expected) / scale))

    if residual > tolerance:
        logger.warning(
            "Column-integrated %s changed by a relative %.3e (tolerance %.1e).",
            name, residual, tolerance
        )

    return residual


def find_nonfinite(state: StateContainer) -> list[str]:
    """Names of all variables and tendencies that contain NaN or Inf."""
    names = [name for name in state.names if not np.all(np.isfinite(np.asarray(state[name])))]
    names += [
        f"tendency of {name}" for name, value in state.tendencies.items()
        if not np.all(np.isfinite(np.asarray(value)))
    ]
    return names


def check_finite(state: StateContainer) -> list[str]:
    """Log a warning for every variable that contains NaN or Inf."""
    names = find_nonfinite(state)

    if names:
        logger.warning(
            "Non-finite values at t = %s s in: %s", float(state.time), ", ".join(names)
        )

    return names
