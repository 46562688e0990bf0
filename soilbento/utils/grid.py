"""Vertical column grids.

A ColumnGrid is a set of laterally independent soil columns that share one
vertical discretization. Column variables are stored as arrays of shape
(num_columns, num_layers) and surface variables as arrays of shape
(num_columns,). Layer 0 is the top of the column; depths are positive downward
and measured from the surface.

Includes:
    UniformSpacing: Layers of constant thickness.
    ExponentialSpacing: Layer thickness increasing exponentially with depth.
    PrescribedSpacing: Layer thicknesses given explicitly.
    ColumnGrid: Layer geometry plus vertical stencil operators.
"""

import math

import numpy as np
import jax.numpy as jnp
import equinox as eqx
from jaxtyping import Array, Float

from soilbento.core import VarDims
from soilbento.errors import ConfigurationError


def round_sigdigits(x: float, sig: int) -> float:
    """Round a positive number to sig significant digits."""
    if x == 0:
        return 0.0
    decimals = sig - 1 - int(math.floor(math.log10(abs(x))))
    return round(x, decimals)


class UniformSpacing(eqx.Module):
    """Uniform layer thickness dz for N layers."""
    dz: float = 0.5
    N: int = eqx.field(static = True, default = 50)

    def thicknesses(self) -> np.ndarray:
        return np.full(self.N, self.dz, dtype = float)


class ExponentialSpacing(eqx.Module):
    """Layer thicknesses interpolated log-linearly between dz_min and dz_max.

    Thicknesses are rounded to sig significant digits, unless sig is None.
    """
    dz_min: float = 0.1
    dz_max: float = 100.0
    sig: int = eqx.field(static = True, default = 3)
    N: int = eqx.field(static = True, default = 50)

    def __check_init__(self):
        if self.N < 2:
            raise ConfigurationError("Exponential spacing requires at least two layers.")

    def thicknesses(self) -> np.ndarray:
        log_min = math.log2(self.dz_min)
        log_max = math.log2(self.dz_max)
        dz = [
            2 ** (log_min + i * (log_max - log_min) / (self.N - 1)) for i in range(self.N)
        ]

        if self.sig is not None:
            dz = [round_sigdigits(d, self.sig) for d in dz]

        return np.asarray(dz, dtype = float)


class PrescribedSpacing(eqx.Module):
    """Explicit layer thicknesses, from the top down."""
    dz: tuple[float, ...] = eqx.field(converter = lambda x: tuple(float(v) for v in x))

    @property
    def N(self) -> int:
        return len(self.dz)

    def thicknesses(self) -> np.ndarray:
        return np.asarray(self.dz, dtype = float)


class ColumnGrid(eqx.Module):
    """Geometry of a set of independent soil columns.

    Attributes:
        dz: layer thicknesses from the top down (m)
        num_columns: number of independent columns

    Methods:
        shape: array shape of variables with the given dimensions
        interp_to_faces: mean of neighbouring cell values at interior faces
        face_gradient: vertical gradient at interior faces
        divergence: vertical divergence of fluxes defined on all faces
    """
    dz: Float[Array, "layers"]
    num_columns: int = eqx.field(static = True)
    num_layers: int = eqx.field(static = True)

    def __init__(self, spacing = None, num_columns: int = 1):
        """Initialize the ColumnGrid from a vertical spacing."""
        spacing = spacing if spacing is not None else UniformSpacing()
        dz = np.asarray(spacing.thicknesses(), dtype = float)

        if dz.ndim != 1 or dz.size == 0:
            raise ConfigurationError("Vertical spacing must define at least one layer.")
        if np.any(dz <= 0):
            raise ConfigurationError("Layer thicknesses must be strictly positive.")
        if num_columns < 1:
            raise ConfigurationError("A grid needs at least one column.")

        self.dz = jnp.asarray(dz)
        self.num_columns = int(num_columns)
        self.num_layers = int(dz.size)

    def shape(self, dims: VarDims) -> tuple[int, ...]:
        """Array shape of a variable with the given dimensions."""
        if VarDims(dims) == VarDims.COLUMN:
            return (self.num_columns, self.num_layers)
        else:
            return (self.num_columns,)

    @property
    def depth_faces(self) -> Array:
        """Depth of the N + 1 layer boundaries, starting with 0 at the surface."""
        return jnp.concatenate([jnp.zeros(1, dtype = self.dz.dtype), jnp.cumsum(self.dz)])

    @property
    def depth(self) -> Array:
        """Depth of the layer midpoints."""
        return jnp.cumsum(self.dz) - self.dz / 2

    @property
    def total_depth(self) -> Array:
        return jnp.sum(self.dz)

    @property
    def center_spacing(self) -> Array:
        """Distance between neighbouring layer midpoints (N - 1 values)."""
        return jnp.diff(self.depth)

    def column_depth(self) -> Array:
        """Midpoint depths broadcast to a column variable."""
        return jnp.broadcast_to(self.depth, self.shape(VarDims.COLUMN))

    def interp_to_faces(self, values: Array) -> Array:
        """Arithmetic mean of the two cells sharing each interior face."""
        return 0.5 * (values[..., :-1] + values[..., 1:])

    def face_gradient(self, values: Array) -> Array:
        """Gradient with respect to depth at each interior face."""
        return (values[..., 1:] - values[..., :-1]) / self.center_spacing

    def divergence(self, flux: Array) -> Array:
        """Divergence of a downward-positive flux given on all N + 1 faces."""
        return (flux[..., 1:] - flux[..., :-1]) / self.dz
