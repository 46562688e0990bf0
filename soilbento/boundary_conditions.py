"""Boundary conditions for vertical fluxes.

A boundary condition turns surface input variables into a flux across the top
or bottom face of every column. Fluxes returned by flux() are positive into the
column, whichever boundary they belong to. Boundary values are ordinary input
variables and are supplied by input sources.

The input read by a boundary condition is named when the condition is created
or, if left unnamed, by the process that owns it. A process names the
conditions on its two boundaries differently, so that the same kind of
condition can be used at the top and at the bottom of a column.

Includes:
    NoFlux: Zero flux across the boundary.
    PrescribedFlux: Flux read from a surface input variable.
    PrescribedValue: Fixed boundary value half a layer away from the boundary cell.
"""

import dataclasses
from typing import ClassVar, Optional

import jax.numpy as jnp
import equinox as eqx
from jaxtyping import Array

from soilbento.core import StateContainer, VarDims, input_variable
from soilbento.errors import ConfigurationError


class NoFlux(eqx.Module):
    """Zero-flux (insulating) boundary."""

    quantity: ClassVar[Optional[str]] = None

    def variables(self):
        return ()

    def flux(self, state: StateContainer, value: Array, conductivity: Array, distance) -> Array:
        return jnp.zeros_like(value)


class _PrescribedInput(eqx.Module):
    name: Optional[str] = eqx.field(static = True, default = None)
    units: Optional[str] = eqx.field(static = True, default = None)
    default: float = eqx.field(static = True, default = 0.0)

    quantity: ClassVar[Optional[str]] = None
    description: ClassVar[str] = ""

    def with_defaults(self, name: str, units: str):
        """Fill in the input name and units where none were given."""
        return dataclasses.replace(
            self,
            name = self.name if self.name is not None else name,
            units = self.units if self.units is not None else units
        )

    def variables(self):
        if self.name is None:
            raise ConfigurationError(
                f"{type(self).__name__} has no input name. Give one, or attach it to a process."
            )

        return (
            input_variable(self.name, VarDims.SURFACE, units = self.units, default = self.default,
                           description = self.description),
        )


class PrescribedFlux(_PrescribedInput):
    """Boundary flux given by a surface input variable.

    Attributes:
        name: name of the input variable holding the flux
        units: units of the flux
        default: value of the input until one is supplied
    """

    quantity = "flux"
    description = "boundary flux into the column"

    def flux(self, state: StateContainer, value: Array, conductivity: Array, distance) -> Array:
        return state[self.name]


class PrescribedValue(_PrescribedInput):
    """Dirichlet boundary given by a surface input variable.

    The flux is computed from the difference between the prescribed value and
    the value of the boundary cell, over the distance from the cell centre to
    the boundary face.

    Attributes:
        name: name of the input variable holding the boundary value
        units: units of the boundary value
        default: value of the input until one is supplied
    """

    quantity = "value"
    description = "prescribed boundary value"

    def flux(self, state: StateContainer, value: Array, conductivity: Array, distance) -> Array:
        return conductivity * (state[self.name] - value) / distance


def name_boundary(condition, names: dict[str, tuple[str, str]]):
    """Give an unnamed boundary condition the (name, units) registered for its quantity."""
    quantity = getattr(condition, "quantity", None)
    if quantity not in names:
        return condition

    return condition.with_defaults(*names[quantity])
