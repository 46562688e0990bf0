"""Core utilities for SoilBento.

Includes:
    VarRole, VarDims: Enumerations describing how a variable is stored.
    Variable: An immutable declaration of a named model quantity.
    declare, prognostic, auxiliary, input_variable: Variable constructors.
    merge: Combine variable declarations from several processes.
    check_dims: Infer the dimensionality of an array on a grid.
    Clock: Simulation time and iteration count.
    StateContainer: Arrays for all declared variables plus a Clock.
    allocate: Build a fresh StateContainer from a list of variables.
    check_bounds: Validate concrete state values against declared bounds.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional

import jax
import jax.numpy as jnp
import numpy as np
import equinox as eqx
from jaxtyping import Array, Float, Int

from soilbento.errors import DuplicateVariableError, ErrorContext, RangeError, ConfigurationError


class VarRole(str, Enum):
    """How a variable evolves during a simulation."""
    PROGNOSTIC = "prognostic"
    AUXILIARY = "auxiliary"
    INPUT = "input"


class VarDims(str, Enum):
    """Grid dimensions on which a variable is defined."""
    COLUMN = "column"
    SURFACE = "surface"


# Storage group of each role inside a StateContainer
_GROUP_OF_ROLE = {
    VarRole.PROGNOSTIC: "prognostic",
    VarRole.AUXILIARY: "auxiliary",
    VarRole.INPUT: "inputs",
}

_LOOKUP_ORDER = ("prognostic", "auxiliary", "inputs")


@dataclass(frozen=True)
class Variable:
    """Declaration of a named model quantity.

    Attributes:
        name: Unique identifier of the variable.
        role: Whether the variable is prognostic, auxiliary or an input.
        dims: Whether the variable lives on every cell or on the surface only.
        closure: Optional closure relation mapping this prognostic variable
            to derived auxiliary quantities.
        units: A string indicating the units of the data.
        description: A human-readable description.
        default: Value used to fill the variable at allocation.
        bounds: Optional (lower, upper) admissible range, inclusive.
    """
    name: str
    role: VarRole
    dims: VarDims
    closure: Any = None
    units: Optional[str] = None
    description: str = ""
    default: float = 0.0
    bounds: Optional[tuple[float, float]] = None

    @property
    def is_prognostic(self) -> bool:
        return self.role == VarRole.PROGNOSTIC

    @property
    def has_closure(self) -> bool:
        return self.closure is not None


def declare(
    name: str,
    role: VarRole,
    dims: VarDims,
    closure = None,
    units: Optional[str] = None,
    description: str = "",
    default: float = 0.0,
    bounds: Optional[tuple[float, float]] = None
) -> Variable:
    """Declare a variable."""
    role = VarRole(role)
    dims = VarDims(dims)

    if closure is not None and role != VarRole.PROGNOSTIC:
        raise ConfigurationError(
            "Only prognostic variables can carry a closure.",
            ErrorContext(variable = name, operation = "declare")
        )

    if bounds is not None:
        bounds = (float(bounds[0]), float(bounds[1]))

    return Variable(name, role, dims, closure, units, description, float(default), bounds)


def prognostic(name: str, dims: VarDims, closure = None, **kwargs) -> Variable:
    """Declare a prognostic variable."""
    return declare(name, VarRole.PROGNOSTIC, dims, closure = closure, **kwargs)


def auxiliary(name: str, dims: VarDims, **kwargs) -> Variable:
    """Declare an auxiliary (diagnostic) variable."""
    return declare(name, VarRole.AUXILIARY, dims, **kwargs)


def input_variable(name: str, dims: VarDims, **kwargs) -> Variable:
    """Declare an input variable."""
    return declare(name, VarRole.INPUT, dims, **kwargs)


def merge(*variable_lists: Iterable[Variable]) -> tuple[Variable, ...]:
    """Concatenate variable lists, preserving order and dropping identical duplicates.

    Raises:
        DuplicateVariableError: if two declarations share a name but differ.
    """
    merged = {}

    for variables in variable_lists:
        for var in variables:
            if var.name in merged:
                if merged[var.name] != var:
                    raise DuplicateVariableError(
                        f"Variable '{var.name}' is declared twice with different definitions: "
                        f"{merged[var.name]} vs. {var}.",
                        ErrorContext(variable = var.name, operation = "merge")
                    )
            else:
                merged[var.name] = var

    return tuple(merged.values())


def expand_closures(variables: Iterable[Variable]) -> tuple[Variable, ...]:
    """Append the derived auxiliary variables of every closure."""
    variables = tuple(variables)
    derived = [
        var.closure.derived_variables() for var in variables if var.has_closure
    ]
    return merge(variables, *derived)


def check_dims(grid, array) -> VarDims:
    """Check which set of grid dimensions matches the shape of an array-like."""
    shape = jnp.shape(array)

    if shape == grid.shape(VarDims.COLUMN):
        return VarDims.COLUMN
    elif shape == grid.shape(VarDims.SURFACE):
        return VarDims.SURFACE
    else:
        raise ConfigurationError(f"Array of shape {shape} does not match any grid dimensions.")


def is_concrete(value) -> bool:
    """True if the value can be inspected outside of a JAX transformation."""
    return not isinstance(value, jax.core.Tracer)


class Clock(eqx.Module):
    """Simulation clock.

    Attributes:
        time: Elapsed simulation time in seconds.
        iteration: Number of completed time steps.
    """
    time: Float[Array, ""] = eqx.field(converter = jnp.asarray, default = 0.0)
    iteration: Int[Array, ""] = eqx.field(converter = jnp.asarray, default = 0)

    def tick(self, dt) -> "Clock":
        """Return the clock advanced by one step of size dt."""
        return Clock(self.time + dt, self.iteration + 1)


class StateContainer(eqx.Module):
    """Stores the arrays of all declared variables.

    The container is partitioned into prognostic, auxiliary, input and tendency
    groups. The set of names in each group is fixed when the container is
    allocated. Every method that changes a value returns a new container.

    Values can be retrieved by flat name regardless of their role, e.g.
    `state.temperature` or `state['temperature']`. Tendencies are only
    reachable through `state.tendencies[name]`.

    Attributes:
        prognostic: Arrays of prognostic variables.
        auxiliary: Arrays of auxiliary variables.
        inputs: Arrays of input variables.
        tendencies: One tendency array per prognostic variable.
        clock: The simulation clock.
    """
    prognostic: dict[str, Array]
    auxiliary: dict[str, Array]
    inputs: dict[str, Array]
    tendencies: dict[str, Array]
    clock: Clock

    def __getattr__(self, name: str) -> Array:
        # Only reached when normal attribute lookup fails
        if name.startswith("__") or name in _LOOKUP_ORDER or name in ("tendencies", "clock"):
            raise AttributeError(name)

        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"State has no variable named '{name}'.") from None

    def __getitem__(self, name: str) -> Array:
        return getattr(self, self.group_of(name))[name]

    def __contains__(self, name: str) -> bool:
        return any(name in getattr(self, group) for group in _LOOKUP_ORDER)

    def group_of(self, name: str) -> str:
        """Return the storage group that holds a variable."""
        for group in _LOOKUP_ORDER:
            if name in getattr(self, group):
                return group

        raise KeyError(name)

    def get(self, name: str, default = None):
        """Get the value of a variable, or default if it is not declared."""
        return self[name] if name in self else default

    @property
    def names(self) -> tuple[str, ...]:
        """All variable names, prognostic first."""
        return tuple(name for group in _LOOKUP_ORDER for name in getattr(self, group))

    @property
    def time(self) -> Array:
        return self.clock.time

    @property
    def iteration(self) -> Array:
        return self.clock.iteration

    def set(self, name: str, value) -> "StateContainer":
        """Replace the value of a variable, keeping its shape and dtype."""
        group = self.group_of(name)
        old = getattr(self, group)[name]
        new = jnp.broadcast_to(jnp.asarray(value, dtype = old.dtype), old.shape)

        return eqx.tree_at(lambda s: getattr(s, group)[name], self, new)

    def update(self, values: dict[str, Any]) -> "StateContainer":
        """Replace the values of several variables at once."""
        state = self
        for name, value in values.items():
            state = state.set(name, value)
        return state

    def add_tendency(self, name: str, value) -> "StateContainer":
        """Accumulate a contribution into the tendency of a prognostic variable."""
        if name not in self.tendencies:
            raise KeyError(f"'{name}' is not a prognostic variable.")

        return eqx.tree_at(
            lambda s: s.tendencies[name], self, self.tendencies[name] + value
        )

    def reset_tendencies(self) -> "StateContainer":
        """Zero all tendency buffers."""
        zeros = {name: jnp.zeros_like(value) for name, value in self.tendencies.items()}
        return self.replace_group("tendencies", zeros)

    def replace_group(self, group: str, values: dict[str, Array]) -> "StateContainer":
        """Replace a whole storage group; the set of names must not change."""
        current = getattr(self, group)
        if set(values) != set(current):
            raise KeyError(f"Names in group '{group}' cannot change after allocation.")

        return dataclasses.replace(self, **{group: dict(values)})

    def with_clock(self, clock: Clock) -> "StateContainer":
        return dataclasses.replace(self, clock = clock)

    def tick(self, dt) -> "StateContainer":
        """Advance the clock by dt."""
        return self.with_clock(self.clock.tick(dt))


def allocate(
    variables: Iterable[Variable],
    shape_for: Callable[[VarDims], tuple[int, ...]],
    clock: Optional[Clock] = None,
    dtype = None
) -> StateContainer:
    """Allocate a StateContainer for the given variables.

    Derived quantities of closures are allocated as ordinary auxiliary
    variables, and every prognostic variable receives a zeroed tendency buffer.
    """
    dtype = dtype or jnp.result_type(float)
    groups = {"prognostic": {}, "auxiliary": {}, "inputs": {}, "tendencies": {}}

    for var in expand_closures(variables):
        value = jnp.full(shape_for(var.dims), var.default, dtype = dtype)
        groups[_GROUP_OF_ROLE[var.role]][var.name] = value

        if var.is_prognostic:
            groups["tendencies"][var.name] = jnp.zeros_like(value)

    return StateContainer(**groups, clock = clock if clock is not None else Clock())


def check_bounds(state: StateContainer, variables: Iterable[Variable]) -> None:
    """Check concrete state values against the bounds of their declarations.

    Raises:
        RangeError: if any value lies outside the declared bounds.
    """
    for var in expand_closures(variables):
        if var.bounds is None or var.name not in state:
            continue

        value = state[var.name]
        if not is_concrete(value):
            continue

        lower, upper = var.bounds
        value = np.asarray(value)
        if np.any(value < lower) or np.any(value > upper) or np.any(np.isnan(value)):
            raise RangeError(
                f"Values of '{var.name}' must lie in [{lower}, {upper}], "
                f"found range [{np.nanmin(value)}, {np.nanmax(value)}].",
                ErrorContext(variable = var.name, operation = "check_bounds")
            )
