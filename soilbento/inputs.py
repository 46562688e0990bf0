"""Input sources refresh input variables once per time step.

Each source is responsible for one declared input variable. Sources are
evaluated before the auxiliary pass of every step, at the current simulation
time, and only ever write input variables.

Includes:
    InputSource: Base class for all input sources.
    ConstantInput: A fixed value.
    FunctionInput: A function of simulation time.
    ArrayInput: A fixed array, or a time series interpolated linearly in time.
    check_inputs: Validate a collection of sources against a state.
"""

from abc import abstractmethod
from typing import Callable, Iterable, Optional

import numpy as np
import jax.numpy as jnp
import equinox as eqx
from jaxtyping import ArrayLike

from soilbento.core import StateContainer
from soilbento.errors import ConfigurationError, ErrorContext


class InputSource(eqx.Module):
    """Supplies the value of one input variable.

    Attributes:
        name: name of the input variable
    """
    name: str = eqx.field(static = True)

    @abstractmethod
    def value_at(self, time: float) -> ArrayLike:
        """Value of the input at a simulation time (s)."""
        pass

    def update(self, state: StateContainer) -> StateContainer:
        """Write the current value of this input into the state."""
        return state.set(self.name, self.value_at(float(state.time)))


class ConstantInput(InputSource):
    """An input that does not change in time."""
    value: ArrayLike = 0.0

    def value_at(self, time: float) -> ArrayLike:
        return self.value


class FunctionInput(InputSource):
    """An input computed by a function of simulation time, fn(t)."""
    fn: Callable = eqx.field(static = True, default = None)

    def __check_init__(self):
        if not callable(self.fn):
            raise ConfigurationError(
                f"FunctionInput requires a callable, got {self.fn!r}.",
                ErrorContext(variable = self.name, operation = "FunctionInput")
            )

    def value_at(self, time: float) -> ArrayLike:
        return self.fn(time)


class ArrayInput(InputSource):
    """An input given as an array.

    Without times, the array is used as is. With times, the first axis of
    values is time and the input is interpolated linearly between samples,
    holding the first and last samples constant outside of the time range.
    """
    values: ArrayLike = None
    times: Optional[ArrayLike] = None

    def __check_init__(self):
        if self.values is None:
            raise ConfigurationError(
                "ArrayInput requires values.",
                ErrorContext(variable = self.name, operation = "ArrayInput")
            )

        if self.times is not None:
            times = np.asarray(self.times)
            if times.ndim != 1 or len(times) != np.shape(self.values)[0]:
                raise ConfigurationError(
                    "Times must be one-dimensional and match the first axis of values.",
                    ErrorContext(variable = self.name, operation = "ArrayInput")
                )
            if np.any(np.diff(times) <= 0):
                raise ConfigurationError(
                    "Times must be strictly increasing.",
                    ErrorContext(variable = self.name, operation = "ArrayInput")
                )

    def value_at(self, time: float) -> ArrayLike:
        if self.times is None:
            return self.values

        times = jnp.asarray(self.times)
        values = jnp.asarray(self.values)

        i = jnp.clip(jnp.searchsorted(times, time, side = "right") - 1, 0, len(times) - 2)
        weight = jnp.clip((time - times[i]) / (times[i + 1] - times[i]), 0.0, 1.0)

        return (1 - weight) * values[i] + weight * values[i + 1]


def check_inputs(sources: Iterable[InputSource], state: StateContainer) -> None:
    """Check that every source refers to a declared input variable.

    Raises:
        ConfigurationError: if a source names an unknown or non-input variable.
    """
    seen = set()

    for source in sources:
        if source.name not in state:
            raise ConfigurationError(
                f"Input source refers to undeclared variable '{source.name}'.",
                ErrorContext(variable = source.name, operation = "check_inputs")
            )
        if source.name not in state.inputs:
            raise ConfigurationError(
                f"'{source.name}' is a {state.group_of(source.name)} variable, not an input.",
                ErrorContext(variable = source.name, operation = "check_inputs")
            )
        if source.name in seen:
            raise ConfigurationError(
                f"More than one source supplies input '{source.name}'.",
                ErrorContext(variable = source.name, operation = "check_inputs")
            )
        seen.add(source.name)


def update_inputs(sources: Iterable[InputSource], state: StateContainer) -> StateContainer:
    """Refresh all input variables from their sources."""
    for source in sources:
        state = source.update(state)
    return state
