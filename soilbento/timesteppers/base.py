"""Common interface and building blocks for explicit time steppers.

A Timestepper advances a StateContainer by one step of a Model. Timesteppers
are stateless: anything a scheme needs to carry between steps (e.g. a scratch
state) is returned by initialize() as a cache, owned by the caller, and passed
back to every call of timestep().
"""

from abc import abstractmethod

import jax
import jax.numpy as jnp
import equinox as eqx

from soilbento.core import StateContainer
from soilbento.errors import ConfigurationError


def explicit_step(state: StateContainer, dt) -> StateContainer:
    """Update every prognostic variable u <- u + dt * du/dt."""
    updated = {
        name: value + dt * state.tendencies[name]
        for name, value in state.prognostic.items()
    }
    return state.replace_group("prognostic", updated)


def stage_tendencies(model, state: StateContainer) -> StateContainer:
    """Reset tendencies, then compute auxiliary values and tendencies."""
    state = state.reset_tendencies()
    state = model.compute_auxiliary(state)
    return model.compute_tendencies(state)


def average_tendencies(first: dict, second: dict) -> dict:
    """Elementwise mean of two sets of tendencies."""
    return {name: 0.5 * (first[name] + second[name]) for name in first}


def copy_state(state: StateContainer) -> StateContainer:
    """Copy every array of a state into new buffers."""
    return jax.tree_util.tree_map(jnp.copy, state)


def load_state(buffer: StateContainer, state: StateContainer) -> StateContainer:
    """Write the values of a state into the arrays of a buffer of the same structure."""
    return jax.tree_util.tree_map(lambda old, new: old.at[...].set(new), buffer, state)



class Timestepper(eqx.Module):
    """Base class for fixed-step explicit schemes.

    Attributes:
        dt: default time step (s)

    Methods:
        default_dt: the default time step
        is_adaptive: whether the scheme adapts its step size
        initialize: create the cache carried between steps
        timestep: advance the state by one step
    """
    dt: float = 300.0

    def __check_init__(self):
        if not self.dt > 0:
            raise ConfigurationError(f"Time step must be positive, got {self.dt}.")

    def default_dt(self) -> float:
        return self.dt

    def is_adaptive(self) -> bool:
        return False

    def initialize(self, state: StateContainer):
        """Create the cache carried between steps."""
        return None

    @abstractmethod
    def timestep(self, state: StateContainer, model, dt, cache) -> tuple[StateContainer, object]:
        """Advance the state by one step of size dt and return (state, cache)."""
        pass
