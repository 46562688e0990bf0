"""Heun's method (improved Euler).

A two-stage, second-order explicit scheme. The first stage is a Forward Euler
predictor; the corrector averages the tendencies at the start and at the
predicted end of the step:

    k1 = f(u(t))
    k2 = f(u(t) + dt * k1)
    u(t + dt) = u(t) + dt * (k1 + k2) / 2

The predictor is evaluated on a scratch state of the same structure as the live
state, which the caller owns as the stepper cache. Each step writes the live
values into the cache arrays and returns the predicted state as the next cache.
"""

import jax

from soilbento.core import StateContainer
from soilbento.timesteppers.base import (
    Timestepper,
    average_tendencies,
    copy_state,
    explicit_step,
    load_state,
    stage_tendencies
)


class Heun(Timestepper):
    """Heun's two-stage explicit scheme."""

    def initialize(self, state: StateContainer) -> StateContainer:
        """Allocate the scratch state used by the predictor stage."""
        return copy_state(state)

    def timestep(self, state: StateContainer, model, dt, cache: StateContainer):
        """Advance the state by one step of size dt."""
        if cache is None or jax.tree_util.tree_structure(cache) != jax.tree_util.tree_structure(state):
            raise ValueError("Heun requires the scratch state created by initialize().")

        # k1 on the live state
        state = stage_tendencies(model, state)

        # Predictor on the scratch state, reusing the cache arrays
        scratch = load_state(cache, state)
        scratch = explicit_step(scratch, dt).tick(dt)
        scratch = model.invert_closures(scratch)

        # k2 on the predicted state
        scratch = stage_tendencies(model, scratch)

        # Corrector on the live state
        state = state.replace_group(
            "tendencies", average_tendencies(state.tendencies, scratch.tendencies)
        )
        state = explicit_step(state, dt)
        state = model.invert_closures(state)

        return state.tick(dt), scratch
