"""Forward Euler time stepping."""

from soilbento.core import StateContainer
from soilbento.timesteppers.base import Timestepper, explicit_step, stage_tendencies


class ForwardEuler(Timestepper):
    """First-order explicit Euler scheme, u(t + dt) = u(t) + dt * f(u(t))."""

    def timestep(self, state: StateContainer, model, dt, cache = None):
        """Advance the state by one step of size dt."""
        state = stage_tendencies(model, state)
        state = explicit_step(state, dt)
        state = model.invert_closures(state)

        return state.tick(dt), cache
