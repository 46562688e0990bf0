"""Run a Model forward in time.

A Simulation pairs a Model with a Timestepper and owns the live state, the
stepper cache and the input sources of one run. It moves through the states

    UNINITIALIZED -> INITIALIZED -> STEPPING -> FINALIZED

where initialize() allocates a fresh state, timestep() advances it by one step,
and run() takes many steps and then refreshes auxiliary variables for read-out.
Steps are atomic: the live state is only replaced after a step has completed.
"""

import datetime
import logging
import math
import time as timer
from enum import Enum
from typing import Callable, Iterable, Optional, Union

import numpy as np
import jax.numpy as jnp
import equinox as eqx

from soilbento.core import StateContainer, VarDims, check_bounds
from soilbento.diagnostics import check_finite, find_nonfinite
from soilbento.errors import (
    ConfigurationError,
    ErrorContext,
    SimulationStateError,
    StepFailure
)
from soilbento.inputs import InputSource, check_inputs, update_inputs
from soilbento.timesteppers import ForwardEuler, Timestepper

logger = logging.getLogger(__name__)


class SimulationStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    STEPPING = "stepping"
    FINALIZED = "finalized"


@eqx.filter_jit
def _step(timestepper, model, state, dt, cache):
    return timestepper.timestep(state, model, dt, cache)


@eqx.filter_jit
def _compute_auxiliary(model, state):
    return model.compute_auxiliary(state)


class Simulation:
    """Drives a Model with a Timestepper.

    Attributes:
        model: the Model to run
        timestepper: the time stepping scheme
        inputs: sources that refresh input variables every step
        initializers: initial values by variable name; each is a scalar, an
            array, or a callable of depth (column variables) or of column
            index (surface variables)
        debug: if True, check every step for non-finite values

    Methods:
        initialize(): Allocate and initialize a fresh state.
        timestep(): Advance by one step.
        run(): Advance by a number of steps or a period of time.
    """

    def __init__(
        self,
        model,
        timestepper: Optional[Timestepper] = None,
        inputs: Iterable[InputSource] = (),
        initializers: Optional[dict[str, Union[float, np.ndarray, Callable]]] = None,
        debug: bool = False
    ):
        self.model = model
        self.timestepper = timestepper if timestepper is not None else ForwardEuler()
        self.inputs = tuple(inputs)
        self.initializers = dict(initializers or {})
        self.debug = debug

        self.status = SimulationStatus.UNINITIALIZED
        self._state = None
        self._cache = None

    @property
    def state(self) -> StateContainer:
        if self._state is None:
            raise SimulationStateError("The simulation has not been initialized.")
        return self._state

    @property
    def time(self) -> float:
        return float(self.state.time)

    @property
    def iteration(self) -> int:
        return int(self.state.iteration)

    def _initial_value(self, name: str, initializer, state: StateContainer):
        """Evaluate one initializer against the grid."""
        if not callable(initializer):
            return initializer

        grid = self.model.grid
        if state[name].shape == grid.shape(VarDims.COLUMN):
            return initializer(grid.column_depth())
        else:
            return initializer(jnp.arange(grid.num_columns))

    def _apply_initializers(self, state: StateContainer) -> StateContainer:
        for name, initializer in self.initializers.items():
            if name not in state:
                raise ConfigurationError(
                    f"Cannot initialize undeclared variable '{name}'.",
                    ErrorContext(variable = name, operation = "initialize")
                )

            try:
                state = state.set(name, self._initial_value(name, initializer, state))
            except (TypeError, ValueError) as error:
                raise ConfigurationError(
                    f"Initial value of '{name}' does not fit its shape {state[name].shape}: {error}",
                    ErrorContext(variable = name, operation = "initialize")
                ) from error

        return state

    def initialize(self) -> StateContainer:
        """Allocate a fresh state, apply initial values and initialize the model."""
        variables = self.model.variables()
        state = self.model.allocate_state()

        check_inputs(self.inputs, state)
        state = update_inputs(self.inputs, state)
        state = self._apply_initializers(state)
        check_bounds(state, variables)

        state = self.model.initialize(state)

        self._state = state
        self._cache = self.timestepper.initialize(state)
        self.status = SimulationStatus.INITIALIZED

        logger.info(
            "Initialized simulation with %d prognostic, %d auxiliary and %d input variables "
            "on %d column(s) of %d layer(s).",
            len(state.prognostic), len(state.auxiliary), len(state.inputs),
            self.model.grid.num_columns, self.model.grid.num_layers
        )

        return state

    def timestep(self, dt: Optional[float] = None) -> StateContainer:
        """Advance the simulation by one step.

        Raises:
            SimulationStateError: if the simulation has not been initialized.
            StepFailure: if the step could not be completed; the state is unchanged.
        """
        if self.status == SimulationStatus.UNINITIALIZED:
            raise SimulationStateError(
                "Call initialize() before timestep().", ErrorContext(operation = "timestep")
            )

        dt = self.timestepper.default_dt() if dt is None else dt
        if not dt > 0:
            raise ConfigurationError(f"Time step must be positive, got {dt}.")

        try:
            state = update_inputs(self.inputs, self._state)
            new_state, new_cache = _step(
                self.timestepper, self.model, state, jnp.asarray(dt, dtype = state.time.dtype), self._cache
            )
        except Exception as error:
            raise StepFailure(
                f"Step {self.iteration} at t = {self.time} s failed: {error}",
                ErrorContext(operation = "timestep", details = {"dt": dt})
            ) from error

        if self.debug:
            bad = find_nonfinite(new_state)
            if bad:
                raise StepFailure(
                    f"Step {self.iteration} at t = {self.time} s produced non-finite values in: "
                    + ", ".join(bad),
                    ErrorContext(operation = "timestep", details = {"dt": dt})
                )

        self._state = new_state
        self._cache = new_cache
        self.status = SimulationStatus.STEPPING

        return new_state

    def run(
        self,
        steps: Optional[int] = None,
        period: Union[float, datetime.timedelta, None] = None,
        dt: Optional[float] = None
    ) -> StateContainer:
        """Advance by a number of steps or over a period of time.

        A period that is not a multiple of dt ends with one shorter step.
        Afterwards, auxiliary variables are recomputed from the final state.
        """
        if (steps is None) == (period is None):
            raise ConfigurationError("Exactly one of steps or period must be given.")

        if self.status == SimulationStatus.UNINITIALIZED:
            raise SimulationStateError(
                "Call initialize() before run().", ErrorContext(operation = "run")
            )

        dt = self.timestepper.default_dt() if dt is None else dt
        if not dt > 0:
            raise ConfigurationError(f"Time step must be positive, got {dt}.")

        step_sizes = self._step_sizes(steps, period, dt)

        start = timer.perf_counter()
        for step_dt in step_sizes:
            self.timestep(step_dt)

        self._state = _compute_auxiliary(self.model, self._state)
        self.status = SimulationStatus.FINALIZED

        if not self.debug:
            check_finite(self._state)

        logger.info(
            "Ran %d step(s) to t = %.1f s in %.2f s.",
            len(step_sizes), self.time, timer.perf_counter() - start
        )

        return self._state

    @staticmethod
    def _step_sizes(steps, period, dt) -> list[float]:
        if steps is not None:
            if int(steps) != steps or steps < 0:
                raise ConfigurationError(f"Number of steps must be a non-negative integer, got {steps}.")
            return [dt] * int(steps)

        if isinstance(period, datetime.timedelta):
            period = period.total_seconds()
        if period < 0:
            raise ConfigurationError(f"Period must be non-negative, got {period}.")

        num_full = int(math.floor(period / dt + 1e-9))
        remainder = period - num_full * dt
        sizes = [dt] * num_full

        if remainder > 1e-9 * dt:
            sizes.append(remainder)

        return sizes
