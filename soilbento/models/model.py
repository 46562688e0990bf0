"""Define Models as ordered aggregates of processes.

The Model class is the top-level object that coordinates between processes,
variables, and the grid. It is responsible for running each process in the
correct order and for applying the closures of prognostic variables. A Model is
immutable: it can be reused across any number of simulations, each of which
allocates a fresh StateContainer from it.
"""

import logging
from typing import Iterable, Optional

import equinox as eqx

from soilbento.components import (
    PASS_ORDER,
    Process,
    HomogeneousStratigraphy,
    SoilHydrology,
    SoilEnergyBalance,
    ConstantSoilCarbon
)
from soilbento.core import (
    Clock,
    StateContainer,
    Variable,
    VarRole,
    allocate,
    expand_closures,
    merge
)
from soilbento.errors import ConfigurationError, ErrorContext
from soilbento.utils import ColumnGrid

logger = logging.getLogger(__name__)


def check_pass_order(names: tuple[str, ...], processes: tuple) -> None:
    """Check that processes follow the fixed pass order.

    Processes without a declared kind may appear anywhere.
    """
    last_index = -1
    last_name = None

    for name, process in zip(names, processes):
        kind = getattr(process, "kind", None)
        if kind is None:
            continue

        if kind not in PASS_ORDER:
            raise ConfigurationError(
                f"Unknown process kind '{kind}'. Options are {PASS_ORDER}.",
                ErrorContext(process = name, operation = "Model")
            )

        index = PASS_ORDER.index(kind)
        if index < last_index:
            raise ConfigurationError(
                f"Process '{name}' ({kind}) cannot run after '{last_name}' "
                f"({PASS_ORDER[last_index]}). The pass order is {' -> '.join(PASS_ORDER)}.",
                ErrorContext(process = name, operation = "Model")
            )
        last_index = index
        last_name = name


def check_requirements(names: tuple[str, ...], processes: tuple, extra_variables: tuple = ()) -> None:
    """Check that every variable a process reads is declared in the model.

    Auxiliary variables, which are only current once their owner has run, can
    only be read from processes earlier in the pass.
    """
    owners = {var.name: (-1, var) for var in expand_closures(extra_variables)}
    for index, process in enumerate(processes):
        for var in expand_closures(process.variables()):
            owners.setdefault(var.name, (index, var))

    for index, (name, process) in enumerate(zip(names, processes)):
        required = getattr(process, "required_variables", None)
        if required is None:
            continue

        for var_name in required():
            if var_name not in owners:
                raise ConfigurationError(
                    f"Process '{name}' reads '{var_name}', which no process in the model declares.",
                    ErrorContext(process = name, variable = var_name, operation = "Model")
                )

            owner, var = owners[var_name]
            if var.role == VarRole.AUXILIARY and owner > index:
                raise ConfigurationError(
                    f"Process '{name}' reads '{var_name}' before '{names[owner]}' computes it.",
                    ErrorContext(process = name, variable = var_name, operation = "Model")
                )


class Model(eqx.Module):
    """Models mediate between processes, variables and the grid.

    The primary responsibility of a Model is to run each process in the
    correct order. For best performance, time steps that call the Model should
    be wrapped in eqx.filter_jit.

    Attributes:
        grid: The ColumnGrid object that represents the soil columns.
        processes: Process instances in pass order.
        names: Names of the processes, in the same order.
        extra_variables: Variables declared outside of any process.

    Methods:
        variables(): Merge the variables of all processes.
        closures(): List the closures of prognostic variables.
        allocate_state(): Allocate a fresh StateContainer.
        initialize(): Compute initial auxiliary values and apply closures.
        compute_auxiliary(): Update auxiliary variables of all processes.
        compute_tendencies(): Accumulate tendencies of all processes.
        apply_closures(): Set prognostic variables from their derived variables.
        invert_closures(): Set derived variables from their prognostic variables.
    """

    grid: ColumnGrid
    processes: tuple
    names: tuple[str, ...] = eqx.field(static = True)
    extra_variables: tuple[Variable, ...] = eqx.field(static = True)

    def __init__(self, grid, processes, extra_variables: Iterable[Variable] = ()):
        """Initialize the Model with a grid and (name, process) pairs."""
        pairs = list(processes.items()) if isinstance(processes, dict) else list(processes)

        names = []
        for item in pairs:
            if not (isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], str)):
                raise ConfigurationError(f"Processes must be given as (name, process) pairs, got {item!r}.")

            name, process = item
            if name in names:
                raise ConfigurationError(f"Process name '{name}' is used twice.")
            if not isinstance(process, Process):
                raise ConfigurationError(
                    f"{type(process).__name__} does not implement the Process interface.",
                    ErrorContext(process = name, operation = "Model")
                )
            names.append(name)

        self.grid = grid
        self.names = tuple(names)
        self.processes = tuple(process for _, process in pairs)
        self.extra_variables = tuple(extra_variables)

        check_pass_order(self.names, self.processes)

        # Fail early on conflicting declarations
        variables = self.variables()
        check_requirements(self.names, self.processes, self.extra_variables)

        logger.debug(
            "Assembled model with processes %s and %d variables.", list(self.names), len(variables)
        )

    def __getitem__(self, name: str):
        """Get a process by name."""
        try:
            return self.processes[self.names.index(name)]
        except ValueError:
            raise KeyError(f"Model has no process named '{name}'.") from None

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def variables(self) -> tuple[Variable, ...]:
        """Merge the variables of all processes and any extra variables."""
        return merge(*(process.variables() for process in self.processes), self.extra_variables)

    def closures(self) -> list[tuple[Variable, eqx.Module]]:
        """List (variable, closure) for all prognostic variables with a closure."""
        return [
            (var, var.closure) for var in self.variables()
            if var.is_prognostic and var.has_closure
        ]

    def allocate_state(self, clock: Optional[Clock] = None) -> StateContainer:
        """Allocate a fresh StateContainer for all variables of this Model."""
        return allocate(self.variables(), self.grid.shape, clock = clock)

    def initialize(self, state: StateContainer) -> StateContainer:
        """Compute initial auxiliary values and set prognostic variables from closures."""
        for process in self.processes:
            state = process.initialize(state)

        state = self.apply_closures(state)

        # Refresh auxiliary values that depend on closure-derived variables
        return self.compute_auxiliary(state)

    def compute_auxiliary(self, state: StateContainer) -> StateContainer:
        """Update auxiliary variables of all processes, in order."""
        for process in self.processes:
            state = process.compute_auxiliary(state)
        return state

    def compute_tendencies(self, state: StateContainer) -> StateContainer:
        """Accumulate the tendencies of all processes, in order."""
        for process in self.processes:
            state = process.compute_tendencies(state)
        return state

    def apply_closures(self, state: StateContainer) -> StateContainer:
        """Set prognostic variables from their derived variables."""
        for _, closure in self.closures():
            state = closure.forward(state)
        return state

    def invert_closures(self, state: StateContainer) -> StateContainer:
        """Set derived variables from their prognostic variables."""
        for _, closure in self.closures():
            state = closure.inverse(state)
        return state


class SoilModel(Model):
    """The canonical soil model.

    Processes run in the order stratigraphy, hydrology, energy,
    biogeochemistry and, if given, vegetation. Any process that is not given
    is replaced by a default instance on the same grid.
    """

    def __init__(
        self,
        grid,
        stratigraphy = None,
        hydrology = None,
        energy = None,
        biogeochemistry = None,
        vegetation = None,
        extra_variables: Iterable[Variable] = ()
    ):
        """Initialize the SoilModel."""
        processes = [
            ('stratigraphy', stratigraphy if stratigraphy is not None else HomogeneousStratigraphy(grid)),
            ('hydrology', hydrology if hydrology is not None else SoilHydrology(grid)),
            ('energy', energy if energy is not None else SoilEnergyBalance(grid)),
            ('biogeochemistry', biogeochemistry if biogeochemistry is not None else ConstantSoilCarbon(grid))
        ]

        if vegetation is not None:
            processes.append(('vegetation', vegetation))

        super().__init__(grid, processes, extra_variables)

    @property
    def stratigraphy(self):
        return self['stratigraphy']

    @property
    def hydrology(self):
        return self['hydrology']

    @property
    def energy(self):
        return self['energy']

    @property
    def biogeochemistry(self):
        return self['biogeochemistry']
