"""Define a common interface for Components.

Components are self-contained process models that contribute variables,
auxiliary values and tendencies to a shared StateContainer. It may help to
think of each Component as being responsible for one equation in a paper or
textbook. Specific Components should extend the base class here with the
necessary logic for the process they model. Consider adding citations to the
docstrings of Components to properly attribute the source of the equation(s)
being implemented.

Any object that provides the four methods of the Process protocol can take part
in a Model, whether or not it inherits from Component. A process may also
name the variables it reads from other processes in required_variables(), so
that a Model can reject compositions in which they are missing.
"""

from typing import ClassVar, Optional, Protocol, runtime_checkable

import equinox as eqx

from soilbento.core import StateContainer, Variable
from soilbento.utils import ColumnGrid


# Fixed order in which a Model dispatches to its processes
PASS_ORDER = ("stratigraphy", "hydrology", "energy", "biogeochemistry", "vegetation")


@runtime_checkable
class Process(Protocol):
    """Capabilities required of every process in a Model."""

    def variables(self) -> tuple[Variable, ...]:
        ...

    def initialize(self, state: StateContainer) -> StateContainer:
        ...

    def compute_auxiliary(self, state: StateContainer) -> StateContainer:
        ...

    def compute_tendencies(self, state: StateContainer) -> StateContainer:
        ...


class Component(eqx.Module):
    """Components are individual process models with a common interface.

    A Component declares the variables it owns, writes only its own auxiliary
    variables in compute_auxiliary(), and adds only into the tendencies of its
    own prognostic variables in compute_tendencies(). Both methods take the
    current state and return the updated state. Each Component should provide
    reasonable default values for parameters in its __init__() method.

    Attributes:
        grid: The ColumnGrid object that the Component operates on.
        params: A dictionary of parameters.
        kind: The slot of this Component in the model pass order.

    Methods:
        update_param: Return a copy with a new value for one parameter.
        variables: Declare the variables owned by this Component.
        required_variables: Name the variables this Component reads from other processes.
        initialize: Compute initial auxiliary values.
        compute_auxiliary: Update auxiliary variables.
        compute_tendencies: Accumulate tendencies of prognostic variables.
    """

    _grid: ColumnGrid
    params: dict[str, float]

    kind: ClassVar[Optional[str]] = None

    def __init__(self, grid, params = {}):
        """Components should be able to be instantiated with only a grid."""
        self._grid = grid
        self.params = dict(params)

    @property
    def grid(self) -> ColumnGrid:
        return self._grid

    def update_param(self, param: str, new_value: float) -> "Component":
        """Return a copy of this Component with one parameter replaced."""
        if param not in self.params:
            raise KeyError(f"{type(self).__name__} has no parameter '{param}'.")

        return eqx.tree_at(lambda c: c.params[param], self, new_value)

    def variables(self) -> tuple[Variable, ...]:
        """Declare the variables owned by this Component."""
        return ()

    def required_variables(self) -> tuple[str, ...]:
        """Name the variables this Component reads from other processes."""
        return ()

    def initialize(self, state: StateContainer) -> StateContainer:
        """Compute initial auxiliary values."""
        return self.compute_auxiliary(state)

    def compute_auxiliary(self, state: StateContainer) -> StateContainer:
        """Update auxiliary variables."""
        return state

    def compute_tendencies(self, state: StateContainer) -> StateContainer:
        """Accumulate tendencies of prognostic variables."""
        return state
