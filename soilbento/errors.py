"""Exception hierarchy for SoilBento.

Configuration problems are raised eagerly, when a model, process or state is
built. Problems during a time step are raised as StepFailure and leave the
simulation state as it was before the step.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ErrorContext:
    """Context information for errors."""
    process: Optional[str] = None
    variable: Optional[str] = None
    operation: Optional[str] = None
    details: Optional[dict[str, Any]] = None


class SoilBentoError(Exception):
    """Base exception for all SoilBento errors."""

    def __init__(self, message: str, context: Optional[ErrorContext] = None):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()

    def __str__(self) -> str:
        context_str = ""
        if self.context.process:
            context_str += f" [Process: {self.context.process}]"
        if self.context.variable:
            context_str += f" [Variable: {self.context.variable}]"
        if self.context.operation:
            context_str += f" [Operation: {self.context.operation}]"

        return f"{self.__class__.__name__}: {self.message}{context_str}"


class ConfigurationError(SoilBentoError):
    """Invalid model, process or run configuration."""
    pass


class RangeError(ConfigurationError):
    """A bounded quantity lies outside its admissible range."""
    pass


class DuplicateVariableError(ConfigurationError):
    """Two non-identical declarations share the same variable name."""
    pass


class SimulationStateError(SoilBentoError):
    """Operation not permitted in the current state of a simulation."""
    pass


class StepFailure(SoilBentoError):
    """A time step could not be completed.

    The state of the simulation is the one from before the failed step. The
    step is not retried; callers may retry with a smaller time step or abort.
    """
    pass
