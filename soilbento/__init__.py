"""SoilBento: composable soil energy, water and carbon models in JAX."""

from .errors import (
    SoilBentoError,
    ConfigurationError,
    RangeError,
    DuplicateVariableError,
    SimulationStateError,
    StepFailure
)
from .core import (
    VarRole,
    VarDims,
    Variable,
    declare,
    prognostic,
    auxiliary,
    input_variable,
    merge,
    expand_closures,
    allocate,
    check_bounds,
    Clock,
    StateContainer
)
from .constants import PhysicalConstants
from .composition import SoilTexture, SoilComposition, VolumetricFractions, compose, volumetric_fractions
from .thermal import SoilThermalProperties, bulk_heat_capacity, bulk_conductivity
from .closures import (
    FreeWater,
    TemperatureEnergyClosure,
    temperature_to_energy,
    energy_to_temperature,
    VanGenuchten,
    SaturationPressureClosure
)
from .utils import ColumnGrid, UniformSpacing, ExponentialSpacing, PrescribedSpacing
from .boundary_conditions import NoFlux, PrescribedFlux, PrescribedValue
from .inputs import ConstantInput, FunctionInput, ArrayInput
from .components import (
    Component,
    Process,
    HomogeneousStratigraphy,
    SoilHydrology,
    SoilEnergyBalance,
    ConstantSoilCarbon,
    OnePoolSoilCarbon
)
from .models import Model, SoilModel
from .timesteppers import ForwardEuler, Heun
from .simulation import Simulation, SimulationStatus

__all__ = [
    "SoilBentoError",
    "ConfigurationError",
    "RangeError",
    "DuplicateVariableError",
    "SimulationStateError",
    "StepFailure",
    "VarRole",
    "VarDims",
    "Variable",
    "declare",
    "prognostic",
    "auxiliary",
    "input_variable",
    "merge",
    "expand_closures",
    "allocate",
    "check_bounds",
    "Clock",
    "StateContainer",
    "PhysicalConstants",
    "SoilTexture",
    "SoilComposition",
    "VolumetricFractions",
    "compose",
    "volumetric_fractions",
    "SoilThermalProperties",
    "bulk_heat_capacity",
    "bulk_conductivity",
    "FreeWater",
    "TemperatureEnergyClosure",
    "temperature_to_energy",
    "energy_to_temperature",
    "VanGenuchten",
    "SaturationPressureClosure",
    "ColumnGrid",
    "UniformSpacing",
    "ExponentialSpacing",
    "PrescribedSpacing",
    "NoFlux",
    "PrescribedFlux",
    "PrescribedValue",
    "ConstantInput",
    "FunctionInput",
    "ArrayInput",
    "Component",
    "Process",
    "HomogeneousStratigraphy",
    "SoilHydrology",
    "SoilEnergyBalance",
    "ConstantSoilCarbon",
    "OnePoolSoilCarbon",
    "Model",
    "SoilModel",
    "ForwardEuler",
    "Heun",
    "Simulation",
    "SimulationStatus"
]
