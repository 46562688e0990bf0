"""Bulk thermal properties of a soil volume.

Constituent values follow Hillel (1982). Bulk heat capacity is the
volume-weighted average of the constituent heat capacities. Bulk thermal
conductivity uses the inverse quadratic ("quadratic parallel") mixing rule of
Cosenza et al. (2003),

    k = (sum_i theta_i * sqrt(k_i))^2

Hillel, D. (1982). Introduction to soil physics. Academic Press.

Cosenza, P., Guerin, R., & Tabbagh, A. (2003).
Relationship between thermal conductivity and water content of soils using
numerical modelling. European Journal of Soil Science, 54, 581-588.
"""

import jax.numpy as jnp
import equinox as eqx
from jaxtyping import Array

from soilbento.composition import SoilComposition, VolumetricFractions, volumetric_fractions
from soilbento.errors import ConfigurationError, ErrorContext


# Thermal conductivities of each constituent (W/m/K)
DEFAULT_CONDUCTIVITIES = VolumetricFractions(
    water = 0.57, ice = 2.2, air = 0.025, mineral = 3.8, organic = 0.25
)

# Volumetric heat capacities of each constituent (J/m^3/K)
DEFAULT_HEAT_CAPACITIES = VolumetricFractions(
    water = 4.2e6, ice = 1.9e6, air = 1.25e3, mineral = 2.0e6, organic = 2.5e6
)


class InverseQuadratic(eqx.Module):
    """Inverse quadratic conductivity mixing, (sum theta_i sqrt(k_i))^2."""

    def __call__(self, values: VolumetricFractions, weights: VolumetricFractions) -> Array:
        return sum(jnp.sqrt(k) * theta for k, theta in zip(values, weights)) ** 2


class LinearWeighting(eqx.Module):
    """Arithmetic volume-weighted mean, sum theta_i k_i."""

    def __call__(self, values: VolumetricFractions, weights: VolumetricFractions) -> Array:
        return sum(k * theta for k, theta in zip(values, weights))


class SoilThermalProperties(eqx.Module):
    """Constituent thermal properties and the conductivity mixing rule.

    Attributes:
        conductivities: thermal conductivity of each constituent (W/m/K)
        heat_capacities: volumetric heat capacity of each constituent (J/m^3/K)
        conductivity_mixing: rule used to combine conductivities
    """
    conductivities: VolumetricFractions = DEFAULT_CONDUCTIVITIES
    heat_capacities: VolumetricFractions = DEFAULT_HEAT_CAPACITIES
    conductivity_mixing: eqx.Module = InverseQuadratic()

    def __check_init__(self):
        for label, values in (
            ("conductivity", self.conductivities),
            ("heat capacity", self.heat_capacities)
        ):
            for name, value in values._asdict().items():
                if not value > 0:
                    raise ConfigurationError(
                        f"The {label} of {name} must be strictly positive, got {value}.",
                        ErrorContext(variable = name, operation = "SoilThermalProperties")
                    )


def bulk_heat_capacity(props: SoilThermalProperties, fractions: VolumetricFractions) -> Array:
    """Volume-weighted heat capacity of a mixture (J/m^3/K)."""
    return LinearWeighting()(props.heat_capacities, fractions)


def bulk_conductivity(props: SoilThermalProperties, fractions: VolumetricFractions) -> Array:
    """Bulk thermal conductivity of a mixture (W/m/K)."""
    return props.conductivity_mixing(props.conductivities, fractions)


def heat_capacity(props: SoilThermalProperties, composition: SoilComposition) -> Array:
    """Bulk heat capacity of a soil volume."""
    return bulk_heat_capacity(props, volumetric_fractions(composition))


def thermal_conductivity(props: SoilThermalProperties, composition: SoilComposition) -> Array:
    """Bulk thermal conductivity of a soil volume."""
    return bulk_conductivity(props, volumetric_fractions(composition))
