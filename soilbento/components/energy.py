"""Models heat conduction in a freezing and thawing soil column.

The SoilEnergyBalance evolves the internal energy U of each soil layer under
vertical heat conduction,

    dU/dt = -dq/dz,    q = -k dT/dz

with depth z positive downward. Temperature T and the liquid water fraction are
derived from U by the TemperatureEnergyClosure, which accounts for the latent
heat of freezing and thawing pore water. Conductivities at layer faces are
arithmetic means of the bulk conductivities of the adjacent layers. The top and
bottom faces use the configured boundary conditions.

See Westermann et al. (2023), The CryoGrid community model (version 1.0).
Geoscientific Model Development, 16, 2607-2647.
"""

import jax.numpy as jnp
import equinox as eqx
from jaxtyping import Array

from soilbento.boundary_conditions import NoFlux, name_boundary
from soilbento.closures import TemperatureEnergyClosure
from soilbento.components.component import Component
from soilbento.composition import compose
from soilbento.constants import PhysicalConstants
from soilbento.core import StateContainer, VarDims, auxiliary, merge, prognostic
from soilbento.thermal import SoilThermalProperties, thermal_conductivity


# Inputs read by unnamed boundary conditions, by side and quantity
TOP_INPUTS = {
    'flux': ('ground_heat_flux', 'W/m^2'),
    'value': ('surface_temperature', 'degC')
}
BOTTOM_INPUTS = {
    'flux': ('geothermal_heat_flux', 'W/m^2'),
    'value': ('bottom_temperature', 'degC')
}


class SoilEnergyBalance(Component):
    """Models heat conduction with phase change.

    Arguments:
        grid: A ColumnGrid object.
        thermal_properties: Constituent thermal properties.
        constants: Physical constants.
        top: Boundary condition at the surface.
        bottom: Boundary condition at the bottom of the column.

    Input fields:
        porosity, organic_fraction: soil composition (from stratigraphy)
        saturation_water_ice: pore saturation (from hydrology)
        any inputs declared by the boundary conditions

    Output fields:
        internal_energy: prognostic internal energy of each layer (J/m^3)
        temperature, liquid_water_fraction: derived by the closure
        thermal_conductivity: bulk thermal conductivity of each layer
        ground_temperature: temperature of the top layer

    Methods:
        compute_auxiliary: update thermal conductivity and ground temperature
        compute_tendencies: add the heat conduction tendency of internal energy
    """

    closure: TemperatureEnergyClosure
    top: eqx.Module
    bottom: eqx.Module

    kind = "energy"

    def __init__(
        self,
        grid,
        thermal_properties = SoilThermalProperties(),
        constants = PhysicalConstants(),
        top = NoFlux(),
        bottom = NoFlux(),
        params = {}
    ):
        """Initialize the SoilEnergyBalance."""
        self.closure = TemperatureEnergyClosure(thermal_properties, constants)
        self.top = name_boundary(top, TOP_INPUTS)
        self.bottom = name_boundary(bottom, BOTTOM_INPUTS)

        super().__init__(grid, params)

    @property
    def thermal_properties(self) -> SoilThermalProperties:
        return self.closure.thermal_properties

    def variables(self):
        own = (
            prognostic('internal_energy', VarDims.COLUMN, closure = self.closure, units = 'J/m^3',
                       description = 'internal energy of the soil volume'),
            auxiliary('thermal_conductivity', VarDims.COLUMN, units = 'W/m/K',
                      description = 'bulk thermal conductivity'),
            auxiliary('ground_temperature', VarDims.SURFACE, units = 'degC',
                      description = 'temperature of the uppermost soil layer')
        )

        return merge(own, self.top.variables(), self.bottom.variables())

    def required_variables(self):
        return ('porosity', 'saturation_water_ice', 'organic_fraction')

    def _calc_conductivity(self, state: StateContainer) -> Array:
        """Calculate the bulk thermal conductivity of each layer."""
        composition = compose(
            state.porosity,
            state.saturation_water_ice,
            state.liquid_water_fraction,
            state.organic_fraction
        )

        return thermal_conductivity(self.thermal_properties, composition)

    def _calc_heat_flux(self, state: StateContainer) -> Array:
        """Calculate the downward heat flux at all layer faces."""
        T = state.temperature
        k = state.thermal_conductivity
        dz = self._grid.dz

        k_faces = self._grid.interp_to_faces(k)
        q_interior = -k_faces * self._grid.face_gradient(T)

        q_top = self.top.flux(state, T[..., 0], k[..., 0], dz[0] / 2)
        q_bottom = -self.bottom.flux(state, T[..., -1], k[..., -1], dz[-1] / 2)

        return jnp.concatenate(
            [q_top[..., None], q_interior, q_bottom[..., None]], axis = -1
        )

    def compute_auxiliary(self, state: StateContainer) -> StateContainer:
        """Update thermal conductivity and ground temperature."""
        return state.update({
            'thermal_conductivity': self._calc_conductivity(state),
            'ground_temperature': state.temperature[..., 0]
        })

    def compute_tendencies(self, state: StateContainer) -> StateContainer:
        """Add the conductive heat flux divergence to the internal energy tendency."""
        q = self._calc_heat_flux(state)
        return state.add_tendency('internal_energy', -self._grid.divergence(q))
