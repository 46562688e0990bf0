"""Models soil organic carbon.

Two schemes are provided. ConstantSoilCarbon prescribes a fixed density of soil
organic carbon. OnePoolSoilCarbon evolves a single carbon pool C (kg/m^3)
under vertical transport, litter input at the surface, and temperature
dependent decomposition,

    dC/dt = -d(q_d + q_a)/dz + I - R

where q_d = -D_b dC/dz is the diffusive (bioturbation) flux, q_a = w C is the
advective flux, I is the litter input into the top layer, and

    R = k_ref * Q10^((T - T_ref) / 10) * C

is heterotrophic respiration.

Koven, C. D., Riley, W. J., Subin, Z. M., et al. (2013).
The effect of vertically resolved soil biogeochemistry and alternate soil C
and N models on C dynamics of CLM4. Biogeosciences, 10(11), 7109-7131.
"""

import jax.numpy as jnp
import equinox as eqx
from jaxtyping import Array

from soilbento.components.component import Component
from soilbento.constants import SECONDS_PER_YEAR
from soilbento.core import StateContainer, VarDims, auxiliary, input_variable, prognostic


class ConstantSoilCarbon(Component):
    """Prescribes a constant density of soil organic carbon.

    Arguments:
        grid: A ColumnGrid object.
        density: Soil organic carbon density (kg/m^3).

    Output fields:
        soil_organic_carbon: input variable with the prescribed density as default
    """

    kind = "biogeochemistry"

    def __init__(self, grid, density: float = 0.0, params = {}):
        """Initialize the ConstantSoilCarbon."""
        super().__init__(grid, {'density': float(density), **params})

    def variables(self):
        return (
            input_variable('soil_organic_carbon', VarDims.COLUMN, units = 'kg/m^3',
                           default = self.params['density'], bounds = (0.0, float('inf')),
                           description = 'density of soil organic carbon'),
        )


class SoilCarbonTransport(eqx.Module):
    """Constant bioturbation diffusivity and advection velocity."""
    diffusivity: float = 1e-4 / SECONDS_PER_YEAR # m^2 / s
    velocity: float = 0.0 # m / s, positive downward


class SoilCarbonRespiration(eqx.Module):
    """Q10 temperature dependence of decomposition."""
    reference_rate: float = 0.1 / SECONDS_PER_YEAR # 1 / s
    Q10: float = 2.0
    reference_temperature: float = 10.0 # deg C

    def rate(self, carbon: Array, temperature: Array) -> Array:
        """Respiration rate (kg/m^3/s)."""
        return (
            self.reference_rate
            * self.Q10 ** ((temperature - self.reference_temperature) / 10.0)
            * carbon
        )


class OnePoolSoilCarbon(Component):
    """Models a single pool of soil organic carbon.

    Arguments:
        grid: A ColumnGrid object.
        transport: Vertical transport parameters.
        respiration: Decomposition parameters.

    Input fields:
        temperature: soil temperature (from the energy closure)
        litter_flux: litter input at the surface (kg/m^2/s)

    Output fields:
        soil_organic_carbon: prognostic density of soil organic carbon
        respiration_rate: rate of heterotrophic respiration

    Methods:
        compute_auxiliary: update the respiration rate
        compute_tendencies: add transport, litter input and respiration
    """

    transport: SoilCarbonTransport
    respiration: SoilCarbonRespiration

    kind = "biogeochemistry"

    def __init__(
        self,
        grid,
        transport = SoilCarbonTransport(),
        respiration = SoilCarbonRespiration(),
        params = {
            'initial_density': 0.0 # kg / m^3
        }
    ):
        """Initialize the OnePoolSoilCarbon."""
        self.transport = transport
        self.respiration = respiration

        super().__init__(grid, params)

    def variables(self):
        return (
            prognostic('soil_organic_carbon', VarDims.COLUMN, units = 'kg/m^3',
                       default = self.params.get('initial_density', 0.0),
                       description = 'density of soil organic carbon'),
            auxiliary('respiration_rate', VarDims.COLUMN, units = 'kg/m^3/s',
                      description = 'heterotrophic respiration rate'),
            input_variable('litter_flux', VarDims.SURFACE, units = 'kg/m^2/s',
                           description = 'litter input at the soil surface')
        )

    def required_variables(self):
        return ('temperature',)

    def _calc_transport_flux(self, carbon: Array) -> Array:
        """Calculate the downward carbon flux at all layer faces."""
        D = self.transport.diffusivity
        w = self.transport.velocity

        diffusive = -D * self._grid.face_gradient(carbon)
        upstream = jnp.where(w >= 0, carbon[..., :-1], carbon[..., 1:])
        advective = w * upstream

        # No transport across the top and bottom of the column
        boundary = jnp.zeros_like(carbon[..., :1])

        return jnp.concatenate([boundary, diffusive + advective, boundary], axis = -1)

    def _calc_litter_input(self, state: StateContainer) -> Array:
        """Distribute surface litter input into the top layer."""
        litter = jnp.zeros(self._grid.shape(VarDims.COLUMN), dtype = state.litter_flux.dtype)
        return litter.at[..., 0].set(state.litter_flux / self._grid.dz[0])

    def compute_auxiliary(self, state: StateContainer) -> StateContainer:
        """Update the respiration rate."""
        R = self.respiration.rate(state.soil_organic_carbon, state.temperature)
        return state.set('respiration_rate', R)

    def compute_tendencies(self, state: StateContainer) -> StateContainer:
        """Add transport, litter input and respiration to the carbon tendency."""
        C = state.soil_organic_carbon
        q = self._calc_transport_flux(C)

        dCdt = (
            - self._grid.divergence(q)
            + self._calc_litter_input(state)
            - state.respiration_rate
        )

        return state.add_tendency('soil_organic_carbon', dCdt)
