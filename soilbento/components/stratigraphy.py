"""Models a vertically homogeneous soil stratigraphy.

The HomogeneousStratigraphy describes a well mixed soil with one texture in
every layer. The solid phase is split between mineral and organic material. The
organic fraction follows from the soil organic carbon density rho_soc, which is
owned by the biogeochemistry process, and from the density rho_org and natural
porosity phi_org of pure organic matter,

    o = rho_soc / ((1 - phi_org) * rho_org)

and the bulk porosity is the mixture of mineral and organic porosities,

    phi = (1 - o) * phi_min + o * phi_org

The SURFEX parameterization of mineral porosity decreases linearly with the
percentage of sand (Masson et al., 2013).

Masson, V., Le Moigne, P., Martin, E., et al. (2013).
The SURFEXv7.2 land and ocean surface platform for coupled or offline
simulation of earth surface variables and fluxes.
Geoscientific Model Development, 6(4), 929-960.
"""

import jax.numpy as jnp
import equinox as eqx
from jaxtyping import Array

from soilbento.components.component import Component
from soilbento.composition import SoilTexture
from soilbento.core import StateContainer, VarDims, auxiliary


class ConstantSoilPorosity(eqx.Module):
    """Prescribed mineral and organic porosities."""
    mineral_porosity: float = 0.49
    organic_porosity: float = 0.90

    def mineral(self, texture: SoilTexture):
        return self.mineral_porosity

    def organic(self, texture: SoilTexture):
        return self.organic_porosity


class SURFEXSoilPorosity(eqx.Module):
    """Mineral porosity as a linear function of the sand percentage."""
    porosity_base: float = 0.49
    porosity_sand_coef: float = -1.1e-3
    organic_porosity: float = 0.90

    def mineral(self, texture: SoilTexture):
        return self.porosity_base + self.porosity_sand_coef * 100 * texture.sand

    def organic(self, texture: SoilTexture):
        return self.organic_porosity


class HomogeneousStratigraphy(Component):
    """Models a well mixed soil of homogeneous texture.

    Arguments:
        grid: A ColumnGrid object.
        texture: A SoilTexture, or the name of a texture preset.
        porosity: The porosity parameterization.

    Input fields:
        soil_organic_carbon: density of soil organic carbon (optional)

    Output fields:
        porosity: bulk porosity of each layer
        organic_fraction: organic share of the solid phase

    Methods:
        compute_auxiliary: update porosity and organic fraction
    """

    texture: SoilTexture
    porosity: eqx.Module

    kind = "stratigraphy"

    def __init__(
        self,
        grid,
        texture = SoilTexture(),
        porosity = ConstantSoilPorosity(),
        params = {
            'organic_density': 1300.0 # kg / m^3
        }
    ):
        """Initialize the HomogeneousStratigraphy."""
        self.texture = SoilTexture.preset(texture) if isinstance(texture, str) else texture
        self.porosity = porosity

        super().__init__(grid, params)

    def variables(self):
        return (
            auxiliary('porosity', VarDims.COLUMN, units = '-', bounds = (0.0, 1.0),
                      description = 'volume of pore space per unit volume of soil'),
            auxiliary('organic_fraction', VarDims.COLUMN, units = '-', bounds = (0.0, 1.0),
                      description = 'organic fraction of the soil solid phase')
        )

    def _calc_organic_fraction(self, state: StateContainer) -> Array:
        """Calculate the organic fraction of the solid phase."""
        rho_soc = state.get('soil_organic_carbon', 0.0)
        rho_org = self.params['organic_density']
        phi_org = self.porosity.organic(self.texture)

        organic = rho_soc / ((1 - phi_org) * rho_org)
        organic = jnp.broadcast_to(organic, self._grid.shape(VarDims.COLUMN))

        return jnp.clip(organic, 0.0, 1.0)

    def _calc_porosity(self, organic: Array) -> Array:
        """Calculate the bulk porosity of the soil."""
        phi_min = self.porosity.mineral(self.texture)
        phi_org = self.porosity.organic(self.texture)

        return (1 - organic) * phi_min + organic * phi_org

    def compute_auxiliary(self, state: StateContainer) -> StateContainer:
        """Update porosity and organic fraction."""
        organic = self._calc_organic_fraction(state)
        porosity = self._calc_porosity(organic)

        return state.update({
            'organic_fraction': organic,
            'porosity': porosity
        })
