"""Models the water balance of the soil column.

SoilHydrology diagnoses the hydraulic state of the column from the saturation
of the pore space with water and ice. How soil water moves is chosen with the
vertflow option:

    NoFlow: saturation is fixed, or supplied externally as an input.
    RichardsEq: saturation is prognostic and evolves under the Richards
        equation in mixed form.

Under the Richards equation the volumetric water content theta = phi * s
changes with the divergence of the Darcy flux,

    dtheta/dt = -dq/dz,    q = -K dpsi/dz

with depth z positive downward and psi the total hydraulic head derived by the
SaturationPressureClosure. The conductivity at a layer face is the smaller of
the conductivities of the two adjacent layers. The bottom of the column is
impermeable; the top boundary condition supplies infiltration. Water that
cannot enter a saturated column collects as surface excess water.

Unsaturated hydraulic conductivity scales with the unfrozen water content
theta_w, either linearly,

    K = K_sat * theta_w / phi

or with the Mualem-van Genuchten relation, reduced by an ice impedance factor
that depends on the liquid fraction l of pore water (Hansson et al., 2004),

    K = K_sat * 10^(-Omega (1 - l)) * S^(1/2) * (1 - (1 - S^(1/m))^m)^2

with S = theta_w / phi. The water table is the depth of the top of the
saturated zone that is connected to the bottom of the column.

Hansson, K., Simunek, J., Mizoguchi, M., Lundin, L.-C. and van Genuchten, M. Th.
(2004). Water flow and heat transport in frozen soil. Vadose Zone Journal, 3(2),
693-704.
"""

from typing import Optional

import jax.numpy as jnp
import equinox as eqx
from jaxtyping import Array

from soilbento.boundary_conditions import NoFlux, name_boundary
from soilbento.closures import SaturationPressureClosure, VanGenuchten, water_table_depth
from soilbento.components.component import Component
from soilbento.composition import SoilTexture
from soilbento.core import StateContainer, VarDims, auxiliary, input_variable, merge, prognostic
from soilbento.errors import ConfigurationError


# Inputs read by an unnamed top boundary condition, by quantity
TOP_INPUTS = {
    'flux': ('infiltration', 'm/s'),
    'value': ('surface_pressure_head', 'm')
}


def _safe_ratio(water_content: Array, porosity: Array) -> tuple[Array, Array]:
    has_pores = porosity > 0
    return has_pores, water_content / jnp.where(has_pores, porosity, 1.0)


class UnsatKLinear(eqx.Module):
    """Unsaturated conductivity proportional to the unfrozen water content."""

    def __call__(self, saturated_conductivity, water_content, porosity, liquid_fraction = 1.0):
        has_pores, ratio = _safe_ratio(water_content, porosity)
        return jnp.where(has_pores, saturated_conductivity * ratio, 0.0)


class UnsatKVanGenuchten(eqx.Module):
    """Mualem-van Genuchten unsaturated conductivity with ice impedance."""
    retention_curve: VanGenuchten = VanGenuchten()
    impedance: float = 7.0

    def __call__(self, saturated_conductivity, water_content, porosity, liquid_fraction = 1.0):
        has_pores, ratio = _safe_ratio(water_content, porosity)
        S = jnp.clip(ratio, 0.0, 1.0)
        m = self.retention_curve.m

        relative = jnp.sqrt(S) * (1.0 - (1.0 - S ** (1.0 / m)) ** m) ** 2
        ice = 10.0 ** (-self.impedance * (1.0 - jnp.asarray(liquid_fraction)))

        return jnp.where(has_pores, saturated_conductivity * ice * relative, 0.0)


class ConstantHydraulics(eqx.Module):
    """Hydraulic properties that do not depend on soil texture."""
    saturated_conductivity: float = 1e-5 # m / s
    field_capacity_value: float = 0.25
    wilting_point_value: float = 0.05
    unsaturated: eqx.Module = UnsatKLinear()

    def conductivity(self, water_content: Array, porosity: Array, liquid_fraction = 1.0) -> Array:
        """Unsaturated hydraulic conductivity."""
        return self.unsaturated(self.saturated_conductivity, water_content, porosity, liquid_fraction)

    def field_capacity(self, texture: SoilTexture):
        return self.field_capacity_value

    def wilting_point(self, texture: SoilTexture):
        return self.wilting_point_value


class SURFEXHydraulics(eqx.Module):
    """Field capacity and wilting point as functions of the clay percentage.

        wilting_point = beta_w * (100 * clay)^(1/2)
        field_capacity = beta_f * (100 * clay)^eta_f

    See Masson et al. (2013), The SURFEXv7.2 land and ocean surface platform.
    """
    saturated_conductivity: float = 1e-5 # m / s
    wilting_point_coef: float = 37.13e-3
    field_capacity_coef: float = 89e-3
    field_capacity_exp: float = 0.35
    unsaturated: eqx.Module = UnsatKLinear()

    def conductivity(self, water_content: Array, porosity: Array, liquid_fraction = 1.0) -> Array:
        """Unsaturated hydraulic conductivity."""
        return self.unsaturated(self.saturated_conductivity, water_content, porosity, liquid_fraction)

    def field_capacity(self, texture: SoilTexture):
        return self.field_capacity_coef * (100 * texture.clay) ** self.field_capacity_exp

    def wilting_point(self, texture: SoilTexture):
        return self.wilting_point_coef * (100 * texture.clay) ** 0.5


class NoFlow(eqx.Module):
    """Immobile soil water."""


class RichardsEq(eqx.Module):
    """Vertical water flow under the Richards equation."""
    retention_curve: VanGenuchten = VanGenuchten()


class SoilHydrology(Component):
    """Models the water balance of the soil column.

    Arguments:
        grid: A ColumnGrid object.
        saturation: Default saturation of the pore space with water and ice.
        hydraulics: The hydraulic property parameterization.
        vertflow: NoFlow or RichardsEq.
        texture: A SoilTexture, or the name of a texture preset.
        top: Boundary condition at the surface (RichardsEq only).

    Input fields:
        saturation_water_ice: saturation of the pore space (prognostic under RichardsEq)
        porosity: bulk porosity (from stratigraphy)
        liquid_water_fraction: unfrozen share of pore water (from the energy closure)
        infiltration: water flux into the top of the column, if the top boundary is a PrescribedFlux

    Output fields:
        hydraulic_conductivity: unsaturated hydraulic conductivity of each layer
        water_table: depth of the water table below the surface
        field_capacity, wilting_point: volumetric water contents of the soil texture
        surface_excess_water: water that could not enter the column (RichardsEq only)
        pressure_head: total hydraulic head, derived by the closure (RichardsEq only)

    Methods:
        initialize: derive hydraulic head and auxiliary values from the initial saturation
        compute_auxiliary: update hydraulic conductivity and water table
        compute_tendencies: add the Darcy flux divergence to the saturation tendency
    """

    hydraulics: eqx.Module
    vertflow: eqx.Module
    texture: SoilTexture
    top: eqx.Module
    closure: Optional[SaturationPressureClosure]

    kind = "hydrology"

    def __init__(
        self,
        grid,
        saturation: float = 1.0,
        hydraulics = ConstantHydraulics(),
        vertflow = NoFlow(),
        texture = SoilTexture(),
        top = NoFlux(),
        params = {}
    ):
        """Initialize the SoilHydrology."""
        if not isinstance(vertflow, (NoFlow, RichardsEq)):
            raise ConfigurationError(f"Unsupported vertflow option: {type(vertflow).__name__}.")

        if isinstance(vertflow, NoFlow) and not isinstance(top, NoFlux):
            raise ConfigurationError("A top boundary condition requires vertflow = RichardsEq().")

        self.hydraulics = hydraulics
        self.vertflow = vertflow
        self.texture = SoilTexture.preset(texture) if isinstance(texture, str) else texture
        self.top = name_boundary(top, TOP_INPUTS)

        if isinstance(vertflow, RichardsEq):
            self.closure = SaturationPressureClosure(grid, vertflow.retention_curve)
        else:
            self.closure = None

        super().__init__(grid, {'saturation': float(saturation), **params})

    @property
    def has_flow(self) -> bool:
        return self.closure is not None

    def variables(self):
        if self.has_flow:
            water = (
                prognostic('saturation_water_ice', VarDims.COLUMN, closure = self.closure, units = '-',
                           default = self.params['saturation'], bounds = (0.0, 1.0),
                           description = 'saturation of the pore space with water and ice'),
                prognostic('surface_excess_water', VarDims.SURFACE, units = 'm',
                           description = 'water ponding at the surface')
            )
        else:
            water = (
                input_variable('saturation_water_ice', VarDims.COLUMN, units = '-',
                               default = self.params['saturation'], bounds = (0.0, 1.0),
                               description = 'saturation of the pore space with water and ice'),
            )

        diagnostics = (
            auxiliary('hydraulic_conductivity', VarDims.COLUMN, units = 'm/s',
                      description = 'unsaturated hydraulic conductivity'),
            auxiliary('water_table', VarDims.SURFACE, units = 'm',
                      description = 'depth of the water table below the surface'),
            auxiliary('field_capacity', VarDims.COLUMN, units = '-',
                      description = 'volumetric water content at field capacity'),
            auxiliary('wilting_point', VarDims.COLUMN, units = '-',
                      description = 'volumetric water content at the wilting point')
        )

        return merge(water, diagnostics, self.top.variables())

    def required_variables(self):
        return ('porosity',)

    def _calc_water_content(self, state: StateContainer) -> Array:
        """Calculate the volumetric content of unfrozen water."""
        liquid = state.get('liquid_water_fraction', 1.0)
        return state.porosity * state.saturation_water_ice * liquid

    def _calc_water_flux(self, state: StateContainer) -> Array:
        """Calculate the downward Darcy flux at all layer faces."""
        psi = state.pressure_head
        K = state.hydraulic_conductivity
        dz = self._grid.dz

        K_faces = jnp.minimum(K[..., :-1], K[..., 1:])
        q_interior = -K_faces * self._grid.face_gradient(psi)

        q_top = self.top.flux(state, psi[..., 0], K[..., 0], dz[0] / 2)
        q_bottom = jnp.zeros_like(q_top)

        return jnp.concatenate(
            [q_top[..., None], q_interior, q_bottom[..., None]], axis = -1
        )

    def initialize(self, state: StateContainer) -> StateContainer:
        """Derive hydraulic head and auxiliary values from the initial saturation."""
        if self.has_flow:
            state = self.closure.inverse(state)
        return self.compute_auxiliary(state)

    def compute_auxiliary(self, state: StateContainer) -> StateContainer:
        """Update hydraulic conductivity and water table."""
        theta_w = self._calc_water_content(state)
        liquid = state.get('liquid_water_fraction', 1.0)
        conductivity = self.hydraulics.conductivity(theta_w, state.porosity, liquid)

        shape = self._grid.shape(VarDims.COLUMN)

        return state.update({
            'hydraulic_conductivity': conductivity,
            'water_table': water_table_depth(state.saturation_water_ice, self._grid.depth_faces),
            'field_capacity': jnp.broadcast_to(self.hydraulics.field_capacity(self.texture), shape),
            'wilting_point': jnp.broadcast_to(self.hydraulics.wilting_point(self.texture), shape)
        })

    def compute_tendencies(self, state: StateContainer) -> StateContainer:
        """Add the Darcy flux divergence to the saturation tendency."""
        if not self.has_flow:
            return state

        q = self._calc_water_flux(state)
        has_pores, dsdt = _safe_ratio(-self._grid.divergence(q), state.porosity)

        return state.add_tendency('saturation_water_ice', jnp.where(has_pores, dsdt, 0.0))
