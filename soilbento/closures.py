"""Closures relating prognostic soil state to derived quantities.

Energy closure
--------------
Internal energy U (J/m^3) is the prognostic variable of the soil energy
balance. Temperature T and the liquid fraction l of the pore water are derived
from it through a freezing characteristic. Under the Free Water assumption,
pore water freezes and thaws isothermally at 0 C:

    L_theta = L * p * s

    l = 1                        if U >= 0
    l = 0                        if U <= -L_theta
    l = 1 - U / (-L_theta)       otherwise

    T = U / C                    if U >= 0
    T = (U + L_theta) / C        if U < -L_theta
    T = 0                        otherwise

where L = rho_w * L_f is the volumetric latent heat of fusion and C is the bulk
heat capacity implied by l. The liquid fraction has to be known before C can
be computed, and C before T.

The forward relation, used once to initialize U from a known temperature, is

    l = 1 if T > 0 else 0
    U = T * C - L * p * s * (1 - l)

See, e.g., Westermann et al. (2023), The CryoGrid community model (version 1.0).
Geoscientific Model Development, 16, 2607-2647.

Saturation closure
------------------
When soil water moves, the saturation s of the pore space is prognostic and the
total hydraulic head psi is derived from it. With depth z positive downward and
z_wt the depth of the water table,

    psi = psi_m(s) - z + max(0, z - z_wt)

where psi_m is the matric head given by the soil water retention curve. Below
the water table the matric head vanishes and the head is hydrostatic. The van
Genuchten (1980) retention curve, without residual water content, is

    s = (1 + (-alpha * psi_m)^n)^(-m),    m = 1 - 1 / n

for psi_m < 0, and s = 1 otherwise. Before the head is computed, water in
excess of saturation is passed upward, and out of the top layer into a pool of
surface water. Negative saturations are filled from the layer below.

van Genuchten, M. Th. (1980). A closed-form equation for predicting the
hydraulic conductivity of unsaturated soils. Soil Science Society of America
Journal, 44(5), 892-898.
"""

import jax.numpy as jnp
import equinox as eqx
from jaxtyping import Array, ArrayLike

from soilbento.composition import compose, volumetric_fractions
from soilbento.constants import PhysicalConstants
from soilbento.core import VarDims, auxiliary, is_concrete
from soilbento.errors import ConfigurationError
from soilbento.thermal import SoilThermalProperties, bulk_heat_capacity
from soilbento.utils.grid import ColumnGrid


class FreeWater(eqx.Module):
    """Freezing characteristic with isothermal phase change at 0 C."""

    def liquid_fraction(self, energy: ArrayLike, latent_heat: ArrayLike) -> Array:
        """Liquid water fraction from internal energy and latent heat content."""
        U = jnp.asarray(energy)
        Ltheta = jnp.asarray(latent_heat)

        # Guard the division so that dry cells (Ltheta = 0) produce no NaNs
        safe_Ltheta = jnp.where(Ltheta > 0, Ltheta, 1.0)
        ramp = 1.0 - U / (-safe_Ltheta)

        return jnp.where(U >= 0, 1.0, jnp.where(U <= -Ltheta, 0.0, ramp))

    def temperature(self, energy: ArrayLike, latent_heat: ArrayLike, heat_capacity: ArrayLike) -> Array:
        """Temperature from internal energy, latent heat content and heat capacity."""
        U = jnp.asarray(energy)
        Ltheta = jnp.asarray(latent_heat)
        C = jnp.asarray(heat_capacity)

        return jnp.where(U < -Ltheta, (U + Ltheta) / C, jnp.where(U >= 0, U / C, 0.0))

    def initial_liquid_fraction(self, temperature: ArrayLike) -> Array:
        """Liquid water fraction assumed when initializing from temperature."""
        return jnp.where(jnp.asarray(temperature) > 0, 1.0, 0.0)


# Freezing characteristics that can be swapped into a closure at runtime
FREEZE_CURVES = (FreeWater,)


def _heat_capacity(props, porosity, saturation, liquid, organic) -> Array:
    fractions = volumetric_fractions(compose(porosity, saturation, liquid, organic))
    return bulk_heat_capacity(props, fractions)


def temperature_to_energy(
    temperature: ArrayLike,
    porosity: ArrayLike,
    saturation: ArrayLike,
    organic: ArrayLike,
    props: SoilThermalProperties = SoilThermalProperties(),
    constants: PhysicalConstants = PhysicalConstants(),
    freeze_curve: FreeWater = FreeWater()
) -> tuple[Array, Array]:
    """Compute internal energy and liquid fraction from temperature.

    Only meaningful outside of the phase change band, where the temperature
    determines the liquid fraction uniquely.

    Returns:
        (internal_energy, liquid_water_fraction)
    """
    T = jnp.asarray(temperature)
    L = constants.volumetric_latent_heat

    liquid = freeze_curve.initial_liquid_fraction(T)
    C = _heat_capacity(props, porosity, saturation, liquid, organic)
    U = T * C - L * porosity * saturation * (1 - liquid)

    return U, liquid


def energy_to_temperature(
    energy: ArrayLike,
    porosity: ArrayLike,
    saturation: ArrayLike,
    organic: ArrayLike,
    props: SoilThermalProperties = SoilThermalProperties(),
    constants: PhysicalConstants = PhysicalConstants(),
    freeze_curve: FreeWater = FreeWater()
) -> tuple[Array, Array]:
    """Compute temperature and liquid fraction from internal energy.

    Returns:
        (temperature, liquid_water_fraction)
    """
    U = jnp.asarray(energy)
    L = constants.volumetric_latent_heat
    Ltheta = L * porosity * saturation

    liquid = freeze_curve.liquid_fraction(U, Ltheta)
    C = _heat_capacity(props, porosity, saturation, liquid, organic)
    T = freeze_curve.temperature(U, Ltheta, C)

    return T, liquid


class TemperatureEnergyClosure(eqx.Module):
    """Closure between internal energy and {temperature, liquid water fraction}.

    The closure is attached to the internal energy variable of the soil energy
    balance. It reads the soil composition from the state variables written by
    the stratigraphy and hydrology processes.

    Attributes:
        thermal_properties: constituent thermal properties
        constants: physical constants
        freeze_curve: the freezing characteristic

    Methods:
        derived_variables: auxiliary variables computed by this closure
        forward: set internal energy from temperature
        inverse: set temperature and liquid fraction from internal energy
    """
    thermal_properties: SoilThermalProperties = SoilThermalProperties()
    constants: PhysicalConstants = PhysicalConstants()
    freeze_curve: FreeWater = FreeWater()

    prognostic_name: str = eqx.field(static = True, default = "internal_energy")
    temperature_name: str = eqx.field(static = True, default = "temperature")
    liquid_name: str = eqx.field(static = True, default = "liquid_water_fraction")

    def __check_init__(self):
        if not isinstance(self.freeze_curve, FREEZE_CURVES):
            raise ConfigurationError(
                f"Unsupported freezing characteristic: {type(self.freeze_curve).__name__}."
            )

    def derived_variables(self):
        """Auxiliary variables written by this closure."""
        return (
            auxiliary(self.temperature_name, VarDims.COLUMN, units = "degC",
                      description = "soil temperature"),
            auxiliary(self.liquid_name, VarDims.COLUMN, units = "-", default = 1.0,
                      bounds = (0.0, 1.0), description = "liquid fraction of pore water and ice")
        )

    def _composition(self, state):
        return state.porosity, state.saturation_water_ice, state.organic_fraction

    def forward(self, state):
        """Set internal energy and liquid fraction from the current temperature."""
        p, s, o = self._composition(state)

        U, liquid = temperature_to_energy(
            state[self.temperature_name], p, s, o,
            self.thermal_properties, self.constants, self.freeze_curve
        )

        return state.set(self.prognostic_name, U).set(self.liquid_name, liquid)

    def inverse(self, state):
        """Set temperature and liquid fraction from the current internal energy."""
        p, s, o = self._composition(state)

        T, liquid = energy_to_temperature(
            state[self.prognostic_name], p, s, o,
            self.thermal_properties, self.constants, self.freeze_curve
        )

        return state.set(self.temperature_name, T).set(self.liquid_name, liquid)


# Smallest saturation at which a matric head is evaluated
MIN_SATURATION = 1e-6


class VanGenuchten(eqx.Module):
    """van Genuchten (1980) soil water retention curve.

    Attributes:
        alpha: inverse of the air entry head (1/m)
        n: pore size distribution parameter, greater than 1
    """
    alpha: float = 1.0 # 1 / m
    n: float = 2.0

    def __check_init__(self):
        if is_concrete(self.alpha) and not self.alpha > 0:
            raise ConfigurationError(f"van Genuchten alpha must be positive, got {self.alpha}.")

        if is_concrete(self.n) and not self.n > 1:
            raise ConfigurationError(f"van Genuchten n must be greater than 1, got {self.n}.")

    @property
    def m(self) -> float:
        return 1.0 - 1.0 / self.n

    def saturation(self, matric_head: ArrayLike) -> Array:
        """Saturation of the pore space at a given matric head (m)."""
        psi = jnp.asarray(matric_head)
        suction = -self.alpha * jnp.minimum(psi, 0.0)

        return jnp.where(psi < 0, (1.0 + suction ** self.n) ** (-self.m), 1.0)

    def matric_head(self, saturation: ArrayLike) -> Array:
        """Matric head (m) at a given saturation of the pore space."""
        s = jnp.clip(jnp.asarray(saturation), MIN_SATURATION, 1.0)
        psi = -((s ** (-1.0 / self.m) - 1.0) ** (1.0 / self.n)) / self.alpha

        return jnp.where(s < 1.0, psi, 0.0)


# Retention curves that can be swapped into a closure at runtime
RETENTION_CURVES = (VanGenuchten,)


def water_table_depth(saturation: Array, depth_faces: Array) -> Array:
    """Depth of the top of the saturated zone connected to the bottom of each column.

    Returns zero for fully saturated columns and the total depth of the column
    when its bottom layer is unsaturated.
    """
    unsaturated = saturation < 1.0
    num_layers = saturation.shape[-1]

    # Deepest unsaturated layer in each column
    deepest = num_layers - 1 - jnp.argmax(unsaturated[..., ::-1], axis = -1)

    return jnp.where(jnp.any(unsaturated, axis = -1), depth_faces[deepest + 1], 0.0)


def total_head(matric_head: ArrayLike, depth: ArrayLike, water_table: ArrayLike) -> Array:
    """Total hydraulic head (m) relative to the surface."""
    z = jnp.asarray(depth)
    hydrostatic = jnp.maximum(z - jnp.asarray(water_table)[..., None], 0.0)

    return matric_head - z + hydrostatic


def redistribute_saturation(saturation: Array, pore_volume: Array) -> tuple[Array, Array]:
    """Move water out of layers that are over- or undersaturated.

    Water is exchanged as volume, so layers of different thickness or porosity
    receive the saturation that holds the same amount of water.

    Arguments:
        saturation: saturation of each layer
        pore_volume: pore volume of each layer per unit area (m)

    Returns:
        (saturation, water leaving the top of the column in m)
    """
    s = saturation
    num_layers = s.shape[-1]
    safe_volume = jnp.where(pore_volume > 0, pore_volume, 1.0)

    # Excess water rises from the bottom up
    for k in range(num_layers - 1, 0, -1):
        excess = jnp.maximum(s[..., k] - 1.0, 0.0)
        s = s.at[..., k].set(jnp.minimum(s[..., k], 1.0))
        s = s.at[..., k - 1].add(excess * pore_volume[..., k] / safe_volume[..., k - 1])

    overflow = jnp.maximum(s[..., 0] - 1.0, 0.0)
    s = s.at[..., 0].set(jnp.minimum(s[..., 0], 1.0))

    # Deficits are taken from the layer below, and dropped at the bottom
    for k in range(num_layers - 1):
        deficit = jnp.maximum(-s[..., k], 0.0)
        s = s.at[..., k].set(jnp.maximum(s[..., k], 0.0))
        s = s.at[..., k + 1].add(-deficit * pore_volume[..., k] / safe_volume[..., k + 1])

    return jnp.maximum(s, 0.0), overflow * pore_volume[..., 0]


class SaturationPressureClosure(eqx.Module):
    """Closure between saturation and {hydraulic head, water table}.

    The closure is attached to the saturation variable of a hydrology process
    with moving water. Its inverse also redistributes over- and undersaturated
    water and adds any overflow to the surface water pool.

    Attributes:
        grid: the ColumnGrid of the hydrology process
        retention_curve: the soil water retention curve

    Methods:
        derived_variables: auxiliary variables computed by this closure
        forward: set saturation from hydraulic head
        inverse: set hydraulic head and water table from saturation
    """
    grid: ColumnGrid
    retention_curve: VanGenuchten = VanGenuchten()

    prognostic_name: str = eqx.field(static = True, default = "saturation_water_ice")
    head_name: str = eqx.field(static = True, default = "pressure_head")
    water_table_name: str = eqx.field(static = True, default = "water_table")
    surface_water_name: str = eqx.field(static = True, default = "surface_excess_water")

    def __check_init__(self):
        if not isinstance(self.retention_curve, RETENTION_CURVES):
            raise ConfigurationError(
                f"Unsupported retention curve: {type(self.retention_curve).__name__}."
            )

    def derived_variables(self):
        """Auxiliary variables written by this closure."""
        return (
            auxiliary(self.head_name, VarDims.COLUMN, units = "m",
                      description = "total hydraulic head relative to the surface"),
        )

    def forward(self, state):
        """Set saturation from the current hydraulic head and water table."""
        z = self.grid.column_depth()
        hydrostatic = jnp.maximum(z - state[self.water_table_name][..., None], 0.0)
        matric = state[self.head_name] + z - hydrostatic

        return state.set(self.prognostic_name, self.retention_curve.saturation(matric))

    def inverse(self, state):
        """Set hydraulic head and water table from the current saturation."""
        pore_volume = state.porosity * self.grid.dz
        saturation, overflow = redistribute_saturation(state[self.prognostic_name], pore_volume)

        water_table = water_table_depth(saturation, self.grid.depth_faces)
        head = total_head(self.retention_curve.matric_head(saturation), self.grid.depth, water_table)

        return state.update({
            self.prognostic_name: saturation,
            self.surface_water_name: state[self.surface_water_name] + overflow,
            self.water_table_name: water_table,
            self.head_name: head
        })
