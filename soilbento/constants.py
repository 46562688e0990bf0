"""Physical constants shared by SoilBento processes."""

import equinox as eqx


SECONDS_PER_DAY = 86400.0
SECONDS_PER_YEAR = 365.25 * SECONDS_PER_DAY


class PhysicalConstants(eqx.Module):
    """Physical constants.

    Attributes:
        water_density: density of liquid water (kg/m^3)
        ice_density: density of ice (kg/m^3)
        latent_heat_fusion: specific latent heat of fusion of water (J/kg)
        freezing_temperature: freezing point of water (deg C)
        gravity: gravitational acceleration (m/s^2)
    """
    water_density: float = 1000.0
    ice_density: float = 916.2
    latent_heat_fusion: float = 3.34e5
    freezing_temperature: float = 0.0
    gravity: float = 9.80665

    @property
    def volumetric_latent_heat(self) -> float:
        """Latent heat of fusion per unit volume of water, L = rho_w * L_f (J/m^3)."""
        return self.water_density * self.latent_heat_fusion
