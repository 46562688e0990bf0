"""Describe the material composition of a soil volume.

A unit volume of soil is split between pore space and solids. The pore space
(porosity p) holds water and ice, which together fill a fraction s of the
pores (saturation), and air in the rest. Of the water and ice, a fraction l is
liquid. The solid phase is split between organic matter (fraction o) and
mineral grains, whose texture is described by sand, silt and clay fractions.
The resulting volumetric fractions are

    water   = p * s * l
    ice     = p * s * (1 - l)
    air     = p * (1 - s)
    mineral = (1 - p) * (1 - o)
    organic = (1 - p) * o

which sum to one for any p, s, l, o in [0, 1].

Includes:
    SoilTexture: Sand, silt and clay fractions of the mineral phase.
    SoilComposition: Validated porosity, saturation, liquid and organic fractions.
    VolumetricFractions: Volume shares of each soil constituent.
    compose: Build a validated SoilComposition.
    volumetric_fractions: Compute the VolumetricFractions of a SoilComposition.
"""

from typing import NamedTuple, Optional

import numpy as np
import equinox as eqx
from jaxtyping import Array, ArrayLike

from soilbento.core import is_concrete
from soilbento.errors import ConfigurationError, ErrorContext, RangeError


def check_fraction(name: str, value) -> None:
    """Raise a RangeError if a concrete value lies outside of [0, 1]."""
    if not is_concrete(value):
        return

    value = np.asarray(value)
    if np.any(np.isnan(value)) or np.any(value < 0.0) or np.any(value > 1.0):
        raise RangeError(
            f"{name} must lie in [0, 1], got values in "
            f"[{np.nanmin(value)}, {np.nanmax(value)}].",
            ErrorContext(variable = name, operation = "compose")
        )


class SoilTexture(eqx.Module):
    """Mineral soil texture as fractions of sand, silt and clay.

    Attributes:
        sand: fraction of sand-sized particles
        silt: fraction of silt-sized particles
        clay: fraction of clay-sized particles
    """
    sand: float = 1.0
    silt: float = 0.0
    clay: float = 0.0

    def __check_init__(self):
        for name in ("sand", "silt", "clay"):
            check_fraction(name, getattr(self, name))

        total = self.sand + self.silt + self.clay
        if is_concrete(total) and not np.allclose(total, 1.0, atol = 1e-6):
            raise RangeError(
                f"Texture fractions must sum to 1, got {total}.",
                ErrorContext(operation = "SoilTexture")
            )

    @classmethod
    def preset(cls, name: str) -> "SoilTexture":
        """Return one of the named texture classes."""
        try:
            return cls(*TEXTURE_PRESETS[name.lower()])
        except KeyError:
            raise ConfigurationError(
                f"Unknown soil texture '{name}'. Options are {sorted(TEXTURE_PRESETS)}."
            ) from None


# (sand, silt, clay)
TEXTURE_PRESETS = {
    "sand": (1.0, 0.0, 0.0),
    "silt": (0.0, 1.0, 0.0),
    "clay": (0.0, 0.0, 1.0),
    "sandyclay": (0.5, 0.0, 0.5),
    "siltyclay": (0.0, 0.5, 0.5),
    "loam": (0.4, 0.4, 0.2),
    "sandyloam": (0.8, 0.1, 0.1),
    "siltyloam": (0.1, 0.8, 0.1),
    "clayloam": (0.3, 0.3, 0.4),
}


class VolumetricFractions(NamedTuple):
    """Volume shares of each soil constituent, summing to one."""
    water: ArrayLike
    ice: ArrayLike
    air: ArrayLike
    mineral: ArrayLike
    organic: ArrayLike

    def total(self) -> Array:
        return self.water + self.ice + self.air + self.mineral + self.organic


class SoilComposition(eqx.Module):
    """Material description of a soil volume.

    All fractions may be scalars or arrays of a common shape. Concrete values
    are validated on construction; traced values inside a jitted function are
    passed through unchecked.

    Attributes:
        porosity: volume of pore space per unit volume of soil
        saturation: fraction of the pore space filled with water or ice
        liquid: fraction of the pore water that is liquid
        organic: fraction of the solid phase that is organic matter
        texture: the texture of the mineral phase
    """
    porosity: ArrayLike
    saturation: ArrayLike
    liquid: ArrayLike
    organic: ArrayLike
    texture: Optional[SoilTexture] = None

    def __check_init__(self):
        check_fraction("porosity", self.porosity)
        check_fraction("saturation", self.saturation)
        check_fraction("liquid", self.liquid)
        check_fraction("organic", self.organic)


def compose(
    porosity: ArrayLike,
    saturation: ArrayLike,
    liquid: ArrayLike,
    organic: ArrayLike,
    texture: Optional[SoilTexture] = None
) -> SoilComposition:
    """Build a SoilComposition, raising a RangeError on any fraction outside [0, 1]."""
    return SoilComposition(porosity, saturation, liquid, organic, texture)


def volumetric_fractions(composition: SoilComposition) -> VolumetricFractions:
    """Compute the volumetric fraction of each constituent."""
    p = composition.porosity
    s = composition.saturation
    l = composition.liquid
    o = composition.organic

    water_ice = p * s

    return VolumetricFractions(
        water = water_ice * l,
        ice = water_ice * (1 - l),
        air = p * (1 - s),
        mineral = (1 - p) * (1 - o),
        organic = (1 - p) * o
    )
