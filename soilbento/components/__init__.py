from .component import Component, Process, PASS_ORDER
from .stratigraphy import HomogeneousStratigraphy, ConstantSoilPorosity, SURFEXSoilPorosity
from .hydrology import (
    SoilHydrology,
    ConstantHydraulics,
    SURFEXHydraulics,
    UnsatKLinear,
    UnsatKVanGenuchten,
    NoFlow,
    RichardsEq
)
from .energy import SoilEnergyBalance
from .biogeochemistry import (
    ConstantSoilCarbon,
    OnePoolSoilCarbon,
    SoilCarbonTransport,
    SoilCarbonRespiration
)

__all__ = [
    'Component',
    'Process',
    'PASS_ORDER',
    'HomogeneousStratigraphy',
    'ConstantSoilPorosity',
    'SURFEXSoilPorosity',
    'SoilHydrology',
    'ConstantHydraulics',
    'SURFEXHydraulics',
    'UnsatKLinear',
    'UnsatKVanGenuchten',
    'NoFlow',
    'RichardsEq',
    'SoilEnergyBalance',
    'ConstantSoilCarbon',
    'OnePoolSoilCarbon',
    'SoilCarbonTransport',
    'SoilCarbonRespiration'
]
