from .grid import ColumnGrid, UniformSpacing, ExponentialSpacing, PrescribedSpacing

__all__ = [
    "ColumnGrid",
    "UniformSpacing",
    "ExponentialSpacing",
    "PrescribedSpacing"
]
