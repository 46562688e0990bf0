from .model import Model, SoilModel

__all__ = [
    'Model',
    'SoilModel'
]
