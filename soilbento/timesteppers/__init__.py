from .base import Timestepper, explicit_step, stage_tendencies, average_tendencies, copy_state
from .forward_euler import ForwardEuler
from .heun import Heun

__all__ = [
    'Timestepper',
    'ForwardEuler',
    'Heun',
    'explicit_step',
    'stage_tendencies',
    'average_tendencies',
    'copy_state'
]
