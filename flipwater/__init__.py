"""
flipwater: a real-time 2D PIC/FLIP liquid solver on NVIDIA Warp.
"""
from .errors import SimulationSetupError, StepFailedError
from .simulator import FlipSimulator
from .sim_wrapper import SimulationController
from .utils.scene import Scene
from .utils.terrain import TerrainProfile

__all__ = [
    'FlipSimulator',
    'SimulationController',
    'Scene',
    'TerrainProfile',
    'SimulationSetupError',
    'StepFailedError',
]
