"""
Utils package for particle sampling, scene/terrain loading and state export.
"""
from .sampling import sample_random, sample_grid, sample_jittered_grid
from .scene import Scene
from .terrain import TerrainProfile
from .io import save_state

__all__ = ['sample_random', 'sample_grid', 'sample_jittered_grid', 'Scene', 'TerrainProfile', 'save_state']
