import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *

TERRAIN_SUBSAMPLES = wp.constant(4)


@wp.kernel
def mark_fluid_fractions(grid: GridStruct, model: ModelStruct, terrain: TerrainStruct):
    """
    Fill volume_fraction with the part of each cell lying above the terrain.

    The terrain is sampled at TERRAIN_SUBSAMPLES x positions across the cell;
    each sample contributes the open fraction of the cell's height span.
    0 = fully under ground, 1 = fully open.
    """
    i, j = wp.tid()
    bottom = float(j) * model.dy
    fraction = float(0.0)
    for s in range(TERRAIN_SUBSAMPLES):
        x = (float(i) + (float(s) + 0.5) / float(TERRAIN_SUBSAMPLES)) * model.dx
        h = sample_terrain_height(terrain, x)
        fraction += wp.clamp((bottom + model.dy - h) * model.inv_dy, 0.0, 1.0)
    grid.volume_fraction[i, j] = fraction / float(TERRAIN_SUBSAMPLES)


@wp.kernel
def mark_solid(grid: GridStruct, model: ModelStruct, padding: int):
    """
    Mark the domain border and cells mostly under the terrain as solid (-1).

    Args:
        padding: Number of cells of solid padding from outermost extents
    """
    i, j = wp.tid()
    if (i < padding or i >= model.grid_dim_x - padding or
            j < padding or j >= model.grid_dim_y - padding or
            grid.volume_fraction[i, j] < 0.5):
        grid.cell_type[i, j] = SOLID
        grid.volume_fraction[i, j] = 0.0


@wp.kernel
def mark_liquid(particles: ParticleStruct, grid: GridStruct, model: ModelStruct):
    # every writer stores the same value, so no atomics are needed
    p = wp.tid()
    c = cell_coords(model, particles.particle_x[p])
    if grid.cell_type[c[0], c[1]] != SOLID:
        grid.cell_type[c[0], c[1]] = FLUID
