import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *


@wp.kernel
def count_particles(particles: ParticleStruct, index: IndexStruct, model: ModelStruct):
    """
    Count the particles resident in each grid cell.

    PARALLELIZATION:
    - One thread per particle (p = wp.tid())
    - Several particles can land in the same cell, so the increment is an atomic_add
    - Positions outside the grid are clamped to the border cells so every particle is counted
    """
    p = wp.tid()
    c = cell_index(model, particles.particle_x[p])
    wp.atomic_add(index.count_per_cell, c, 1)


@wp.kernel
def add_guard(index: IndexStruct, n_cells: int):
    index.cell_start[n_cells] = index.cell_start[n_cells - 1] + index.count_per_cell[n_cells - 1]


@wp.kernel
def assign_particle_ids(particles: ParticleStruct, index: IndexStruct, model: ModelStruct):
    """
    Scatter particle ids into their cell's range of cell_particle_ids.

    cell_cursor starts as a copy of cell_start. atomic_add returns the cursor
    value before the increment, which is the slot this particle owns. The
    order of ids inside a cell depends on scheduling, the set does not.
    """
    p = wp.tid()
    c = cell_index(model, particles.particle_x[p])
    slot = wp.atomic_add(index.cell_cursor, c, 1)
    index.cell_particle_ids[slot] = p
