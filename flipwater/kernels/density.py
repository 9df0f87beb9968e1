import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *


@wp.kernel
def compute_density(particles: ParticleStruct, grid: GridStruct, index: IndexStruct, model: ModelStruct):
    """
    Gather the particle density at each cell centre.

    One thread per cell visits the particles of the 3x3 surrounding cells and
    sums their tent weights, so a cell uniformly filled with k particles reads
    roughly k. No atomics: every cell owns its output.
    """
    i, j = wp.tid()
    centre = wp.vec2((float(i) + 0.5) * model.dx, (float(j) + 0.5) * model.dy)
    total = float(0.0)
    for dj in range(-1, 2):
        for di in range(-1, 2):
            ni = i + di
            nj = j + dj
            if ni >= 0 and ni < model.grid_dim_x and nj >= 0 and nj < model.grid_dim_y:
                cell = nj * model.grid_dim_x + ni
                for k in range(index.cell_start[cell], index.cell_start[cell + 1]):
                    q = index.cell_particle_ids[k]
                    total += tent_weight(model, particles.particle_x[q] - centre)
    grid.density[i, j] = total


@wp.kernel
def compute_density_rhs(grid: GridStruct, model: ModelStruct):
    i, j = wp.tid()
    rhs = float(0.0)
    if grid.cell_type[i, j] == FLUID:
        rhs = (grid.density[i, j] - model.target_density) * model.pressure_stiffness
    grid.density_rhs[i, j] = rhs


@wp.kernel
def compute_correction_u(grid: GridStruct, model: ModelStruct):
    """Face correction -strength * d(density_pressure)/dx, zero at solid faces and between two air cells."""
    i, j = wp.tid()
    correction = float(0.0)
    if not is_solid(grid, i - 1, j) and not is_solid(grid, i, j):
        if is_fluid(grid, i - 1, j) or is_fluid(grid, i, j):
            gradient = (grid.density_pressure[i, j] - grid.density_pressure[i - 1, j]) * model.inv_dx
            correction = -model.density_correction_strength * gradient
    grid.correction_u[i, j] = correction


@wp.kernel
def compute_correction_v(grid: GridStruct, model: ModelStruct):
    i, j = wp.tid()
    correction = float(0.0)
    if not is_solid(grid, i, j - 1) and not is_solid(grid, i, j):
        if is_fluid(grid, i, j - 1) or is_fluid(grid, i, j):
            gradient = (grid.density_pressure[i, j] - grid.density_pressure[i, j - 1]) * model.inv_dy
            correction = -model.density_correction_strength * gradient
    grid.correction_v[i, j] = correction


@wp.kernel
def apply_position_correction(
    particles: ParticleStruct,
    grid: GridStruct,
    model: ModelStruct,
    terrain: TerrainStruct,
):
    """
    Displace particle positions (not velocities) by the interpolated face correction.

    The displacement is limited to model.max_correction per step and the result is
    clamped back inside the domain and above the terrain.
    """
    p = wp.tid()
    x = particles.particle_x[p]
    d = wp.vec2(
        sample_face(grid.correction_u, model, x, 0.0, 0.5),
        sample_face(grid.correction_v, model, x, 0.5, 0.0),
    )
    length = wp.length(d)
    if length > model.max_correction:
        d = d * (model.max_correction / length)
    particles.particle_x[p] = clamp_to_domain(model, terrain, x + d)
