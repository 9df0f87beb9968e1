import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *


@wp.kernel
def p2g_u(particles: ParticleStruct, grid: GridStruct, index: IndexStruct, model: ModelStruct):
    """
    Particle-to-Grid (P2G) transfer of the x velocity onto u faces, gather based.

    PURPOSE:
    Each u face at world position (i*dx, (j+0.5)*dy) collects the x velocity of
    the particles inside its bilinear tent support. The support covers cells
    i-1..i in x and j-1..j+1 in y, which are walked through the CSR index.

    INPUT VARIABLES:
    - particles.particle_x[p], particles.particle_v[p]
    - index.cell_start[c], index.cell_particle_ids[k]: particles of cell c = j*nx + i

    OUTPUT VARIABLES:
    - grid.grid_u[i, j]: weighted average velocity, 0 when no particle contributes
    - grid.grid_u_mask[i, j]: 1 when at least one particle contributes, else 0

    PARALLELIZATION:
    - One thread per face; each thread only writes its own face, so the result
      is deterministic and needs no atomics
    """
    i, j = wp.tid()
    face = wp.vec2(float(i) * model.dx, (float(j) + 0.5) * model.dy)
    weight = float(0.0)
    momentum = float(0.0)
    for dj in range(-1, 2):
        for di in range(-1, 1):
            ni = i + di
            nj = j + dj
            if ni >= 0 and ni < model.grid_dim_x and nj >= 0 and nj < model.grid_dim_y:
                cell = nj * model.grid_dim_x + ni
                for k in range(index.cell_start[cell], index.cell_start[cell + 1]):
                    q = index.cell_particle_ids[k]
                    w = tent_weight(model, particles.particle_x[q] - face)
                    weight += w
                    momentum += w * particles.particle_v[q][0]
    if weight > 0.0:
        grid.grid_u[i, j] = momentum / weight
        grid.grid_u_mask[i, j] = 1
    else:
        grid.grid_u[i, j] = 0.0
        grid.grid_u_mask[i, j] = 0


@wp.kernel
def p2g_v(particles: ParticleStruct, grid: GridStruct, index: IndexStruct, model: ModelStruct):
    """Same as p2g_u for the y velocity on v faces at ((i+0.5)*dx, j*dy), support cells i-1..i+1, j-1..j."""
    i, j = wp.tid()
    face = wp.vec2((float(i) + 0.5) * model.dx, float(j) * model.dy)
    weight = float(0.0)
    momentum = float(0.0)
    for dj in range(-1, 1):
        for di in range(-1, 2):
            ni = i + di
            nj = j + dj
            if ni >= 0 and ni < model.grid_dim_x and nj >= 0 and nj < model.grid_dim_y:
                cell = nj * model.grid_dim_x + ni
                for k in range(index.cell_start[cell], index.cell_start[cell + 1]):
                    q = index.cell_particle_ids[k]
                    w = tent_weight(model, particles.particle_x[q] - face)
                    weight += w
                    momentum += w * particles.particle_v[q][1]
    if weight > 0.0:
        grid.grid_v[i, j] = momentum / weight
        grid.grid_v_mask[i, j] = 1
    else:
        grid.grid_v[i, j] = 0.0
        grid.grid_v_mask[i, j] = 0
