import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *


@wp.kernel
def push_particles_apart(
    src: ParticleStruct,
    dst: ParticleStruct,
    index: IndexStruct,
    model: ModelStruct,
    terrain: TerrainStruct,
):
    """
    One overlap resolution substep.

    PURPOSE:
    Every particle closer than min_distance to another one is pushed away from
    it by half of the overlap, so an unobstructed pair separates to exactly
    min_distance with opposite displacements. Neighbours are found through the
    CSR index in the 3x3 cells around the particle.

    INPUT VARIABLES:
    - src.particle_x / src.particle_v: positions and velocities of this substep
    - index.cell_start / index.cell_particle_ids: CSR built from the positions at the start of the step
    - model.min_distance, model.particle_radius
    - terrain: height field the result is clamped above

    OUTPUT VARIABLES:
    - dst.particle_x[p]: displaced position, inside the domain and above the terrain
    - dst.particle_v[p]: velocity copied through; when the terrain clamp engaged the
      component pointing into the ground is removed

    BOUNDARY HANDLING:
    - Coincident particles separate along x, the direction is fixed by id order
      so both members of the pair move apart
    """
    p = wp.tid()
    x = src.particle_x[p]
    v = src.particle_v[p]
    c = cell_coords(model, x)
    min_d = model.min_distance

    displacement = wp.vec2(0.0, 0.0)
    for dj in range(-1, 2):
        for di in range(-1, 2):
            ni = c[0] + di
            nj = c[1] + dj
            if ni >= 0 and ni < model.grid_dim_x and nj >= 0 and nj < model.grid_dim_y:
                cell = nj * model.grid_dim_x + ni
                for k in range(index.cell_start[cell], index.cell_start[cell + 1]):
                    q = index.cell_particle_ids[k]
                    if q != p:
                        d = x - src.particle_x[q]
                        dist = wp.length(d)
                        if dist < min_d:
                            direction = wp.vec2(1.0, 0.0)
                            if p < q:
                                direction = wp.vec2(-1.0, 0.0)
                            if dist > 1.0e-9:
                                direction = d / dist
                            displacement += 0.5 * (min_d - dist) * direction

    target = x + displacement
    clamped = clamp_to_domain(model, terrain, target)
    if clamped[1] > target[1]:
        n = sample_terrain_normal(terrain, clamped[0])
        vn = wp.dot(v, n)
        if vn < 0.0:
            v = v - vn * n
    dst.particle_x[p] = clamped
    dst.particle_v[p] = v
