import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *


@wp.kernel
def g2p(particles: ParticleStruct, grid: GridStruct, model: ModelStruct):
    """
    Grid-to-particle (G2P) transfer using PIC-FLIP blending.

    PURPOSE:
    Pulls the projected face velocities back to each particle with bilinear
    interpolation and blends the two classic updates:
        v_pic  = v_grid(x)
        v_flip = v_particle + (v_grid(x) - v_grid_prev(x))
        v_new  = (1 - ratio) * v_pic + ratio * v_flip

    INPUT VARIABLES:
    - grid.grid_u / grid.grid_v: face velocities after forces and pressure projection
    - grid.grid_u_prev / grid.grid_v_prev: face velocities captured after P2G and extension
    - model.pic_flip_ratio: 0.0 = pure PIC, 1.0 = pure FLIP

    OUTPUT VARIABLES:
    - particles.particle_v[p]
    """
    p = wp.tid()
    x = particles.particle_x[p]
    v_grid = wp.vec2(
        sample_face(grid.grid_u, model, x, 0.0, 0.5),
        sample_face(grid.grid_v, model, x, 0.5, 0.0),
    )
    v_prev = wp.vec2(
        sample_face(grid.grid_u_prev, model, x, 0.0, 0.5),
        sample_face(grid.grid_v_prev, model, x, 0.5, 0.0),
    )
    v_flip = particles.particle_v[p] + (v_grid - v_prev)
    ratio = model.pic_flip_ratio
    particles.particle_v[p] = (1.0 - ratio) * v_grid + ratio * v_flip
