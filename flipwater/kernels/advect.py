import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *


@wp.func
def collide(v: wp.vec2, n: wp.vec2, normal_restitution: float, tangent_restitution: float):
    """Reflect the normal part of a velocity moving into a surface and damp the tangential part."""
    vn = wp.dot(v, n)
    if vn >= 0.0:
        return v
    vt = v - vn * n
    return tangent_restitution * vt - normal_restitution * vn * n


@wp.kernel
def advect_particles(src: ParticleStruct, dst: ParticleStruct, model: ModelStruct, terrain: TerrainStruct):
    """
    Move particles with their velocity and resolve wall and terrain contacts.

    PURPOSE:
    x' = x + v * dt, then
    - walls: positions are clamped to the inside of the solid border
    - terrain: particles below h(x) + radius are lifted back onto it
    In both cases the velocity is split along the contact normal; the part
    moving into the surface is reflected with normal_restitution and the
    tangential part is scaled by tangent_restitution.

    Reads src and writes dst so no thread sees another particle's new state.
    """
    p = wp.tid()
    e_n = model.normal_restitution
    e_t = model.tangent_restitution
    r = model.particle_radius
    v = src.particle_v[p]
    x = src.particle_x[p] + v * model.dt

    lo_x = model.dx + r
    hi_x = model.length_x - model.dx - r
    lo_y = model.dy + r
    hi_y = model.length_y - model.dy - r
    if x[0] < lo_x:
        x = wp.vec2(lo_x, x[1])
        v = collide(v, wp.vec2(1.0, 0.0), e_n, e_t)
    if x[0] > hi_x:
        x = wp.vec2(hi_x, x[1])
        v = collide(v, wp.vec2(-1.0, 0.0), e_n, e_t)
    if x[1] < lo_y:
        x = wp.vec2(x[0], lo_y)
        v = collide(v, wp.vec2(0.0, 1.0), e_n, e_t)
    if x[1] > hi_y:
        x = wp.vec2(x[0], hi_y)
        v = collide(v, wp.vec2(0.0, -1.0), e_n, e_t)

    ground = sample_terrain_height(terrain, x[0]) + r
    if x[1] < ground:
        x = wp.vec2(x[0], wp.min(ground, hi_y))
        v = collide(v, sample_terrain_normal(terrain, x[0]), e_n, e_t)

    dst.particle_x[p] = x
    dst.particle_v[p] = v
