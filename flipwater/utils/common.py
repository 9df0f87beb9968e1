import warp as wp
import torch
from flipwater.utils.structs import *


@wp.func
def cell_coords(model: ModelStruct, x: wp.vec2):
    i = wp.clamp(int(wp.floor(x[0] * model.inv_dx)), 0, model.grid_dim_x - 1)
    j = wp.clamp(int(wp.floor(x[1] * model.inv_dy)), 0, model.grid_dim_y - 1)
    return wp.vec2i(i, j)


@wp.func
def cell_index(model: ModelStruct, x: wp.vec2):
    c = cell_coords(model, x)
    return c[1] * model.grid_dim_x + c[0]


@wp.func
def tent_weight(model: ModelStruct, d: wp.vec2):
    wx = wp.max(0.0, 1.0 - wp.abs(d[0]) * model.inv_dx)
    wy = wp.max(0.0, 1.0 - wp.abs(d[1]) * model.inv_dy)
    return wx * wy


@wp.func
def sample_face(
    field: wp.array(dtype=float, ndim=2),
    model: ModelStruct,
    x: wp.vec2,
    offset_x: float,
    offset_y: float,
):
    """
    Bilinear sample of a staggered field at world position x.
    offset_x/offset_y place sample (0, 0) in cell units, i.e. (0, 0.5) for u and (0.5, 0) for v.
    """
    gx = x[0] * model.inv_dx - offset_x
    gy = x[1] * model.inv_dy - offset_y
    i0 = wp.clamp(int(wp.floor(gx)), 0, field.shape[0] - 2)
    j0 = wp.clamp(int(wp.floor(gy)), 0, field.shape[1] - 2)
    fx = wp.clamp(gx - float(i0), 0.0, 1.0)
    fy = wp.clamp(gy - float(j0), 0.0, 1.0)
    bottom = (1.0 - fx) * field[i0, j0] + fx * field[i0 + 1, j0]
    top = (1.0 - fx) * field[i0, j0 + 1] + fx * field[i0 + 1, j0 + 1]
    return (1.0 - fy) * bottom + fy * top


@wp.func
def sample_terrain_height(terrain: TerrainStruct, x: float):
    t = wp.clamp(x / terrain.spacing, 0.0, float(terrain.count - 1))
    k = wp.min(int(wp.floor(t)), terrain.count - 2)
    f = t - float(k)
    return (1.0 - f) * terrain.heights[k] + f * terrain.heights[k + 1]


@wp.func
def sample_terrain_normal(terrain: TerrainStruct, x: float):
    t = wp.clamp(x / terrain.spacing, 0.0, float(terrain.count - 1))
    k = wp.min(int(wp.floor(t)), terrain.count - 2)
    f = t - float(k)
    return wp.normalize((1.0 - f) * terrain.normals[k] + f * terrain.normals[k + 1])


@wp.func
def clamp_to_domain(model: ModelStruct, terrain: TerrainStruct, x: wp.vec2):
    """Keep a position inside the solid border and above the terrain."""
    r = model.particle_radius
    px = wp.clamp(x[0], model.dx + r, model.length_x - model.dx - r)
    py = wp.clamp(x[1], model.dy + r, model.length_y - model.dy - r)
    ground = sample_terrain_height(terrain, px) + r
    if py < ground:
        py = wp.min(ground, model.length_y - model.dy - r)
    return wp.vec2(px, py)


@wp.func
def is_solid(grid: GridStruct, i: int, j: int):
    if i < 0 or j < 0 or i >= grid.cell_type.shape[0] or j >= grid.cell_type.shape[1]:
        return True
    return grid.cell_type[i, j] == SOLID


@wp.func
def face_weight(grid: GridStruct, ia: int, ja: int, ib: int, jb: int):
    """Open fraction of the face shared by cells a and b, zero next to a solid cell."""
    if is_solid(grid, ia, ja) or is_solid(grid, ib, jb):
        return 0.0
    return 0.5 * (grid.volume_fraction[ia, ja] + grid.volume_fraction[ib, jb])


@wp.func
def is_fluid(grid: GridStruct, i: int, j: int):
    if i < 0 or j < 0 or i >= grid.cell_type.shape[0] or j >= grid.cell_type.shape[1]:
        return False
    return grid.cell_type[i, j] == FLUID


def torch2warp_vec2(t):
    if t.dtype != torch.float32:
        raise RuntimeError(
            "Error aliasing Torch tensor to Warp array. Torch tensor must be float32 type"
        )
    assert t.shape[1] == 2
    return wp.from_torch(t.contiguous(), dtype=wp.vec2)
