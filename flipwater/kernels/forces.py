import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *

MAX_DIFFUSION = wp.constant(0.2)


@wp.kernel
def add_acceleration_and_dirichlet_u(grid: GridStruct, model: ModelStruct):
    """
    Add gravity * dt to u, and zero faces that touch a solid cell.

    Solid faces take the velocity of the (static) terrain, which is zero.
    """
    i, j = wp.tid()
    if is_solid(grid, i - 1, j) or is_solid(grid, i, j):
        grid.grid_u[i, j] = 0.0
    else:
        grid.grid_u[i, j] = grid.grid_u[i, j] + model.gravitational_acceleration[0] * model.dt


@wp.kernel
def add_acceleration_and_dirichlet_v(grid: GridStruct, model: ModelStruct):
    i, j = wp.tid()
    if is_solid(grid, i, j - 1) or is_solid(grid, i, j):
        grid.grid_v[i, j] = 0.0
    else:
        grid.grid_v[i, j] = grid.grid_v[i, j] + model.gravitational_acceleration[1] * model.dt


@wp.func
def diffuse_face(
    src: wp.array(dtype=float, ndim=2),
    i: int,
    j: int,
    coefficient_x: float,
    coefficient_y: float,
):
    n_x = src.shape[0] - 1
    n_y = src.shape[1] - 1
    centre = src[i, j]
    left = src[wp.max(i - 1, 0), j]
    right = src[wp.min(i + 1, n_x), j]
    down = src[i, wp.max(j - 1, 0)]
    up = src[i, wp.min(j + 1, n_y)]
    return centre + coefficient_x * (left + right - 2.0 * centre) + coefficient_y * (down + up - 2.0 * centre)


@wp.kernel
def diffuse_velocity_u(grid: GridStruct, model: ModelStruct):
    """Explicit viscosity step on u, reading the copy in grid_u_temp."""
    i, j = wp.tid()
    if is_solid(grid, i - 1, j) or is_solid(grid, i, j):
        return
    cx = wp.min(model.viscosity * model.dt * model.inv_dx * model.inv_dx, MAX_DIFFUSION)
    cy = wp.min(model.viscosity * model.dt * model.inv_dy * model.inv_dy, MAX_DIFFUSION)
    grid.grid_u[i, j] = diffuse_face(grid.grid_u_temp, i, j, cx, cy)


@wp.kernel
def diffuse_velocity_v(grid: GridStruct, model: ModelStruct):
    i, j = wp.tid()
    if is_solid(grid, i, j - 1) or is_solid(grid, i, j):
        return
    cx = wp.min(model.viscosity * model.dt * model.inv_dx * model.inv_dx, MAX_DIFFUSION)
    cy = wp.min(model.viscosity * model.dt * model.inv_dy * model.inv_dy, MAX_DIFFUSION)
    grid.grid_v[i, j] = diffuse_face(grid.grid_v_temp, i, j, cx, cy)
