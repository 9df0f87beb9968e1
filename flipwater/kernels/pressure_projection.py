import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *


@wp.kernel
def compute_divergence(grid: GridStruct, model: ModelStruct):
    """
    Velocity divergence at fluid cells, each face weighted by its open fraction.

    Uses the same face weights as apply_laplacian so that one pressure solve
    cancels the weighted divergence. Non-fluid cells get 0.
    """
    i, j = wp.tid()
    div = float(0.0)
    if grid.cell_type[i, j] == FLUID:
        w_left = face_weight(grid, i - 1, j, i, j)
        w_right = face_weight(grid, i, j, i + 1, j)
        w_bottom = face_weight(grid, i, j - 1, i, j)
        w_top = face_weight(grid, i, j, i, j + 1)
        div = (w_right * grid.grid_u[i + 1, j] - w_left * grid.grid_u[i, j]) * model.inv_dx
        div += (w_top * grid.grid_v[i, j + 1] - w_bottom * grid.grid_v[i, j]) * model.inv_dy
    grid.divergence[i, j] = div


@wp.kernel
def compute_pressure_rhs(grid: GridStruct, model: ModelStruct):
    i, j = wp.tid()
    grid.pressure_rhs[i, j] = -grid.divergence[i, j] * model.fluid_density / model.dt


@wp.kernel
def apply_pressure_u(grid: GridStruct, model: ModelStruct):
    """
    Subtract the pressure gradient from u.

    - face touching a solid cell: set to the terrain velocity (static, 0)
    - face touching a fluid cell: u -= dt / rho * (p_b - p_a) / dx, air pressure is 0
    - face between two air cells: left alone
    """
    i, j = wp.tid()
    if is_solid(grid, i - 1, j) or is_solid(grid, i, j):
        grid.grid_u[i, j] = 0.0
    elif is_fluid(grid, i - 1, j) or is_fluid(grid, i, j):
        scale = model.dt / model.fluid_density * model.inv_dx
        grid.grid_u[i, j] = grid.grid_u[i, j] - scale * (grid.pressure[i, j] - grid.pressure[i - 1, j])


@wp.kernel
def apply_pressure_v(grid: GridStruct, model: ModelStruct):
    i, j = wp.tid()
    if is_solid(grid, i, j - 1) or is_solid(grid, i, j):
        grid.grid_v[i, j] = 0.0
    elif is_fluid(grid, i, j - 1) or is_fluid(grid, i, j):
        scale = model.dt / model.fluid_density * model.inv_dy
        grid.grid_v[i, j] = grid.grid_v[i, j] - scale * (grid.pressure[i, j] - grid.pressure[i, j - 1])
