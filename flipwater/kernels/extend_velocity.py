import warp as wp
from flipwater.utils.structs import *


@wp.func
def valid_in_pass(mask: wp.array(dtype=int, ndim=2), i: int, j: int, extension_pass: int):
    if i < 0 or j < 0 or i >= mask.shape[0] or j >= mask.shape[1]:
        return False
    m = mask[i, j]
    return m > 0 and m <= extension_pass


@wp.func
def extend_face(
    field: wp.array(dtype=float, ndim=2),
    mask: wp.array(dtype=int, ndim=2),
    i: int,
    j: int,
    extension_pass: int,
):
    total = float(0.0)
    count = int(0)
    if valid_in_pass(mask, i - 1, j, extension_pass):
        total += field[i - 1, j]
        count += 1
    if valid_in_pass(mask, i + 1, j, extension_pass):
        total += field[i + 1, j]
        count += 1
    if valid_in_pass(mask, i, j - 1, extension_pass):
        total += field[i, j - 1]
        count += 1
    if valid_in_pass(mask, i, j + 1, extension_pass):
        total += field[i, j + 1]
        count += 1
    if count > 0:
        field[i, j] = total / float(count)
        mask[i, j] = extension_pass + 1


@wp.kernel
def extend_velocity_u(grid: GridStruct, extension_pass: int):
    """
    Extend valid u velocities one face further into empty faces.

    Masks are generations: 1 for faces filled by P2G, k + 1 for faces filled in
    pass k. Pass k only reads faces with 1 <= mask <= k, so faces written in
    this pass are never read by it and the result does not depend on thread order.
    """
    i, j = wp.tid()
    if grid.grid_u_mask[i, j] == 0:
        extend_face(grid.grid_u, grid.grid_u_mask, i, j, extension_pass)


@wp.kernel
def extend_velocity_v(grid: GridStruct, extension_pass: int):
    i, j = wp.tid()
    if grid.grid_v_mask[i, j] == 0:
        extend_face(grid.grid_v, grid.grid_v_mask, i, j, extension_pass)
