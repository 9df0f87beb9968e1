import warp as wp
from flipwater.utils.structs import *
from flipwater.utils.common import *

# slots of the scalar record
SIGMA = wp.constant(0)
ALPHA_DENOMINATOR = wp.constant(1)
ALPHA = wp.constant(2)
BETA = wp.constant(3)
NEW_SIGMA = wp.constant(4)
TOLERANCE = wp.constant(5)
INITIAL_SIGMA = wp.constant(6)
PARAM_COUNT = 7

BREAKDOWN_EPSILON = wp.constant(1.0e-30)
# p.Ap below this fraction of r.z means p lies in the null space of A (closed fluid region)
NULL_SPACE_RATIO = wp.constant(1.0e-6)


@wp.func
def laplacian_term(grid: GridStruct, x: wp.array(dtype=float, ndim=2), i: int, j: int, ni: int, nj: int, inv_h2: float):
    """Contribution of one face to (A x) at cell (i, j) and to its diagonal."""
    w = face_weight(grid, i, j, ni, nj) * inv_h2
    neighbour = float(0.0)
    if is_fluid(grid, ni, nj):
        neighbour = x[ni, nj]
    return wp.vec2(w * (x[i, j] - neighbour), w)


@wp.kernel
def apply_laplacian(grid: GridStruct, model: ModelStruct, x: wp.array(dtype=float, ndim=2), y: wp.array(dtype=float, ndim=2)):
    """
    Matrix-free product y = A x over fluid cells.

    A is the 5-point Laplacian weighted by the open fraction of each face:
        (A x)_c = sum_f w_f (x_c - x_nb) / h_f^2
    Faces next to a solid have w_f = 0, air neighbours are Dirichlet (x_nb = 0).
    Non-fluid cells output 0. The coefficients come from cell_type and
    volume_fraction on every call; no matrix is stored.
    """
    i, j = wp.tid()
    if grid.cell_type[i, j] != FLUID:
        y[i, j] = 0.0
        return
    inv_dx2 = model.inv_dx * model.inv_dx
    inv_dy2 = model.inv_dy * model.inv_dy
    result = laplacian_term(grid, x, i, j, i - 1, j, inv_dx2)
    result += laplacian_term(grid, x, i, j, i + 1, j, inv_dx2)
    result += laplacian_term(grid, x, i, j, i, j - 1, inv_dy2)
    result += laplacian_term(grid, x, i, j, i, j + 1, inv_dy2)
    y[i, j] = result[0]


@wp.kernel
def apply_preconditioner(grid: GridStruct, model: ModelStruct, x: wp.array(dtype=float, ndim=2), y: wp.array(dtype=float, ndim=2)):
    # Jacobi: y = x / diag(A)
    i, j = wp.tid()
    y[i, j] = 0.0
    if grid.cell_type[i, j] == FLUID:
        inv_dx2 = model.inv_dx * model.inv_dx
        inv_dy2 = model.inv_dy * model.inv_dy
        diagonal = (face_weight(grid, i, j, i - 1, j) + face_weight(grid, i, j, i + 1, j)) * inv_dx2
        diagonal += (face_weight(grid, i, j, i, j - 1) + face_weight(grid, i, j, i, j + 1)) * inv_dy2
        if diagonal > 0.0:
            y[i, j] = x[i, j] / diagonal


@wp.kernel
def dot_product_partial(
    a: wp.array(dtype=float, ndim=2),
    b: wp.array(dtype=float, ndim=2),
    partial: wp.array(dtype=float),
    chunk: int,
):
    """
    First pass of a chunked two-pass reduction: each thread sums a contiguous
    chunk of cells (flat index c = j*nx + i) into partial[t].
    """
    t = wp.tid()
    nx = a.shape[0]
    n = nx * a.shape[1]
    start = t * chunk
    end = wp.min(start + chunk, n)
    total = float(0.0)
    for c in range(start, end):
        i = c % nx
        j = c // nx
        total += a[i, j] * b[i, j]
    partial[t] = total


@wp.kernel
def dot_product_final(partial: wp.array(dtype=float), count: int, result: wp.array(dtype=float)):
    # second pass, a single thread adds the partials in order
    total = float(0.0)
    for t in range(count):
        total += partial[t]
    result[0] = total


@wp.kernel
def max_abs_partial(
    a: wp.array(dtype=float, ndim=2),
    partial: wp.array(dtype=float),
    chunk: int,
):
    t = wp.tid()
    nx = a.shape[0]
    n = nx * a.shape[1]
    start = t * chunk
    end = wp.min(start + chunk, n)
    largest = float(0.0)
    for c in range(start, end):
        largest = wp.max(largest, wp.abs(a[c % nx, c // nx]))
    partial[t] = largest


@wp.kernel
def max_abs_final(partial: wp.array(dtype=float), count: int, result: wp.array(dtype=float)):
    largest = float(0.0)
    for t in range(count):
        largest = wp.max(largest, partial[t])
    result[0] = largest


@wp.kernel
def begin_solve(params: wp.array(dtype=float), tolerance: float):
    # params[SIGMA] already holds r.z of the initial residual
    sigma = params[SIGMA]
    params[ALPHA_DENOMINATOR] = 0.0
    params[ALPHA] = 0.0
    params[BETA] = 0.0
    params[NEW_SIGMA] = sigma
    params[TOLERANCE] = tolerance
    params[INITIAL_SIGMA] = sigma


@wp.func
def converged(params: wp.array(dtype=float), sigma: float):
    tol = params[TOLERANCE]
    return sigma <= tol * tol * params[INITIAL_SIGMA]


@wp.kernel
def compute_alpha(params: wp.array(dtype=float)):
    """
    alpha = sigma / (p . q)

    Once sigma has dropped below tolerance^2 of its initial value, or p.Ap is
    negligible next to sigma, alpha is 0 and the remaining iterations of the
    fixed schedule leave the solution unchanged.
    """
    sigma = params[SIGMA]
    denominator = params[ALPHA_DENOMINATOR]
    alpha = float(0.0)
    if sigma > BREAKDOWN_EPSILON and denominator > NULL_SPACE_RATIO * sigma and not converged(params, sigma):
        alpha = sigma / denominator
    params[ALPHA] = alpha


@wp.kernel
def compute_beta(params: wp.array(dtype=float)):
    sigma = params[SIGMA]
    new_sigma = params[NEW_SIGMA]
    beta = float(0.0)
    if wp.abs(sigma) > BREAKDOWN_EPSILON and not converged(params, new_sigma):
        beta = new_sigma / sigma
    params[BETA] = beta
    params[SIGMA] = new_sigma


@wp.kernel
def update_solution(x: wp.array(dtype=float, ndim=2), p: wp.array(dtype=float, ndim=2), params: wp.array(dtype=float)):
    i, j = wp.tid()
    x[i, j] = x[i, j] + params[ALPHA] * p[i, j]


@wp.kernel
def update_residual(r: wp.array(dtype=float, ndim=2), q: wp.array(dtype=float, ndim=2), params: wp.array(dtype=float)):
    i, j = wp.tid()
    r[i, j] = r[i, j] - params[ALPHA] * q[i, j]


@wp.kernel
def update_search_direction(p: wp.array(dtype=float, ndim=2), z: wp.array(dtype=float, ndim=2), params: wp.array(dtype=float)):
    i, j = wp.tid()
    p[i, j] = z[i, j] + params[BETA] * p[i, j]
