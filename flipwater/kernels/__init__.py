"""
Warp kernels of the liquid solver and the table that registers them by name.
"""
from flipwater.registry import KernelRegistry

from .mark_cells import mark_fluid_fractions, mark_solid, mark_liquid
from .spatial_hash import count_particles, add_guard, assign_particle_ids
from .prefix_sum import scan_local_blocks, scan_block_sums, add_block_offsets
from .push_apart import push_particles_apart
from .density import (
    compute_density,
    compute_density_rhs,
    compute_correction_u,
    compute_correction_v,
    apply_position_correction,
)
from .p2g import p2g_u, p2g_v
from .extend_velocity import extend_velocity_u, extend_velocity_v
from .forces import (
    add_acceleration_and_dirichlet_u,
    add_acceleration_and_dirichlet_v,
    diffuse_velocity_u,
    diffuse_velocity_v,
)
from .pcg import (
    apply_laplacian,
    apply_preconditioner,
    dot_product_partial,
    dot_product_final,
    max_abs_partial,
    max_abs_final,
    begin_solve,
    compute_alpha,
    compute_beta,
    update_solution,
    update_residual,
    update_search_direction,
)
from .pressure_projection import compute_divergence, compute_pressure_rhs, apply_pressure_u, apply_pressure_v
from .g2p import g2p
from .advect import advect_particles

KERNEL_TABLE = [
    # cell setup
    ("mark_fluid_fractions", mark_fluid_fractions, ("grid", "model", "terrain")),
    ("mark_solid", mark_solid, ("grid", "model", "padding")),
    ("mark_liquid", mark_liquid, ("particles", "grid", "model")),
    # spatial hash
    ("count_particles", count_particles, ("particles", "index", "model")),
    ("scan_local_blocks", scan_local_blocks, ("src", "dst", "block_sums", "n", "block_size")),
    ("scan_block_sums", scan_block_sums, ("block_sums", "count")),
    ("add_block_offsets", add_block_offsets, ("dst", "block_offsets", "block_size")),
    ("add_guard", add_guard, ("index", "n_cells")),
    ("assign_particle_ids", assign_particle_ids, ("particles", "index", "model")),
    # overlap resolution
    ("push_particles_apart", push_particles_apart, ("src", "dst", "index", "model", "terrain")),
    # density projection
    ("compute_density", compute_density, ("particles", "grid", "index", "model")),
    ("compute_density_rhs", compute_density_rhs, ("grid", "model")),
    ("compute_correction_u", compute_correction_u, ("grid", "model")),
    ("compute_correction_v", compute_correction_v, ("grid", "model")),
    ("apply_position_correction", apply_position_correction, ("particles", "grid", "model", "terrain")),
    # transfer
    ("p2g_u", p2g_u, ("particles", "grid", "index", "model")),
    ("p2g_v", p2g_v, ("particles", "grid", "index", "model")),
    ("g2p", g2p, ("particles", "grid", "model")),
    # extension and forces
    ("extend_velocity_u", extend_velocity_u, ("grid", "extension_pass")),
    ("extend_velocity_v", extend_velocity_v, ("grid", "extension_pass")),
    ("add_acceleration_and_dirichlet_u", add_acceleration_and_dirichlet_u, ("grid", "model")),
    ("add_acceleration_and_dirichlet_v", add_acceleration_and_dirichlet_v, ("grid", "model")),
    ("diffuse_velocity_u", diffuse_velocity_u, ("grid", "model")),
    ("diffuse_velocity_v", diffuse_velocity_v, ("grid", "model")),
    # linear solver
    ("apply_laplacian", apply_laplacian, ("grid", "model", "x", "y")),
    ("apply_preconditioner", apply_preconditioner, ("grid", "model", "x", "y")),
    ("dot_product_partial", dot_product_partial, ("a", "b", "partial", "chunk")),
    ("dot_product_final", dot_product_final, ("partial", "count", "result")),
    ("max_abs_partial", max_abs_partial, ("a", "partial", "chunk")),
    ("max_abs_final", max_abs_final, ("partial", "count", "result")),
    ("begin_solve", begin_solve, ("params", "tolerance")),
    ("compute_alpha", compute_alpha, ("params",)),
    ("compute_beta", compute_beta, ("params",)),
    ("update_solution", update_solution, ("x", "p", "params")),
    ("update_residual", update_residual, ("r", "q", "params")),
    ("update_search_direction", update_search_direction, ("p", "z", "params")),
    # pressure projection
    ("compute_divergence", compute_divergence, ("grid", "model")),
    ("compute_pressure_rhs", compute_pressure_rhs, ("grid", "model")),
    ("apply_pressure_u", apply_pressure_u, ("grid", "model")),
    ("apply_pressure_v", apply_pressure_v, ("grid", "model")),
    # advection
    ("advect_particles", advect_particles, ("src", "dst", "model", "terrain")),
]


def build_kernel_registry():
    registry = KernelRegistry()
    for name, kernel, bindings in KERNEL_TABLE:
        registry.register(name, kernel, bindings)
    return registry
