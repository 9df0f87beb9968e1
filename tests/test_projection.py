import numpy as np

from conftest import lattice, run_stages
from flipwater.utils.structs import AIR, FLUID


def test_pressure_projection_removes_divergence(make_simulator):
    positions = lattice(0.07, 0.93, 0.07, 0.5, 56, 28)
    rng = np.random.default_rng(11)
    velocities = rng.uniform(-1.0, 1.0, size=positions.shape).astype(np.float32)
    sim = make_simulator(positions, velocities, pcg_max_iterations=200)

    run_stages(sim, "cell_setup", "spatial_hash", "grid_transfer", "velocity_extension", "forces")
    run_stages(sim, "divergence")
    cell_type = sim.read_cell_type()
    fluid = cell_type == FLUID
    assert np.any(cell_type == AIR)
    before = np.abs(sim.grid.divergence.numpy()[fluid]).max() * sim.config.dx
    assert before > 0.1

    run_stages(sim, "pressure_projection", "divergence")

    after = np.abs(sim.grid.divergence.numpy()[fluid]).max() * sim.config.dx
    assert after < 1e-3
    assert sim.read_residual_norms()["pressure"] < 1e-2 * np.abs(sim.grid.pressure_rhs.numpy()).max()


def test_solid_faces_are_zero_after_projection(make_simulator):
    positions = lattice(0.07, 0.93, 0.07, 0.5, 56, 28)
    velocities = np.tile([2.0, -3.0], (positions.shape[0], 1)).astype(np.float32)
    sim = make_simulator(positions, velocities, pcg_max_iterations=50)

    run_stages(sim, "cell_setup", "spatial_hash", "grid_transfer", "velocity_extension", "forces",
               "pressure_projection")

    u = sim.grid.grid_u.numpy()
    v = sim.grid.grid_v.numpy()
    # walls: the border cells are solid, so faces 0, 1, nx-1, nx are all next to a solid
    assert np.all(u[:2, :] == 0.0) and np.all(u[-2:, :] == 0.0)
    assert np.all(v[:, :2] == 0.0) and np.all(v[:, -2:] == 0.0)


def test_gravity_alone_keeps_resting_pool_still(make_simulator):
    positions = lattice(0.07, 0.93, 0.07, 0.5, 56, 28)
    sim = make_simulator(positions, pcg_max_iterations=200)

    run_stages(sim, "cell_setup", "spatial_hash", "grid_transfer", "velocity_extension", "forces",
               "pressure_projection", "grid_to_particle")

    # gravity is balanced by hydrostatic pressure below the surface
    fluid = sim.read_cell_type() == FLUID
    v = sim.grid.grid_v.numpy()
    interior = np.zeros(v.shape, dtype=bool)
    interior[:, 1:-1] = fluid[:, :-1] & fluid[:, 1:]
    assert np.abs(v[interior]).max() < 1e-2
