import numpy as np

from conftest import run_stages
from flipwater.utils.sampling import sample_grid


def block(n=200):
    return sample_grid(n, [0.5, 0.5], [0.4, 0.4])


def test_uniform_velocity_survives_round_trip(make_simulator):
    positions = block()
    velocities = np.tile([0.3, -0.2], (positions.shape[0], 1)).astype(np.float32)
    sim = make_simulator(positions, velocities, pic_flip_ratio=0.0)

    run_stages(sim, "cell_setup", "spatial_hash", "grid_transfer", "velocity_extension", "grid_to_particle")

    np.testing.assert_allclose(sim.read_velocities(), velocities, atol=1e-5)


def test_unchanged_grid_gives_back_particle_velocity_with_flip(make_simulator):
    positions = block()
    rng = np.random.default_rng(3)
    velocities = rng.uniform(-1.0, 1.0, size=positions.shape).astype(np.float32)
    sim = make_simulator(positions, velocities, pic_flip_ratio=1.0)

    # no forces between the snapshot and g2p, so the FLIP delta is zero
    run_stages(sim, "cell_setup", "spatial_hash", "grid_transfer", "velocity_extension", "grid_to_particle")

    np.testing.assert_allclose(sim.read_velocities(), velocities, atol=1e-5)


def test_faces_without_particles_are_masked_out(make_simulator):
    positions = np.array([[0.53, 0.53]], dtype=np.float32)
    sim = make_simulator(positions, np.array([[1.0, 2.0]], dtype=np.float32))

    run_stages(sim, "cell_setup", "spatial_hash", "grid_transfer")

    u_mask = sim.grid.grid_u_mask.numpy()
    v_mask = sim.grid.grid_v_mask.numpy()
    u = sim.grid.grid_u.numpy()
    v = sim.grid.grid_v.numpy()
    assert 0 < u_mask.sum() <= 4
    assert 0 < v_mask.sum() <= 4
    np.testing.assert_allclose(u[u_mask == 1], 1.0, atol=1e-6)
    np.testing.assert_allclose(v[v_mask == 1], 2.0, atol=1e-6)
    assert np.all(u[u_mask == 0] == 0.0)
    assert np.all(v[v_mask == 0] == 0.0)


def test_extension_fills_faces_next_to_the_liquid(make_simulator):
    positions = np.array([[0.53, 0.53]], dtype=np.float32)
    sim = make_simulator(positions, np.array([[1.0, 0.0]], dtype=np.float32))

    run_stages(sim, "cell_setup", "spatial_hash", "grid_transfer")
    direct = sim.grid.grid_u_mask.numpy().sum()
    run_stages(sim, "velocity_extension")

    mask = sim.grid.grid_u_mask.numpy()
    u = sim.grid.grid_u.numpy()
    assert mask.sum() > direct
    assert mask.max() <= 4
    # extension averages valid neighbours, so it never invents new values
    np.testing.assert_allclose(u[mask > 0], 1.0, atol=1e-6)
    np.testing.assert_array_equal(sim.grid.grid_u_prev.numpy(), u)
