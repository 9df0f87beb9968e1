import numpy as np

from conftest import run_stages


def pair(make_simulator, positions, velocities=None):
    return make_simulator(np.array(positions, dtype=np.float32), velocities,
                          grid_size_x=8, grid_size_y=8, push_apart_steps=1)


def test_close_pair_separates_symmetrically(make_simulator):
    start = np.array([[0.45, 0.5], [0.55, 0.5]], dtype=np.float32)
    sim = pair(make_simulator, start)

    run_stages(sim, "spatial_hash", "push_apart")

    x = sim.read_positions()
    min_d = sim.config.min_distance
    assert np.linalg.norm(x[1] - x[0]) >= min_d - 1e-5
    np.testing.assert_allclose(x[0] - start[0], -(x[1] - start[1]), atol=1e-6)
    np.testing.assert_allclose(x[:, 1], 0.5, atol=1e-6)


def test_coincident_particles_separate_along_x(make_simulator):
    sim = pair(make_simulator, [[0.5, 0.5], [0.5, 0.5]])

    run_stages(sim, "spatial_hash", "push_apart")

    x = sim.read_positions()
    assert x[0, 0] < x[1, 0]
    np.testing.assert_allclose(x[1, 0] - x[0, 0], sim.config.min_distance, atol=1e-5)
    np.testing.assert_allclose(x[:, 1], 0.5, atol=1e-6)


def test_distant_particles_do_not_move(make_simulator):
    start = np.array([[0.3, 0.3], [0.7, 0.7]], dtype=np.float32)
    sim = pair(make_simulator, start)

    run_stages(sim, "spatial_hash", "push_apart")

    np.testing.assert_array_equal(sim.read_positions(), start)


def test_floor_clamp_removes_downward_velocity(make_simulator):
    # pushed below the floor limit, so the clamp engages
    dy = 1.0 / 8
    y = dy + 0.3 * dy + 0.001
    start = np.array([[0.5, y], [0.5, y + 0.002]], dtype=np.float32)
    velocities = np.array([[0.5, -1.0], [0.5, -1.0]], dtype=np.float32)
    sim = pair(make_simulator, start, velocities)

    run_stages(sim, "spatial_hash", "push_apart")

    x = sim.read_positions()
    v = sim.read_velocities()
    floor = sim.config.dy + sim.config.particle_radius
    assert np.all(x[:, 1] >= floor - 1e-6)
    assert v[0, 1] == 0.0
    assert v[0, 0] == 0.5
    assert v[1, 1] == -1.0
