import numpy as np
import pytest

from conftest import run_stages


def expected_cells(sim, positions):
    config = sim.config
    x = positions.astype(np.float32)
    i = np.clip(np.floor(x[:, 0] * np.float32(config.inv_dx)).astype(np.int64), 0, config.grid_size_x - 1)
    j = np.clip(np.floor(x[:, 1] * np.float32(config.inv_dy)).astype(np.int64), 0, config.grid_size_y - 1)
    return j * config.grid_size_x + i


def check_index(sim, positions):
    index = sim.spatial_hash.index
    counts = index.count_per_cell.numpy()
    starts = index.cell_start.numpy()
    ids = index.cell_particle_ids.numpy()
    n = positions.shape[0]
    n_cells = sim.config.number_of_cells

    cells = expected_cells(sim, positions)
    np.testing.assert_array_equal(counts, np.bincount(cells, minlength=n_cells))
    assert starts[0] == 0
    assert starts[-1] == n
    np.testing.assert_array_equal(np.diff(starts), counts)
    # every particle listed exactly once, under its own cell
    np.testing.assert_array_equal(np.sort(ids), np.arange(n))
    slot_cells = np.repeat(np.arange(n_cells), counts)
    np.testing.assert_array_equal(cells[ids], slot_cells)


@pytest.mark.parametrize("grid_size", [16, 48, 300])
def test_index_lists_every_particle_in_its_cell(make_simulator, grid_size):
    rng = np.random.default_rng(grid_size)
    positions = rng.uniform(0.02, 0.98, size=(3000, 2)).astype(np.float32)
    sim = make_simulator(positions, grid_size_x=grid_size, grid_size_y=grid_size, pcg_max_iterations=2)

    run_stages(sim, "spatial_hash")
    check_index(sim, positions)


def test_scan_paths_follow_grid_size(make_simulator):
    positions = np.full((4, 2), 0.5, dtype=np.float32)
    small = make_simulator(positions, grid_size_x=48, grid_size_y=48, pcg_max_iterations=1)
    large = make_simulator(positions, grid_size_x=300, grid_size_y=300, pcg_max_iterations=1)

    assert small.config.is_small_grid
    assert small.config.scan_level_sizes == [48 * 48]
    assert not large.config.is_small_grid
    assert large.config.scan_level_sizes == [90000, 88]


def test_clustered_particles_share_one_cell(make_simulator):
    positions = np.tile(np.array([[0.51, 0.52]], dtype=np.float32), (257, 1))
    positions[0] = [0.1, 0.1]
    sim = make_simulator(positions, pcg_max_iterations=1)

    run_stages(sim, "spatial_hash")
    check_index(sim, positions)
    counts = sim.spatial_hash.index.count_per_cell.numpy()
    assert counts.max() == 256


def test_index_is_rebuilt_when_particles_move(make_simulator):
    positions = np.array([[0.1, 0.1], [0.9, 0.9]], dtype=np.float32)
    sim = make_simulator(positions, pcg_max_iterations=1)
    batch = run_stages(sim, "spatial_hash")

    moved = positions[::-1].copy()
    sim.backend.write_buffer(sim.particles.primary.particle_x, moved)
    batch.submit()
    check_index(sim, moved)
