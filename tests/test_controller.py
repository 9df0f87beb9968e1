import logging

import numpy as np
import pytest
import torch

from conftest import lattice, run_stages
from flipwater.errors import SimulationSetupError, StepFailedError
from flipwater.sim_wrapper import SimulationController
from flipwater.utils.scene import Scene
from flipwater.utils.structs import FLUID, SOLID


@pytest.fixture
def controller(device):
    scene = Scene(grid_size_x=16, grid_size_y=16, length_x=1.0, length_y=1.0, use_cuda_graph=False,
                  pcg_max_iterations=30,
                  initial_particles={"n_particles": 200, "center": [0.3, 0.3], "size": [0.3, 0.3],
                                     "sampling_type": "grid"})
    return SimulationController(scene=scene, device=device)


def test_step_advances_frames(controller):
    assert controller.status == "Ready"
    assert controller.step()
    assert controller.step()
    assert controller.current_frame == 2
    assert controller.solver.frame == 2
    assert controller.get_positions().shape == (200, 2)
    assert controller.status == "Frame 2"


def test_failed_step_pauses_and_keeps_last_positions(controller, monkeypatch, caplog):
    controller.step()
    last = controller.get_positions().copy()

    def fail():
        raise StepFailedError(controller.solver.frame, RuntimeError("device lost"))

    monkeypatch.setattr(controller.solver, "step", fail)
    with caplog.at_level(logging.ERROR, logger="flipwater.sim_wrapper"):
        assert not controller.step()

    assert controller.failed and controller.paused
    assert "Error at frame 1" in caplog.text
    assert controller.status == "Error at frame 1"
    np.testing.assert_array_equal(controller.get_positions(), last)

    controller.resume()
    assert controller.paused
    assert not controller.step()
    assert controller.run(5) == 1


def test_reset_rebuilds_from_scene(controller):
    start = controller.get_positions().copy()
    controller.run(3)
    assert not np.array_equal(controller.get_positions(), start)

    controller.reset()
    assert controller.current_frame == 0
    assert controller.solver.frame == 0
    np.testing.assert_allclose(controller.get_positions(), start)


def test_reconfigure_changes_the_grid(controller):
    controller.reconfigure(grid_size_x=24, grid_size_y=24)
    assert controller.solver.config.cell_shape == (24, 24)
    assert controller.scene.grid_size_x == 24
    assert controller.step()


def test_pause_stops_run(controller):
    controller.pause()
    assert controller.run(4) == 0
    controller.resume()
    assert controller.run(4) == 4


def test_cells_and_residuals_are_reported(controller):
    controller.step()
    fluid = controller.get_fluid_cells()
    solid = controller.get_solid_cells()
    assert fluid.shape[1] == 2 and fluid.shape[0] > 0
    assert solid.shape[0] >= 4 * 15
    assert set(controller.get_residual_norms()) == {"density", "pressure"}


def test_save_state_writes_csv_layout(controller, tmp_path):
    controller.step()
    paths = controller.save_state(str(tmp_path), include_particles=True, include_terrain=True)
    assert sorted(p.split("/")[-1] for p in paths) == [
        "cellType.csv", "particles.csv", "terrain.csv", "volumeFractions.csv",
    ]

    cell_type = np.loadtxt(tmp_path / "cellType.csv", delimiter=",", dtype=int)
    assert cell_type.shape == (16, 16)
    # one row per y, the bottom row is the solid border
    assert np.all(cell_type[0] == SOLID)
    np.testing.assert_array_equal(cell_type, controller.solver.read_cell_type().T)
    assert np.any(cell_type == FLUID)

    particles = np.loadtxt(tmp_path / "particles.csv", delimiter=",", skiprows=1)
    assert particles.shape == (200, 2)
    terrain = np.loadtxt(tmp_path / "terrain.csv", delimiter=",", skiprows=1)
    assert terrain.shape == (1024, 4)
    assert (tmp_path / "terrain.csv").read_text().splitlines()[0] == "Index,Height,NormalX,NormalY"


def test_torch_import_export(make_simulator):
    positions = lattice(0.3, 0.7, 0.3, 0.7, 8, 8)
    sim = make_simulator(positions)

    x = sim.export_particle_x_to_torch()
    assert x.shape == (64, 2)
    np.testing.assert_allclose(x.cpu().numpy(), positions)

    moved = torch.from_numpy(positions + 0.05)
    sim.import_particle_x_from_torch(moved)
    sim.import_particle_v_from_torch(torch.ones(64, 2))
    np.testing.assert_allclose(sim.read_positions(), positions + 0.05, atol=1e-6)
    np.testing.assert_allclose(sim.read_velocities(), 1.0)

    # the recorded stages keep reading the imported buffers
    run_stages(sim, "cell_setup")
    cells = sim.export_cells_to_torch(FLUID).numpy()
    assert np.all(cells.min(axis=0) > 0.3)


def test_bad_positions_are_setup_errors(make_simulator):
    with pytest.raises(SimulationSetupError):
        make_simulator(np.zeros((10, 3)))
    with pytest.raises(SimulationSetupError):
        make_simulator(np.zeros((10, 2)), np.zeros((9, 2)))


def test_invalid_simulator_refuses_to_step(make_simulator):
    sim = make_simulator(lattice(0.3, 0.7, 0.3, 0.7, 4, 4), pcg_max_iterations=5)
    sim.valid = False
    with pytest.raises(StepFailedError):
        sim.step()


def test_submit_error_invalidates_simulator(make_simulator, monkeypatch):
    sim = make_simulator(lattice(0.3, 0.7, 0.3, 0.7, 4, 4), pcg_max_iterations=5)
    sim.step()

    def lost():
        raise RuntimeError("device lost")

    monkeypatch.setattr(sim.step_batch, "submit", lost)
    with pytest.raises(StepFailedError, match="device lost"):
        sim.step()
    assert sim.valid is False
    assert sim.frame == 1

    monkeypatch.undo()
    with pytest.raises(StepFailedError, match="reset required"):
        sim.step()
    assert sim.frame == 1


def test_scene_frame_limit_stops_the_run(controller):
    controller.reconfigure(max_frames=3)
    assert controller.max_frames == 3
    assert controller.run(10) == 3
    assert controller.paused and not controller.failed
    assert controller.status == "Stopped at frame 3 (max frames)"
    assert controller.solver.frame == 3

    controller.resume()
    assert controller.paused
    assert not controller.step()
    assert controller.current_frame == 3


def test_set_max_frames_extends_and_removes_the_limit(controller):
    controller.set_max_frames(2)
    assert controller.run(10) == 2
    assert controller.status == "Stopped at frame 2 (max frames)"

    controller.set_max_frames(4)
    controller.resume()
    assert not controller.paused
    assert controller.run(10) == 4

    controller.set_max_frames(None)
    controller.resume()
    assert controller.run(2) == 6
    assert controller.status == "Frame 6"

    with pytest.raises(ValueError):
        controller.set_max_frames(0)


def test_frame_limit_cuts_a_multi_frame_output(controller):
    controller.reconfigure(frames_per_output=4, max_frames=6)
    assert controller.step()
    assert controller.current_frame == 4
    assert controller.step()
    assert controller.current_frame == 6
    assert controller.status == "Stopped at frame 6 (max frames)"


def test_density_is_reported_per_cell(controller):
    controller.step()
    density = controller.get_density()
    cell_type = controller.solver.read_cell_type()
    assert density.shape == controller.solver.config.cell_shape
    assert np.all(np.isfinite(density)) and np.all(density >= 0.0)
    assert density[cell_type == FLUID].mean() > 1.0
    assert np.all(density[cell_type == SOLID] < 1e-6)


def test_reset_keeps_the_frame_limit(controller):
    controller.set_max_frames(2)
    controller.run(5)
    controller.reset()
    assert controller.max_frames == 2
    assert not controller.paused
    assert controller.run(5) == 2
