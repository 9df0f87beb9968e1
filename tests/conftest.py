import numpy as np
import pytest
import warp as wp

from flipwater.simulator import FlipSimulator
from flipwater.utils.scene import Scene

wp.init()


@pytest.fixture(scope="session")
def device():
    return "cpu"


@pytest.fixture
def make_scene():
    def _make(**kwargs):
        settings = dict(grid_size_x=16, grid_size_y=16, length_x=1.0, length_y=1.0, use_cuda_graph=False)
        settings.update(kwargs)
        return Scene(**settings)
    return _make


@pytest.fixture
def make_simulator(device, make_scene):
    def _make(positions, velocities=None, terrain=None, **scene_kwargs):
        scene = make_scene(**scene_kwargs)
        return FlipSimulator(scene, np.asarray(positions, dtype=np.float32), velocities, terrain, device=device)
    return _make


def run_stages(sim, *stages):
    """Record and submit a partial step made of the named record_* stages."""
    batch = sim.backend.new_batch("test")
    for stage in stages:
        getattr(sim, "record_" + stage)(batch)
    batch.submit()
    return batch


def lattice(x0, x1, y0, y1, columns, rows):
    xs = x0 + (np.arange(columns) + 0.5) * (x1 - x0) / columns
    ys = y0 + (np.arange(rows) + 0.5) * (y1 - y0) / rows
    xx, yy = np.meshgrid(xs, ys, indexing="xy")
    return np.stack([xx.ravel(), yy.ravel()], axis=1).astype(np.float32)
