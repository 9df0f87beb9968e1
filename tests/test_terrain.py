import logging

import numpy as np
import pytest

from flipwater.utils.terrain import TerrainProfile, compute_terrain_normals


def test_flat_terrain():
    terrain = TerrainProfile.flat(8.0)
    assert terrain.count == 1024
    assert np.all(terrain.heights == 0.0)
    np.testing.assert_allclose(terrain.normals, np.tile([0.0, 1.0], (1024, 1)))


def test_slope_normals_point_up_and_away():
    heights = np.linspace(0.0, 1.0, 11)
    normals = compute_terrain_normals(heights, 1.0)
    expected = np.array([-1.0, 1.0]) / np.sqrt(2.0)
    np.testing.assert_allclose(normals, np.tile(expected, (11, 1)), atol=1e-12)


def test_sample_interpolates_and_clamps():
    terrain = TerrainProfile([0.0, 1.0, 0.0], 2.0)
    height, normal = terrain.sample(np.array([0.5, 1.0, -3.0, 5.0]))
    np.testing.assert_allclose(height, [0.5, 1.0, 0.0, 0.0], atol=1e-6)
    np.testing.assert_allclose(np.linalg.norm(normal, axis=-1), 1.0, atol=1e-6)
    assert normal[0, 0] < 0.0


def test_csv_heights_are_scaled(tmp_path):
    path = tmp_path / "hills.csv"
    path.write_text("0.0\n0.5\n1.0\n0.5\n")
    terrain = TerrainProfile.from_csv(str(path), length_x=3.0, length_y=4.0, scale=0.5)
    np.testing.assert_allclose(terrain.heights, [0.0, 1.0, 2.0, 1.0])
    assert terrain.spacing == pytest.approx(1.0)


def test_missing_file_falls_back_to_flat_ground(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="flipwater.utils.terrain"):
        terrain = TerrainProfile.from_csv(str(tmp_path / "missing.csv"), 8.0, 8.0)
    assert terrain.count == 1024
    assert np.all(terrain.heights == 0.0)
    assert "using flat ground" in caplog.text


def test_malformed_file_falls_back_to_flat_ground(tmp_path, caplog):
    path = tmp_path / "broken.csv"
    path.write_text("0.1\nnot-a-number\n")
    with caplog.at_level(logging.WARNING, logger="flipwater.utils.terrain"):
        terrain = TerrainProfile.from_csv(str(path), 8.0, 8.0)
    assert np.all(terrain.heights == 0.0)
    assert "broken.csv" in caplog.text


def test_terrain_needs_two_points():
    with pytest.raises(ValueError):
        TerrainProfile([1.0], 1.0)
