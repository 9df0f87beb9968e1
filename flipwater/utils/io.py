"""
Flat CSV dumps of solver state for offline inspection. Not a checkpoint format.
"""
import logging
import os

import numpy as np

logger = logging.getLogger(__name__)


def grid_rows(field):
    """Row-major rows of a cell field indexed [i, j]: one row per y, x across."""
    return np.asarray(field).T


def save_state(simulator, out_dir, include_particles=False, include_terrain=False):
    """
    Write cellType.csv and volumeFractions.csv, optionally particles.csv and terrain.csv.

    Reads the buffers back from the device, so only call this between steps.
    Returns the list of written paths.
    """
    os.makedirs(out_dir, exist_ok=True)
    written = []

    path = os.path.join(out_dir, "cellType.csv")
    np.savetxt(path, grid_rows(simulator.read_cell_type()), fmt="%d", delimiter=",")
    written.append(path)

    path = os.path.join(out_dir, "volumeFractions.csv")
    np.savetxt(path, grid_rows(simulator.read_volume_fraction()), fmt="%.6g", delimiter=",")
    written.append(path)

    if include_particles:
        path = os.path.join(out_dir, "particles.csv")
        np.savetxt(path, simulator.read_positions(), fmt="%.6g", delimiter=",", header="x,y", comments="")
        written.append(path)

    if include_terrain:
        terrain = simulator.terrain_profile
        table = np.column_stack([np.arange(terrain.count), terrain.heights, terrain.normals])
        path = os.path.join(out_dir, "terrain.csv")
        np.savetxt(path, table, fmt=["%d", "%.6g", "%.6g", "%.6g"], delimiter=",",
                   header="Index,Height,NormalX,NormalY", comments="")
        written.append(path)

    logger.info("Saved frame %d state to %s", simulator.frame, out_dir)
    return written
