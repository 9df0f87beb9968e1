"""
Initial particle layouts inside an axis-aligned 2D box.

Every sampler takes (n_points, center, size, k) and returns exactly n_points
positions as an (n_points, 2) array. The meaning of k depends on the sampler.
"""
from math import ceil, sqrt

import numpy as np


def box_bounds(center, size):
    center = np.asarray(center, dtype=float)
    size = np.asarray(size, dtype=float)
    return center - 0.5 * size, center + 0.5 * size


def grid_shape(n_points, size):
    """Columns and rows of a lattice holding at least n_points with roughly square spacing."""
    aspect = float(size[0]) / float(size[1])
    columns = max(1, int(ceil(sqrt(n_points * aspect))))
    rows = int(ceil(n_points / columns))
    return columns, rows


def sample_grid(n_points, center, size, k=30):
    """
    Lattice-centre samples filled row by row from the bottom; the top row may be partial.
    k is ignored.
    """
    lo, hi = box_bounds(center, size)
    columns, rows = grid_shape(n_points, hi - lo)
    spacing = (hi - lo) / np.array([columns, rows], dtype=float)

    xs = lo[0] + (np.arange(columns) + 0.5) * spacing[0]
    ys = lo[1] + (np.arange(rows) + 0.5) * spacing[1]
    xx, yy = np.meshgrid(xs, ys, indexing="xy")
    return np.column_stack([xx.ravel(), yy.ravel()])[:n_points]


def sample_jittered_grid(n_points, center, size, k=30):
    """
    sample_grid with each point displaced by up to k percent of the lattice spacing.

    The jitter is seeded with k, so a scene always starts from the same layout.
    Points are clipped back into the box.
    """
    lo, hi = box_bounds(center, size)
    spacing = (hi - lo) / np.array(grid_shape(n_points, hi - lo), dtype=float)
    half_width = 0.5 * (k / 100.0) * spacing

    rng = np.random.default_rng(k)
    points = sample_grid(n_points, center, size)
    points = points + rng.uniform(-half_width, half_width, size=points.shape)
    return np.clip(points, lo, hi)


def sample_random(n_points, center, size, k=30):
    """Uniform samples in the box, seeded with k."""
    lo, hi = box_bounds(center, size)
    rng = np.random.default_rng(k)
    return rng.uniform(lo, hi, size=(n_points, 2))
