"""
1-D terrain height field: raw control points over [0, length_x] with per-point normals.
"""
import logging

import numpy as np
import warp as wp

from flipwater.utils.structs import TerrainStruct

logger = logging.getLogger(__name__)

FALLBACK_TERRAIN_COUNT = 1024


def compute_terrain_normals(heights, length_x):
    """Unit normals (-slope, 1) from one-sided differences at the ends and central ones inside."""
    heights = np.asarray(heights, dtype=np.float64)
    spacing = length_x / (len(heights) - 1)
    slope = np.gradient(heights, spacing)
    normals = np.stack([-slope, np.ones_like(slope)], axis=1)
    return normals / np.linalg.norm(normals, axis=1, keepdims=True)


class TerrainProfile:
    """Read-only height/normal samples, interpolated linearly between control points on demand."""

    def __init__(self, heights, length_x):
        heights = np.asarray(heights, dtype=np.float32).reshape(-1)
        if heights.shape[0] < 2:
            raise ValueError(f"terrain needs at least two control points, got {heights.shape[0]}")
        if not np.all(np.isfinite(heights)):
            raise ValueError("terrain heights must be finite")
        self.heights = heights
        self.length_x = float(length_x)
        self.spacing = self.length_x / (heights.shape[0] - 1)
        self.normals = compute_terrain_normals(heights, self.length_x).astype(np.float32)

    @classmethod
    def flat(cls, length_x, count=FALLBACK_TERRAIN_COUNT):
        return cls(np.zeros(count, dtype=np.float32), length_x)

    @classmethod
    def from_csv(cls, filepath, length_x, length_y, scale=0.5):
        """
        Load one height per line, heights are fractions of length_y scaled by `scale`.

        Missing or malformed data falls back to flat ground at height 0 with a warning.
        """
        try:
            raw = np.loadtxt(filepath, dtype=np.float64, delimiter=",", ndmin=1)
            if raw.ndim > 1:
                raw = raw[:, 0]
            return cls(raw * scale * length_y, length_x)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load terrain from %s (%s), using flat ground", filepath, e)
            return cls.flat(length_x)

    @property
    def count(self):
        return self.heights.shape[0]

    def sample(self, x):
        """Height and unit normal at world x, clamped to the terrain ends."""
        t = np.clip(np.asarray(x, dtype=np.float64) / self.spacing, 0.0, self.count - 1)
        k = np.minimum(np.floor(t).astype(np.int64), self.count - 2)
        f = t - k
        height = (1.0 - f) * self.heights[k] + f * self.heights[k + 1]
        normal = (1.0 - f)[..., None] * self.normals[k] + f[..., None] * self.normals[k + 1]
        normal = normal / np.linalg.norm(normal, axis=-1, keepdims=True)
        return height, normal

    def to_struct(self, device):
        terrain = TerrainStruct()
        terrain.heights = wp.array(self.heights, dtype=float, device=device)
        terrain.normals = wp.array(self.normals, dtype=wp.vec2, device=device)
        terrain.spacing = self.spacing
        terrain.count = self.count
        return terrain
