"""
Derived solver constants: grid/world conversion factors and dispatch sizes.
"""
import math

# prefix sum
WORKGROUP_SIZE = 256
ELEMENTS_PER_THREAD = 4
SCAN_BLOCK_SIZE = WORKGROUP_SIZE * ELEMENTS_PER_THREAD
SMALL_GRID_CELLS = 65536

# reductions
CELLS_PER_THREAD = 16

MAX_PCG_ITERATIONS = 500
MIN_DISTANCE_FACTOR = 0.9
PARTICLE_RADIUS_FACTOR = 0.3
MAX_CORRECTION_FACTOR = 0.25


class SolverConfig:
    """Values computed once from a Scene and shared by every stage of the step."""

    def __init__(self, scene, n_particles):
        if n_particles < 1:
            raise ValueError(f"need at least one particle, got {n_particles}")
        self.scene = scene
        self.n_particles = int(n_particles)

        self.grid_size_x = scene.grid_size_x
        self.grid_size_y = scene.grid_size_y
        self.number_of_cells = scene.grid_size_x * scene.grid_size_y

        self.dx = scene.length_x / scene.grid_size_x
        self.dy = scene.length_y / scene.grid_size_y
        self.inv_dx = scene.grid_size_x / scene.length_x
        self.inv_dy = scene.grid_size_y / scene.length_y

        self.min_distance = self.dx * MIN_DISTANCE_FACTOR
        self.particle_radius = min(self.dx, self.dy) * PARTICLE_RADIUS_FACTOR
        self.max_correction = min(self.dx, self.dy) * MAX_CORRECTION_FACTOR

        self.is_small_grid = self.number_of_cells < SMALL_GRID_CELLS
        self.scan_block_size = SCAN_BLOCK_SIZE
        self.scan_level_sizes = self._scan_levels(self.number_of_cells)

        self.pcg_workgroup_count = math.ceil(self.number_of_cells / (WORKGROUP_SIZE * CELLS_PER_THREAD))
        self.pcg_chunk = math.ceil(self.number_of_cells / self.pcg_workgroup_count)
        self.pcg_iterations = min(scene.pcg_max_iterations, MAX_PCG_ITERATIONS)

    def _scan_levels(self, n):
        # element counts of each level of the block-sum hierarchy, finest first
        sizes = [n]
        while sizes[-1] > self.scan_block_size:
            sizes.append(math.ceil(sizes[-1] / self.scan_block_size))
            if self.is_small_grid:
                break
        return sizes

    @property
    def cell_shape(self):
        return (self.grid_size_x, self.grid_size_y)

    @property
    def u_shape(self):
        return (self.grid_size_x + 1, self.grid_size_y)

    @property
    def v_shape(self):
        return (self.grid_size_x, self.grid_size_y + 1)
