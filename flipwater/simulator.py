import logging

import numpy as np
import torch
import warp as wp

from flipwater.backend import ComputeBackend
from flipwater.errors import SimulationSetupError, StepFailedError
from flipwater.kernels import build_kernel_registry
from flipwater.linear_solver import PCGSolver
from flipwater.spatial_hash import SpatialHash
from flipwater.utils.common import torch2warp_vec2
from flipwater.utils.config import SolverConfig
from flipwater.utils.double_buffer import DoubleBuffer
from flipwater.utils.structs import *
from flipwater.utils.terrain import TerrainProfile

logger = logging.getLogger(__name__)

EXTENSION_PASSES = 3
SOLID_PADDING = 1

# slots of residual_norms
DENSITY_RESIDUAL = 0
PRESSURE_RESIDUAL = 1


class FlipSimulator:
    """
    2-D PIC/FLIP liquid solver with a density constraint projection.

    All device state is allocated once per configuration. The whole step is
    recorded once into a CommandBatch and replayed by step(); nothing is read
    back from the device while a step runs.
    """

    def __init__(self, scene, positions, velocities=None, terrain=None, device="cuda:0"):
        self.backend = ComputeBackend(build_kernel_registry(), device)
        self.device = self.backend.device
        self.load_from_array(scene, positions, velocities, terrain)

    def load_from_array(self, scene, positions, velocities=None, terrain=None):
        """Tear down and rebuild every device resource for `scene` and the given particles."""
        positions = np.asarray(positions, dtype=np.float32)
        if positions.ndim != 2 or positions.shape[1] != 2:
            raise SimulationSetupError(f"positions must have shape (n, 2), got {positions.shape}")
        if velocities is None:
            velocities = np.zeros_like(positions)
        velocities = np.asarray(velocities, dtype=np.float32)
        if velocities.shape != positions.shape:
            raise SimulationSetupError(
                f"velocities must match positions: {velocities.shape} vs {positions.shape}"
            )
        try:
            scene.validate()
            self.config = SolverConfig(scene, positions.shape[0])
        except ValueError as e:
            raise SimulationSetupError(f"invalid configuration: {e}") from e

        self.scene = scene
        self.n_particles = self.config.n_particles
        self.terrain_profile = terrain if terrain is not None else TerrainProfile.flat(scene.length_x)
        self.terrain = self.terrain_profile.to_struct(self.device)
        self.model = self._build_model()

        self.particles = DoubleBuffer(
            self._allocate_particles(), self._allocate_particles(), fields=("particle_x", "particle_v")
        )
        self.backend.write_buffer(self.particles.primary.particle_x, positions)
        self.backend.write_buffer(self.particles.primary.particle_v, velocities)

        self.grid = self._allocate_grid()
        self.spatial_hash = SpatialHash(self.backend, self.config)
        self.solver = PCGSolver(self.backend, self.config, self.grid, self.model)
        self.residual_norms = self.backend.create_buffer(2, dtype=float)

        self.frame = 0
        self.time = 0.0
        self.valid = True
        self.step_batch = self.build_step()

        logger.info(
            "Simulator initialized: %d particles, %dx%d grid, %d commands per step",
            self.n_particles, self.config.grid_size_x, self.config.grid_size_y, len(self.step_batch),
        )

    def _build_model(self):
        scene = self.scene
        config = self.config
        model = ModelStruct()
        model.grid_dim_x = config.grid_size_x
        model.grid_dim_y = config.grid_size_y
        model.length_x = scene.length_x
        model.length_y = scene.length_y
        model.dx = config.dx
        model.dy = config.dy
        model.inv_dx = config.inv_dx
        model.inv_dy = config.inv_dy
        model.min_distance = config.min_distance
        model.particle_radius = config.particle_radius
        model.max_correction = config.max_correction
        model.dt = scene.dt
        model.gravitational_acceleration = wp.vec2(scene.gravity[0], scene.gravity[1])
        model.viscosity = scene.viscosity
        model.fluid_density = scene.fluid_density
        model.target_density = scene.target_density
        model.pressure_stiffness = scene.pressure_stiffness
        model.density_correction_strength = scene.density_correction_strength
        model.pic_flip_ratio = scene.pic_flip_ratio
        model.normal_restitution = scene.normal_restitution
        model.tangent_restitution = scene.tangent_restitution
        return model

    def _allocate_particles(self):
        particles = ParticleStruct()
        particles.particle_x = self.backend.create_buffer(self.n_particles, dtype=wp.vec2)
        particles.particle_v = self.backend.create_buffer(self.n_particles, dtype=wp.vec2)
        return particles

    def _allocate_grid(self):
        config = self.config
        create = self.backend.create_buffer
        grid = GridStruct()
        grid.cell_type = create(config.cell_shape, dtype=int)
        grid.volume_fraction = create(config.cell_shape, dtype=float)
        grid.density = create(config.cell_shape, dtype=float)
        grid.density_rhs = create(config.cell_shape, dtype=float)
        grid.density_pressure = create(config.cell_shape, dtype=float)
        grid.divergence = create(config.cell_shape, dtype=float)
        grid.pressure_rhs = create(config.cell_shape, dtype=float)
        grid.pressure = create(config.cell_shape, dtype=float)

        grid.grid_u = create(config.u_shape, dtype=float)
        grid.grid_u_prev = create(config.u_shape, dtype=float)
        grid.grid_u_mask = create(config.u_shape, dtype=int)
        grid.grid_u_temp = create(config.u_shape, dtype=float)
        grid.correction_u = create(config.u_shape, dtype=float)

        grid.grid_v = create(config.v_shape, dtype=float)
        grid.grid_v_prev = create(config.v_shape, dtype=float)
        grid.grid_v_mask = create(config.v_shape, dtype=int)
        grid.grid_v_temp = create(config.v_shape, dtype=float)
        grid.correction_v = create(config.v_shape, dtype=float)
        return grid

    # stages, each appends its dispatches to `batch` in execution order

    def record_cell_setup(self, batch):
        # cleared to AIR, then terrain fractions, solids, liquid
        batch.clear(self.grid.cell_type)
        batch.dispatch(
            "mark_fluid_fractions", self.config.cell_shape,
            grid=self.grid, model=self.model, terrain=self.terrain,
        )
        batch.dispatch(
            "mark_solid", self.config.cell_shape,
            grid=self.grid, model=self.model, padding=SOLID_PADDING,
        )
        batch.dispatch(
            "mark_liquid", self.n_particles,
            particles=self.particles.primary, grid=self.grid, model=self.model,
        )

    def record_spatial_hash(self, batch):
        self.spatial_hash.record(batch, self.particles.primary, self.model)

    def record_push_apart(self, batch):
        for _ in range(self.scene.push_apart_steps):
            batch.dispatch(
                "push_particles_apart", self.n_particles,
                src=self.particles.current, dst=self.particles.other,
                index=self.spatial_hash.index, model=self.model, terrain=self.terrain,
            )
            self.particles.swap()
        self.particles.settle(batch)

    def record_density(self, batch):
        batch.dispatch(
            "compute_density", self.config.cell_shape,
            particles=self.particles.primary, grid=self.grid,
            index=self.spatial_hash.index, model=self.model,
        )

    def record_density_projection(self, batch):
        batch.dispatch("compute_density_rhs", self.config.cell_shape, grid=self.grid, model=self.model)
        self.solver.record_solve(
            batch, self.grid.density_rhs, self.grid.density_pressure,
            residual_norms=self.residual_norms, residual_slot=DENSITY_RESIDUAL,
        )
        batch.dispatch("compute_correction_u", self.config.u_shape, grid=self.grid, model=self.model)
        batch.dispatch("compute_correction_v", self.config.v_shape, grid=self.grid, model=self.model)
        batch.dispatch(
            "apply_position_correction", self.n_particles,
            particles=self.particles.primary, grid=self.grid, model=self.model, terrain=self.terrain,
        )

    def record_grid_transfer(self, batch):
        index = self.spatial_hash.index
        particles = self.particles.primary
        batch.dispatch("p2g_u", self.config.u_shape, particles=particles, grid=self.grid, index=index, model=self.model)
        batch.dispatch("p2g_v", self.config.v_shape, particles=particles, grid=self.grid, index=index, model=self.model)

    def record_velocity_extension(self, batch):
        for extension_pass in range(1, EXTENSION_PASSES + 1):
            batch.dispatch("extend_velocity_u", self.config.u_shape, grid=self.grid, extension_pass=extension_pass)
            batch.dispatch("extend_velocity_v", self.config.v_shape, grid=self.grid, extension_pass=extension_pass)
        # FLIP reference velocities, taken before forces and pressure change the grid
        batch.copy(self.grid.grid_u_prev, self.grid.grid_u)
        batch.copy(self.grid.grid_v_prev, self.grid.grid_v)

    def record_forces(self, batch):
        if self.scene.viscosity > 0.0:
            batch.copy(self.grid.grid_u_temp, self.grid.grid_u)
            batch.copy(self.grid.grid_v_temp, self.grid.grid_v)
            batch.dispatch("diffuse_velocity_u", self.config.u_shape, grid=self.grid, model=self.model)
            batch.dispatch("diffuse_velocity_v", self.config.v_shape, grid=self.grid, model=self.model)
        batch.dispatch("add_acceleration_and_dirichlet_u", self.config.u_shape, grid=self.grid, model=self.model)
        batch.dispatch("add_acceleration_and_dirichlet_v", self.config.v_shape, grid=self.grid, model=self.model)

    def record_divergence(self, batch):
        batch.dispatch("compute_divergence", self.config.cell_shape, grid=self.grid, model=self.model)

    def record_pressure_projection(self, batch):
        self.record_divergence(batch)
        batch.dispatch("compute_pressure_rhs", self.config.cell_shape, grid=self.grid, model=self.model)
        self.solver.record_solve(
            batch, self.grid.pressure_rhs, self.grid.pressure,
            residual_norms=self.residual_norms, residual_slot=PRESSURE_RESIDUAL,
        )
        batch.dispatch("apply_pressure_u", self.config.u_shape, grid=self.grid, model=self.model)
        batch.dispatch("apply_pressure_v", self.config.v_shape, grid=self.grid, model=self.model)

    def record_grid_to_particle(self, batch):
        batch.dispatch(
            "g2p", self.n_particles,
            particles=self.particles.primary, grid=self.grid, model=self.model,
        )

    def record_advection(self, batch):
        batch.dispatch(
            "advect_particles", self.n_particles,
            src=self.particles.current, dst=self.particles.other, model=self.model, terrain=self.terrain,
        )
        self.particles.swap()
        self.particles.settle(batch)

    def build_step(self):
        batch = self.backend.new_batch("step")
        self.record_cell_setup(batch)
        self.record_spatial_hash(batch)
        self.record_push_apart(batch)
        self.record_density(batch)
        self.record_density_projection(batch)
        self.record_grid_transfer(batch)
        self.record_velocity_extension(batch)
        self.record_forces(batch)
        self.record_pressure_projection(batch)
        self.record_grid_to_particle(batch)
        self.record_advection(batch)
        return batch

    def step(self):
        """Submit one step. Raises StepFailedError, after which the simulator must be rebuilt."""
        if not self.valid:
            raise StepFailedError(self.frame, "simulator state is invalid, reset required")
        try:
            if self.scene.use_cuda_graph and self.step_batch.graph is None and self.device.is_cuda:
                self.step_batch.capture()
            self.step_batch.submit()
        except RuntimeError as e:
            self.valid = False
            raise StepFailedError(self.frame, e) from e
        self.frame += 1
        self.time = self.time + self.scene.dt

    # readback, synchronizes with the device

    def read_positions(self):
        return self.backend.read_buffer(self.particles.primary.particle_x)

    def read_velocities(self):
        return self.backend.read_buffer(self.particles.primary.particle_v)

    def read_cell_type(self):
        return self.backend.read_buffer(self.grid.cell_type)

    def read_volume_fraction(self):
        return self.backend.read_buffer(self.grid.volume_fraction)

    def read_density(self):
        return self.backend.read_buffer(self.grid.density)

    def read_residual_norms(self):
        norms = self.backend.read_buffer(self.residual_norms)
        return {"density": float(norms[DENSITY_RESIDUAL]), "pressure": float(norms[PRESSURE_RESIDUAL])}

    def export_particle_x_to_torch(self):
        return wp.to_torch(self.particles.primary.particle_x)

    def export_particle_v_to_torch(self):
        return wp.to_torch(self.particles.primary.particle_v)

    # copies into the existing buffers, the recorded step keeps pointing at them
    def import_particle_x_from_torch(self, tensor_x):
        if tensor_x is not None:
            wp.copy(self.particles.primary.particle_x, torch2warp_vec2(tensor_x.detach()))

    def import_particle_v_from_torch(self, tensor_v):
        if tensor_v is not None:
            wp.copy(self.particles.primary.particle_v, torch2warp_vec2(tensor_v.detach()))

    def export_cells_to_torch(self, cell_type=FLUID):
        """
        World positions of all cells of the given type as a (N, 2) torch tensor.
        Cell centers are at ((i + 0.5) * dx, (j + 0.5) * dy).
        """
        indices = np.where(self.read_cell_type() == cell_type)
        positions = np.zeros((len(indices[0]), 2), dtype=np.float32)
        positions[:, 0] = (indices[0] + 0.5) * self.config.dx
        positions[:, 1] = (indices[1] + 0.5) * self.config.dy
        return torch.from_numpy(positions)
