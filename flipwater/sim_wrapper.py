import logging

import warp as wp

from flipwater.errors import StepFailedError
from flipwater.simulator import FlipSimulator
from flipwater.utils import *
from flipwater.utils.structs import FLUID, SOLID

logger = logging.getLogger(__name__)

SAMPLERS = {
    "grid": sample_grid,
    "jittered_grid": sample_jittered_grid,
    "random": sample_random,
}


def default_scene():
    scene = Scene(grid_size_x=128, grid_size_y=128, length_x=8.0, length_y=8.0)
    scene.initial_particles = {
        "n_particles": 32768,
        "center": [2.0, 4.5],
        "size": [3.5, 6.0],
        "sampling_type": "jittered_grid",
        "k": 30
    }
    return scene


def sample_particles(init):
    sampler = SAMPLERS[init.get("sampling_type", "grid")]
    return sampler(init["n_particles"], init["center"], init["size"], init.get("k", 30))


class SimulationController:
    """
    Run loop around FlipSimulator.

    Owns the pause state: a failed step is logged with its frame index, the
    run loop pauses and the last good positions stay available for rendering.
    There is no retry; reset() rebuilds every device resource.
    """

    def __init__(self, scene=None, scene_file=None, device="cuda:0"):
        """
        Args:
            scene: Scene object to use (if provided)
            scene_file: Path to JSON scene file (if provided, scene is ignored)
            device: Device to use for simulation (default: "cuda:0")
        """
        self.device = device
        if scene_file:
            self.scene = Scene.from_json(scene_file)
        elif scene:
            self.scene = scene
        else:
            self.scene = default_scene()
        self.solver = None
        self.load_scene(self.scene)

    def load_scene(self, scene):
        if not scene.initial_particles:
            raise ValueError("scene has no initial_particles")
        if scene.terrain_file:
            terrain = TerrainProfile.from_csv(scene.terrain_file, scene.length_x, scene.length_y, scene.terrain_scale)
        else:
            terrain = TerrainProfile.flat(scene.length_x)
        positions = sample_particles(scene.initial_particles)
        if self.solver is None:
            self.solver = FlipSimulator(scene, positions, terrain=terrain, device=self.device)
        else:
            self.solver.load_from_array(scene, positions, terrain=terrain)
        self.scene = scene
        self.current_frame = 0
        self.max_frames = scene.max_frames
        self.paused = False
        self.failed = False
        self.status = "Ready"
        self.last_positions = self.solver.read_positions()

    def reset(self):
        """Rebuild from the current scene, a limit set through set_max_frames survives."""
        logger.info("Resetting simulation")
        max_frames = self.max_frames
        self.load_scene(self.scene)
        self.max_frames = max_frames

    def reconfigure(self, **changes):
        """Rebuild everything with some scene options replaced."""
        data = self.scene.to_dict()
        data.update(changes)
        self.load_scene(Scene.from_dict(data))

    def set_max_frames(self, frames):
        """Stop the run loop once current_frame reaches `frames`, None removes the limit."""
        if frames is not None and frames < 1:
            raise ValueError(f"max_frames must be >= 1 or None, got {frames}")
        self.max_frames = frames
        logger.info("Max frames set to %s", frames)

    def reached_max_frames(self):
        return self.max_frames is not None and self.current_frame >= self.max_frames

    def pause(self):
        self.paused = True

    def resume(self):
        if self.failed:
            logger.warning("Simulation failed at frame %d, reset before resuming", self.current_frame)
            return
        if self.reached_max_frames():
            logger.warning("Frame limit %d reached, raise it or reset before resuming", self.max_frames)
            return
        self.paused = False

    def step(self):
        """
        Advance frames_per_output steps, fewer if the frame limit is hit first.

        Returns False once the run has failed or when no step could run because
        the frame limit was already reached.
        """
        if self.failed:
            return False
        if self.reached_max_frames():
            self.stop_at_limit()
            return False
        for i in range(self.scene.frames_per_output):
            if self.reached_max_frames():
                break
            try:
                self.solver.step()
            except StepFailedError:
                logger.exception("Error at frame %d", self.current_frame)
                self.failed = True
                self.paused = True
                self.status = f"Error at frame {self.current_frame}"
                return False
            self.current_frame += 1
        wp.synchronize_device(self.solver.device)
        self.last_positions = self.solver.export_particle_x_to_torch().cpu().numpy().copy()
        self.status = f"Frame {self.current_frame}"
        if self.reached_max_frames():
            self.stop_at_limit()
        return True

    def stop_at_limit(self):
        self.paused = True
        self.status = f"Stopped at frame {self.current_frame} (max frames)"
        logger.info("Simulation stopped at frame %d (max frames)", self.current_frame)

    def run(self, num_steps):
        """Headless loop, stops early on pause or failure."""
        for _ in range(num_steps):
            if self.paused or not self.step():
                break
        return self.current_frame

    def get_positions(self):
        return self.last_positions

    def get_density(self):
        return self.solver.read_density()

    def get_fluid_cells(self):
        return self.solver.export_cells_to_torch(FLUID).cpu().numpy()

    def get_solid_cells(self):
        return self.solver.export_cells_to_torch(SOLID).cpu().numpy()

    def get_residual_norms(self):
        return self.solver.read_residual_norms()

    def save_state(self, out_dir, include_particles=False, include_terrain=False):
        return save_state(self.solver, out_dir, include_particles, include_terrain)
