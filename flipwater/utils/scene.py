"""
Scene data structure for managing grid resolution, physical constants and solver settings.
"""
import json
from typing import List, Dict, Optional


SAMPLING_TYPES = ("grid", "jittered_grid", "random")


class Scene:
    """Scene data structure containing simulation parameters and the initial particle block."""

    def __init__(self, grid_size_x: int = 256, grid_size_y: int = 256,
                 length_x: float = 8.0, length_y: float = 8.0,
                 dt: float = 1.0 / 60.0,
                 gravity: Optional[List[float]] = None,
                 initial_particles: Optional[Dict] = None,
                 push_apart_steps: int = 4,
                 pcg_max_iterations: int = 100,
                 pcg_tolerance: float = 1e-5,
                 pressure_stiffness: float = 0.01,
                 viscosity: float = 0.0,
                 fluid_density: float = 1.0,
                 target_density: float = 4.0,
                 density_correction_strength: float = 1.0,
                 pic_flip_ratio: float = 0.95,
                 normal_restitution: float = 0.1,
                 tangent_restitution: float = 0.8,
                 terrain_file: Optional[str] = None,
                 terrain_scale: float = 0.5,
                 frames_per_output: int = 1,
                 max_frames: Optional[int] = None,
                 use_cuda_graph: bool = True):
        """
        Initialize a scene.

        Args:
            grid_size_x, grid_size_y: Grid resolution in cells
            length_x, length_y: World extent of the domain
            dt: Fixed time step size
            gravity: Gravity vector [x, y]
            initial_particles: Dict with keys: n_particles, center, size, sampling_type, k
            push_apart_steps: Number of overlap resolution substeps per step
            pcg_max_iterations: Iteration count of each linear solve (capped at 500)
            pcg_tolerance: Relative residual at which the solver stops updating
            pressure_stiffness: Scale of the density constraint right hand side
            viscosity: Kinematic viscosity, 0 disables the diffusion pass
            fluid_density: Density used to scale the pressure solve
            target_density: Rest density in particles per cell
            density_correction_strength: Scale of the position correction
            pic_flip_ratio: 0.0 = pure PIC, 1.0 = pure FLIP
            normal_restitution: Bounce of the velocity component along the terrain normal
            tangent_restitution: Fraction of the tangential velocity kept on contact
            terrain_file: Optional CSV file with terrain heights
            terrain_scale: Heights are scaled by terrain_scale * length_y
            frames_per_output: Number of simulation steps run per rendered frame
            max_frames: The run loop stops once this many steps have run, None for no limit
            use_cuda_graph: Replay the recorded step as a CUDA graph when running on a GPU
        """
        self.grid_size_x = grid_size_x
        self.grid_size_y = grid_size_y
        self.length_x = length_x
        self.length_y = length_y
        self.dt = dt
        self.gravity = gravity if gravity is not None else [0.0, -9.81]

        # Solver parameters
        self.push_apart_steps = push_apart_steps
        self.pcg_max_iterations = pcg_max_iterations
        self.pcg_tolerance = pcg_tolerance
        self.pressure_stiffness = pressure_stiffness

        # Physical constants
        self.viscosity = viscosity
        self.fluid_density = fluid_density
        self.target_density = target_density
        self.density_correction_strength = density_correction_strength
        self.pic_flip_ratio = pic_flip_ratio
        self.normal_restitution = normal_restitution
        self.tangent_restitution = tangent_restitution

        self.terrain_file = terrain_file
        self.terrain_scale = terrain_scale
        self.frames_per_output = frames_per_output
        self.max_frames = max_frames
        self.use_cuda_graph = use_cuda_graph

        # Initial particles (sampled once, the count never changes afterwards)
        self.initial_particles = initial_particles

        self.validate()

    def validate(self):
        """Raise ValueError for settings the solver cannot run with."""
        if self.grid_size_x < 3 or self.grid_size_y < 3:
            raise ValueError(f"grid must be at least 3x3 cells, got {self.grid_size_x}x{self.grid_size_y}")
        if self.length_x <= 0.0 or self.length_y <= 0.0:
            raise ValueError(f"world extent must be positive, got {self.length_x}x{self.length_y}")
        if self.dt <= 0.0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if len(self.gravity) != 2:
            raise ValueError(f"gravity must be [x, y], got {self.gravity}")
        if self.push_apart_steps < 0:
            raise ValueError(f"push_apart_steps must be >= 0, got {self.push_apart_steps}")
        if self.pcg_max_iterations < 1:
            raise ValueError(f"pcg_max_iterations must be >= 1, got {self.pcg_max_iterations}")
        if not 0.0 <= self.pic_flip_ratio <= 1.0:
            raise ValueError(f"pic_flip_ratio must be in [0, 1], got {self.pic_flip_ratio}")
        if self.fluid_density <= 0.0:
            raise ValueError(f"fluid_density must be positive, got {self.fluid_density}")
        if self.viscosity < 0.0:
            raise ValueError(f"viscosity must be >= 0, got {self.viscosity}")
        if self.frames_per_output < 1:
            raise ValueError(f"frames_per_output must be >= 1, got {self.frames_per_output}")
        if self.max_frames is not None and self.max_frames < 1:
            raise ValueError(f"max_frames must be >= 1 or None, got {self.max_frames}")
        if self.initial_particles:
            sampling_type = self.initial_particles.get("sampling_type", "grid")
            if sampling_type not in SAMPLING_TYPES:
                raise ValueError(f"Unknown sampling_type: {sampling_type}. Must be one of: {', '.join(SAMPLING_TYPES)}")
            if self.initial_particles.get("n_particles", 0) < 1:
                raise ValueError("initial_particles needs n_particles >= 1")

    def to_dict(self) -> Dict:
        """Convert scene to dictionary for JSON serialization."""
        return {
            "grid_size_x": self.grid_size_x,
            "grid_size_y": self.grid_size_y,
            "length_x": self.length_x,
            "length_y": self.length_y,
            "dt": self.dt,
            "gravity": list(self.gravity),
            "push_apart_steps": self.push_apart_steps,
            "pcg_max_iterations": self.pcg_max_iterations,
            "pcg_tolerance": self.pcg_tolerance,
            "pressure_stiffness": self.pressure_stiffness,
            "viscosity": self.viscosity,
            "fluid_density": self.fluid_density,
            "target_density": self.target_density,
            "density_correction_strength": self.density_correction_strength,
            "pic_flip_ratio": self.pic_flip_ratio,
            "normal_restitution": self.normal_restitution,
            "tangent_restitution": self.tangent_restitution,
            "terrain_file": self.terrain_file,
            "terrain_scale": self.terrain_scale,
            "frames_per_output": self.frames_per_output,
            "max_frames": self.max_frames,
            "use_cuda_graph": self.use_cuda_graph,
            "initial_particles": self.initial_particles,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Scene':
        """Create scene from dictionary, missing keys take the defaults."""
        known = cls().to_dict()
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown scene keys: {', '.join(sorted(unknown))}")
        merged = dict(known)
        merged.update(data)
        return cls(**merged)

    @classmethod
    def from_json(cls, filepath: str) -> 'Scene':
        """Load scene from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_json(self, filepath: str):
        """Save scene to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
