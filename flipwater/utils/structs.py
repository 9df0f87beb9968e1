import warp as wp

# cell types, same convention as the occupancy grid
SOLID = wp.constant(-1)
AIR = wp.constant(0)
FLUID = wp.constant(1)


@wp.struct
class ModelStruct:
    grid_dim_x: int
    grid_dim_y: int
    length_x: float
    length_y: float
    dx: float
    dy: float
    inv_dx: float
    inv_dy: float
    min_distance: float
    particle_radius: float
    max_correction: float
    dt: float
    gravitational_acceleration: wp.vec2
    viscosity: float
    fluid_density: float
    target_density: float
    pressure_stiffness: float
    density_correction_strength: float
    pic_flip_ratio: float
    normal_restitution: float
    tangent_restitution: float


@wp.struct
class ParticleStruct:
    particle_x: wp.array(dtype=wp.vec2)
    particle_v: wp.array(dtype=wp.vec2)


@wp.struct
class GridStruct:
    # cell centred
    cell_type: wp.array(dtype=int, ndim=2)
    volume_fraction: wp.array(dtype=float, ndim=2)
    density: wp.array(dtype=float, ndim=2)
    density_rhs: wp.array(dtype=float, ndim=2)
    density_pressure: wp.array(dtype=float, ndim=2)
    divergence: wp.array(dtype=float, ndim=2)
    pressure_rhs: wp.array(dtype=float, ndim=2)
    pressure: wp.array(dtype=float, ndim=2)

    # faces, u is (nx + 1, ny) and v is (nx, ny + 1)
    grid_u: wp.array(dtype=float, ndim=2)
    grid_v: wp.array(dtype=float, ndim=2)
    grid_u_prev: wp.array(dtype=float, ndim=2)
    grid_v_prev: wp.array(dtype=float, ndim=2)
    grid_u_mask: wp.array(dtype=int, ndim=2)
    grid_v_mask: wp.array(dtype=int, ndim=2)
    grid_u_temp: wp.array(dtype=float, ndim=2)
    grid_v_temp: wp.array(dtype=float, ndim=2)
    correction_u: wp.array(dtype=float, ndim=2)
    correction_v: wp.array(dtype=float, ndim=2)


@wp.struct
class IndexStruct:
    count_per_cell: wp.array(dtype=int)
    cell_start: wp.array(dtype=int)
    cell_cursor: wp.array(dtype=int)
    cell_particle_ids: wp.array(dtype=int)


@wp.struct
class TerrainStruct:
    heights: wp.array(dtype=float)
    normals: wp.array(dtype=wp.vec2)
    spacing: float
    count: int
