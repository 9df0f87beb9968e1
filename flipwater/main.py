"""
Interactive viewer and headless runner for the liquid solver.
"""
import argparse
import logging

import numpy as np
import polyscope as ps
import polyscope.imgui as psim
import torch
import warp as wp

from flipwater.sim_wrapper import SimulationController
from flipwater.utils.structs import FLUID

logger = logging.getLogger(__name__)

sim = None

#Global variables for UI
simulating = False
scene_file_path = None
save_dir = "state"

# Point cloud point sizes
POINT_SIZE_PARTICLES = 0.004
POINT_SIZE_FLUID_CELLS = 0.006
POINT_SIZE_SOLID_CELLS = 0.006


#callback to run one simulation step
def simulation_step():
    global simulating
    if not sim.step() or sim.paused:
        simulating = False


def read_positions():
    ps.register_point_cloud("particles", sim.get_positions())
    ps.get_point_cloud("particles").set_radius(POINT_SIZE_PARTICLES, relative=True)


def read_cells():
    fluid_cells = sim.get_fluid_cells()
    if fluid_cells.shape[0] > 0:
        ps.register_point_cloud("fluid cells", fluid_cells, enabled=False)
        ps.get_point_cloud("fluid cells").set_radius(POINT_SIZE_FLUID_CELLS, relative=True)
        density = sim.get_density()
        cells = np.where(sim.solver.read_cell_type() == FLUID)
        ps.get_point_cloud("fluid cells").add_scalar_quantity("density", density[cells])
    ps.register_point_cloud("solid cells", sim.get_solid_cells(), enabled=False)
    ps.get_point_cloud("solid cells").set_radius(POINT_SIZE_SOLID_CELLS, relative=True)


def read_terrain():
    terrain = sim.solver.terrain_profile
    x = np.linspace(0.0, terrain.length_x, terrain.count)
    nodes = np.stack([x, terrain.heights], axis=1)
    ps.register_curve_network("terrain", nodes, edges="line")


def simulation_init(scene_file=None, device="cuda:0", max_frames=None):
    global sim
    logger.info("Initializing simulation")
    if scene_file:
        logger.info("Loading scene from: %s", scene_file)
        sim = SimulationController(scene_file=scene_file, device=device)
    else:
        sim = SimulationController(device=device)
    if max_frames is not None:
        sim.set_max_frames(max_frames)
    read_positions()
    read_cells()
    read_terrain()


def ui_callback():
    global simulating
    psim.TextUnformatted(sim.status)
    changed_sim, simulating = psim.Checkbox("Start Simulation", simulating)
    if changed_sim:
        if simulating:
            sim.resume()
            simulating = not sim.paused
        else:
            sim.pause()

    #button to run one step of the simulation
    if psim.Button("Step"):
        simulation_step()
        read_positions()
        read_cells()

    if psim.Button("Reset Simulation"):
        sim.reset()
        simulating = False
        read_positions()
        read_cells()

    if psim.Button("Save State"):
        sim.save_state(save_dir, include_particles=True, include_terrain=True)

    if simulating:
        simulation_step()
        read_positions()


def main():
    global scene_file_path, save_dir
    parser = argparse.ArgumentParser(description="2D PIC/FLIP liquid simulation")
    parser.add_argument("--scene", help="Path to the scene file")
    parser.add_argument("--output", help="Directory for CSV state dumps, runs headless, requires num_steps")
    parser.add_argument("--num_steps", help="Number of steps to simulate", type=int)
    parser.add_argument("--max_frames", help="Stop the run once this many frames have been simulated", type=int)
    parser.add_argument("--device", help="Device to use", type=str, default="cpu")
    parser.add_argument("--verbose", help="Debug logging", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("CUDA available: %s", torch.cuda.is_available())

    wp.init()
    # Convert device format: "cuda" -> "cuda:0", "cpu" -> "cpu"
    device_str = args.device if args.device != "cuda" else "cuda:0"
    scene_file_path = args.scene

    if args.output:
        if not args.num_steps:
            logger.error("Num steps not provided, skipping output")
            return 1
        save_dir = args.output
        controller = SimulationController(scene_file=scene_file_path, device=device_str)
        if args.max_frames is not None:
            controller.set_max_frames(args.max_frames)
        frames = controller.run(args.num_steps)
        controller.save_state(save_dir, include_particles=True, include_terrain=True)
        logger.info("Ran %d frames, residuals %s", frames, controller.get_residual_norms())
        return 1 if controller.failed else 0

    # initialize polyscope
    ps.init()
    ps.set_navigation_style("planar")
    ps.set_ground_plane_mode("none")

    simulation_init(scene_file=scene_file_path, device=device_str, max_frames=args.max_frames)
    ps.set_user_callback(ui_callback)
    ps.show()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
