"""
Matrix-free preconditioned conjugate gradient over the fluid cells of the grid.

The same kernel set serves the density and the pressure projection; a solve
only differs in which buffers are bound as right hand side and solution.
"""
import logging

from flipwater.kernels.pcg import PARAM_COUNT, SIGMA, ALPHA_DENOMINATOR, NEW_SIGMA

logger = logging.getLogger(__name__)


class PCGSolver:
    def __init__(self, backend, config, grid, model):
        self.config = config
        self.grid = grid
        self.model = model

        shape = config.cell_shape
        self.residual = backend.create_buffer(shape, dtype=float)
        self.search_direction = backend.create_buffer(shape, dtype=float)
        self.aux = backend.create_buffer(shape, dtype=float)
        self.temp = backend.create_buffer(shape, dtype=float)

        self.partial_dot = backend.create_buffer(config.pcg_workgroup_count, dtype=float)
        self.final_dot = backend.create_buffer(1, dtype=float)
        self.partial_max = backend.create_buffer(config.pcg_workgroup_count, dtype=float)
        self.final_max = backend.create_buffer(1, dtype=float)
        self.params = backend.create_buffer(PARAM_COUNT, dtype=float)

    def record_dot(self, batch, a, b, slot):
        """params[slot] = a . b, as a partial and a final reduction pass."""
        batch.dispatch(
            "dot_product_partial", self.config.pcg_workgroup_count,
            a=a, b=b, partial=self.partial_dot, chunk=self.config.pcg_chunk,
        )
        batch.dispatch(
            "dot_product_final", 1,
            partial=self.partial_dot, count=self.config.pcg_workgroup_count, result=self.final_dot,
        )
        batch.copy(self.params, self.final_dot, dest_offset=slot, count=1)

    def record_max_abs(self, batch, a, out, slot):
        """out[slot] = max |a|."""
        batch.dispatch(
            "max_abs_partial", self.config.pcg_workgroup_count,
            a=a, partial=self.partial_max, chunk=self.config.pcg_chunk,
        )
        batch.dispatch(
            "max_abs_final", 1,
            partial=self.partial_max, count=self.config.pcg_workgroup_count, result=self.final_max,
        )
        batch.copy(out, self.final_max, dest_offset=slot, count=1)

    def record_operator(self, batch, name, x, y):
        # operators and preconditioners all bind (grid, model, x, y) and compute y = op(x)
        batch.dispatch(name, self.config.cell_shape, grid=self.grid, model=self.model, x=x, y=y)

    def record_solve(
        self,
        batch,
        rhs,
        solution,
        apply_operator="apply_laplacian",
        apply_preconditioner="apply_preconditioner",
        residual_norms=None,
        residual_slot=0,
    ):
        """
        Record a fixed-length PCG solve of A * solution = rhs.

        The iteration count is config.pcg_iterations whatever the residual; the
        tolerance only freezes alpha/beta on the device once reached, so no
        host readback is needed. If residual_norms is given, the max-norm of the
        final residual is copied into residual_norms[residual_slot].
        """
        shape = self.config.cell_shape
        r = self.residual
        p = self.search_direction
        z = self.aux
        q = self.temp

        # x = 0, so r = b
        batch.clear(solution)
        batch.clear(self.params)
        batch.copy(r, rhs)
        self.record_operator(batch, apply_preconditioner, r, z)
        batch.copy(p, z)
        self.record_dot(batch, r, z, SIGMA)
        batch.dispatch("begin_solve", 1, params=self.params, tolerance=float(self.config.scene.pcg_tolerance))

        for _ in range(self.config.pcg_iterations):
            self.record_operator(batch, apply_operator, p, q)
            self.record_dot(batch, p, q, ALPHA_DENOMINATOR)
            batch.dispatch("compute_alpha", 1, params=self.params)
            batch.dispatch("update_solution", shape, x=solution, p=p, params=self.params)
            batch.dispatch("update_residual", shape, r=r, q=q, params=self.params)
            self.record_operator(batch, apply_preconditioner, r, z)
            self.record_dot(batch, z, r, NEW_SIGMA)
            batch.dispatch("compute_beta", 1, params=self.params)
            batch.dispatch("update_search_direction", shape, p=p, z=z, params=self.params)

        if residual_norms is not None:
            self.record_max_abs(batch, r, residual_norms, residual_slot)
        logger.debug("recorded PCG solve with %d iterations", self.config.pcg_iterations)
