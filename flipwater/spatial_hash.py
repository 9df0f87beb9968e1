"""
Counting-sort spatial index: cell -> resident particles in CSR form.
"""
import math

from flipwater.utils.structs import IndexStruct


class SpatialHash:
    """
    Owns the CSR arrays and the block-sum scratch of the multi-level scan.

    record() appends, in order: clear counters, count, exclusive scan of the
    counts into cell_start, guard entry, cursor seed, id assignment.
    """

    def __init__(self, backend, config):
        self.config = config
        n_cells = config.number_of_cells

        self.index = IndexStruct()
        self.index.count_per_cell = backend.create_buffer(n_cells, dtype=int)
        self.index.cell_start = backend.create_buffer(n_cells + 1, dtype=int)
        self.index.cell_cursor = backend.create_buffer(n_cells, dtype=int)
        self.index.cell_particle_ids = backend.create_buffer(config.n_particles, dtype=int)

        self.block_sums = [
            backend.create_buffer(math.ceil(size / config.scan_block_size), dtype=int)
            for size in config.scan_level_sizes
        ]

    def record(self, batch, particles, model):
        config = self.config
        n_cells = config.number_of_cells

        batch.clear(self.index.count_per_cell)
        batch.dispatch(
            "count_particles", config.n_particles,
            particles=particles, index=self.index, model=model,
        )
        self.record_scan(batch, self.index.count_per_cell, self.index.cell_start, 0)
        batch.dispatch("add_guard", 1, index=self.index, n_cells=n_cells)

        batch.copy(self.index.cell_cursor, self.index.cell_start, count=n_cells)
        batch.dispatch(
            "assign_particle_ids", config.n_particles,
            particles=particles, index=self.index, model=model,
        )

    def record_scan(self, batch, src, dst, level):
        """Exclusive scan of the first scan_level_sizes[level] elements of src into dst."""
        config = self.config
        n = config.scan_level_sizes[level]
        block_size = config.scan_block_size
        blocks = math.ceil(n / block_size)
        block_sums = self.block_sums[level]

        batch.dispatch(
            "scan_local_blocks", blocks,
            src=src, dst=dst, block_sums=block_sums, n=n, block_size=block_size,
        )
        if blocks == 1:
            return
        if config.is_small_grid:
            batch.dispatch("scan_block_sums", 1, block_sums=block_sums, count=blocks)
        else:
            self.record_scan(batch, block_sums, block_sums, level + 1)
        batch.dispatch(
            "add_block_offsets", n,
            dst=dst, block_offsets=block_sums, block_size=block_size,
        )
