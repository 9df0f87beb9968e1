import warp as wp


@wp.kernel
def scan_local_blocks(
    src: wp.array(dtype=int),
    dst: wp.array(dtype=int),
    block_sums: wp.array(dtype=int),
    n: int,
    block_size: int,
):
    """
    Exclusive scan of one block of `block_size` elements per thread.

    Writes the scanned values to dst and the block total to block_sums[block].
    src and dst may be the same array: each element is read before it is overwritten.
    """
    block = wp.tid()
    start = block * block_size
    end = wp.min(start + block_size, n)
    running = int(0)
    for k in range(start, end):
        value = src[k]
        dst[k] = running
        running += value
    block_sums[block] = running


@wp.kernel
def scan_block_sums(block_sums: wp.array(dtype=int), count: int):
    # single thread, the whole spine fits in one pass on small grids
    running = int(0)
    for k in range(count):
        value = block_sums[k]
        block_sums[k] = running
        running += value


@wp.kernel
def add_block_offsets(
    dst: wp.array(dtype=int),
    block_offsets: wp.array(dtype=int),
    block_size: int,
):
    k = wp.tid()
    dst[k] = dst[k] + block_offsets[k // block_size]
