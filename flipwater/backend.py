"""
Thin layer over Warp: buffer creation/readback and ordered command batches.
"""
import logging

import numpy as np
import warp as wp

from flipwater.errors import SimulationSetupError

logger = logging.getLogger(__name__)


class CommandBatch:
    """
    An ordered list of kernel launches, copies and clears.

    Recording checks every dispatch against the registry once and packs its
    arguments into a `wp.Launch`, submitting only replays the prepared
    commands in order.
    """

    def __init__(self, backend, label=""):
        self.backend = backend
        self.label = label
        self.commands = []
        self.graph = None

    def dispatch(self, name, dim, **bindings):
        spec = self.backend.registry.resolve(name, bindings)
        inputs = [bindings[key] for key in spec.bindings]
        launch = wp.launch(kernel=spec.kernel, dim=dim, inputs=inputs, device=self.backend.device, record_cmd=True)
        self.commands.append((name, launch, None))

    def copy(self, dest, src, dest_offset=0, src_offset=0, count=0):
        self.commands.append(("copy", None, (dest, src, dest_offset, src_offset, count)))

    def clear(self, buffer):
        self.commands.append(("clear", None, buffer))

    def __len__(self):
        return len(self.commands)

    def submit(self):
        if self.graph is not None:
            wp.capture_launch(self.graph)
            return
        for name, launch, args in self.commands:
            if launch is not None:
                launch.launch()
            elif name == "copy":
                dest, src, dest_offset, src_offset, count = args
                wp.copy(dest, src, dest_offset=dest_offset, src_offset=src_offset, count=count)
            else:
                args.zero_()

    def capture(self):
        """Record the batch into a CUDA graph, later submits replay the graph."""
        if not self.backend.device.is_cuda:
            return False
        with wp.ScopedCapture(device=self.backend.device) as capture:
            self.submit()
        self.graph = capture.graph
        logger.info("captured batch '%s' (%d commands) into a CUDA graph", self.label, len(self.commands))
        return True


class ComputeBackend:
    def __init__(self, registry, device="cuda:0"):
        wp.init()
        try:
            self.device = wp.get_device(device)
        except (RuntimeError, ValueError) as e:
            raise SimulationSetupError(f"device '{device}' is not available: {e}") from e
        self.registry = registry
        logger.info("using device %s with %d registered kernels", self.device, len(registry))

    def create_buffer(self, shape, dtype=float):
        try:
            return wp.zeros(shape=shape, dtype=dtype, device=self.device)
        except RuntimeError as e:
            raise SimulationSetupError(f"failed to allocate buffer of shape {shape}: {e}") from e

    def write_buffer(self, buffer, data):
        src = wp.array(np.ascontiguousarray(data), dtype=buffer.dtype, device=self.device)
        wp.copy(buffer, src)

    def read_buffer(self, buffer):
        # numpy() synchronizes with the device
        return buffer.numpy()

    def new_batch(self, label=""):
        return CommandBatch(self, label)
