"""
Name -> kernel lookup with the ordered binding names each kernel expects.
"""
import inspect
import logging
from collections import namedtuple

from flipwater.errors import SimulationSetupError

logger = logging.getLogger(__name__)

KernelSpec = namedtuple("KernelSpec", ["kernel", "bindings"])


class KernelRegistry:
    def __init__(self):
        self._specs = {}

    def register(self, name, kernel, bindings):
        """Add a kernel after checking its declared bindings against its signature."""
        if name in self._specs:
            raise SimulationSetupError(f"kernel '{name}' registered twice")
        bindings = tuple(bindings)
        params = tuple(inspect.signature(kernel.func).parameters)
        if params != bindings:
            raise SimulationSetupError(
                f"kernel '{name}' binds {bindings} but its signature is {params}"
            )
        self._specs[name] = KernelSpec(kernel, bindings)
        logger.debug("registered kernel %s%s", name, bindings)

    def resolve(self, name, bound):
        """Return the spec for `name`, checking `bound` names exactly the kernel's bindings."""
        try:
            spec = self._specs[name]
        except KeyError:
            raise SimulationSetupError(f"unknown kernel '{name}'") from None
        missing = set(spec.bindings) - set(bound)
        extra = set(bound) - set(spec.bindings)
        if missing or extra:
            raise SimulationSetupError(
                f"kernel '{name}': missing bindings {sorted(missing)}, unexpected bindings {sorted(extra)}"
            )
        return spec

    def __contains__(self, name):
        return name in self._specs

    def __len__(self):
        return len(self._specs)
