class SimulationSetupError(RuntimeError):
    """Raised before any step runs: missing device, bad kernel bindings, allocation failure or bad configuration."""


class StepFailedError(RuntimeError):
    """Raised when submitting a step fails. The solver state is no longer consistent."""

    def __init__(self, frame, cause):
        super().__init__(f"step failed at frame {frame}: {cause}")
        self.frame = frame
        self.cause = cause
