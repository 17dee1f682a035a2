"""Exception hierarchy for the fluid simulation."""


class FluidError(Exception):
    """Base class for every error raised by stablefluids."""


class ConfigError(FluidError, ValueError):
    """Invalid simulation configuration."""


class BufferAllocationError(FluidError):
    """A grid buffer could not be created. The simulation cannot run."""


class StaleBufferError(FluidError):
    """A released buffer handle was used (e.g. after a resize)."""


class KernelCompileError(FluidError):
    """A kernel failed to compile or bind on the current backend."""


class KernelBindingError(FluidError):
    """Wrong parameter record, input names or shapes passed to a kernel."""


class BufferAliasingError(KernelBindingError):
    """The output buffer of a kernel launch is also one of its inputs."""


class SimulationStateError(FluidError):
    """Operation not allowed in the current simulation state."""
