"""Real-time 2D stable fluids on Taichi."""
from stablefluids.buffers import FieldSlot, GridBuffer, GridBufferManager
from stablefluids.config import SimulationConfig
from stablefluids.errors import (BufferAliasingError, BufferAllocationError, ConfigError, FluidError,
                                 KernelBindingError, KernelCompileError, SimulationStateError,
                                 StaleBufferError)
from stablefluids.forces import PointerSample
from stablefluids.kernels import KernelKind, KernelRunner
from stablefluids.simulation import Simulation, SimulationState

__version__ = "0.1.0"

__all__ = [
    "BufferAliasingError",
    "BufferAllocationError",
    "ConfigError",
    "FieldSlot",
    "FluidError",
    "GridBuffer",
    "GridBufferManager",
    "KernelBindingError",
    "KernelCompileError",
    "KernelKind",
    "KernelRunner",
    "PointerSample",
    "Simulation",
    "SimulationConfig",
    "SimulationState",
    "StaleBufferError",
]
