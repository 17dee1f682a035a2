"""The per-frame stable fluids pipeline.

One ``Simulation`` owns every grid field of a run. Each ``step`` is::

    inject velocity, inject dye -> boundary
    diffuse velocity -> boundary -> project
    self-advect velocity -> boundary -> project
    boundary dye -> diffuse dye -> boundary -> advect dye -> boundary

and the dye buffer is handed to the compositor.
"""
import enum
import logging
from typing import Callable, Optional

import numpy as np

from stablefluids.advection import AdvectionOperator
from stablefluids.boundary import BoundaryEnforcer
from stablefluids.buffers import FieldSlot, GridBuffer, GridBufferManager
from stablefluids.config import SimulationConfig
from stablefluids.diffusion import DiffusionSolver
from stablefluids.errors import BufferAllocationError, FluidError, SimulationStateError
from stablefluids.forces import ForceInjector, PointerSample, PointerTracker
from stablefluids.kernels import FillParams, KernelKind, KernelRunner
from stablefluids.projection import ProjectionSolver
from stablefluids.seeding import initial_dye, velocity_seed_params
from stablefluids.utils.parser import precision

logger = logging.getLogger(__name__)

Compositor = Callable[[GridBuffer], None]

# config fields that fix the buffer layout
_LAYOUT_KEYS = ("precision", "dye_channels")


class SimulationState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"


class Simulation:

    def __init__(self, config: Optional[SimulationConfig] = None, compositor: Optional[Compositor] = None):
        self.config = config or SimulationConfig()
        self.compositor = compositor
        self.state = SimulationState.UNINITIALIZED
        self.frame = 0

        self.runner = KernelRunner()
        self.tracker = PointerTracker()
        self.buffers: Optional[GridBufferManager] = None
        self.velocity: Optional[FieldSlot] = None
        self.dye: Optional[FieldSlot] = None

        self._initial_image: Optional[np.ndarray] = None
        self._rng = np.random.default_rng(self.config.seed)

    # --------- lifecycle ----------
    def start(self, image: Optional[np.ndarray] = None) -> None:
        """Allocates all fields, compiles the kernels and seeds the initial state."""
        if self.state is SimulationState.RUNNING:
            raise SimulationStateError("Simulation is already running")
        cfg = self.config
        logger.info(f"Starting simulation {cfg.width}x{cfg.height} ({cfg.precision})")

        self.buffers = GridBufferManager(cfg.width, cfg.height, precision(cfg.precision))
        self._build_operators()
        try:
            self.velocity = self.buffers.allocate_slot(2, "velocity")
            self.dye = self.buffers.allocate_slot(cfg.dye_channels, "dye")
            # scratch and divergence slots are allocated here too, so a broken kernel fails now
            self._warm_up()
        except FluidError:
            self.close()
            raise

        self._initial_image = image
        self._seed()
        self.state = SimulationState.RUNNING

    def _build_operators(self) -> None:
        self.boundary = BoundaryEnforcer(self.runner)
        self.diffusion = DiffusionSolver(self.runner, self.buffers)
        self.projection = ProjectionSolver(self.runner, self.buffers, self.boundary)
        self.advection = AdvectionOperator(self.runner)
        self.injector = ForceInjector(self.runner, self.config.pointer_threshold)

    def _warm_up(self) -> None:
        # fields are zero here and a still, empty fluid stays that way
        self._advance(stroke=None)
        logger.debug(f"Kernels compiled ({self.runner.launches} launches)")

    def _seed(self) -> None:
        cfg = self.config
        params = velocity_seed_params(cfg.seed_velocity_amplitude, self._rng)
        self.runner.run(KernelKind.SEED_VELOCITY, {}, params, self.velocity.read)
        dye = initial_dye(cfg.initial_dye, cfg.width, cfg.height, cfg.dye_channels, self._initial_image)
        self.runner.upload(dye, self.dye.read)
        for slot in (self.velocity, self.dye):
            self.runner.run(KernelKind.FILL, {}, FillParams(0.0), slot.write)
        self.tracker.reset()
        self.frame = 0

    def reset(self) -> None:
        """Re-seeds velocity and dye without reallocating."""
        self._require_running()
        logger.info("Resetting simulation")
        self._seed()

    def resize(self, width: int, height: int) -> None:
        """Hard reset at a new resolution: all field history is discarded."""
        self._require_running()
        self.config = self.config.replace(width=width, height=height)
        self._reallocate()

    def _reallocate(self) -> None:
        try:
            self.buffers.resize(self.config.width, self.config.height)
        except BufferAllocationError:
            # previous state is already gone, nothing to roll back to
            logger.error(f"Could not reallocate fields at {self.config.width}x{self.config.height}")
            self.close()
            raise
        self._seed()

    def update_config(self, **changes) -> SimulationConfig:
        """Applies a validated edit. Storage changes rebuild a running simulation.

        ``precision`` and ``dye_channels`` change the buffer layout: the simulation
        is closed and started again with the same initial image. A new resolution
        is a resize. Anything else takes effect on the next ``step``.
        """
        config = self.config.replace(**changes)
        previous, self.config = self.config, config
        if self.state is not SimulationState.RUNNING:
            return config

        if any(getattr(config, key) != getattr(previous, key) for key in _LAYOUT_KEYS):
            logger.info(f"Rebuilding simulation for {config.precision}, {config.dye_channels} dye channel(s)")
            self.close()
            self.start(image=self._initial_image)
        elif config.resolution != previous.resolution:
            self._reallocate()
        self.injector.threshold = config.pointer_threshold
        return config

    def close(self) -> None:
        if self.buffers is not None:
            self.buffers.teardown()
        self.buffers = None
        self.velocity = None
        self.dye = None
        self.state = SimulationState.UNINITIALIZED
        logger.info("Simulation closed")

    def _require_running(self) -> None:
        if self.state is not SimulationState.RUNNING:
            raise SimulationStateError(f"Simulation is {self.state.value}, call start() first")

    # --------- input ----------
    def post_pointer(self, sample: PointerSample) -> None:
        self.tracker.mailbox.post(sample)

    # --------- frame ----------
    def step(self) -> GridBuffer:
        self._require_running()
        stroke = self.tracker.next_stroke()
        output = self._advance(stroke)
        self.frame += 1
        if self.compositor is not None:
            self.compositor(output)
        return output

    def _advance(self, stroke) -> GridBuffer:
        cfg = self.config
        dt = cfg.timestep
        velocity, dye = self.velocity, self.dye

        self.injector.inject_velocity(velocity, stroke, cfg.injector_radius, cfg.velocity_injector_scale)
        self.injector.inject_dye(dye, stroke, cfg.injector_radius, cfg.dye_injector_scale)

        self.boundary.velocity(velocity)
        self.diffusion.diffuse(velocity, cfg.velocity_viscosity, dt, cfg.diffusion_iterations)
        self.boundary.velocity(velocity)
        self.projection.project(velocity, cfg.projection_iterations)

        self.advection.advect_slot(velocity, velocity, dt, cfg.velocity_dissipation)
        self.boundary.velocity(velocity)
        self.projection.project(velocity, cfg.projection_iterations)

        self.boundary.scalar(dye)
        self.diffusion.diffuse(dye, cfg.dye_viscosity, dt, cfg.diffusion_iterations)
        self.boundary.scalar(dye)
        self.advection.advect_slot(dye, velocity, dt, cfg.dye_dissipation)
        self.boundary.scalar(dye)
        return dye.read

    # --------- diagnostics ----------
    @property
    def output(self) -> GridBuffer:
        self._require_running()
        return self.dye.read

    def mean_abs_divergence(self) -> float:
        self._require_running()
        return self.projection.mean_abs_divergence(self.velocity)

    def dye_mass(self) -> float:
        self._require_running()
        return float(self.dye.read.to_numpy().astype(np.float64).sum())
