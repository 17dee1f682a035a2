import logging

import numpy as np

from stablefluids.boundary import BoundaryEnforcer
from stablefluids.buffers import FieldSlot, GridBufferManager
from stablefluids.kernels import (DivergenceParams, FillParams, GradientParams, JacobiParams, KernelKind,
                                  KernelRunner)

logger = logging.getLogger(__name__)

# Jacobi weights for laplacian(p) = div: p = (sum - div) / 4
PRESSURE_PARAMS = JacobiParams(center_weight=-0.25, neighbour_weight=0.25)


class ProjectionSolver:
    """Makes a velocity field (approximately) divergence free.

    1. divergence of the velocity
    2. pressure from laplacian(p) = div, Jacobi iterations with the pressure
       boundary re-applied before every iteration
    3. v -= grad(p)
    """

    def __init__(self, runner: KernelRunner, buffers: GridBufferManager, boundary: BoundaryEnforcer):
        self.runner = runner
        self.buffers = buffers
        self.boundary = boundary
        self._divergence: FieldSlot | None = None

    @property
    def divergence(self) -> FieldSlot:
        if self._divergence is None:
            self._divergence = self.buffers.allocate_slot(1, "divergence")
        return self._divergence

    @property
    def pressure(self) -> FieldSlot:
        return self.buffers.scratch(1)

    def compute_divergence(self, velocity: FieldSlot) -> FieldSlot:
        divergence = self.divergence
        self.runner.run(KernelKind.DIVERGENCE, {"velocity": velocity.read}, DivergenceParams(), divergence.write)
        divergence.swap()
        return divergence

    def solve_pressure(self, divergence: FieldSlot, iterations: int) -> FieldSlot:
        pressure = self.pressure
        self.runner.run(KernelKind.FILL, {}, FillParams(0.0), pressure.front)
        self.runner.run(KernelKind.FILL, {}, FillParams(0.0), pressure.back)

        for _ in range(iterations):
            self.boundary.scalar(pressure)
            self.runner.run(KernelKind.JACOBI, {"initial": divergence.read, "estimate": pressure.read},
                            PRESSURE_PARAMS, pressure.write)
            pressure.swap()
        return pressure

    def project(self, velocity: FieldSlot, iterations: int) -> FieldSlot:
        divergence = self.compute_divergence(velocity)
        pressure = self.solve_pressure(divergence, iterations)
        self.runner.run(KernelKind.SUBTRACT_GRADIENT, {"pressure": pressure.read, "velocity": velocity.read},
                        GradientParams(), velocity.write)
        velocity.swap()
        return velocity

    def mean_abs_divergence(self, velocity: FieldSlot) -> float:
        """Host-side diagnostic over interior cells."""
        v = velocity.read.to_numpy()
        div = 0.5 * ((v[2:, 1:-1, 0] - v[:-2, 1:-1, 0]) + (v[1:-1, 2:, 1] - v[1:-1, :-2, 1]))
        return float(np.mean(np.abs(div)))
