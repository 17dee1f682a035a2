import logging

from stablefluids.buffers import FieldSlot, GridBufferManager
from stablefluids.kernels import CopyParams, FillParams, JacobiParams, KernelKind, KernelRunner

logger = logging.getLogger(__name__)


def diffusion_coefficients(viscosity: float, timestep: float) -> JacobiParams:
    """Jacobi weights for (I - nu*dt*laplacian) x = x0.

    x = (x0 + a * sum) / (1 + 4a) with a = nu*dt. Both weights are in [0, 1]
    and add up to 1 over the stencil, so an iteration is a convex combination
    of finite values for any a >= 0.
    """
    alpha = viscosity * timestep
    return JacobiParams(center_weight=1.0 / (1.0 + 4.0 * alpha), neighbour_weight=alpha / (1.0 + 4.0 * alpha))


class DiffusionSolver:
    """Implicit viscous diffusion by a fixed number of Jacobi iterations.

    Every iteration re-reads the pre-diffusion field and the previous estimate,
    which alternates between the scratch buffers A and B. Only the final
    iteration writes the field's own write buffer.
    """

    def __init__(self, runner: KernelRunner, buffers: GridBufferManager):
        self.runner = runner
        self.buffers = buffers

    def diffuse(self, field: FieldSlot, viscosity: float, timestep: float, iterations: int,
                clear_value: float = 0.0) -> FieldSlot:
        source = field.read
        dest = field.write

        alpha = viscosity * timestep
        if alpha <= 0.0 or iterations < 1:
            # nothing to diffuse
            self.runner.run(KernelKind.COPY, {"source": source}, CopyParams(), dest)
            field.swap()
            return field

        params = diffusion_coefficients(viscosity, timestep)
        scratch = self.buffers.scratch(field.channels)
        self.runner.run(KernelKind.FILL, {}, FillParams(clear_value), scratch.front)
        self.runner.run(KernelKind.FILL, {}, FillParams(clear_value), scratch.back)

        for it in range(iterations):
            target = dest if it == iterations - 1 else scratch.write
            self.runner.run(KernelKind.JACOBI, {"initial": source, "estimate": scratch.read}, params, target)
            scratch.swap()

        field.swap()
        return field
