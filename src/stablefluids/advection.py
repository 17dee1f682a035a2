from stablefluids.buffers import FieldSlot, GridBuffer
from stablefluids.kernels import AdvectParams, KernelKind, KernelRunner


class AdvectionOperator:
    """Semi-Lagrangian transport: sample the field where the fluid came from.

    Unconditionally stable for any timestep, at the cost of some smearing.
    """

    def __init__(self, runner: KernelRunner):
        self.runner = runner

    def advect(self, field_to_advect: GridBuffer, velocity: GridBuffer, dest: GridBuffer,
               timestep: float, dissipation: float = 1.0) -> None:
        self.runner.run(KernelKind.ADVECT, {"source": field_to_advect, "velocity": velocity},
                        AdvectParams(timestep, dissipation), dest)

    def advect_slot(self, field: FieldSlot, velocity: FieldSlot, timestep: float,
                    dissipation: float = 1.0) -> FieldSlot:
        # velocity may be the same slot as field (self-advection): both read the current buffer
        self.advect(field.read, velocity.read, field.write, timestep, dissipation)
        field.swap()
        return field
