import logging

from stablefluids.buffers import FieldSlot, GridBuffer
from stablefluids.kernels import BoundaryParams, KernelKind, KernelRunner

logger = logging.getLogger(__name__)

NO_SLIP = -1.0  # velocity reverses at the wall
ZERO_FLUX = 0.0  # used for dye, boundary copies the interior


class BoundaryEnforcer:
    """Applies wall conditions to the outermost ring of cells.

    Vector fields: the wall-normal component becomes ``reflection_scale`` times
    the neighbouring interior value. Scalar fields copy the nearest interior
    cell, whatever the scale.
    """

    def __init__(self, runner: KernelRunner):
        self.runner = runner

    def enforce(self, source: GridBuffer, dest: GridBuffer, reflection_scale: float, is_scalar: bool) -> None:
        self.runner.run(KernelKind.BOUNDARY, {"source": source},
                        BoundaryParams(reflection_scale, is_scalar), dest)

    def apply(self, slot: FieldSlot, reflection_scale: float, is_scalar: bool) -> FieldSlot:
        self.enforce(slot.read, slot.write, reflection_scale, is_scalar)
        slot.swap()
        return slot

    def velocity(self, slot: FieldSlot) -> FieldSlot:
        return self.apply(slot, NO_SLIP, is_scalar=False)

    def scalar(self, slot: FieldSlot) -> FieldSlot:
        return self.apply(slot, ZERO_FLUX, is_scalar=True)
