"""Grid-resident fields.

Every ``GridBuffer`` wraps a ``ti.Vector.field`` living in its own SNode tree,
so a single buffer can be destroyed without touching the others. Buffers are
created and destroyed only by ``GridBufferManager``.
"""
import itertools
import logging
from dataclasses import dataclass

import numpy as np
import taichi as ti

from stablefluids.errors import BufferAllocationError, StaleBufferError

logger = logging.getLogger(__name__)

CHANNEL_COUNTS = (1, 2, 4)
MIN_SIZE = 3  # boundary ring + one interior cell

# backends without double precision storage
_NO_F64 = (ti.metal, ti.opengl, ti.gles)

_ids = itertools.count()


@dataclass(eq=False)
class GridBuffer:
    field: object
    width: int
    height: int
    channels: int
    name: str = ""
    id: int = 0
    _tree: object = None
    released: bool = False

    @property
    def shape(self) -> tuple[int, int]:
        return self.width, self.height

    def ensure_live(self) -> None:
        if self.released:
            raise StaleBufferError(f"Buffer '{self.name or self.id}' was released")

    def to_numpy(self) -> np.ndarray:
        """Host copy of the buffer, shape (width, height, channels)."""
        self.ensure_live()
        return self.field.to_numpy()

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"GridBuffer({self.name or self.id}, {self.width}x{self.height}x{self.channels}, {state})"


@dataclass(eq=False)
class FieldSlot:
    """Two same-shaped buffers used for ping-pong passes.

    ``read`` is the current readable buffer, ``write`` the other one. A pass reads
    ``read`` and writes ``write`` and then calls ``swap``.
    """
    front: GridBuffer
    back: GridBuffer
    name: str = ""
    current_is_front: bool = True

    @property
    def channels(self) -> int:
        return self.front.channels

    @property
    def shape(self) -> tuple[int, int]:
        return self.front.shape

    @property
    def read(self) -> GridBuffer:
        return self.front if self.current_is_front else self.back

    @property
    def write(self) -> GridBuffer:
        return self.back if self.current_is_front else self.front

    def swap(self) -> None:
        self.current_is_front = not self.current_is_front


class GridBufferManager:
    """Owns allocation, release and resolution of every grid buffer of one simulation."""

    def __init__(self, width: int, height: int, dtype=ti.f32):
        self._check_size(width, height)
        self._check_precision(dtype)
        self.width = width
        self.height = height
        self.dtype = dtype
        self._buffers: dict[int, GridBuffer] = {}
        self._slots: list[FieldSlot] = []
        self._scratch: dict[int, FieldSlot] = {}

    @staticmethod
    def _check_size(width, height):
        if width < MIN_SIZE or height < MIN_SIZE:
            raise BufferAllocationError(f"Grid must be at least {MIN_SIZE}x{MIN_SIZE}, got {width}x{height}")

    @staticmethod
    def _check_precision(dtype):
        if dtype not in (ti.f16, ti.f32, ti.f64):
            raise BufferAllocationError(f"Grid buffers need a floating point type, got {dtype}")
        if dtype == ti.f64:
            arch = ti.lang.impl.current_cfg().arch
            if arch in _NO_F64:
                raise BufferAllocationError(f"Backend {arch} has no double precision storage")

    @property
    def resolution(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def buffers(self) -> list[GridBuffer]:
        return list(self._buffers.values())

    def allocate(self, width: int, height: int, channels: int, name: str = "") -> GridBuffer:
        if channels not in CHANNEL_COUNTS:
            raise BufferAllocationError(f"Unsupported channel count {channels}, expected one of {CHANNEL_COUNTS}")
        if (width, height) != self.resolution:
            raise BufferAllocationError(
                f"Buffer '{name}' must match the simulation resolution {self.width}x{self.height}, "
                f"got {width}x{height}")

        data = ti.Vector.field(channels, dtype=self.dtype)
        fb = ti.FieldsBuilder()
        fb.dense(ti.ij, (width, height)).place(data)
        try:
            tree = fb.finalize()
        except RuntimeError as e:
            raise BufferAllocationError(f"Could not allocate {width}x{height}x{channels} buffer '{name}': {e}") from e

        buffer = GridBuffer(field=data, width=width, height=height, channels=channels,
                            name=name, id=next(_ids), _tree=tree)
        self._buffers[buffer.id] = buffer
        logger.debug(f"Allocated {buffer}")
        return buffer

    def release(self, buffer: GridBuffer) -> None:
        if buffer.released:
            return
        self._buffers.pop(buffer.id, None)
        buffer._tree.destroy()
        buffer.released = True
        logger.debug(f"Released {buffer}")

    def allocate_slot(self, channels: int, name: str = "") -> FieldSlot:
        slot = FieldSlot(
            front=self.allocate(self.width, self.height, channels, f"{name}.front"),
            back=self.allocate(self.width, self.height, channels, f"{name}.back"),
            name=name,
        )
        self._slots.append(slot)
        return slot

    def scratch(self, channels: int) -> FieldSlot:
        """Shared ping-pong pair (A = front, B = back) for the iterative solvers."""
        slot = self._scratch.get(channels)
        if slot is None:
            slot = self.allocate_slot(channels, f"scratch{channels}")
            self._scratch[channels] = slot
        return slot

    def resize(self, width: int, height: int) -> None:
        """Reallocates every managed slot at the new resolution.

        All previously handed out buffers become stale and their contents are lost.
        """
        self._check_size(width, height)
        logger.info(f"Resizing grid {self.width}x{self.height} -> {width}x{height}")
        for buffer in list(self._buffers.values()):
            self.release(buffer)
        self.width, self.height = width, height
        for slot in self._slots:
            slot.front = self.allocate(width, height, slot.channels, f"{slot.name}.front")
            slot.back = self.allocate(width, height, slot.channels, f"{slot.name}.back")
            slot.current_is_front = True

    def teardown(self) -> None:
        for buffer in list(self._buffers.values()):
            self.release(buffer)
        self._slots.clear()
        self._scratch.clear()
        logger.info("Released all grid buffers")
