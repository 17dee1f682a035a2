"""Pointer input and force injection."""
import logging
import math
import threading
from dataclasses import dataclass
from typing import Optional

from stablefluids.buffers import FieldSlot, GridBuffer
from stablefluids.kernels import CopyParams, KernelKind, KernelRunner, SplatParams

logger = logging.getLogger(__name__)


def _clamp01(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class PointerSample:
    """Normalised pointer position, origin at the bottom-left of the grid."""
    x: float
    y: float
    active: bool = True

    def __post_init__(self):
        # out of range input is clamped, never an error
        object.__setattr__(self, "x", _clamp01(float(self.x)))
        object.__setattr__(self, "y", _clamp01(float(self.y)))

    @property
    def position(self) -> tuple[float, float]:
        return self.x, self.y

    def distance(self, other: "PointerSample") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


class PointerMailbox:
    """Single-slot mailbox: the latest sample wins, drained once per frame."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sample: Optional[PointerSample] = None

    def post(self, sample: PointerSample) -> None:
        with self._lock:
            self._sample = sample

    def drain(self) -> Optional[PointerSample]:
        with self._lock:
            sample, self._sample = self._sample, None
        return sample


@dataclass(frozen=True)
class Stroke:
    previous: PointerSample
    current: PointerSample


class PointerTracker:
    """Turns drained samples into strokes between consecutive frames.

    A release, or the first sample of a press, only (re)starts the stroke.
    """

    def __init__(self, mailbox: Optional[PointerMailbox] = None):
        self.mailbox = mailbox or PointerMailbox()
        self.previous: Optional[PointerSample] = None

    def reset(self) -> None:
        self.previous = None

    def next_stroke(self) -> Optional[Stroke]:
        sample = self.mailbox.drain()
        if sample is None:
            return None
        if not sample.active:
            self.previous = None
            return None
        previous, self.previous = self.previous, sample
        if previous is None:
            return None
        return Stroke(previous, sample)


class ForceInjector:
    """Adds a radially falling impulse along the pointer segment."""

    def __init__(self, runner: KernelRunner, threshold: float = 0.001):
        self.runner = runner
        self.threshold = threshold

    def moved(self, previous: Optional[PointerSample], current: Optional[PointerSample]) -> bool:
        if previous is None or current is None:
            return False
        if not (previous.active and current.active):
            return False
        return previous.distance(current) >= self.threshold

    def inject(self, source_field: GridBuffer, dest_field: GridBuffer, previous: Optional[PointerSample],
               current: Optional[PointerSample], radius: float, scale: float,
               kind: KernelKind = KernelKind.SPLAT_VELOCITY) -> bool:
        """Writes ``source_field`` plus the impulse to ``dest_field``.

        Returns False (after a plain copy) when the pointer is inactive or did
        not move past the threshold.
        """
        if not self.moved(previous, current):
            self.runner.run(KernelKind.COPY, {"source": source_field}, CopyParams(), dest_field)
            return False
        params = SplatParams(previous.position, current.position, radius, scale)
        self.runner.run(kind, {"source": source_field}, params, dest_field)
        return True

    def inject_velocity(self, velocity: FieldSlot, stroke: Optional[Stroke], radius: float,
                        scale: float) -> FieldSlot:
        previous, current = (stroke.previous, stroke.current) if stroke else (None, None)
        self.inject(velocity.read, velocity.write, previous, current, radius, scale, KernelKind.SPLAT_VELOCITY)
        velocity.swap()
        return velocity

    def inject_dye(self, dye: FieldSlot, stroke: Optional[Stroke], radius: float, scale: float) -> FieldSlot:
        previous, current = (stroke.previous, stroke.current) if stroke else (None, None)
        self.inject(dye.read, dye.write, previous, current, radius, scale, KernelKind.SPLAT_DYE)
        dye.swap()
        return dye
