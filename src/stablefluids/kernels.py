"""Per-cell Taichi kernels and the runner that launches them.

All fields are ``ti.Vector.field(n, ...)`` of shape (width, height), indexed
``[i, j]`` with ``i`` along x. Neighbour reads are clamped to the grid, the
same way a clamp-to-edge texture would be sampled.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Mapping

import numpy as np
import taichi as ti
from taichi.lang.util import to_numpy_type

from stablefluids.buffers import GridBuffer
from stablefluids.errors import BufferAliasingError, KernelBindingError, KernelCompileError

logger = logging.getLogger(__name__)

vec2 = ti.types.vector(n=2, dtype=ti.f32)
vec4 = ti.types.vector(n=4, dtype=ti.f32)


# --------- sampling helpers ----------
@ti.func
def sample_bilinear(q: ti.template(), x, y):
    # x, y in cell coordinates, cell centres on integers
    nx = q.shape[0]
    ny = q.shape[1]
    px = ti.min(ti.max(x, 0.0), nx - 1.0)
    py = ti.min(ti.max(y, 0.0), ny - 1.0)

    i0 = ti.cast(ti.floor(px), ti.i32)
    j0 = ti.cast(ti.floor(py), ti.i32)
    i1 = ti.min(i0 + 1, nx - 1)
    j1 = ti.min(j0 + 1, ny - 1)

    sx = px - i0
    sy = py - j0

    # lerp form: a constant field stays exactly constant
    bottom = q[i0, j0] + (q[i1, j0] - q[i0, j0]) * sx
    top = q[i0, j1] + (q[i1, j1] - q[i0, j1]) * sx
    return bottom + (top - bottom) * sy


@ti.func
def segment_falloff(px, py, a, b, radius):
    # (1 - (d/r)^2)^2 inside the radius, zero outside
    p = ti.Vector([px, py])
    ab = b - a
    t = 0.0
    denom = ab.dot(ab)
    if denom > 0.0:
        t = ti.min(ti.max((p - a).dot(ab) / denom, 0.0), 1.0)
    d = (p - (a + t * ab)).norm()
    w = 0.0
    if d < radius:
        q = 1.0 - (d / radius) ** 2
        w = q * q
    return w


# --------- kernels ----------
@ti.kernel
def fill_kernel(out: ti.template(), value: ti.f32):
    for i, j in out:
        for c in ti.static(range(out.n)):
            out[i, j][c] = value


@ti.kernel
def copy_kernel(src: ti.template(), out: ti.template()):
    for i, j in out:
        out[i, j] = src[i, j]


@ti.kernel
def boundary_kernel(src: ti.template(), out: ti.template(), scale: ti.f32, is_scalar: ti.template()):
    nx = out.shape[0]
    ny = out.shape[1]
    for i, j in out:
        value = src[i, j]
        on_x_edge = i == 0 or i == nx - 1
        on_y_edge = j == 0 or j == ny - 1
        ii = ti.min(ti.max(i, 1), nx - 2)
        jj = ti.min(ti.max(j, 1), ny - 2)
        if ti.static(is_scalar):
            if on_x_edge or on_y_edge:
                value = src[ii, jj]
        else:
            if on_x_edge:
                value[0] = scale * src[ii, j][0]
            if on_y_edge:
                value[1] = scale * src[i, jj][1]
        out[i, j] = value


@ti.kernel
def jacobi_kernel(initial: ti.template(), estimate: ti.template(), out: ti.template(),
                  center_weight: ti.f32, neighbour_weight: ti.f32):
    nx = out.shape[0]
    ny = out.shape[1]
    for i, j in out:
        left = estimate[ti.max(i - 1, 0), j]
        right = estimate[ti.min(i + 1, nx - 1), j]
        down = estimate[i, ti.max(j - 1, 0)]
        up = estimate[i, ti.min(j + 1, ny - 1)]
        # weights are applied per term, the sum never exceeds the largest input
        out[i, j] = (initial[i, j] * center_weight + left * neighbour_weight + right * neighbour_weight
                     + down * neighbour_weight + up * neighbour_weight)


@ti.kernel
def divergence_kernel(velocity: ti.template(), out: ti.template()):
    nx = out.shape[0]
    ny = out.shape[1]
    for i, j in out:
        left = velocity[ti.max(i - 1, 0), j]
        right = velocity[ti.min(i + 1, nx - 1), j]
        down = velocity[i, ti.max(j - 1, 0)]
        up = velocity[i, ti.min(j + 1, ny - 1)]
        out[i, j][0] = 0.5 * ((right[0] - left[0]) + (up[1] - down[1]))


@ti.kernel
def subtract_gradient_kernel(pressure: ti.template(), velocity: ti.template(), out: ti.template()):
    nx = out.shape[0]
    ny = out.shape[1]
    for i, j in out:
        left = pressure[ti.max(i - 1, 0), j][0]
        right = pressure[ti.min(i + 1, nx - 1), j][0]
        down = pressure[i, ti.max(j - 1, 0)][0]
        up = pressure[i, ti.min(j + 1, ny - 1)][0]
        grad = 0.5 * ti.Vector([right - left, up - down])
        out[i, j] = velocity[i, j] - grad


@ti.kernel
def advect_kernel(source: ti.template(), velocity: ti.template(), out: ti.template(),
                  timestep: ti.f32, dissipation: ti.f32):
    for i, j in out:
        v = velocity[i, j]
        # backtrace in cell units
        x = i - timestep * v[0]
        y = j - timestep * v[1]
        out[i, j] = sample_bilinear(source, x, y) * dissipation


@ti.kernel
def splat_velocity_kernel(src: ti.template(), out: ti.template(), previous: vec2, current: vec2,
                          radius: ti.f32, scale: ti.f32):
    nx = out.shape[0]
    ny = out.shape[1]
    for i, j in out:
        w = segment_falloff((i + 0.5) / nx, (j + 0.5) / ny, previous, current, radius)
        # pointer displacement in cells
        delta = (current - previous) * ti.Vector([nx * 1.0, ny * 1.0])
        out[i, j] = src[i, j] + delta * (scale * w)


@ti.kernel
def splat_dye_kernel(src: ti.template(), out: ti.template(), previous: vec2, current: vec2,
                     radius: ti.f32, scale: ti.f32):
    nx = out.shape[0]
    ny = out.shape[1]
    for i, j in out:
        w = segment_falloff((i + 0.5) / nx, (j + 0.5) / ny, previous, current, radius)
        out[i, j] = src[i, j] + scale * w


@ti.kernel
def seed_velocity_kernel(out: ti.template(), amplitude: ti.f32, wavenumbers: vec4, phases: vec4):
    # curl of two sinusoidal stream functions: divergence free by construction
    nx = out.shape[0]
    ny = out.shape[1]
    for i, j in out:
        x = 2.0 * ti.math.pi * i / nx
        y = 2.0 * ti.math.pi * j / ny
        v = ti.Vector([0.0, 0.0])
        for m in ti.static(range(2)):
            ax = wavenumbers[2 * m]
            ay = wavenumbers[2 * m + 1]
            norm = amplitude / ti.max(ax / nx, ay / ny)
            sx = ti.sin(ax * x + phases[2 * m])
            cx = ti.cos(ax * x + phases[2 * m])
            sy = ti.sin(ay * y + phases[2 * m + 1])
            cy = ti.cos(ay * y + phases[2 * m + 1])
            v += 0.5 * norm * ti.Vector([sx * cy * ay / ny, -cx * sy * ax / nx])
        out[i, j] = v


# --------- kernel kinds & parameter records ----------
class KernelKind(enum.Enum):
    FILL = "fill"
    COPY = "copy"
    BOUNDARY = "boundary"
    JACOBI = "jacobi"
    DIVERGENCE = "divergence"
    SUBTRACT_GRADIENT = "subtract_gradient"
    ADVECT = "advect"
    SPLAT_VELOCITY = "splat_velocity"
    SPLAT_DYE = "splat_dye"
    SEED_VELOCITY = "seed_velocity"


@dataclass(frozen=True)
class FillParams:
    value: float = 0.0


@dataclass(frozen=True)
class CopyParams:
    pass


@dataclass(frozen=True)
class BoundaryParams:
    reflection_scale: float
    is_scalar: bool


@dataclass(frozen=True)
class JacobiParams:
    """out = center_weight * initial + neighbour_weight * (sum of the 4 neighbours of the estimate)."""
    center_weight: float
    neighbour_weight: float


@dataclass(frozen=True)
class DivergenceParams:
    pass


@dataclass(frozen=True)
class GradientParams:
    pass


@dataclass(frozen=True)
class AdvectParams:
    timestep: float
    dissipation: float = 1.0


@dataclass(frozen=True)
class SplatParams:
    previous: tuple[float, float]
    current: tuple[float, float]
    radius: float
    scale: float


@dataclass(frozen=True)
class SeedVelocityParams:
    amplitude: float
    wavenumbers: tuple[float, float, float, float] = (1.0, 1.0, 2.0, 3.0)
    phases: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class KernelSpec:
    kind: KernelKind
    params_type: type
    inputs: tuple[str, ...]
    launch: Callable


def _splat(kernel):
    def launch(fields, p, out):
        kernel(fields["source"], out, vec2(*p.previous), vec2(*p.current), p.radius, p.scale)
    return launch


DEFAULT_SPECS = (
    KernelSpec(KernelKind.FILL, FillParams, (),
               lambda fields, p, out: fill_kernel(out, p.value)),
    KernelSpec(KernelKind.COPY, CopyParams, ("source",),
               lambda fields, p, out: copy_kernel(fields["source"], out)),
    KernelSpec(KernelKind.BOUNDARY, BoundaryParams, ("source",),
               lambda fields, p, out: boundary_kernel(fields["source"], out, p.reflection_scale,
                                                      bool(p.is_scalar))),
    KernelSpec(KernelKind.JACOBI, JacobiParams, ("initial", "estimate"),
               lambda fields, p, out: jacobi_kernel(fields["initial"], fields["estimate"], out,
                                                    p.center_weight, p.neighbour_weight)),
    KernelSpec(KernelKind.DIVERGENCE, DivergenceParams, ("velocity",),
               lambda fields, p, out: divergence_kernel(fields["velocity"], out)),
    KernelSpec(KernelKind.SUBTRACT_GRADIENT, GradientParams, ("pressure", "velocity"),
               lambda fields, p, out: subtract_gradient_kernel(fields["pressure"], fields["velocity"], out)),
    KernelSpec(KernelKind.ADVECT, AdvectParams, ("source", "velocity"),
               lambda fields, p, out: advect_kernel(fields["source"], fields["velocity"], out,
                                                    p.timestep, p.dissipation)),
    KernelSpec(KernelKind.SPLAT_VELOCITY, SplatParams, ("source",), _splat(splat_velocity_kernel)),
    KernelSpec(KernelKind.SPLAT_DYE, SplatParams, ("source",), _splat(splat_dye_kernel)),
    KernelSpec(KernelKind.SEED_VELOCITY, SeedVelocityParams, (),
               lambda fields, p, out: seed_velocity_kernel(out, p.amplitude, vec4(*p.wavenumbers),
                                                           vec4(*p.phases))),
)


class KernelRunner:
    """Launches registered kernels over whole grid buffers.

    ``run`` is the only way simulation code mutates a buffer. It returns after
    ``ti.sync()``, so the output is complete before the next stage reads it.
    """

    def __init__(self, specs=DEFAULT_SPECS):
        self._specs: dict[KernelKind, KernelSpec] = {}
        self.launches = 0
        for spec in specs:
            self.register(spec)

    def register(self, spec: KernelSpec) -> None:
        if spec.kind in self._specs:
            raise KernelBindingError(f"Kernel {spec.kind.name} is already registered")
        self._specs[spec.kind] = spec

    @property
    def kinds(self) -> tuple[KernelKind, ...]:
        return tuple(self._specs)

    def run(self, kind: KernelKind, inputs: Mapping[str, GridBuffer], params, output: GridBuffer) -> None:
        spec = self._specs.get(kind)
        if spec is None:
            raise KernelBindingError(f"Kernel {kind} is not registered")
        if not isinstance(params, spec.params_type):
            raise KernelBindingError(
                f"{kind.name} expects {spec.params_type.__name__}, got {type(params).__name__}")
        if set(inputs) != set(spec.inputs):
            raise KernelBindingError(f"{kind.name} expects inputs {spec.inputs}, got {tuple(inputs)}")

        output.ensure_live()
        for name, buffer in inputs.items():
            buffer.ensure_live()
            if buffer is output:
                raise BufferAliasingError(f"{kind.name}: input '{name}' is also the output {output}")
            if buffer.shape != output.shape:
                raise KernelBindingError(
                    f"{kind.name}: input '{name}' is {buffer.shape}, output is {output.shape}")

        fields = {name: buffer.field for name, buffer in inputs.items()}
        try:
            spec.launch(fields, params, output.field)
        except ti.TaichiCompilationError as e:
            raise KernelCompileError(f"Kernel {kind.name} failed to compile: {e}") from e
        ti.sync()
        self.launches += 1
        logger.debug(f"{kind.name} -> {output.name}")

    def upload(self, array: np.ndarray, output: GridBuffer) -> None:
        """Writes host data of shape (width, height[, channels]) into ``output``."""
        output.ensure_live()
        data = np.asarray(array, dtype=to_numpy_type(output.field.dtype))
        if data.ndim == 2:
            data = data[..., np.newaxis]
        if data.shape != (output.width, output.height, output.channels):
            raise KernelBindingError(
                f"Cannot upload array of shape {np.shape(array)} into {output}")
        output.field.from_numpy(data)
        ti.sync()
        logger.debug(f"upload -> {output.name}")
