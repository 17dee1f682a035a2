import numpy as np
import pytest

from stablefluids.boundary import BoundaryEnforcer
from stablefluids.projection import ProjectionSolver

N = 48


def source_blob(n=N, sigma=4.0):
    """Radially outward velocity around the centre: strongly divergent."""
    i, j = np.meshgrid(np.arange(n), np.arange(n), indexing="ij")
    dx, dy = i - n / 2, j - n / 2
    g = np.exp(-(dx ** 2 + dy ** 2) / (2 * sigma ** 2))
    return np.stack([dx * g, dy * g], axis=-1).astype(np.float32) * 0.5


@pytest.fixture
def projector(make_manager, runner):
    manager = make_manager(N, N)
    return ProjectionSolver(runner, manager, BoundaryEnforcer(runner))


def test_divergence_kernel(make_slot, projector):
    velocity = np.zeros((N, N, 2), dtype=np.float32)
    velocity[..., 0] = np.arange(N, dtype=np.float32)[:, None]  # vx = x  -> div = 1
    slot = make_slot(projector.buffers, velocity, "velocity")

    div = projector.compute_divergence(slot).read.to_numpy()[..., 0]

    np.testing.assert_allclose(div[1:-1, 1:-1], 1.0)


def test_projection_reduces_divergence(make_slot, projector, runner):
    velocity = source_blob()
    slot = make_slot(projector.buffers, velocity, "velocity")
    before = projector.mean_abs_divergence(slot)
    assert before > 0.0

    after = {}
    for iterations in (5, 10, 30):
        runner.upload(velocity, slot.read)
        projector.project(slot, iterations)
        after[iterations] = projector.mean_abs_divergence(slot)
        assert np.all(np.isfinite(slot.read.to_numpy()))

    assert before > after[5] > after[10] > after[30]


def test_divergence_free_field_is_left_alone(make_slot, projector):
    # a shear flow vx(y) has zero divergence and a zero pressure solution
    velocity = np.zeros((N, N, 2), dtype=np.float32)
    velocity[..., 0] = np.sin(np.linspace(0, np.pi, N, dtype=np.float32))[None, :]
    slot = make_slot(projector.buffers, velocity, "velocity")

    projector.project(slot, 20)

    np.testing.assert_allclose(slot.read.to_numpy(), velocity, atol=1e-6)
