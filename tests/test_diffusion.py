import numpy as np
import pytest

from stablefluids.diffusion import DiffusionSolver, diffusion_coefficients


def test_coefficients():
    params = diffusion_coefficients(0.5, 0.1)
    assert params.center_weight == pytest.approx(1.0 / 1.2)
    assert params.neighbour_weight == pytest.approx(0.05 / 1.2)
    assert params.center_weight + 4 * params.neighbour_weight == pytest.approx(1.0)


@pytest.mark.parametrize("alpha", [0.0, 1e-37, 1e-9, 0.05, 1.0, 1e3, 1e8])
@pytest.mark.parametrize("iterations", [1, 20, 60])
def test_output_is_always_finite(make_manager, make_slot, runner, rng, alpha, iterations):
    manager = make_manager(16, 16)
    field = make_slot(manager, rng.normal(scale=10.0, size=(16, 16, 2)))

    DiffusionSolver(runner, manager).diffuse(field, viscosity=alpha, timestep=1.0, iterations=iterations)

    assert np.all(np.isfinite(field.read.to_numpy()))


def test_zero_viscosity_is_a_copy(make_manager, make_slot, runner, rng):
    manager = make_manager(8, 8)
    data = rng.random((8, 8, 1)).astype(np.float32)
    field = make_slot(manager, data)

    DiffusionSolver(runner, manager).diffuse(field, viscosity=0.0, timestep=0.5, iterations=20)

    np.testing.assert_array_equal(field.read.to_numpy(), data)


def test_spike_spreads_without_gaining_mass(make_manager, make_slot, runner):
    manager = make_manager(17, 17)
    data = np.zeros((17, 17, 1), dtype=np.float32)
    data[8, 8] = 1.0
    field = make_slot(manager, data)
    front_before = field.front

    DiffusionSolver(runner, manager).diffuse(field, viscosity=0.5, timestep=0.1, iterations=20)
    out = field.read.to_numpy()

    assert field.read is field.back and field.front is front_before
    assert out[8, 8, 0] < 1.0
    assert out[9, 8, 0] > 0.0
    np.testing.assert_allclose(out[7, 8], out[9, 8], rtol=1e-6)
    assert out.sum() <= 1.0 + 1e-6


def test_matches_implicit_step_when_converged(make_manager, make_slot, runner, rng):
    # (1 + 4a) x - a * sum(neighbours) == x0 at the fixed point
    manager = make_manager(12, 12)
    data = rng.random((12, 12, 1)).astype(np.float32)
    field = make_slot(manager, data)
    alpha = 0.05

    DiffusionSolver(runner, manager).diffuse(field, viscosity=alpha, timestep=1.0, iterations=60)
    x = field.read.to_numpy()[..., 0].astype(np.float64)

    padded = np.pad(x, 1, mode="edge")
    neighbours = padded[:-2, 1:-1] + padded[2:, 1:-1] + padded[1:-1, :-2] + padded[1:-1, 2:]
    np.testing.assert_allclose((1 + 4 * alpha) * x - alpha * neighbours, data[..., 0], atol=1e-5)


@pytest.mark.parametrize("alpha", [1e-37, 1e-30, 1e-6])
@pytest.mark.parametrize("value", [50.0, 1e10, 3e38])
def test_tiny_viscosity_with_large_values_stays_finite(make_manager, make_slot, runner, alpha, value):
    manager = make_manager(10, 10)
    data = np.full((10, 10, 1), value, dtype=np.float32)
    data[5, 5] = -value
    field = make_slot(manager, data)

    DiffusionSolver(runner, manager).diffuse(field, viscosity=alpha, timestep=1.0, iterations=20)
    out = field.read.to_numpy()

    assert np.all(np.isfinite(out))
    assert np.abs(out).max() <= np.float32(value) * np.float32(1 + 1e-6)
    # almost no diffusion: the field is nearly unchanged
    np.testing.assert_allclose(out, data, rtol=1e-5)
