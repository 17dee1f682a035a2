import numpy as np
import pytest

from stablefluids.advection import AdvectionOperator


def test_zero_velocity_is_identity(make_manager, make_slot, runner, rng):
    manager = make_manager(20, 12)
    data = rng.random((20, 12, 4)).astype(np.float32)
    field = make_slot(manager, data, "dye")
    velocity = make_slot(manager, np.zeros((20, 12, 2)), "velocity")

    AdvectionOperator(runner).advect_slot(field, velocity, timestep=0.7)

    np.testing.assert_array_equal(field.read.to_numpy(), data)


@pytest.mark.parametrize("dissipation", [1.0, 0.998, 0.5])
def test_constant_field_is_bounded_by_dissipation(make_manager, make_slot, runner, rng, dissipation):
    manager = make_manager(24, 24)
    field = make_slot(manager, np.ones((24, 24, 1)), "dye")
    velocity = make_slot(manager, rng.normal(scale=5.0, size=(24, 24, 2)), "velocity")

    AdvectionOperator(runner).advect_slot(field, velocity, timestep=1.0, dissipation=dissipation)
    out = field.read.to_numpy()

    assert np.all(out <= np.float32(dissipation))
    np.testing.assert_allclose(out, dissipation, rtol=1e-6)


def test_uniform_flow_shifts_by_whole_cells(make_manager, make_slot, runner, rng):
    manager = make_manager(16, 16)
    data = rng.random((16, 16, 1)).astype(np.float32)
    field = make_slot(manager, data, "dye")
    flow = np.zeros((16, 16, 2), dtype=np.float32)
    flow[..., 0] = 2.0
    velocity = make_slot(manager, flow, "velocity")

    AdvectionOperator(runner).advect_slot(field, velocity, timestep=0.5)
    out = field.read.to_numpy()

    np.testing.assert_array_equal(out[1:], data[:-1])
    # backtrace past the wall clamps to the edge column
    np.testing.assert_array_equal(out[0], data[0])


def test_self_advection_reads_the_current_velocity(make_manager, make_slot, runner):
    manager = make_manager(8, 8)
    flow = np.zeros((8, 8, 2), dtype=np.float32)
    flow[..., 1] = 1.0
    velocity = make_slot(manager, flow, "velocity")
    before = velocity.read

    AdvectionOperator(runner).advect_slot(velocity, velocity, timestep=1.0)

    assert velocity.read is not before
    np.testing.assert_array_equal(velocity.read.to_numpy(), flow)
