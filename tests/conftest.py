import numpy as np
import pytest
import taichi as ti

from stablefluids.buffers import GridBufferManager
from stablefluids.kernels import KernelRunner


@pytest.fixture(scope="session", autouse=True)
def taichi_cpu():
    ti.init(arch=ti.cpu, random_seed=0)
    yield
    ti.reset()


@pytest.fixture
def runner():
    return KernelRunner()


@pytest.fixture
def make_manager():
    managers = []

    def factory(width=16, height=16):
        manager = GridBufferManager(width, height)
        managers.append(manager)
        return manager

    yield factory
    for manager in managers:
        manager.teardown()


@pytest.fixture
def make_slot(runner):
    """Slot whose readable buffer holds ``array`` (shape (w, h, channels))."""

    def factory(manager, array, name="field"):
        array = np.asarray(array, dtype=np.float32)
        slot = manager.allocate_slot(array.shape[2], name)
        runner.upload(array, slot.read)
        return slot

    return factory


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
