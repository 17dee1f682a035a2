import taichi as ti

from stablefluids.errors import ConfigError


def backend(name):
    mapping = {
        "cpu": ti.cpu,
        "gpu": ti.gpu,
        "metal": ti.metal,
        "vulkan": ti.vulkan, "vk": ti.vulkan,
        "cuda": ti.cuda,
        "opengl": ti.opengl, "gl": ti.opengl,
    }

    try:
        return mapping[name.lower()]
    except KeyError:
        raise ConfigError(f"Unknown Taichi backend '{name}'. Expected one of {sorted(mapping)}") from None


def precision(name):
    mapping = {
        "f16": ti.f16,
        "f32": ti.f32,
        "f64": ti.f64,
    }

    try:
        return mapping[name.lower()]
    except KeyError:
        raise ConfigError(f"Unknown float precision '{name}'. Expected one of {sorted(mapping)}") from None
