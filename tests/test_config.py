import pytest

from stablefluids.config import SimulationConfig
from stablefluids.errors import ConfigError


def test_defaults_are_valid():
    cfg = SimulationConfig()
    assert cfg.resolution == (256, 256)
    assert 0.0 < cfg.dye_dissipation <= 1.0


@pytest.mark.parametrize("changes", [
    {"width": 2},
    {"height": 0},
    {"velocity_viscosity": -0.1},
    {"timestep": -1.0},
    {"diffusion_iterations": 0},
    {"projection_iterations": 0},
    {"velocity_dissipation": 0.0},
    {"dye_dissipation": 1.5},
    {"injector_radius": 0.0},
    {"dye_channels": 3},
    {"initial_dye": "mona_lisa"},
    {"precision": "f128"},
])
def test_invalid_values_are_rejected(changes):
    with pytest.raises(ConfigError):
        SimulationConfig(**changes)


def test_replace_validates():
    cfg = SimulationConfig()
    assert cfg.replace(width=64).width == 64
    with pytest.raises(ConfigError):
        cfg.replace(dye_dissipation=0.0)
    with pytest.raises(ConfigError):
        cfg.replace(no_such_field=1)


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigError):
        SimulationConfig.from_dict({"width": 32, "colour": "red"})


def test_from_yaml_reads_simulation_section(tmp_path):
    path = tmp_path / "params.yaml"
    path.write_text(
        "backend: cpu\n"
        "simulation:\n"
        "  width: 48\n"
        "  height: 32\n"
        "  projection_iterations: 12\n"
        "  seed: 7\n",
        encoding="utf-8",
    )
    cfg = SimulationConfig.from_yaml(path)
    assert cfg.resolution == (48, 32)
    assert cfg.projection_iterations == 12
    assert cfg.seed == 7


def test_shipped_config_loads():
    from pathlib import Path

    path = Path(__file__).resolve().parent.parent / "configs" / "fluid_params.yaml"
    cfg = SimulationConfig.from_yaml(path)
    assert cfg.diffusion_iterations >= 1
