from pathlib import Path

import yaml

from stablefluids.errors import ConfigError


def load_yaml(path: str | Path) -> dict:
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        _cfg = yaml.safe_load(f)  # plain python dict

    if _cfg is None:
        return {}
    if not isinstance(_cfg, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level, got {type(_cfg).__name__}")

    return _cfg
