from stablefluids.utils.parser import backend, precision
from stablefluids.utils.reader import load_yaml

__all__ = ["backend", "precision", "load_yaml"]
