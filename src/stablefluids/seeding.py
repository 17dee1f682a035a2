"""Initial field contents: a gently moving fluid and a dye pattern."""
import math
from typing import Optional

import numpy as np

from stablefluids.errors import ConfigError
from stablefluids.kernels import SeedVelocityParams


def velocity_seed_params(amplitude: float, rng: np.random.Generator) -> SeedVelocityParams:
    """Random low wavenumbers and phases for the stream-function seed."""
    wavenumbers = tuple(float(k) for k in rng.integers(1, 4, size=4))
    phases = tuple(float(p) for p in rng.uniform(0.0, 2.0 * math.pi, size=4))
    return SeedVelocityParams(amplitude=amplitude, wavenumbers=wavenumbers, phases=phases)


def dye_pattern(name: str, width: int, height: int, channels: int = 1, cells: int = 8) -> np.ndarray:
    """Host array of shape (width, height, channels) with values in [0, 1]."""
    i, j = np.meshgrid(np.arange(width), np.arange(height), indexing="ij")
    if name == "blank":
        values = np.zeros((width, height))
    elif name == "checkerboard":
        values = (((i * cells) // width + (j * cells) // height) % 2).astype(np.float64)
    elif name == "stripes":
        values = (((j * cells) // height) % 2).astype(np.float64)
    elif name == "center":
        values = np.zeros((width, height))
        values[width // 2, height // 2] = 1.0
    else:
        raise ConfigError(f"Unknown dye pattern '{name}'")
    return np.repeat(values[..., np.newaxis], channels, axis=2).astype(np.float32)


def image_to_dye(image: np.ndarray, width: int, height: int, channels: int = 1) -> np.ndarray:
    """Resamples an image (rows top to bottom, as image readers return it) onto the grid.

    Nearest-neighbour sampling, y flipped so the image's top row lands at the top
    of the grid. Integer images are scaled to [0, 1].
    """
    data = np.asarray(image)
    if np.issubdtype(data.dtype, np.integer):
        data = data.astype(np.float32) / np.iinfo(data.dtype).max
    else:
        data = data.astype(np.float32)
    if data.ndim == 2:
        data = data[..., np.newaxis]
    if data.ndim != 3:
        raise ConfigError(f"Expected an image of shape (rows, cols[, channels]), got {np.shape(image)}")

    rows, cols = data.shape[:2]
    xs = np.minimum((np.arange(width) + 0.5) * cols / width, cols - 1).astype(int)
    ys = np.minimum((np.arange(height) + 0.5) * rows / height, rows - 1).astype(int)
    grid = data[ys[::-1]][:, xs].transpose(1, 0, 2)  # -> (width, height, c)

    if channels == 1:
        return grid[..., :3].mean(axis=2, keepdims=True).astype(np.float32)
    out = np.ones((width, height, channels), dtype=np.float32)
    c = min(grid.shape[2], channels)
    out[..., :c] = grid[..., :c]
    if grid.shape[2] == 1:
        out[..., :3] = grid[..., :1]
    return out


def initial_dye(name: str, width: int, height: int, channels: int, image: Optional[np.ndarray] = None) -> np.ndarray:
    if image is not None:
        return image_to_dye(image, width, height, channels)
    return dye_pattern(name, width, height, channels)
