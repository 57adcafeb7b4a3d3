"""RGB color triples. Hex strings only appear at the display boundary."""

from __future__ import annotations

import numpy as np


def rgb(hex_color: str) -> np.ndarray:
    """Parse '#rrggbb' into a float RGB triple in [0, 255]."""
    value = hex_color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected #rrggbb, got {hex_color!r}")
    return np.array([int(value[i:i + 2], 16) for i in (0, 2, 4)], dtype=float)


def to_hex(color: np.ndarray) -> str:
    channels = np.clip(np.round(color), 0, 255).astype(int)
    return "#{:02x}{:02x}{:02x}".format(*channels)


def blend(a: np.ndarray, b: np.ndarray, ratio: float) -> np.ndarray:
    """Per-channel linear interpolation (0 = all a, 1 = all b)."""
    ratio = float(np.clip(ratio, 0.0, 1.0))
    return a * (1.0 - ratio) + b * ratio
