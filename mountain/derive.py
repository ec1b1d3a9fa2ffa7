"""Derived rasters and preview encodings for snapshot consumers."""

from __future__ import annotations

import numpy as np
from scipy.ndimage import correlate1d


def gradient_maps(height: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Central-difference slopes `(gx, gy)` with edge cells reused at the border.

    `gx = (east - west) / 2`, `gy = (south - north) / 2` where north is the
    next row down the array.
    """

    if height.ndim != 2:
        raise ValueError("height must be a 2D array")

    values = height.astype(np.float32)
    gx = correlate1d(values, [-0.5, 0.0, 0.5], axis=1, mode="nearest")
    gy = correlate1d(values, [0.5, 0.0, -0.5], axis=0, mode="nearest")
    return gx.astype(np.float32), gy.astype(np.float32)


def height_preview_u16(height: np.ndarray) -> np.ndarray:
    """Map [0, 1] heights to 16-bit grayscale, clipping eroded overshoot."""

    norm = np.clip(height.astype(np.float32), 0.0, 1.0)
    return np.round(norm * 65535.0).astype(np.uint16)


def unit_preview_u8(values: np.ndarray, *, invert: bool = False) -> np.ndarray:
    """Map [0, 1] values to 8-bit grayscale."""

    norm = np.clip(values.astype(np.float32), 0.0, 1.0)
    if invert:
        norm = 1.0 - norm
    return np.round(norm * 255.0).astype(np.uint8)


def signed_preview_u8(values: np.ndarray, *, clip: float = 1.0) -> np.ndarray:
    """Map signed float values in [-clip, clip] into 8-bit [0, 255]."""

    normalized = np.clip(values.astype(np.float32) / max(clip, 1e-6), -1.0, 1.0)
    encoded = (normalized * 0.5) + 0.5
    return np.round(encoded * 255.0).astype(np.uint8)
