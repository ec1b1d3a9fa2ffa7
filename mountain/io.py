"""Output serialization for simulation snapshots."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image

from mountain.derive import gradient_maps, height_preview_u16, signed_preview_u8, unit_preview_u8


def resolve_output_dir(
    out_root: str | Path,
    seed: int,
    width: int,
    height: int,
    *,
    overwrite: bool,
) -> Path:
    """Create and return the output directory for one run."""

    target = Path(out_root) / f"seed-{seed}" / f"{width}x{height}"
    if target.exists() and any(target.iterdir()) and not overwrite:
        raise FileExistsError(
            f"Output directory already exists and is not empty: {target}. Use --overwrite to replace files."
        )
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_npy(path: str | Path, values: np.ndarray) -> None:
    np.save(Path(path), values.astype(np.float32), allow_pickle=False)


def write_png_u16(path: str | Path, raster_u16: np.ndarray) -> None:
    image = Image.fromarray(raster_u16.astype(np.uint16))
    image.save(Path(path))


def write_png_u8(path: str | Path, raster_u8: np.ndarray) -> None:
    image = Image.fromarray(raster_u8.astype(np.uint8))
    image.save(Path(path))


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    text = json.dumps(payload, indent=2, sort_keys=True)
    Path(path).write_text(text + "\n", encoding="utf-8")


def write_snapshot(out_dir: Path, heights: np.ndarray, shadows: np.ndarray) -> list[Path]:
    """Write height, shadow, and slope rasters; returns the written paths."""

    gx, gy = gradient_maps(heights)
    slope_clip = max(float(np.max(np.abs(gx))), float(np.max(np.abs(gy))), 1e-6)
    png_u8_outputs: dict[str, np.ndarray] = {
        "shadow.png": unit_preview_u8(shadows, invert=True),
        "gradient_x.png": signed_preview_u8(gx, clip=slope_clip),
        "gradient_y.png": signed_preview_u8(gy, clip=slope_clip),
    }

    write_npy(out_dir / "height.npy", heights)
    write_npy(out_dir / "shadow.npy", shadows)
    write_png_u16(out_dir / "height_16.png", height_preview_u16(heights))
    for name, raster in png_u8_outputs.items():
        write_png_u8(out_dir / name, raster)
    return [out_dir / name for name in ("height.npy", "shadow.npy", "height_16.png", *png_u8_outputs)]
