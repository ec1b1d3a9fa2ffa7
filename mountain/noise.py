"""Seeded 2D simplex gradient noise with analytic derivatives."""

from __future__ import annotations

import numpy as np


_F2 = 0.5 * (np.sqrt(3.0) - 1.0)
_G2 = (3.0 - np.sqrt(3.0)) / 6.0
_SCALE = 240.0

# Ken Perlin's reference permutation.
_BASE_PERMUTATION = np.array(
    [
        151, 160, 137, 91, 90, 15, 131, 13, 201, 95, 96, 53, 194, 233, 7, 225,
        140, 36, 103, 30, 69, 142, 8, 99, 37, 240, 21, 10, 23, 190, 6, 148,
        247, 120, 234, 75, 0, 26, 197, 62, 94, 252, 219, 203, 117, 35, 11, 32,
        57, 177, 33, 88, 237, 149, 56, 87, 174, 20, 125, 136, 171, 168, 68, 175,
        74, 165, 71, 134, 139, 48, 27, 166, 77, 146, 158, 231, 83, 111, 229, 122,
        60, 211, 133, 230, 220, 105, 92, 41, 55, 46, 245, 40, 244, 102, 143, 54,
        65, 25, 63, 161, 1, 216, 80, 73, 209, 76, 132, 187, 208, 89, 18, 169,
        200, 196, 135, 130, 116, 188, 159, 86, 164, 100, 109, 198, 173, 186, 3, 64,
        52, 217, 226, 250, 124, 123, 5, 202, 38, 147, 118, 126, 255, 82, 85, 212,
        207, 206, 59, 227, 47, 16, 58, 17, 182, 189, 28, 42, 223, 183, 170, 213,
        119, 248, 152, 2, 44, 154, 163, 70, 221, 153, 101, 155, 167, 43, 172, 9,
        129, 22, 39, 253, 19, 98, 108, 110, 79, 113, 224, 232, 178, 185, 112, 104,
        218, 246, 97, 228, 251, 34, 242, 193, 238, 210, 144, 12, 191, 179, 162, 241,
        81, 51, 145, 235, 249, 14, 239, 107, 49, 192, 214, 31, 181, 199, 106, 157,
        184, 84, 204, 176, 115, 121, 50, 45, 127, 4, 150, 254, 138, 236, 205, 93,
        222, 114, 67, 29, 24, 72, 243, 141, 128, 195, 78, 66, 215, 61, 156, 180,
    ],
    dtype=np.int64,
)

_DIAGONAL = float(np.sqrt(0.5))
_GRADIENTS = np.array(
    [
        (1.0, 0.0),
        (-1.0, 0.0),
        (0.0, 1.0),
        (0.0, -1.0),
        (_DIAGONAL, _DIAGONAL),
        (-_DIAGONAL, _DIAGONAL),
        (_DIAGONAL, -_DIAGONAL),
        (-_DIAGONAL, -_DIAGONAL),
    ],
    dtype=np.float64,
)


def permutation_table(seed: int) -> np.ndarray:
    """Return the 256-entry lookup table for `seed`.

    Seed 0 is the reference table unchanged. Any other seed XORs entry `i`
    with byte `i % 4` of the seed taken as a little-endian 32-bit integer.
    """

    table = _BASE_PERMUTATION.copy()
    seed32 = int(seed) & 0xFFFFFFFF
    if seed32 == 0:
        return table
    seed_bytes = np.frombuffer(seed32.to_bytes(4, byteorder="little"), dtype=np.uint8)
    return table ^ np.resize(seed_bytes.astype(np.int64), table.shape)


class NoiseField:
    """Deterministic gradient noise returning value and (d/dx, d/dy)."""

    def __init__(self, seed: int = 0) -> None:
        self.seed = int(seed)
        self._perm = permutation_table(self.seed)

    def evaluate(self, x, y) -> tuple[np.ndarray, tuple[np.ndarray, np.ndarray]]:
        """Evaluate noise at scalar or array coordinates.

        Returns `(value, (dx, dy))` with the same shape as the broadcast input.
        Values are roughly in [-1, 1].
        """

        x, y = np.broadcast_arrays(np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64))

        skew = (x + y) * _F2
        i = np.floor(x + skew).astype(np.int64)
        j = np.floor(y + skew).astype(np.int64)
        unskew = (i + j) * _G2
        x0 = x - (i - unskew)
        y0 = y - (j - unskew)

        # Lower or upper triangle of the skewed cell.
        i1 = (x0 > y0).astype(np.int64)
        j1 = 1 - i1

        x1 = x0 - i1 + _G2
        y1 = y0 - j1 + _G2
        x2 = x0 - 1.0 + 2.0 * _G2
        y2 = y0 - 1.0 + 2.0 * _G2

        value = np.zeros_like(x0)
        grad_x = np.zeros_like(x0)
        grad_y = np.zeros_like(x0)
        corners = ((0, 0, x0, y0), (i1, j1, x1, y1), (1, 1, x2, y2))
        for di, dj, cx, cy in corners:
            g = _GRADIENTS[self._hash(i + di, j + dj)]
            n, dnx, dny = _corner(cx, cy, g[..., 0], g[..., 1])
            value += n
            grad_x += dnx
            grad_y += dny

        return (
            (value * _SCALE)[()],
            ((grad_x * _SCALE)[()], (grad_y * _SCALE)[()]),
        )

    def _hash(self, i: np.ndarray, j: np.ndarray) -> np.ndarray:
        perm = self._perm
        return perm[(i + perm[j & 255]) & 255] & 7


def _corner(
    dx: np.ndarray,
    dy: np.ndarray,
    gx: np.ndarray,
    gy: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    t = np.maximum(0.5 - dx * dx - dy * dy, 0.0)
    t4 = t * t * t * t
    t5 = t4 * t
    dot = gx * dx + gy * dy
    value = t5 * dot
    # d/dx [t^5 * dot] with dt/dx = -2 dx
    ddx = t5 * gx - 10.0 * t4 * dot * dx
    ddy = t5 * gy - 10.0 * t4 * dot * dy
    return value, ddx, ddy
