"""Reproducible random streams for noise seeding and droplet placement."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib

import numpy as np


_U64_MASK = (1 << 64) - 1


def child_seed(parent_seed: int, label: str) -> int:
    """Hash `parent_seed` and `label` into an unsigned 64-bit child seed."""

    payload = f"{int(parent_seed) & _U64_MASK}/{label}".encode("utf-8")
    digest = hashlib.blake2b(payload, digest_size=8, person=b"mountain").digest()
    return int.from_bytes(digest, byteorder="little", signed=False)


@dataclass(frozen=True)
class RngStream:
    """Named, forkable source of numpy generators.

    Forking by label keeps independent consumers (noise seeding, erosion
    droplets) stable when another consumer draws more or fewer numbers.
    """

    seed: int

    def fork(self, label: str) -> "RngStream":
        if not label:
            raise ValueError("fork label must be non-empty")
        return RngStream(child_seed(self.seed, label))

    def generator(self) -> np.random.Generator:
        return np.random.Generator(np.random.PCG64(int(self.seed) & _U64_MASK))

    def noise_seed(self) -> int:
        """32-bit seed for `NoiseField`; the low word of the stream seed."""

        return int(self.seed) & 0xFFFFFFFF
