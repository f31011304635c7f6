"""Randomness source passed to every sampling step of the protocol."""

from __future__ import annotations

import hashlib
import secrets
from typing import List

from constants import CURVE_ORDER


class SecureRandom:
    """安全随机数源 / Cryptographic RNG with an optional deterministic mode.

    Without a seed all bytes come from :mod:`secrets`. With a seed the stream is
    SHAKE-256 over ``(seed, label, counter)``, which makes test runs reproducible.
    """

    def __init__(self, label: str = "", seed: bytes | None = None) -> None:
        self.label = label
        self.seed = seed
        self._counter = 0

    def derive_child(self, label: str) -> "SecureRandom":
        """派生子随机源 / Derive an independent stream for a sub-component."""
        if self.seed is None:
            return SecureRandom(label)
        child_seed = hashlib.sha256(self.seed + b"/" + label.encode()).digest()
        return SecureRandom(label, child_seed)

    def random_bytes(self, length: int) -> bytes:
        if length < 0:
            raise ValueError("Length must be non-negative")
        if self.seed is None:
            return secrets.token_bytes(length)
        block = hashlib.shake_256()
        block.update(self.seed)
        block.update(self.label.encode())
        block.update(self._counter.to_bytes(8, "big"))
        self._counter += 1
        return block.digest(length)

    def random_scalar(self) -> int:
        # 64 bytes reduced mod r keeps the bias negligible
        return int.from_bytes(self.random_bytes(64), "big") % CURVE_ORDER

    def random_nonzero_scalar(self) -> int:
        while True:
            value = self.random_scalar()
            if value:
                return value

    def random_scalars(self, count: int) -> List[int]:
        return [self.random_scalar() for _ in range(count)]
