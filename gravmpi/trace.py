from __future__ import annotations

from typing import Iterator

import numpy as np


class AccelerationTrace:
    """Append-only ``(iterations, N, 2)`` record of global accelerations.

    Storage is allocated once for the full run; ``append`` fills the next
    iteration and refuses to grow past capacity.
    """

    def __init__(self, iterations: int, n_bodies: int):
        it = int(iterations)
        n = int(n_bodies)
        if it < 0 or n < 0:
            raise ValueError("iterations and body count must be >= 0")
        self._buf = np.zeros((it, n, 2), dtype=np.float64)
        self._filled = 0

    @property
    def capacity(self) -> int:
        return int(self._buf.shape[0])

    @property
    def n_bodies(self) -> int:
        return int(self._buf.shape[1])

    def __len__(self) -> int:
        return self._filled

    @property
    def complete(self) -> bool:
        return self._filled == self.capacity

    def append(self, accelerations: np.ndarray) -> None:
        acc = np.asarray(accelerations, dtype=float)
        if acc.shape != (self.n_bodies, 2):
            raise ValueError(f"expected accelerations of shape ({self.n_bodies}, 2), got {acc.shape}")
        if self._filled >= self.capacity:
            raise RuntimeError(f"acceleration trace is full ({self.capacity} iterations)")
        self._buf[self._filled] = acc
        self._filled += 1

    def as_array(self) -> np.ndarray:
        """Filled part, read-only view."""
        view = self._buf[:self._filled]
        view.flags.writeable = False
        return view

    def rows(self) -> Iterator[tuple[float, float]]:
        """(ax, ay) pairs, iteration-major then body-minor."""
        for k in range(self._filled):
            for ax, ay in self._buf[k]:
                yield float(ax), float(ay)
