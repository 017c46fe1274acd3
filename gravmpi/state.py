from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from .constants import BODY_WIDTH, COL_AX, COL_MASS, COL_VX, COL_X

@dataclass
class BodySet:
    """Ordered set of bodies stored as one ``(N, 7)`` float64 array.

    Row ``i`` is body ``i`` for the whole run.  ``r``, ``a`` and ``v`` are
    ``(N, 2)`` views and ``mass`` an ``(N,)`` view into ``data``, so writes
    through them mutate the set in place.
    """
    data: np.ndarray

    def __post_init__(self):
        arr = self.data
        if not isinstance(arr, np.ndarray) or arr.dtype != np.float64:
            raise ValueError("body data must be a float64 numpy array")
        if arr.ndim != 2 or arr.shape[1] != BODY_WIDTH:
            raise ValueError(f"body data must have shape (N, {BODY_WIDTH})")
        if not arr.flags["C_CONTIGUOUS"]:
            raise ValueError("body data must be C-contiguous")

    def __len__(self) -> int:
        return int(self.data.shape[0])

    @property
    def r(self) -> np.ndarray:
        return self.data[:, COL_X:COL_X + 2]

    @property
    def a(self) -> np.ndarray:
        return self.data[:, COL_AX:COL_AX + 2]

    @property
    def v(self) -> np.ndarray:
        return self.data[:, COL_VX:COL_VX + 2]

    @property
    def mass(self) -> np.ndarray:
        return self.data[:, COL_MASS]

    def copy(self) -> "BodySet":
        return BodySet(self.data.copy())


def empty_bodies(n_bodies: int) -> BodySet:
    """Zero-initialized set; non-coordinator ranks hold this until broadcast."""
    n = int(n_bodies)
    if n < 0:
        raise ValueError("body count must be >= 0")
    return BodySet(np.zeros((n, BODY_WIDTH), dtype=np.float64))


def bodies_from_arrays(
    r: np.ndarray,
    v: np.ndarray,
    mass: np.ndarray,
    a: np.ndarray | None = None,
) -> BodySet:
    r = np.asarray(r, dtype=float)
    n = int(r.shape[0]) if r.ndim == 2 else -1
    if r.ndim != 2 or r.shape[1] != 2:
        raise ValueError("positions must have shape (N, 2)")
    v = np.asarray(v, dtype=float)
    if v.shape != r.shape:
        raise ValueError("velocities must have shape (N, 2)")
    masses = np.asarray(mass, dtype=float)
    if masses.ndim != 1 or masses.shape[0] != n:
        raise ValueError("mass array must have shape (N,)")
    if np.any(masses <= 0.0):
        raise ValueError("all masses must be positive")
    out = empty_bodies(n)
    out.r[:] = r
    out.v[:] = v
    out.mass[:] = masses
    if a is not None:
        acc = np.asarray(a, dtype=float)
        if acc.shape != r.shape:
            raise ValueError("accelerations must have shape (N, 2)")
        out.a[:] = acc
    return out
