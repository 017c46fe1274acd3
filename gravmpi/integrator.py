from __future__ import annotations

import numpy as np


def semi_implicit_euler(r: np.ndarray, v: np.ndarray, a: np.ndarray, dt: float) -> None:
    """In-place symplectic Euler: velocity first, then position with the new velocity."""
    dt = float(dt)
    v += a * dt
    r += v * dt
