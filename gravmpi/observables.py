from __future__ import annotations
import numpy as np

from .state import BodySet


def kinetic_energy(bodies: BodySet) -> float:
    v = bodies.v
    return 0.5 * float((bodies.mass[:, None] * (v * v)).sum())


def potential_energy(bodies: BodySet, softening_sq: float) -> float:
    """Softened pair energy, ``-sum_{i<j} m_i m_j / sqrt(r_ij^2 + eps^2)`` (G=1)."""
    n = len(bodies)
    if n < 2:
        return 0.0
    r = bodies.r
    m = bodies.mass
    iu = np.triu_indices(n, k=1)
    dr = r[iu[1]] - r[iu[0]]
    d2 = (dr * dr).sum(axis=1) + float(softening_sq)
    return -float((m[iu[0]] * m[iu[1]] / np.sqrt(d2)).sum())


def compute_observables(bodies: BodySet, softening_sq: float) -> dict:
    """Energy diagnostics for a global body set.

    Returns:
        dict with N, KE, PE, E, vmax
    """
    ke = kinetic_energy(bodies)
    pe = potential_energy(bodies, softening_sq)
    speeds = np.linalg.norm(bodies.v, axis=1)
    vmax = float(speeds.max()) if speeds.size else 0.0
    return {"N": len(bodies), "KE": ke, "PE": pe, "E": ke + pe, "vmax": vmax}
