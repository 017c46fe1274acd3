from __future__ import annotations

import numpy as np

from .constants import DEFAULT_KERNEL_BLOCK


def softened_distance_sq(dr: np.ndarray, softening_sq: float) -> np.ndarray:
    """|dr|^2 + eps^2 over the last axis."""
    dr = np.asarray(dr, dtype=float)
    return (dr * dr).sum(axis=-1) + float(softening_sq)


def pair_acceleration(
    subject_r: np.ndarray,
    source_r: np.ndarray,
    source_mass: float,
    softening_sq: float,
) -> np.ndarray:
    """Acceleration on the subject due to one source body.

    ``a = dr * m_source * (|dr|^2 + eps^2)^(-3/2)`` with ``dr = source - subject``.
    The subject's own mass does not enter.  Callers must not pass a body
    against itself.
    """
    dr = np.asarray(source_r, dtype=float) - np.asarray(subject_r, dtype=float)
    d2 = softened_distance_sq(dr, softening_sq)
    return dr * (float(source_mass) * d2 ** -1.5)


def accelerations_on_targets(
    r: np.ndarray,
    mass: np.ndarray,
    target_ids: np.ndarray,
    softening_sq: float,
    *,
    block: int = DEFAULT_KERNEL_BLOCK,
) -> np.ndarray:
    """Total acceleration on each target from every other body (direct sum).

    Returns an array of shape ``(len(target_ids), 2)``.  Self-interaction is
    excluded by zeroing the source weight on the diagonal, so the
    per-target result does not depend on how targets are grouped.
    """
    r = np.asarray(r, dtype=float)
    mass = np.asarray(mass, dtype=float)
    ids = np.asarray(target_ids, dtype=np.int64)
    if r.ndim != 2 or r.shape[1] != 2:
        raise ValueError("positions must have shape (N, 2)")
    if mass.ndim != 1 or mass.shape[0] != r.shape[0]:
        raise ValueError("mass array must have shape (N,)")
    blk = int(block)
    if blk < 1:
        raise ValueError("block must be >= 1")

    out = np.zeros((ids.shape[0], 2), dtype=float)
    n = int(r.shape[0])
    if ids.size == 0 or n < 2:
        return out

    for s in range(0, ids.shape[0], blk):
        tid = ids[s:s + blk]
        dr = r[None, :, :] - r[tid, None, :]             # (b, N, 2)
        d2 = (dr * dr).sum(axis=2) + float(softening_sq)  # (b, N)
        w = np.broadcast_to(mass, d2.shape).copy()
        w[np.arange(tid.shape[0]), tid] = 0.0
        # keep the masked diagonal finite even when eps == 0
        d2[np.arange(tid.shape[0]), tid] = 1.0
        scale = w * d2 ** -1.5
        out[s:s + blk] = (dr * scale[:, :, None]).sum(axis=1)
    return out
