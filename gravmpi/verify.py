from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .params import SimulationParameters
from .simulation import run_threaded


@dataclass(frozen=True)
class VerifyResult:
    workers: int
    iterations: int
    max_da: float
    max_dr: float
    max_dv: float
    ok: bool


def verify_partition_invariance(
    params: SimulationParameters,
    body_count: int,
    workers: int,
    *,
    seed: int = 1,
    rtol: float = 1e-9,
    atol: float = 1e-9,
) -> VerifyResult:
    """Compare a 1-worker run against a ``workers``-way partitioned run.

    Both runs use the same seed, so only the partitioning differs.
    """
    ref = run_threaded(params, body_count, 1, seed=seed)
    par = run_threaded(params, body_count, int(workers), seed=seed)

    ta = ref.trace.as_array()
    tb = par.trace.as_array()
    if ta.shape != tb.shape or ref.bodies.data.shape != par.bodies.data.shape:
        return VerifyResult(
            workers=int(workers),
            iterations=int(ref.iteration_count),
            max_da=math.inf,
            max_dr=math.inf,
            max_dv=math.inf,
            ok=False,
        )

    da = np.abs(ta - tb)
    dr = np.abs(ref.bodies.r - par.bodies.r)
    dv = np.abs(ref.bodies.v - par.bodies.v)
    ok = (
        bool(np.allclose(ta, tb, rtol=rtol, atol=atol))
        and bool(np.allclose(ref.bodies.data, par.bodies.data, rtol=rtol, atol=atol))
    )
    return VerifyResult(
        workers=int(workers),
        iterations=int(ref.iteration_count),
        max_da=float(da.max()) if da.size else 0.0,
        max_dr=float(dr.max()) if dr.size else 0.0,
        max_dv=float(dv.max()) if dv.size else 0.0,
        ok=ok,
    )
