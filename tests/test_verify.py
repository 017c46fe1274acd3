from __future__ import annotations

from types import SimpleNamespace

import numpy as np

from gravmpi.params import SimulationParameters
from gravmpi.verify import verify_partition_invariance


def test_partition_invariance_holds_for_two_and_four_workers():
    params = SimulationParameters(
        time_period=0.04,
        delta_time=0.01,
        initial_body_mass=500.0,
        softening_length=0.2,
        debug_acceleration_scale=10.0,
    )
    for workers in (2, 4):
        res = verify_partition_invariance(params, 8, workers, seed=6)
        assert res.ok
        assert res.iterations == 4
        assert res.max_da <= 1e-6


def test_shape_mismatch_reports_failure(monkeypatch):
    import gravmpi.verify as verify_mod

    def fake_run(params, body_count, workers, *, seed):
        trace = np.zeros((2 if workers == 1 else 1, body_count, 2))
        bodies = SimpleNamespace(data=np.zeros((body_count, 7)), r=np.zeros((body_count, 2)), v=np.zeros((body_count, 2)))
        return SimpleNamespace(
            trace=SimpleNamespace(as_array=lambda: trace),
            bodies=bodies,
            iteration_count=2,
        )

    monkeypatch.setattr(verify_mod, "run_threaded", fake_run)
    params = SimulationParameters(
        time_period=0.02, delta_time=0.01, initial_body_mass=1.0, softening_length=1.0
    )
    res = verify_partition_invariance(params, 4, 2)
    assert not res.ok
    assert res.max_da == float("inf")
