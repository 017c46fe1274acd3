from __future__ import annotations

import os

from gravmpi.io import MetricsWriter
from gravmpi.params import SimulationParameters
from gravmpi.plots import plot_metrics_csv
from gravmpi.simulation import run_simulation
from gravmpi.transport import SerialTransport


def test_plot_metrics_csv_writes_pngs(tmp_path):
    params = SimulationParameters(
        time_period=0.05, delta_time=0.01, initial_body_mass=10.0, softening_length=0.5
    )
    csv_path = tmp_path / "metrics.csv"
    metrics = MetricsWriter(str(csv_path), softening_sq=params.softening_length_sq)
    run_simulation(params, 4, SerialTransport(), seed=1, metrics=metrics, metrics_every=1)
    out = plot_metrics_csv(str(csv_path), str(tmp_path / "plots"))
    assert [os.path.basename(p) for p in out] == ["energy.png", "energy_drift.png", "vmax.png"]
    for p in out:
        assert os.path.getsize(p) > 0


def test_plot_metrics_csv_empty_file(tmp_path):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("step,KE,PE,E,vmax\n", encoding="utf-8")
    assert plot_metrics_csv(str(csv_path), str(tmp_path / "plots")) == []
