from __future__ import annotations
import os, csv
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

def _read_csv(path: str):
    with open(path, "r", encoding="utf-8") as f:
        r = csv.DictReader(f)
        rows = [row for row in r]
    return rows

def plot_metrics_csv(csv_path: str, out_dir: str) -> list[str]:
    """Energy and peak-speed curves from a metrics CSV; returns written PNG paths."""
    rows = _read_csv(csv_path)
    if not rows:
        return []
    os.makedirs(out_dir, exist_ok=True)
    step = np.array([int(r["step"]) for r in rows])
    written = []

    plt.figure()
    for m in ("KE", "PE", "E"):
        plt.plot(step, [float(r[m]) for r in rows], label=m)
    plt.xlabel("iteration")
    plt.ylabel("energy")
    plt.legend()
    plt.tight_layout()
    path = os.path.join(out_dir, "energy.png")
    plt.savefig(path)
    plt.close()
    written.append(path)

    e = np.array([float(r["E"]) for r in rows])
    e0 = e[0] if e[0] != 0.0 else 1.0
    plt.figure()
    plt.plot(step, np.abs((e - e[0]) / e0))
    plt.xlabel("iteration")
    plt.ylabel("|dE/E0|")
    plt.tight_layout()
    path = os.path.join(out_dir, "energy_drift.png")
    plt.savefig(path)
    plt.close()
    written.append(path)

    plt.figure()
    plt.plot(step, [float(r["vmax"]) for r in rows])
    plt.xlabel("iteration")
    plt.ylabel("vmax")
    plt.tight_layout()
    path = os.path.join(out_dir, "vmax.png")
    plt.savefig(path)
    plt.close()
    written.append(path)
    return written
