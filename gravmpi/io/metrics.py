from __future__ import annotations
import csv
import os

from ..observables import compute_observables
from ..state import BodySet


class MetricsWriter:
    SCHEMA_NAME = "gravmpi.metrics.csv"
    SCHEMA_VERSION = 1

    def __init__(self, path: str, *, softening_sq: float):
        self.path = path
        self.softening_sq = float(softening_sq)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._f = open(path, "w", newline="", encoding="utf-8")
        self._w = csv.writer(self._f)
        self._columns = ["step", "KE", "PE", "E", "vmax"]
        self._w.writerow(self._columns)
        self._f.flush()

    @property
    def columns(self) -> list[str]:
        return list(self._columns)

    def write(self, step: int, bodies: BodySet) -> None:
        obs = compute_observables(bodies, self.softening_sq)
        self._w.writerow([
            int(step),
            float(obs["KE"]),
            float(obs["PE"]),
            float(obs["E"]),
            float(obs["vmax"]),
        ])
        self._f.flush()

    def close(self) -> None:
        if not self._f.closed:
            self._f.close()
