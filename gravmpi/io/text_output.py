"""Line-oriented text output written by the coordinator.

Layout::

    <body_count>
    <time_period>
    <delta_time>
    x y          \\
    ax ay         | one block per body, index order
    vx vy         |
    mass         /
    ax ay        <- iterations * body_count lines, iteration-major

Every float is rendered with ``%f``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO, Iterable

import numpy as np

from ..constants import OUTPUT_FLOAT_FORMAT
from ..state import BodySet, bodies_from_arrays

_F = OUTPUT_FLOAT_FORMAT


def _pair(a: float, b: float) -> str:
    return f"{_F.format(float(a))} {_F.format(float(b))}\n"


class TextOutputWriter:
    SCHEMA_NAME = "gravmpi.output.text"
    SCHEMA_VERSION = 1

    def __init__(self, stream: IO[str], *, close_stream: bool = False):
        self._f = stream
        self._close_stream = bool(close_stream)
        self.lines_written = 0
        self.trace_rows = 0

    @classmethod
    def open(cls, path: str) -> "TextOutputWriter":
        return cls(open(path, "w", encoding="utf-8"), close_stream=True)

    def _emit(self, text: str, n_lines: int) -> None:
        self._f.write(text)
        self.lines_written += n_lines

    def write_header(self, body_count: int, time_period: float, delta_time: float) -> None:
        self._emit(
            f"{int(body_count)}\n{_F.format(float(time_period))}\n{_F.format(float(delta_time))}\n",
            3,
        )

    def write_bodies(self, bodies: BodySet) -> None:
        parts = []
        for x, y, ax, ay, vx, vy, m in bodies.data:
            parts.append(_pair(x, y))
            parts.append(_pair(ax, ay))
            parts.append(_pair(vx, vy))
            parts.append(f"{_F.format(float(m))}\n")
        self._emit("".join(parts), 4 * len(bodies))
        self._f.flush()

    def write_trace(self, rows: Iterable[tuple[float, float]]) -> None:
        n = 0
        for ax, ay in rows:
            self._f.write(_pair(ax, ay))
            n += 1
        self.lines_written += n
        self.trace_rows += n
        self._f.flush()

    def close(self) -> None:
        if self._close_stream:
            self._f.close()
        else:
            self._f.flush()


@dataclass
class OutputRecord:
    body_count: int
    time_period: float
    delta_time: float
    bodies: BodySet
    trace: np.ndarray  # (iterations, body_count, 2)

    @property
    def iterations(self) -> int:
        return int(self.trace.shape[0])


def _floats(line: str, n: int, lineno: int) -> list[float]:
    toks = line.split()
    if len(toks) != n:
        raise ValueError(f"line {lineno}: expected {n} values, got {len(toks)}")
    try:
        return [float(t) for t in toks]
    except ValueError as exc:
        raise ValueError(f"line {lineno}: {exc}") from exc


def read_output(stream: IO[str]) -> OutputRecord:
    """Parse a complete output stream back into arrays."""
    lines = [ln for ln in stream.read().splitlines() if ln.strip()]
    if len(lines) < 3:
        raise ValueError("output truncated: missing header")
    try:
        n = int(lines[0].strip())
    except ValueError as exc:
        raise ValueError(f"line 1: invalid body count {lines[0]!r}") from exc
    if n < 0:
        raise ValueError("line 1: body count must be >= 0")
    time_period = _floats(lines[1], 1, 2)[0]
    delta_time = _floats(lines[2], 1, 3)[0]

    body_end = 3 + 4 * n
    if len(lines) < body_end:
        raise ValueError("output truncated: incomplete initial body blocks")
    r = np.zeros((n, 2))
    a = np.zeros((n, 2))
    v = np.zeros((n, 2))
    m = np.zeros((n,))
    for i in range(n):
        base = 3 + 4 * i
        r[i] = _floats(lines[base], 2, base + 1)
        a[i] = _floats(lines[base + 1], 2, base + 2)
        v[i] = _floats(lines[base + 2], 2, base + 3)
        m[i] = _floats(lines[base + 3], 1, base + 4)[0]

    rest = lines[body_end:]
    if n == 0:
        if rest:
            raise ValueError("trace lines present for an empty body set")
        trace = np.zeros((0, 0, 2))
    else:
        if len(rest) % n != 0:
            raise ValueError(
                f"trace has {len(rest)} lines, not a multiple of body count {n}"
            )
        flat = np.array(
            [_floats(ln, 2, body_end + k + 1) for k, ln in enumerate(rest)],
            dtype=float,
        ).reshape(-1, 2)
        trace = flat.reshape(len(rest) // n, n, 2)
    return OutputRecord(
        body_count=n,
        time_period=time_period,
        delta_time=delta_time,
        bodies=bodies_from_arrays(r, v, m, a=a),
        trace=trace,
    )
