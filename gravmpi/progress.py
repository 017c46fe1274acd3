from __future__ import annotations

import sys
from typing import IO, Callable, Optional

from tqdm import tqdm

ProgressCallback = Callable[[float], None]


def null_progress(fraction: float) -> None:
    return None


class TqdmProgress:
    """Progress bar driven by completion fractions in [0, 1]."""

    def __init__(self, stream: Optional[IO[str]] = None, *, desc: str = "simulate"):
        self._bar = tqdm(
            total=100,
            desc=desc,
            file=sys.stderr if stream is None else stream,
            unit="%",
            leave=True,
        )
        self._pos = 0
        self.closed = False

    def __call__(self, fraction: float) -> None:
        target = int(max(0.0, min(1.0, float(fraction))) * 100)
        if target > self._pos:
            self._bar.update(target - self._pos)
            self._pos = target
        if target >= 100:
            self.close()

    def close(self) -> None:
        if not self.closed:
            self._bar.close()
            self.closed = True


def make_progress(enabled: bool, *, data_stream: Optional[IO[str]] = None) -> ProgressCallback:
    """Bar on stderr when enabled and the data stream is not a terminal."""
    if not enabled:
        return null_progress
    out = sys.stdout if data_stream is None else data_stream
    isatty = getattr(out, "isatty", None)
    if isatty is not None and isatty():
        return null_progress
    return TqdmProgress()
