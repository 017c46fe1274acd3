from __future__ import annotations

import io

import numpy as np
import pytest

from gravmpi.io import TextOutputWriter, read_output
from gravmpi.state import bodies_from_arrays


def _two_bodies():
    return bodies_from_arrays(
        r=np.array([[0.25, -1.5], [3.0, 0.0]]),
        v=np.array([[-0.125, 2.0], [0.0, 1e-7]]),
        mass=np.array([1.0, 12345.678901]),
    )


def test_writer_uses_six_decimal_fixed_point():
    buf = io.StringIO()
    w = TextOutputWriter(buf)
    w.write_header(2, 10.0, 0.05)
    w.write_bodies(_two_bodies())
    w.write_trace([(1.0, -2.5), (0.0, 3.25)])
    assert buf.getvalue().splitlines() == [
        "2",
        "10.000000",
        "0.050000",
        "0.250000 -1.500000",
        "0.000000 0.000000",
        "-0.125000 2.000000",
        "1.000000",
        "3.000000 0.000000",
        "0.000000 0.000000",
        "0.000000 0.000000",
        "12345.678901",
        "1.000000 -2.500000",
        "0.000000 3.250000",
    ]
    assert w.lines_written == 13
    assert w.trace_rows == 2


def test_read_output_restores_layout():
    buf = io.StringIO()
    w = TextOutputWriter(buf)
    w.write_header(2, 1.0, 0.5)
    w.write_bodies(_two_bodies())
    w.write_trace([(1.0, 2.0), (3.0, 4.0), (5.0, 6.0), (7.0, 8.0)])
    rec = read_output(io.StringIO(buf.getvalue()))
    assert rec.body_count == 2
    assert rec.time_period == pytest.approx(1.0)
    assert rec.delta_time == pytest.approx(0.5)
    assert rec.iterations == 2
    assert rec.trace[1, 0].tolist() == [5.0, 6.0]
    assert rec.bodies.mass.tolist() == [1.0, 12345.678901]


def test_read_output_rejects_truncated_streams():
    with pytest.raises(ValueError, match="missing header"):
        read_output(io.StringIO("2\n1.0\n"))
    with pytest.raises(ValueError, match="incomplete initial body blocks"):
        read_output(io.StringIO("1\n1.0\n1.0\n0 0\n0 0\n"))
    with pytest.raises(ValueError, match="not a multiple"):
        read_output(io.StringIO("2\n1\n1\n" + "0 0\n0 0\n0 0\n1\n" * 2 + "1 1\n"))


def test_writer_open_creates_file(tmp_path):
    path = tmp_path / "out.txt"
    w = TextOutputWriter.open(str(path))
    w.write_header(0, 1.0, 1.0)
    w.close()
    assert path.read_text(encoding="utf-8") == "0\n1.000000\n1.000000\n"
