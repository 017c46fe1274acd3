from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from gravmpi.transport import (
    CollectiveError,
    SerialTransport,
    ThreadGroup,
    mpi_available,
    resolve_transport,
)


def _run_ranks(size, fn):
    group = ThreadGroup(size, timeout=10.0)
    with ThreadPoolExecutor(max_workers=size) as pool:
        futs = [pool.submit(fn, group.transport(k)) for k in range(size)]
        return [f.result() for f in futs]


def test_thread_broadcast_copies_root_buffer_to_all_ranks():
    def rank_main(t):
        buf = np.zeros((3, 7))
        if t.rank == 0:
            buf[:] = np.arange(21, dtype=float).reshape(3, 7)
        t.broadcast(buf, root=0)
        return buf

    out = _run_ranks(4, rank_main)
    for buf in out:
        assert np.array_equal(buf, np.arange(21, dtype=float).reshape(3, 7))


def test_thread_allgather_concatenates_in_rank_order():
    def rank_main(t):
        local = np.full((2, 7), float(t.rank))
        out = np.empty((2 * t.size, 7))
        results = []
        for step in range(3):
            local[:] = t.rank + 10 * step
            t.allgather(local, out)
            results.append(out.copy())
        return results

    per_rank = _run_ranks(3, rank_main)
    for step in range(3):
        expected = np.repeat(np.array([0, 1, 2], dtype=float) + 10 * step, 2)
        for results in per_rank:
            assert np.array_equal(results[step][:, 0], expected)
            assert np.array_equal(results[step], per_rank[0][step])


def test_aborted_group_raises_collective_error():
    group = ThreadGroup(2, timeout=10.0)
    t0 = group.transport(0)
    group.abort()
    assert group.broken
    with pytest.raises(CollectiveError, match="broken"):
        t0.allgather(np.zeros((1, 7)), np.zeros((2, 7)))


def test_allgather_shape_mismatch_breaks_group():
    group = ThreadGroup(2, timeout=10.0)
    t0 = group.transport(0)
    with pytest.raises(CollectiveError, match="expects"):
        t0.allgather(np.zeros((1, 7)), np.zeros((3, 7)))
    assert group.broken


def test_serial_transport_collectives():
    t = SerialTransport()
    assert (t.rank, t.size) == (0, 1)
    buf = np.ones((2, 7))
    assert t.broadcast(buf) is buf
    out = np.zeros((2, 7))
    t.allgather(buf * 3.0, out)
    assert np.array_equal(out, np.full((2, 7), 3.0))
    with pytest.raises(CollectiveError):
        t.allgather(buf, np.zeros((4, 7)))
    with pytest.raises(CollectiveError):
        t.broadcast(buf, root=1)


def test_thread_group_rejects_bad_rank():
    group = ThreadGroup(2)
    with pytest.raises(ValueError, match="out of range"):
        group.transport(2)
    with pytest.raises(ValueError):
        ThreadGroup(0)


def test_resolve_transport_kinds():
    assert isinstance(resolve_transport("serial"), SerialTransport)
    with pytest.raises(ValueError, match="transport must be one of"):
        resolve_transport("tcp")
    with pytest.raises(ValueError, match="run_threaded"):
        resolve_transport("threads")
    if not mpi_available():
        assert isinstance(resolve_transport("auto"), SerialTransport)
        with pytest.raises(RuntimeError, match="mpi4py required"):
            resolve_transport("mpi")


def test_auto_transport_follows_mpi4py_availability(monkeypatch):
    import gravmpi.transport as transport_mod

    monkeypatch.setattr(transport_mod, "MPI", None)
    assert isinstance(resolve_transport("auto"), SerialTransport)

    made = []
    monkeypatch.setattr(transport_mod, "MPI", object())
    monkeypatch.setattr(transport_mod, "MPITransport", lambda: made.append("mpi") or "mpi-transport")
    assert resolve_transport("auto") == "mpi-transport"
    assert resolve_transport("mpi") == "mpi-transport"
    assert made == ["mpi", "mpi"]
