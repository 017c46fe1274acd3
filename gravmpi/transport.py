"""Collective-communication layer.

Workers only ever synchronize through two blocking collectives:

* ``broadcast(buf, root)``: every rank ends with ``root``'s copy of ``buf``;
* ``allgather(local, out)``: every rank receives the rank-ordered
  concatenation of all ``local`` slices in ``out``.

Any failure to complete either is fatal for the whole run and surfaces as
``CollectiveError``.  Nothing here retries.
"""

from __future__ import annotations

import threading
from typing import Optional, Protocol

import numpy as np

try:
    import mpi4py

    mpi4py.rc.initialize = False
    mpi4py.rc.finalize = False
    from mpi4py import MPI
except Exception:
    MPI = None

_TRANSPORT_KINDS = ("auto", "serial", "threads", "mpi")


class CollectiveError(RuntimeError):
    """A broadcast or all-gather could not be completed by every rank."""


class Transport(Protocol):
    kind: str
    rank: int
    size: int

    def broadcast(self, buf: np.ndarray, root: int = 0) -> np.ndarray: ...

    def allgather(self, local: np.ndarray, out: np.ndarray) -> np.ndarray: ...

    def abort(self, exc: Optional[BaseException] = None) -> None: ...

    def close(self) -> None: ...


def _check_gather_shapes(local: np.ndarray, out: np.ndarray, size: int) -> None:
    if local.ndim != out.ndim or local.shape[1:] != out.shape[1:]:
        raise CollectiveError(
            f"allgather shape mismatch: local {local.shape} vs out {out.shape}"
        )
    if int(local.shape[0]) * int(size) != int(out.shape[0]):
        raise CollectiveError(
            f"allgather expects {int(out.shape[0])} rows, "
            f"{int(size)} ranks x {int(local.shape[0])} rows contributed"
        )


class _TransportBase:
    kind = "base"
    rank = 0
    size = 1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is not None:
            self.abort(exc)
        self.close()
        return False

    def abort(self, exc: Optional[BaseException] = None) -> None:
        return None

    def close(self) -> None:
        return None


class SerialTransport(_TransportBase):
    """Single-rank transport: broadcast is a no-op, all-gather a copy."""

    kind = "serial"

    def broadcast(self, buf: np.ndarray, root: int = 0) -> np.ndarray:
        if int(root) != 0:
            raise CollectiveError(f"broadcast root {root} out of range for size 1")
        return buf

    def allgather(self, local: np.ndarray, out: np.ndarray) -> np.ndarray:
        _check_gather_shapes(local, out, 1)
        np.copyto(out, local)
        return out


class ThreadGroup:
    """Shared rendezvous for ``size`` in-process ranks.

    Each collective is two barrier phases: publish into the shared slots,
    then release once every rank has copied out.  ``abort()`` breaks the
    barrier so every rank blocked in a collective raises ``CollectiveError``.
    """

    def __init__(self, size: int, *, timeout: float | None = None):
        n = int(size)
        if n < 1:
            raise ValueError("thread group size must be >= 1")
        self.size = n
        self._barrier = threading.Barrier(n, timeout=timeout)
        self._slots: list[Optional[np.ndarray]] = [None] * n

    def transport(self, rank: int) -> "ThreadTransport":
        rk = int(rank)
        if rk < 0 or rk >= self.size:
            raise ValueError(f"rank {rk} out of range for group size {self.size}")
        return ThreadTransport(self, rk)

    def transports(self) -> list["ThreadTransport"]:
        return [self.transport(k) for k in range(self.size)]

    def abort(self) -> None:
        self._barrier.abort()

    @property
    def broken(self) -> bool:
        return self._barrier.broken

    def _wait(self, rank: int, op: str) -> None:
        try:
            self._barrier.wait()
        except threading.BrokenBarrierError as exc:
            raise CollectiveError(f"{op} aborted on rank {rank}: worker group is broken") from exc


class ThreadTransport(_TransportBase):
    kind = "threads"

    def __init__(self, group: ThreadGroup, rank: int):
        self.group = group
        self.rank = int(rank)
        self.size = group.size

    def broadcast(self, buf: np.ndarray, root: int = 0) -> np.ndarray:
        g = self.group
        root = int(root)
        if root < 0 or root >= self.size:
            self.abort()
            raise CollectiveError(f"broadcast root {root} out of range for size {self.size}")
        if self.rank == root:
            g._slots[root] = np.array(buf, copy=True)
        g._wait(self.rank, "broadcast")
        if self.rank != root:
            src = g._slots[root]
            if src is None or src.shape != buf.shape:
                self.abort()
                raise CollectiveError(
                    f"broadcast shape mismatch on rank {self.rank}: "
                    f"{None if src is None else src.shape} vs {buf.shape}"
                )
            np.copyto(buf, src)
        g._wait(self.rank, "broadcast")
        return buf

    def allgather(self, local: np.ndarray, out: np.ndarray) -> np.ndarray:
        g = self.group
        try:
            _check_gather_shapes(local, out, self.size)
        except CollectiveError:
            self.abort()
            raise
        g._slots[self.rank] = np.array(local, copy=True)
        g._wait(self.rank, "allgather")
        rows = int(local.shape[0])
        for k in range(self.size):
            chunk = g._slots[k]
            if chunk is None or chunk.shape != local.shape:
                self.abort()
                raise CollectiveError(f"allgather: rank {k} contributed an invalid slice")
            out[k * rows:(k + 1) * rows] = chunk
        g._wait(self.rank, "allgather")
        return out

    def abort(self, exc: Optional[BaseException] = None) -> None:
        self.group.abort()


class MPITransport(_TransportBase):
    """mpi4py buffer collectives over ``COMM_WORLD`` on float64 arrays."""

    kind = "mpi"

    def __init__(self, comm=None):
        if MPI is None:
            raise RuntimeError("mpi4py required")
        self.owns_mpi_init = False
        if not MPI.Is_initialized():
            MPI.Init()
            self.owns_mpi_init = True
        self.comm = MPI.COMM_WORLD if comm is None else comm
        self.rank = int(self.comm.Get_rank())
        self.size = int(self.comm.Get_size())
        self._closed = False

    def broadcast(self, buf: np.ndarray, root: int = 0) -> np.ndarray:
        if buf.dtype != np.float64 or not buf.flags["C_CONTIGUOUS"]:
            raise CollectiveError("broadcast buffer must be contiguous float64")
        try:
            self.comm.Bcast([buf, MPI.DOUBLE], root=int(root))
        except MPI.Exception as exc:
            raise CollectiveError(f"MPI broadcast failed on rank {self.rank}: {exc}") from exc
        return buf

    def allgather(self, local: np.ndarray, out: np.ndarray) -> np.ndarray:
        _check_gather_shapes(local, out, self.size)
        if local.dtype != np.float64 or out.dtype != np.float64:
            raise CollectiveError("allgather buffers must be float64")
        sendbuf = np.ascontiguousarray(local)
        try:
            self.comm.Allgather([sendbuf, MPI.DOUBLE], [out, MPI.DOUBLE])
        except MPI.Exception as exc:
            raise CollectiveError(f"MPI allgather failed on rank {self.rank}: {exc}") from exc
        return out

    def abort(self, exc: Optional[BaseException] = None) -> None:
        if self.size > 1 and MPI.Is_initialized() and not MPI.Is_finalized():
            self.comm.Abort(1)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.owns_mpi_init and MPI.Is_initialized() and not MPI.Is_finalized():
            self.comm.Barrier()
            MPI.Finalize()


def mpi_available() -> bool:
    return MPI is not None


def resolve_transport(kind: str = "auto"):
    """Build a single-process transport for ``kind`` (``auto``, ``serial`` or ``mpi``).

    ``threads`` needs a whole group of ranks in one process and is driven by
    ``gravmpi.simulation.run_threaded`` instead.
    """
    req = str(kind or "auto").strip().lower()
    if req not in _TRANSPORT_KINDS:
        raise ValueError(f"transport must be one of: {', '.join(_TRANSPORT_KINDS)}")
    if req == "threads":
        raise ValueError("threads transport is started through run_threaded")
    if req == "serial":
        return SerialTransport()
    if req == "mpi":
        return MPITransport()
    if MPI is not None:
        return MPITransport()
    return SerialTransport()
