from __future__ import annotations

from dataclasses import dataclass

import numpy as np


class PartitionError(ValueError):
    """Body count cannot be split evenly across workers."""


@dataclass(frozen=True)
class Partition:
    """Contiguous index range ``[start, start + length)`` owned by one rank."""
    rank: int
    start: int
    length: int

    @property
    def stop(self) -> int:
        return self.start + self.length

    def ids(self) -> np.ndarray:
        return np.arange(self.start, self.stop, dtype=np.int64)

    def as_slice(self) -> slice:
        return slice(self.start, self.stop)


def check_partitionable(n_bodies: int, n_workers: int) -> int:
    """Return bodies per worker or raise ``PartitionError``."""
    n = int(n_bodies)
    p = int(n_workers)
    if p < 1:
        raise PartitionError("worker count must be >= 1")
    if n < 0:
        raise PartitionError("body count must be >= 0")
    if n % p != 0:
        raise PartitionError(
            f"body count {n} is not divisible by worker count {p}"
        )
    return n // p


def make_partitions(n_bodies: int, n_workers: int) -> list[Partition]:
    per = check_partitionable(n_bodies, n_workers)
    return [Partition(rank=k, start=k * per, length=per) for k in range(int(n_workers))]


def partition_for_rank(n_bodies: int, n_workers: int, rank: int) -> Partition:
    rk = int(rank)
    if rk < 0 or rk >= int(n_workers):
        raise ValueError(f"rank {rk} out of range for {int(n_workers)} workers")
    per = check_partitionable(n_bodies, n_workers)
    return Partition(rank=rk, start=rk * per, length=per)
