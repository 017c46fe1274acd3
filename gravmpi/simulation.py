from __future__ import annotations

import sys
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .init_conditions import generate_bodies
from .io.metrics import MetricsWriter
from .io.text_output import TextOutputWriter
from .observables import compute_observables
from .params import SimulationParameters
from .partition import check_partitionable, partition_for_rank
from .progress import ProgressCallback, null_progress
from .state import BodySet, empty_bodies
from .trace import AccelerationTrace
from .transport import CollectiveError, ThreadGroup, Transport
from .worker import compute_partition_step

COORDINATOR_RANK = 0


@dataclass
class SimulationResult:
    rank: int
    size: int
    iteration_count: int
    bodies: BodySet
    initial: Optional[BodySet] = None
    trace: Optional[AccelerationTrace] = None

    @property
    def is_coordinator(self) -> bool:
        return self.rank == COORDINATOR_RANK


class SimulationContext:
    """Per-rank run state: parameters, canonical set, local buffer and trace.

    The partition is validated on construction, before any collective or
    output.  Only the coordinator allocates the trace and owns the
    writers.  Leaving the context releases the buffers and closes the
    writers; an exception escaping the context aborts the transport so
    peers blocked in a collective do not hang.
    """

    def __init__(
        self,
        params: SimulationParameters,
        body_count: int,
        transport: Transport,
        *,
        progress: Optional[ProgressCallback] = None,
        writer: Optional[TextOutputWriter] = None,
        metrics: Optional[MetricsWriter] = None,
        metrics_every: int = 0,
        thermo_every: int = 0,
    ):
        self.params = params
        self.body_count = int(body_count)
        self.transport = transport
        self.partition = partition_for_rank(self.body_count, transport.size, transport.rank)
        self.iteration_count = params.iteration_count
        self.is_coordinator = transport.rank == COORDINATOR_RANK

        self.bodies: Optional[BodySet] = empty_bodies(self.body_count)
        self.local: Optional[BodySet] = empty_bodies(self.partition.length)
        self.trace: Optional[AccelerationTrace] = None
        self.initial: Optional[BodySet] = None
        self.progress: ProgressCallback = null_progress
        self.writer = None
        self.metrics = None
        self.metrics_every = 0
        self.thermo_every = 0
        if self.is_coordinator:
            self.trace = AccelerationTrace(self.iteration_count, self.body_count)
            self.progress = progress if progress is not None else null_progress
            self.writer = writer
            self.metrics = metrics
            self.metrics_every = max(0, int(metrics_every))
            self.thermo_every = max(0, int(thermo_every))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc is not None:
                self.transport.abort(exc)
        finally:
            self.close()
        return False

    def close(self) -> None:
        close_progress = getattr(self.progress, "close", None)
        if close_progress is not None:
            close_progress()
        self.progress = null_progress
        if self.writer is not None:
            self.writer.close()
            self.writer = None
        if self.metrics is not None:
            self.metrics.close()
            self.metrics = None
        self.bodies = None
        self.local = None

    # --- phases ---

    def initialize(self, *, rng: np.random.Generator | None = None, seed: int | None = None) -> None:
        """Coordinator generates and emits the initial state; then broadcast to all ranks."""
        if self.is_coordinator:
            gen = generate_bodies(
                self.body_count,
                self.params.initial_body_mass,
                self.params.debug_acceleration_scale,
                rng=rng,
                seed=seed,
            )
            np.copyto(self.bodies.data, gen.data)
            self.initial = gen
            if self.writer is not None:
                self.writer.write_header(self.body_count, self.params.time_period, self.params.delta_time)
                self.writer.write_bodies(gen)
        self.transport.broadcast(self.bodies.data, root=COORDINATOR_RANK)

    def step(self, k: int) -> None:
        compute_partition_step(
            self.bodies,
            self.partition,
            self.local,
            softening_sq=self.params.softening_length_sq,
            dt=self.params.delta_time,
        )
        self.transport.allgather(self.local.data, self.bodies.data)
        if self.is_coordinator:
            self._record(k)

    def _record(self, k: int) -> None:
        self.trace.append(self.bodies.a)
        step = k + 1
        self.progress(step / self.iteration_count)
        if self.metrics is not None and self.metrics_every and step % self.metrics_every == 0:
            self.metrics.write(step, self.bodies)
        if self.thermo_every and step % self.thermo_every == 0:
            obs = compute_observables(self.bodies, self.params.softening_length_sq)
            print(
                f"[thermo step={step}] KE={obs['KE']:.6f} PE={obs['PE']:.6f} E={obs['E']:.6f}",
                file=sys.stderr,
                flush=True,
            )

    def finish(self) -> None:
        if self.is_coordinator and self.writer is not None:
            self.writer.write_trace(self.trace.rows())

    def run(self, *, rng: np.random.Generator | None = None, seed: int | None = None) -> SimulationResult:
        if self.is_coordinator and self.iteration_count == 0:
            warnings.warn(
                "time_period < delta_time: no iterations will run",
                RuntimeWarning,
            )
        self.initialize(rng=rng, seed=seed)
        for k in range(self.iteration_count):
            self.step(k)
        self.finish()
        return SimulationResult(
            rank=self.transport.rank,
            size=self.transport.size,
            iteration_count=self.iteration_count,
            bodies=self.bodies.copy(),
            initial=self.initial,
            trace=self.trace,
        )


def run_simulation(
    params: SimulationParameters,
    body_count: int,
    transport: Transport,
    *,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
    writer: Optional[TextOutputWriter] = None,
    progress: Optional[ProgressCallback] = None,
    metrics: Optional[MetricsWriter] = None,
    metrics_every: int = 0,
    thermo_every: int = 0,
) -> SimulationResult:
    with SimulationContext(
        params,
        body_count,
        transport,
        progress=progress,
        writer=writer,
        metrics=metrics,
        metrics_every=metrics_every,
        thermo_every=thermo_every,
    ) as ctx:
        return ctx.run(rng=rng, seed=seed)


def run_threaded(
    params: SimulationParameters,
    body_count: int,
    workers: int,
    *,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
    writer: Optional[TextOutputWriter] = None,
    progress: Optional[ProgressCallback] = None,
    metrics: Optional[MetricsWriter] = None,
    metrics_every: int = 0,
    thermo_every: int = 0,
    timeout: float | None = None,
) -> SimulationResult:
    """Run ``workers`` symmetric ranks as threads; returns the coordinator's result.

    If any rank fails the group is aborted and the originating error is
    re-raised in preference to the ``CollectiveError`` seen by its peers.
    """
    check_partitionable(body_count, workers)
    group = ThreadGroup(int(workers), timeout=timeout)

    def _rank_main(rank: int) -> SimulationResult:
        coord = rank == COORDINATOR_RANK
        with group.transport(rank) as t:
            return run_simulation(
                params,
                body_count,
                t,
                rng=rng if coord else None,
                seed=seed if coord else None,
                writer=writer if coord else None,
                progress=progress if coord else None,
                metrics=metrics if coord else None,
                metrics_every=metrics_every,
                thermo_every=thermo_every,
            )

    with ThreadPoolExecutor(max_workers=int(workers), thread_name_prefix="gravmpi-rank") as pool:
        futures = [pool.submit(_rank_main, k) for k in range(int(workers))]
        errors: list[BaseException] = []
        results: list[SimulationResult] = []
        for fut in futures:
            exc = fut.exception()
            if exc is not None:
                errors.append(exc)
            else:
                results.append(fut.result())

    if errors:
        primary = [e for e in errors if not isinstance(e, CollectiveError)]
        raise (primary or errors)[0]
    return results[COORDINATOR_RANK]
