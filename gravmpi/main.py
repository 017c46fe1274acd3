from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from .config import Config, RunConfig, SimulationConfig, load_config
from .constants import DEFAULT_DEBUG_ACCELERATION_SCALE
from .io import MetricsWriter, TextOutputWriter, output_manifest_payload, write_manifest
from .params import SimulationParameters
from .partition import PartitionError, check_partitionable
from .progress import TqdmProgress, make_progress, null_progress
from .simulation import COORDINATOR_RANK, run_simulation, run_threaded
from .transport import CollectiveError, resolve_transport

_USAGE = (
    "Error: incorrect number of arguments\n\n"
    "\tUsage: {prog} <time period (~10-100)> "
    "<delta time (~0.01-0.1)> "
    "<body count (~100-1000)> "
    "<initial body mass (~10000)> "
    "<softening length (~100)> "
    "[debug acceleration scale (~100)]\n"
)


class UsageError(ValueError):
    pass


def _usage_exit(prog: str, detail: str = "") -> None:
    sys.stderr.write(_USAGE.format(prog=prog))
    if detail:
        sys.stderr.write(f"\n{detail}\n")
    sys.stderr.flush()
    raise SystemExit(1)


def _simulation_from_positionals(values: Sequence[str]) -> SimulationConfig:
    if len(values) not in (5, 6):
        raise UsageError(f"expected 5 or 6 positional arguments, got {len(values)}")
    try:
        return SimulationConfig(
            time_period=float(values[0]),
            delta_time=float(values[1]),
            body_count=int(values[2], 10),
            initial_body_mass=float(values[3]),
            softening_length=float(values[4]),
            debug_acceleration_scale=(
                float(values[5]) if len(values) > 5 else DEFAULT_DEBUG_ACCELERATION_SCALE
            ),
        )
    except ValueError as exc:
        raise UsageError(f"invalid argument: {exc}") from exc


def _resolve_config(args) -> Config:
    if args.config:
        if args.values:
            raise UsageError("positional arguments cannot be combined with --config")
        cfg = load_config(args.config)
    else:
        cfg = Config(simulation=_simulation_from_positionals(args.values), run=RunConfig())

    sim, run = cfg.simulation, cfg.run
    if sim.body_count < 0:
        raise UsageError("body count must be >= 0")
    if args.seed is not None:
        sim.seed = int(args.seed)
    if args.transport:
        run.transport = args.transport
    if args.workers is not None:
        run.workers = int(args.workers)
    if args.out:
        run.out = args.out
    if args.no_output_manifest:
        run.output_manifest = False
    if args.progress:
        run.progress = True
    if args.thermo_every is not None:
        run.thermo_every = int(args.thermo_every)
    if args.metrics:
        run.metrics = args.metrics
    if args.metrics_every is not None:
        run.metrics_every = int(args.metrics_every)
    if args.plots and not run.metrics:
        raise UsageError("--plots requires --metrics")
    if run.workers < 1:
        raise UsageError("--workers must be >= 1")
    if run.transport != "threads" and run.workers != 1 and not args.verify:
        raise UsageError("--workers only applies to --transport threads (MPI takes its size from the launcher)")
    return cfg


def _open_writer(run: RunConfig) -> TextOutputWriter:
    if run.out:
        return TextOutputWriter.open(run.out)
    return TextOutputWriter(sys.stdout)


def _make_progress(run: RunConfig):
    if not run.progress:
        return null_progress
    if run.out:
        return TqdmProgress()
    return make_progress(True, data_stream=sys.stdout)


def _write_output_manifest(cfg: Config, params: SimulationParameters, *, workers: int, transport: str) -> None:
    run = cfg.run
    if not run.out or not run.output_manifest:
        return
    payload = output_manifest_payload(
        path=run.out,
        format_name=TextOutputWriter.SCHEMA_NAME,
        schema_version=TextOutputWriter.SCHEMA_VERSION,
        body_count=cfg.simulation.body_count,
        iterations=params.iteration_count,
        time_period=params.time_period,
        delta_time=params.delta_time,
        workers=workers,
        transport=transport,
        seed=cfg.simulation.seed,
    )
    write_manifest(f"{run.out}.manifest.json", payload)


def _cmd_verify(cfg: Config, params: SimulationParameters, workers: int) -> None:
    from .verify import verify_partition_invariance

    res = verify_partition_invariance(
        params,
        cfg.simulation.body_count,
        workers,
        seed=1 if cfg.simulation.seed is None else cfg.simulation.seed,
    )
    print(
        f"[verify] workers={res.workers} iterations={res.iterations} ok={res.ok} "
        f"max|da|={res.max_da:.3e} max|dr|={res.max_dr:.3e} max|dv|={res.max_dv:.3e}",
        file=sys.stderr,
        flush=True,
    )
    raise SystemExit(0 if res.ok else 2)


def _run_threads(cfg: Config, params: SimulationParameters) -> bool:
    sim, run = cfg.simulation, cfg.run
    check_partitionable(sim.body_count, run.workers)
    print(f"[transport rank={COORDINATOR_RANK}] kind=threads size={run.workers}", file=sys.stderr, flush=True)
    writer = _open_writer(run)
    metrics = MetricsWriter(run.metrics, softening_sq=params.softening_length_sq) if run.metrics else None
    run_threaded(
        params,
        sim.body_count,
        run.workers,
        seed=sim.seed,
        writer=writer,
        progress=_make_progress(run),
        metrics=metrics,
        metrics_every=run.metrics_every if run.metrics_every else (1 if metrics else 0),
        thermo_every=run.thermo_every,
    )
    _write_output_manifest(cfg, params, workers=run.workers, transport="threads")
    return True


def _run_transport(cfg: Config, params: SimulationParameters) -> bool:
    sim, run = cfg.simulation, cfg.run
    transport = resolve_transport(run.transport)
    print(
        f"[transport rank={transport.rank}] kind={transport.kind} size={transport.size}",
        file=sys.stderr,
        flush=True,
    )
    try:
        check_partitionable(sim.body_count, transport.size)
    except PartitionError:
        transport.close()
        raise
    with transport:
        coord = transport.rank == COORDINATOR_RANK
        writer = _open_writer(run) if coord else None
        metrics = None
        if coord and run.metrics:
            metrics = MetricsWriter(run.metrics, softening_sq=params.softening_length_sq)
        run_simulation(
            params,
            sim.body_count,
            transport,
            seed=sim.seed if coord else None,
            writer=writer,
            progress=_make_progress(run) if coord else None,
            metrics=metrics,
            metrics_every=run.metrics_every if run.metrics_every else (1 if metrics else 0),
            thermo_every=run.thermo_every,
        )
        if coord:
            _write_output_manifest(cfg, params, workers=transport.size, transport=transport.kind)
        return coord


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="gravmpi",
        description="Direct-summation 2D N-body simulation over partitioned workers",
    )
    p.add_argument(
        "values",
        nargs="*",
        metavar="ARG",
        help="<time_period> <delta_time> <body_count> <initial_body_mass> "
             "<softening_length> [debug_acceleration_scale]",
    )
    p.add_argument("--config", default="", help="YAML run config (replaces positional arguments)")
    p.add_argument("--seed", type=int, default=None, help="Seed for initial conditions")
    p.add_argument(
        "--transport",
        choices=["auto", "serial", "threads", "mpi"],
        default="",
        help="Collective transport (auto: MPI when mpi4py is importable)",
    )
    p.add_argument("--workers", type=int, default=None, help="Worker count for --transport threads")
    p.add_argument("--out", default="", help="Write output to a file instead of stdout")
    p.add_argument(
        "--no-output-manifest",
        action="store_true",
        help="Disable the JSON sidecar manifest next to --out",
    )
    p.add_argument("--progress", action="store_true", help="Show a progress bar on stderr")
    p.add_argument("--thermo-every", type=int, default=None, help="Energy report period (iterations)")
    p.add_argument("--metrics", default="", help="Metrics CSV output path")
    p.add_argument("--metrics-every", type=int, default=None, help="Metrics output period (iterations)")
    p.add_argument("--plots", default="", help="Directory for energy plots from --metrics")
    p.add_argument(
        "--verify",
        type=int,
        default=0,
        metavar="P",
        help="Compare a 1-worker run with a P-worker run and exit",
    )
    return p


def main(argv: Optional[Sequence[str]] = None) -> None:
    p = _build_parser()
    args = p.parse_args(argv)
    try:
        cfg = _resolve_config(args)
    except UsageError as exc:
        _usage_exit(p.prog, str(exc))
    except (ValueError, OSError) as exc:
        print(f"[error] {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1)

    try:
        params = cfg.simulation.parameters()
        if args.verify:
            _cmd_verify(cfg, params, int(args.verify))
        if cfg.run.transport == "threads":
            coord = _run_threads(cfg, params)
        else:
            coord = _run_transport(cfg, params)
        if coord and args.plots:
            from .plots import plot_metrics_csv

            paths = plot_metrics_csv(cfg.run.metrics, args.plots)
            print(f"[plots] {len(paths)} figures -> {args.plots}", file=sys.stderr, flush=True)
    except (PartitionError, CollectiveError, ValueError, RuntimeError, OSError) as exc:
        print(f"[error] {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
