from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional
import yaml

from .constants import DEFAULT_DEBUG_ACCELERATION_SCALE
from .params import SimulationParameters

_TRANSPORT_KINDS = {"auto", "serial", "threads", "mpi"}
_SIMULATION_KEYS = {
    "time_period", "delta_time", "body_count", "initial_body_mass",
    "softening_length", "debug_acceleration_scale", "seed",
}
_RUN_KEYS = {
    "transport", "workers", "progress", "thermo_every",
    "metrics", "metrics_every", "out", "output_manifest",
}

@dataclass
class SimulationConfig:
    time_period: float
    delta_time: float
    body_count: int
    initial_body_mass: float
    softening_length: float
    debug_acceleration_scale: float = DEFAULT_DEBUG_ACCELERATION_SCALE
    seed: Optional[int] = None

    def parameters(self) -> SimulationParameters:
        return SimulationParameters(
            time_period=self.time_period,
            delta_time=self.delta_time,
            initial_body_mass=self.initial_body_mass,
            softening_length=self.softening_length,
            debug_acceleration_scale=self.debug_acceleration_scale,
        )

@dataclass
class RunConfig:
    transport: str = "auto"
    workers: int = 1
    progress: bool = False
    thermo_every: int = 0
    metrics: str = ""
    metrics_every: int = 0
    out: str = ""
    output_manifest: bool = True

@dataclass
class Config:
    simulation: SimulationConfig
    run: RunConfig


def _section(root: Dict[str, Any], key: str, allowed: set, *, required: bool) -> Dict[str, Any]:
    sec = root.get(key, None)
    if sec is None:
        if required:
            raise ValueError(f"config is missing the {key!r} section")
        return {}
    if not isinstance(sec, dict):
        raise ValueError(f"{key} must be a mapping")
    extra = sorted(set(sec.keys()) - allowed)
    if extra:
        raise ValueError(f"{key} contains unsupported keys: {extra}")
    return sec


def _required(sec: Dict[str, Any], scope: str, key: str):
    if key not in sec:
        raise ValueError(f"{scope}.{key} is required")
    return sec[key]


def _coerce(value: Any, kind, scope: str, key: str):
    if value is None or isinstance(value, bool):
        raise ValueError(f"{scope}.{key} must be {kind.__name__}, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{scope}.{key} must be {kind.__name__}, got {value!r}") from exc


def _num(sec: Dict[str, Any], scope: str, key: str, kind, default: Any = None, *, required: bool = False):
    if required:
        return _coerce(_required(sec, scope, key), kind, scope, key)
    if key not in sec:
        return default
    return _coerce(sec[key], kind, scope, key)


def parse_config(d: Any) -> Config:
    if not isinstance(d, dict):
        raise ValueError("config root must be a mapping")
    extra = sorted(set(d.keys()) - {"simulation", "run"})
    if extra:
        raise ValueError(f"config contains unsupported sections: {extra}")
    sim = _section(d, "simulation", _SIMULATION_KEYS, required=True)
    run = _section(d, "run", _RUN_KEYS, required=False)

    body_count = _num(sim, "simulation", "body_count", int, required=True)
    if body_count < 0:
        raise ValueError("simulation.body_count must be >= 0")
    seed = None if sim.get("seed") is None else _num(sim, "simulation", "seed", int)

    transport = str(run.get("transport", "auto")).strip().lower()
    if transport not in _TRANSPORT_KINDS:
        raise ValueError(f"run.transport must be one of {sorted(_TRANSPORT_KINDS)}")
    workers = _num(run, "run", "workers", int, 1)
    if workers < 1:
        raise ValueError("run.workers must be >= 1")
    thermo_every = _num(run, "run", "thermo_every", int, 0)
    metrics_every = _num(run, "run", "metrics_every", int, 0)
    if thermo_every < 0 or metrics_every < 0:
        raise ValueError("run.thermo_every and run.metrics_every must be >= 0")

    cfg = Config(
        simulation=SimulationConfig(
            time_period=_num(sim, "simulation", "time_period", float, required=True),
            delta_time=_num(sim, "simulation", "delta_time", float, required=True),
            body_count=body_count,
            initial_body_mass=_num(sim, "simulation", "initial_body_mass", float, required=True),
            softening_length=_num(sim, "simulation", "softening_length", float, required=True),
            debug_acceleration_scale=_num(
                sim, "simulation", "debug_acceleration_scale", float, DEFAULT_DEBUG_ACCELERATION_SCALE
            ),
            seed=seed,
        ),
        run=RunConfig(
            transport=transport,
            workers=workers,
            progress=bool(run.get("progress", False)),
            thermo_every=thermo_every,
            metrics=str(run.get("metrics", "") or ""),
            metrics_every=metrics_every,
            out=str(run.get("out", "") or ""),
            output_manifest=bool(run.get("output_manifest", True)),
        ),
    )
    # validate numeric ranges early
    cfg.simulation.parameters()
    return cfg


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        try:
            d = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path}: invalid YAML: {exc}") from exc
    return parse_config(d)
