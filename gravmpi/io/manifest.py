from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def write_manifest(path: str, payload: dict[str, Any]) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
    return path


def output_manifest_payload(
    *,
    path: str,
    format_name: str,
    schema_version: int,
    body_count: int,
    iterations: int,
    time_period: float,
    delta_time: float,
    workers: int,
    transport: str,
    seed: int | None,
) -> dict[str, Any]:
    return {
        "kind": "nbody_output",
        "schema": {
            "name": str(format_name),
            "version": int(schema_version),
        },
        "created_at_utc": _utc_now_iso(),
        "path": str(path),
        "body_count": int(body_count),
        "iterations": int(iterations),
        "time_period": float(time_period),
        "delta_time": float(delta_time),
        "records": {
            "header_lines": 3,
            "initial_state_lines": 4 * int(body_count),
            "trace_lines": int(iterations) * int(body_count),
        },
        "workers": int(workers),
        "transport": str(transport),
        "seed": None if seed is None else int(seed),
    }
